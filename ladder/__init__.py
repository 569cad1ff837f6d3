"""
Ladder Service - hosts stage formation for the tournament bot

Responsibilities:
- Source records per tournament (skill tiers, maps, ratings, results)
- Stage formation ("make") serialized per tournament and stage
- Stored groupings and waiting lists, replaced wholesale on every make
- Formation announcements over Redis
"""
