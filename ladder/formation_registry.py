import logging
from threading import Lock
from typing import Dict, List, Optional, Tuple

from flask import current_app
import redis

from allocator import stages
from allocator.candidates import (
    GroupAssignment,
    PlacementCandidate,
    PlayerRef,
    QualificationCandidate,
    RatingEntry,
    SkillBucket,
    player_from_dict,
)
from allocator.errors import FormationError
from allocator.policies import EndPairingPolicy, policy_from_dict
from allocator.standings import map_popularity, sort_defined_rating, stage_rating_table
from shared.events import formation_failed_event, stage_formed_event, state_changed_event
from shared.state_machine import StageStateMachine, TransitionError
from .config import stage_settings
from .models import db, MapEntry, RatingRecord, StageFormation, StageResult, TierEntry

logger = logging.getLogger(__name__)

# Stage whose curated rating / results seed the given stage
SEED_SOURCE = {
    stages.FINALS: stages.QUALIFICATION,
    stages.SUPERFINAL: stages.FINALS,
}


def _optional_int(value) -> Optional[int]:
    if value is None or value == '':
        return None
    return int(value)


class FormationRegistry:
    """
    Owns stage formation for the hosted tournaments:
    - Store source records (tiers, maps, ratings, results)
    - Run the allocation engine for a stage, one run at a time per stage
    - Replace the stored grouping and announce it
    """

    def __init__(self, redis_client: redis.Redis = None):
        self.redis = redis_client
        # One process-local lock per (tournament, stage) ever made; entries are not evicted
        self._locks: Dict[str, Lock] = {}
        self._locks_guard = Lock()

    # ==================== Source records ====================

    def set_tier(self, tournament_key: str, tier: int, names: List[str]) -> List[TierEntry]:
        """Replace the members of a tier. Players listed here leave any other tier."""
        players = []
        seen = set()
        for name in names:
            player = PlayerRef.from_name(name)
            if player.key and player.key not in seen:
                seen.add(player.key)
                players.append(player)

        TierEntry.query.filter_by(tournament_key=tournament_key, tier=tier).delete()
        if seen:
            TierEntry.query.filter(
                TierEntry.tournament_key == tournament_key,
                TierEntry.name_norm.in_(list(seen))
            ).delete(synchronize_session=False)

        entries = [
            TierEntry(
                tournament_key=tournament_key,
                tier=tier,
                position=i,
                name=player.name,
                name_norm=player.key
            )
            for i, player in enumerate(players)
        ]
        db.session.add_all(entries)
        db.session.commit()
        return entries

    def get_tiers(self, tournament_key: str) -> List[SkillBucket]:
        entries = TierEntry.query.filter_by(tournament_key=tournament_key) \
            .order_by(TierEntry.tier, TierEntry.position).all()
        buckets: Dict[int, SkillBucket] = {}
        for e in entries:
            bucket = buckets.setdefault(e.tier, SkillBucket(tier=e.tier))
            bucket.players.append(PlayerRef(name=e.name, key=e.name_norm))
        return list(buckets.values())

    def set_maps(self, tournament_key: str, names: List[str]) -> List[str]:
        MapEntry.query.filter_by(tournament_key=tournament_key).delete()
        cleaned = stages.distinct_maps(names)
        db.session.add_all(
            MapEntry(tournament_key=tournament_key, position=i, name=name)
            for i, name in enumerate(cleaned)
        )
        db.session.commit()
        return cleaned

    def get_maps(self, tournament_key: str) -> List[str]:
        entries = MapEntry.query.filter_by(tournament_key=tournament_key) \
            .order_by(MapEntry.position).all()
        return [m.name for m in entries]

    def set_rating(self, tournament_key: str, stage: str, names: List[str]) -> List[RatingRecord]:
        """Store a curated rating; list order is rank order."""
        RatingRecord.query.filter_by(tournament_key=tournament_key, stage=stage).delete()
        records = []
        seen = set()
        for name in names:
            player = PlayerRef.from_name(name)
            if not player.key or player.key in seen:
                continue
            seen.add(player.key)
            records.append(RatingRecord(
                tournament_key=tournament_key,
                stage=stage,
                rank=len(records) + 1,
                name=player.name,
                name_norm=player.key
            ))
        db.session.add_all(records)
        db.session.commit()
        return records

    def get_rating(self, tournament_key: str, stage: str) -> List[RatingEntry]:
        records = RatingRecord.query.filter_by(tournament_key=tournament_key, stage=stage).all()
        return sort_defined_rating(
            RatingEntry(player=PlayerRef(name=r.name, key=r.name_norm), rank=r.rank)
            for r in records
        )

    def record_results(self, tournament_key: str, stage: str, results: List[dict]) -> List[StageResult]:
        """Replace a stage's results. Each entry has a name and a placement and/or points."""
        StageResult.query.filter_by(tournament_key=tournament_key, stage=stage).delete()
        rows: Dict[str, StageResult] = {}
        for item in results:
            player = PlayerRef.from_name(item.get('name'))
            if not player.key:
                continue
            points = item.get('points')
            rows[player.key] = StageResult(
                tournament_key=tournament_key,
                stage=stage,
                name=player.name,
                name_norm=player.key,
                placement=_optional_int(item.get('placement')),
                points=float(points) if points is not None else None
            )
        db.session.add_all(rows.values())
        db.session.commit()
        return list(rows.values())

    def _results(self, tournament_key: str, stage: str) -> Dict[str, StageResult]:
        rows = StageResult.query.filter_by(tournament_key=tournament_key, stage=stage).all()
        return {r.name_norm: r for r in rows}

    # ==================== Formations ====================

    def get_formation(self, tournament_key: str, stage: str) -> Optional[StageFormation]:
        return StageFormation.query.filter_by(tournament_key=tournament_key, stage=stage).first()

    def _participants(self, tournament_key: str, stage: str) -> List[QualificationCandidate]:
        """Players currently grouped in ``stage``, with their tiers."""
        record = self.get_formation(tournament_key, stage)
        if not record:
            return []
        return [
            QualificationCandidate(player=player_from_dict(p), tier=p.get('tier'))
            for g in (record.groups or [])
            for p in g.get('players', [])
        ]

    def _lock(self, tournament_key: str, stage: str):
        name = f"formation:{tournament_key}:{stage}"
        if self.redis is not None:
            timeout = current_app.config.get('FORMATION_LOCK_TIMEOUT', 30)
            return self.redis.lock(name, timeout=timeout)
        with self._locks_guard:
            return self._locks.setdefault(name, Lock())

    def _form(self, tournament_key: str, stage: str, settings: dict, formation_id: int):
        maps = self.get_maps(tournament_key)
        maps_per_group = int(settings.get('maps_per_group') or 0)

        if stage == stages.QUALIFICATION:
            return stages.form_qualification(
                self.get_tiers(tournament_key),
                policy_from_dict(settings),
                maps,
                maps_per_group,
                formation_id
            )

        source = SEED_SOURCE[stage]
        policy = EndPairingPolicy(
            max_per_group=int(settings['max_per_group']),
            total_cap=_optional_int(settings.get('total_cap'))
        )
        participants = self._participants(tournament_key, source)
        seeding = settings.get('seeding')

        if seeding == 'rating':
            rating = self.get_rating(tournament_key, source)
            form = stages.form_finals_from_rating if stage == stages.FINALS else stages.form_superfinal_from_rating
            return form(rating, participants, policy, maps, maps_per_group, formation_id)

        results = self._results(tournament_key, source)
        if stage == stages.FINALS and seeding == 'results':
            placed = [
                PlacementCandidate(player=c.player, tier=c.tier, placement=results[c.player.key].placement)
                for c in participants
                if c.player.key in results
            ]
            return stages.form_finals_from_results(placed, policy, maps, maps_per_group, formation_id)
        if stage == stages.SUPERFINAL and seeding == 'points':
            points = {key: r.points for key, r in results.items() if r.points is not None}
            return stages.form_superfinal_from_points(
                points, participants, policy, maps, maps_per_group, formation_id
            )

        raise ValueError(f"Unknown seeding '{seeding}' for {stage}")

    def make_stage(
        self,
        tournament_key: str,
        stage: str,
        overrides: dict = None
    ) -> Tuple[bool, str, Optional[StageFormation]]:
        """
        Rebuild a stage's groups from the current source records.

        On any failure the stored grouping is left as it was.
        """
        if stage not in stages.STAGES:
            return False, f"Unknown stage: {stage}", None
        if overrides is not None and not isinstance(overrides, dict):
            return False, "Invalid settings: expected an object of stage settings", None

        settings = stage_settings(current_app.config, stage)
        settings.update({k: v for k, v in (overrides or {}).items() if v is not None})

        with self._lock(tournament_key, stage):
            record = self.get_formation(tournament_key, stage)
            if record is None:
                record = StageFormation(tournament_key=tournament_key, stage=stage, status='empty', version=0)

            sm = StageStateMachine.from_state_string(record.status)
            if not sm.can_perform('make'):
                return False, f"Cannot make {stage} in {record.status} state", None

            formation_id = (record.version or 0) + 1
            try:
                formation = self._form(tournament_key, stage, settings, formation_id)
            except FormationError as e:
                logger.warning(f"Formation of {stage} for {tournament_key} failed: {e.reason}")
                self._announce(tournament_key, formation_failed_event(tournament_key, stage, e.kind, e.reason))
                return False, e.reason, None
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Invalid {stage} settings for {tournament_key}: {e}")
                return False, f"Invalid settings: {e}", None

            try:
                old_state = sm.state.value
                new_state = sm.transition('make')
            except TransitionError as e:
                return False, str(e), None

            data = formation.to_dict()
            record.groups = data['groups']
            record.waiting = data['waiting']
            record.settings = settings
            record.version = formation_id
            record.status = new_state.value
            db.session.add(record)
            db.session.commit()

        self._announce(tournament_key, stage_formed_event(
            tournament_key, stage, formation_id, len(formation.groups), len(formation.waiting)
        ))
        if old_state != new_state.value:
            self._announce(tournament_key, state_changed_event(tournament_key, stage, old_state, new_state.value))

        return True, f"{stage} formed: {len(formation.groups)} groups, {len(formation.waiting)} waiting", record

    def _announce(self, tournament_key: str, event):
        if self.redis is None:
            return
        payload = event.to_json()
        self.redis.publish(f'tournament:{tournament_key}:events', payload)
        self.redis.publish('global:announcements', payload)

    # ==================== Standings ====================

    def _stored_groups(self, tournament_key: str, stage: str) -> List[GroupAssignment]:
        record = self.get_formation(tournament_key, stage)
        if not record:
            return []
        return [
            GroupAssignment(
                group_id=g.get('group_id'),
                players=[
                    QualificationCandidate(player=player_from_dict(p), tier=p.get('tier'))
                    for p in g.get('players', [])
                ],
                maps=g.get('maps', [])
            )
            for g in (record.groups or [])
        ]

    def get_standings(self, tournament_key: str, stage: str) -> List[dict]:
        points = {
            key: r.points
            for key, r in self._results(tournament_key, stage).items()
            if r.points is not None
        }
        return stage_rating_table(self._stored_groups(tournament_key, stage), points)

    def get_map_popularity(self, tournament_key: str, stage: str = None) -> List[dict]:
        chosen = [stage] if stage else list(stages.STAGES)
        groups = []
        for s in chosen:
            groups.extend(self._stored_groups(tournament_key, s))
        return map_popularity(groups)