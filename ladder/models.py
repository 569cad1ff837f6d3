from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class TierEntry(db.Model):
    """One player's membership in a skill tier."""
    __tablename__ = 'tier_entries'

    id = db.Column(db.Integer, primary_key=True)
    tournament_key = db.Column(db.String(50), nullable=False, index=True)
    tier = db.Column(db.Integer, nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)  # Order within the tier
    name = db.Column(db.String(100), nullable=False)
    name_norm = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('tournament_key', 'name_norm', name='unique_player_tier'),
    )

    def to_dict(self):
        return {
            'tier': self.tier,
            'name': self.name,
            'key': self.name_norm,
        }


class MapEntry(db.Model):
    __tablename__ = 'maps'

    id = db.Column(db.Integer, primary_key=True)
    tournament_key = db.Column(db.String(50), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(100), nullable=False)


class RatingRecord(db.Model):
    """Curated rating over the participants of ``stage`` (rank 1 is best)."""
    __tablename__ = 'ratings'

    id = db.Column(db.Integer, primary_key=True)
    tournament_key = db.Column(db.String(50), nullable=False, index=True)
    stage = db.Column(db.String(20), nullable=False)  # 'qualification' seeds finals, 'finals' seeds superfinal
    rank = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    name_norm = db.Column(db.String(100), nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('tournament_key', 'stage', 'name_norm', name='unique_rating_entry'),
    )

    def to_dict(self):
        return {
            'rank': self.rank,
            'name': self.name,
            'key': self.name_norm,
        }


class StageResult(db.Model):
    __tablename__ = 'stage_results'

    id = db.Column(db.Integer, primary_key=True)
    tournament_key = db.Column(db.String(50), nullable=False, index=True)
    stage = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    name_norm = db.Column(db.String(100), nullable=False)
    placement = db.Column(db.Integer, nullable=True)  # 1 = best
    points = db.Column(db.Float, nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('tournament_key', 'stage', 'name_norm', name='unique_stage_result'),
    )

    def to_dict(self):
        return {
            'name': self.name,
            'key': self.name_norm,
            'placement': self.placement,
            'points': self.points,
        }


class StageFormation(db.Model):
    """The current grouping of one stage; every make overwrites it."""
    __tablename__ = 'stage_formations'

    id = db.Column(db.Integer, primary_key=True)
    tournament_key = db.Column(db.String(50), nullable=False, index=True)
    stage = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='empty')
    version = db.Column(db.Integer, nullable=False, default=0)  # Formation id of the stored grouping
    groups = db.Column(db.JSON, nullable=False, default=list)
    waiting = db.Column(db.JSON, nullable=False, default=list)
    settings = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('tournament_key', 'stage', name='unique_stage_formation'),
    )

    def to_dict(self):
        return {
            'tournament_key': self.tournament_key,
            'stage': self.stage,
            'status': self.status,
            'formation_id': self.version,
            'groups': self.groups or [],
            'waiting': self.waiting or [],
            'settings': self.settings,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
