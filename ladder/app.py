import os
from flask import Flask, request, jsonify
import redis
from sqlalchemy.exc import SQLAlchemyError

from allocator import stages
from .config import config
from .models import db
from .formation_registry import FormationRegistry

RATED_STAGES = (stages.QUALIFICATION, stages.FINALS)


def create_app(config_name: str = None) -> Flask:
    """Application factory for the ladder service."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # Initialize extensions
    db.init_app(app)

    app.redis = None
    if app.config.get('USE_REDIS'):
        app.redis = redis.from_url(
            app.config['REDIS_URL'],
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )

    app.registry = FormationRegistry(redis_client=app.redis)

    with app.app_context():
        db.create_all()

    register_api_routes(app)

    return app


def _is_name_list(value) -> bool:
    return isinstance(value, list) and all(isinstance(n, str) for n in value)


def _json_object() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _bad_stage(stage: str, allowed=stages.STAGES):
    if stage not in allowed:
        return jsonify({'error': f'Unknown stage: {stage}'}), 404
    return None


def register_api_routes(app: Flask):
    """Register API routes."""

    # ==================== Source records ====================

    @app.route('/api/v1/tournaments/<tournament_key>/tiers', methods=['GET'])
    def api_list_tiers(tournament_key: str):
        buckets = app.registry.get_tiers(tournament_key)
        return jsonify({
            'tiers': [
                {'tier': b.tier, 'players': [p.to_dict() for p in b.players]}
                for b in buckets
            ]
        })

    @app.route('/api/v1/tournaments/<tournament_key>/tiers/<int:tier>', methods=['PUT'])
    def api_set_tier(tournament_key: str, tier: int):
        """Replace the players of one skill tier."""
        data = _json_object()
        players = data.get('players')
        if not _is_name_list(players):
            return jsonify({'error': 'players must be a list of names'}), 400

        entries = app.registry.set_tier(tournament_key, tier, players)
        return jsonify({
            'tier': tier,
            'players': [e.to_dict() for e in entries]
        })

    @app.route('/api/v1/tournaments/<tournament_key>/maps', methods=['PUT'])
    def api_set_maps(tournament_key: str):
        data = _json_object()
        maps = data.get('maps')
        if not _is_name_list(maps):
            return jsonify({'error': 'maps must be a list of names'}), 400

        return jsonify({'maps': app.registry.set_maps(tournament_key, maps)})

    @app.route('/api/v1/tournaments/<tournament_key>/ratings/<stage>', methods=['PUT'])
    def api_set_rating(tournament_key: str, stage: str):
        """Store the curated rating of a stage's participants, best first."""
        bad = _bad_stage(stage, RATED_STAGES)
        if bad:
            return bad

        data = _json_object()
        players = data.get('players')
        if not _is_name_list(players):
            return jsonify({'error': 'players must be a list of names'}), 400

        records = app.registry.set_rating(tournament_key, stage, players)
        return jsonify({'stage': stage, 'players': [r.to_dict() for r in records]})

    @app.route('/api/v1/tournaments/<tournament_key>/results/<stage>', methods=['PUT'])
    def api_record_results(tournament_key: str, stage: str):
        bad = _bad_stage(stage)
        if bad:
            return bad

        data = _json_object()
        results = data.get('results')
        if not isinstance(results, list):
            return jsonify({'error': 'results must be a list'}), 400
        if not all(isinstance(r, dict) and isinstance(r.get('name'), str) for r in results):
            return jsonify({'error': 'each result must be an object with a name'}), 400

        try:
            rows = app.registry.record_results(tournament_key, stage, results)
        except (TypeError, ValueError) as e:
            return jsonify({'error': f'Invalid result: {e}'}), 400
        return jsonify({'stage': stage, 'results': [r.to_dict() for r in rows]})

    # ==================== Formation ====================

    @app.route('/api/v1/tournaments/<tournament_key>/stages/<stage>/make', methods=['POST'])
    def api_make_stage(tournament_key: str, stage: str):
        """Rebuild a stage's groups; body fields override the configured defaults."""
        bad = _bad_stage(stage)
        if bad:
            return bad

        overrides = request.get_json(silent=True)
        if overrides is None:
            overrides = {}
        if not isinstance(overrides, dict):
            return jsonify({'error': 'settings must be an object'}), 400

        success, message, record = app.registry.make_stage(tournament_key, stage, overrides)
        if not success:
            return jsonify({'error': message}), 400

        return jsonify({
            'message': message,
            'formation': record.to_dict()
        })

    @app.route('/api/v1/tournaments/<tournament_key>/stages/<stage>', methods=['GET'])
    def api_get_stage(tournament_key: str, stage: str):
        bad = _bad_stage(stage)
        if bad:
            return bad

        record = app.registry.get_formation(tournament_key, stage)
        if not record:
            return jsonify({
                'tournament_key': tournament_key,
                'stage': stage,
                'status': 'empty',
                'formation_id': 0,
                'groups': [],
                'waiting': []
            })
        return jsonify(record.to_dict())

    @app.route('/api/v1/tournaments/<tournament_key>/stages/<stage>/standings', methods=['GET'])
    def api_stage_standings(tournament_key: str, stage: str):
        bad = _bad_stage(stage)
        if bad:
            return bad

        rows = app.registry.get_standings(tournament_key, stage)
        return jsonify({'stage': stage, 'standings': rows, 'count': len(rows)})

    @app.route('/api/v1/tournaments/<tournament_key>/maps/popularity', methods=['GET'])
    def api_map_popularity(tournament_key: str):
        stage = request.args.get('stage')
        if stage:
            bad = _bad_stage(stage)
            if bad:
                return bad
        return jsonify({'maps': app.registry.get_map_popularity(tournament_key, stage)})

    # ==================== Health Check ====================

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        redis_ok = None
        if app.redis is not None:
            try:
                app.redis.ping()
                redis_ok = True
            except redis.exceptions.RedisError:
                redis_ok = False

        try:
            db.session.execute(db.text('SELECT 1'))
            db_ok = True
        except SQLAlchemyError:
            db_ok = False

        healthy = db_ok and redis_ok is not False
        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'redis': 'disabled' if redis_ok is None else ('connected' if redis_ok else 'disconnected'),
            'database': 'connected' if db_ok else 'disconnected'
        }), 200 if healthy else 503
