import os
import logging

from flask import Flask, jsonify
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from shared.pubsub import EventPublisher
from shared.state_machine import TransitionError
from .auth import login_manager
from .config import config
from .errors import ServiceError
from .identity import IdentityDirectory
from .models import db
from .roster import RosterRegistry
from .tournament_engine import TournamentEngine

logger = logging.getLogger(__name__)

migrate = Migrate()


def create_app(config_name: str = None) -> Flask:
    """Application factory for the league API."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(level=app.config['LOG_LEVEL'])
    logging.getLogger().setLevel(app.config['LOG_LEVEL'])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Initialize services
    publisher = None
    if app.config.get('PUBLISH_EVENTS'):
        publisher = EventPublisher.from_url(app.config['REDIS_URL'])

    app.publisher = publisher
    app.identity = IdentityDirectory()
    app.roster = RosterRegistry()
    app.engine = TournamentEngine(app.roster, publisher=publisher)

    # Create tables
    with app.app_context():
        db.create_all()

    register_error_handlers(app)

    from .routes import auth, users, teams, tournaments, events
    app.register_blueprint(auth.bp)
    app.register_blueprint(users.bp)
    app.register_blueprint(teams.bp)
    app.register_blueprint(tournaments.bp)
    app.register_blueprint(events.bp)

    @app.route('/api/v1/health')
    def health_check():
        """Health check endpoint."""
        try:
            db.session.execute(db.text('SELECT 1'))
            db_ok = True
        except Exception:
            logger.exception("Database health check failed")
            db_ok = False

        redis_status = 'disabled'
        if app.publisher is not None:
            redis_status = 'connected' if app.publisher.ping() else 'disconnected'

        status = 'healthy' if db_ok else 'unhealthy'
        code = 200 if db_ok else 503

        return jsonify({
            'status': status,
            'database': 'connected' if db_ok else 'disconnected',
            'redis': redis_status
        }), code

    return app


def register_error_handlers(app: Flask):
    """Render every failure as {"message": ..., "detail": ...}."""

    @app.errorhandler(ServiceError)
    def handle_service_error(error: ServiceError):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(TransitionError)
    def handle_transition_error(error: TransitionError):
        db.session.rollback()
        return jsonify({
            'message': error.reason,
            'detail': {'from_state': error.from_state, 'to_state': error.to_state}
        }), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({'message': error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.exception("Unhandled error")
        db.session.rollback()
        body = {'message': 'Internal server error'}
        if app.debug:
            body['detail'] = str(error)
        return jsonify(body), 500
