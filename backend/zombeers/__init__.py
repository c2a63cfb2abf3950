import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)

EXTENSION_KEY = 'zombeers'


def configure_logging(flask_app):
    """Level from LOG_LEVEL, plus optional combined and error-only log files."""
    level = logging.getLevelName(str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO
    flask_app.logger.setLevel(level)
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s', '%Y-%m-%d %H:%M:%S')
    log_file = flask_app.config.get('LOG_FILE')
    if log_file:
        handler = logging.FileHandler(log_file)
        handler.setFormatter(formatter)
        flask_app.logger.addHandler(handler)
    error_log_file = flask_app.config.get('ERROR_LOG_FILE')
    if error_log_file:
        handler = logging.FileHandler(error_log_file)
        handler.setLevel(logging.ERROR)
        handler.setFormatter(formatter)
        flask_app.logger.addHandler(handler)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    configure_logging(flask_app)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    # The module-level socketio serves the most recently created app; its handlers
    # are rebound below, so only one app per process handles socket events
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One registry per app; handlers are bound to it rather than to module state
    from zombeers.services.rooms import RoomRegistry
    registry = RoomRegistry(
        max_players=flask_app.config.get('MAX_PLAYERS', 10),
        history_limit=flask_app.config.get('HISTORY_LIMIT', 100),
        code_length=flask_app.config.get('ROOM_CODE_LENGTH', 4),
    )
    flask_app.extensions[EXTENSION_KEY] = registry

    from zombeers.main import main
    flask_app.register_blueprint(main)

    from zombeers.socketio_events import register_socketio_handlers
    register_socketio_handlers(registry, namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/'))

    from zombeers.cli import local_cli
    flask_app.cli.add_command(local_cli)

    flask_app.logger.info('[startup] zombeers app initialized')
    return flask_app
