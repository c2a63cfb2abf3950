import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated list of origins allowed for HTTP and Socket.IO
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:3000,https://zombeers.com'
    ).split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    # Room rules
    MAX_PLAYERS = int(os.environ.get('MAX_PLAYERS', '10'))
    HISTORY_LIMIT = int(os.environ.get('HISTORY_LIMIT', '100'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '4'))
    # Logging: optional files for everything and for errors only
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE')
    ERROR_LOG_FILE = os.environ.get('ERROR_LOG_FILE')
    # Snapshot store used by the `flask local` commands
    LOCAL_STORAGE_URL = os.environ.get('LOCAL_STORAGE_URL') or 'sqlite:///zombeers-local.db'
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', '3000'))
