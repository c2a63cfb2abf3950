from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Zombeers score server!'})


@main.route('/api/health')
def health():
    registry = current_app.extensions['zombeers']
    return jsonify({'status': 'ok', 'rooms': len(registry)})
