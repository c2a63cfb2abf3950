"""Python client for the room protocol.

Mirrors what the browser client does: request/response calls for room
membership, fire-and-forget emits for everything else, and a local session
that is overwritten by every ``gameStateUpdate`` broadcast.
"""
import logging

import socketio

from zombeers.exceptions import NotFound, ValidationError, ZombeersError
from zombeers.services.local_session import LocalSession
from zombeers.services.rooms import normalize_code
from zombeers.services.storage import MemoryStorage

logger = logging.getLogger(__name__)


class RoomClient:
    def __init__(self, session=None, sio=None, namespace='/', timeout=10,
                 code_length=4,
                 on_feedback=None, on_presence=None, on_screen=None, on_error=None):
        self.session = session or LocalSession(MemoryStorage())
        self.sio = sio or socketio.Client()
        self.namespace = namespace
        self.timeout = timeout
        self.code_length = code_length
        self.on_feedback = on_feedback
        self.on_presence = on_presence
        self.on_screen = on_screen
        self.on_error = on_error
        self.screen = 'room'
        self.errors = []
        self.sio.on('gameStateUpdate', self._on_game_state_update, namespace=namespace)
        self.sio.on('showScreen', self._on_show_screen, namespace=namespace)
        self.sio.on('actionError', self._on_action_error, namespace=namespace)
        self.sio.on('actionFeedback', self._on_action_feedback, namespace=namespace)
        self.sio.on('playerJoined', self._on_player_joined, namespace=namespace)
        self.sio.on('playerLeft', self._on_player_left, namespace=namespace)

    @property
    def room_code(self):
        return self.session.room_code

    def connect(self, url):
        self.sio.connect(url, namespaces=[self.namespace])

    def disconnect(self):
        self.sio.disconnect()

    # ---- Broadcast handlers ----

    def _on_game_state_update(self, state):
        # Broadcasts still in flight from a room we left
        if not self.room_code:
            return
        # The server is the single source of truth: replace, never merge
        self.session.replace_state(state)

    def _on_show_screen(self, name):
        self.screen = name
        if self.on_screen:
            self.on_screen(name)

    def _on_action_error(self, data):
        message = (data or {}).get('message', '')
        logger.warning(f"[action-error] room={self.room_code} message={message!r}")
        self.errors.append(message)
        if self.on_error:
            self.on_error(message)

    def _on_action_feedback(self, data):
        if self.room_code and self.on_feedback:
            self.on_feedback(data.get('playerId'), data.get('action'))

    def _on_player_joined(self, sid):
        if self.on_presence:
            self.on_presence('joined', sid)

    def _on_player_left(self, sid):
        if self.on_presence:
            self.on_presence('left', sid)

    # ---- Request/response ----

    def _call(self, event, data=None):
        # Raises socketio.exceptions.TimeoutError when the server never answers
        return self.sio.call(event, data, namespace=self.namespace, timeout=self.timeout)

    def create_room(self):
        response = self._call('createRoom')
        if not response or not response.get('roomCode'):
            raise ZombeersError('Failed to create room. Please try again.')
        self.session.set_room_code(response['roomCode'])
        self.session.replace_state(response['state'])
        self.screen = 'setup'
        return response['roomCode']

    def join_room(self, code):
        code = normalize_code(code)
        if len(code) != self.code_length:
            raise ValidationError(f'Please enter a valid {self.code_length}-character room code.')
        response = self._call('joinRoom', code) or {}
        if not response.get('success'):
            raise NotFound(response.get('message') or 'Failed to join room.')
        self.session.set_room_code(response['roomCode'])
        self.session.replace_state(response['state'])
        self.screen = 'setup'
        return response['roomCode']

    def request_state(self):
        response = self._call('requestState', self._require_room()) or {}
        if not response.get('success'):
            raise NotFound(response.get('message') or 'Not in room or room not found.')
        self.session.replace_state(response['state'])
        return self.session.state

    def leave_room(self):
        """Forget the room locally and disconnect so the server drops our membership."""
        if self.sio.connected:
            self.sio.disconnect()
        self.session.reset_all()
        self.session.room_code = None
        self.screen = 'room'

    # ---- Fire-and-forget ----

    def _require_room(self):
        if not self.room_code:
            raise NotFound('Not in a room.')
        return self.room_code

    def _send(self, event, **payload):
        payload['roomCode'] = self._require_room()
        self.sio.emit(event, payload, namespace=self.namespace)

    def add_player(self, name):
        self._send('addPlayer', name=name)

    def remove_player(self, player_id):
        self._send('removePlayer', playerId=player_id)

    def start_game(self):
        self._send('startGame')

    def player_action(self, player_id, action):
        self._send('playerAction', playerId=player_id, action=action)

    def update_settings(self, new_settings):
        self._send('updateSettings', newSettings=dict(new_settings))

    def reset_game(self):
        self._send('resetGame')

    def new_game_setup(self):
        self._send('newGameSetup')
