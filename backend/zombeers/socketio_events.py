import functools
import logging

from flask import request
from flask_socketio import emit, join_room

from zombeers import socketio
from zombeers.exceptions import ValidationError, ZombeersError
from zombeers.services.rooms import RoomRegistry, normalize_code

logger = logging.getLogger(__name__)


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _room_code(data) -> str:
    if not isinstance(data, dict):
        raise ValidationError('Invalid payload received.')
    code = normalize_code(data.get('roomCode'))
    if not code:
        raise ValidationError('roomCode is required')
    return code


def _reports_errors(handler):
    """Send a failed fire-and-forget event back to its sender as actionError."""
    @functools.wraps(handler)
    def wrapper(self, *args):
        try:
            return handler(self, *args)
        except ZombeersError as exc:
            logger.info(f"[action-error] event={handler.__name__} sid={_get_sid()} kind={type(exc).__name__} message={exc.message!r}")
            emit('actionError', exc.to_dict())
    return wrapper


class SyncProtocol:
    """Socket.IO side of the room protocol, bound to one RoomRegistry.

    createRoom, joinRoom and requestState answer through the ack callback.
    Every other event answers, on success, with a full ``gameStateUpdate``
    to the whole room, and on failure with ``actionError`` to the sender.
    """

    def __init__(self, registry: RoomRegistry):
        self.registry = registry

    def _broadcast_state(self, code, state):
        emit('gameStateUpdate', state, to=code)

    # ---- Connection lifecycle ----

    def handle_connect(self, auth=None):
        logger.info(f"[connect] sid={_get_sid()}")

    def handle_disconnect(self, reason=None):
        sid = _get_sid()
        logger.info(f"[disconnect] sid={sid}")
        for code, deleted in self.registry.disconnect(sid):
            if not deleted:
                emit('playerLeft', sid, to=code, include_self=False)

    # ---- Request/response ----

    def handle_create_room(self, *args):
        sid = _get_sid()
        code, state = self.registry.create_room(sid)
        join_room(code)
        return {'roomCode': code, 'state': state}

    def handle_join_room(self, code=None, *args):
        sid = _get_sid()
        try:
            code, state = self.registry.join_room(code, sid)
        except ZombeersError as exc:
            return {'success': False, 'message': exc.message}
        join_room(code)
        emit('playerJoined', sid, to=code, include_self=False)
        return {'success': True, 'state': state, 'roomCode': code}

    def handle_request_state(self, code=None, *args):
        try:
            state = self.registry.request_state(code, _get_sid())
        except ZombeersError as exc:
            return {'success': False, 'message': exc.message}
        return {'success': True, 'state': state}

    # ---- Fire-and-forget ----

    @_reports_errors
    def handle_add_player(self, data=None):
        code = _room_code(data)
        state = self.registry.add_player(code, _get_sid(), data.get('name'))
        self._broadcast_state(code, state)

    @_reports_errors
    def handle_remove_player(self, data=None):
        code = _room_code(data)
        state = self.registry.remove_player(code, _get_sid(), data.get('playerId'))
        self._broadcast_state(code, state)

    @_reports_errors
    def handle_start_game(self, data=None):
        code = _room_code(data)
        state = self.registry.start_game(code, _get_sid())
        self._broadcast_state(code, state)
        emit('showScreen', 'game', to=code)

    @_reports_errors
    def handle_player_action(self, data=None):
        code = _room_code(data)
        state, feedback = self.registry.player_action(
            code, _get_sid(), data.get('playerId'), data.get('action')
        )
        self._broadcast_state(code, state)
        emit('actionFeedback', feedback, to=code)

    @_reports_errors
    def handle_update_settings(self, data=None):
        code = _room_code(data)
        state, rejected = self.registry.update_settings(code, _get_sid(), data.get('newSettings'))
        for key in rejected:
            emit('actionError', {'message': f'Invalid value for {key}. Must be a non-negative number.'})
        if state is not None:
            self._broadcast_state(code, state)

    @_reports_errors
    def handle_reset_game(self, data=None):
        code = _room_code(data)
        state = self.registry.reset_game(code, _get_sid())
        self._broadcast_state(code, state)
        emit('showScreen', 'setup', to=code)

    @_reports_errors
    def handle_new_game_setup(self, data=None):
        code = _room_code(data)
        state = self.registry.new_game_setup(code, _get_sid())
        self._broadcast_state(code, state)
        emit('showScreen', 'setup', to=code)

    def handlers(self):
        return {
            'connect': self.handle_connect,
            'disconnect': self.handle_disconnect,
            'createRoom': self.handle_create_room,
            'joinRoom': self.handle_join_room,
            'requestState': self.handle_request_state,
            'addPlayer': self.handle_add_player,
            'removePlayer': self.handle_remove_player,
            'startGame': self.handle_start_game,
            'playerAction': self.handle_player_action,
            'updateSettings': self.handle_update_settings,
            'resetGame': self.handle_reset_game,
            'newGameSetup': self.handle_new_game_setup,
        }


def register_socketio_handlers(registry: RoomRegistry, namespace: str = '/') -> SyncProtocol:
    """Register the room protocol on ``namespace``, bound to ``registry``."""
    protocol = SyncProtocol(registry)
    for event, handler in protocol.handlers().items():
        socketio.on_event(event, handler, namespace=namespace)
    return protocol
