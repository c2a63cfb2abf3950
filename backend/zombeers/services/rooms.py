"""In-memory room registry: the authoritative state for networked play.

One registry is created per application and handed to the Socket.IO
handlers. Socket.IO may deliver events on several threads, so the room map
has its own lock and every room carries a lock held across
resolve -> mutate -> snapshot. Handlers broadcast the returned snapshot,
never the live state.
"""
import logging
import random
import threading
from contextlib import contextmanager
from typing import Dict, List, Set, Tuple

from zombeers.exceptions import NotFound, ValidationError
from zombeers.models import RoomState
from zombeers.services import actions
from zombeers.utils import generate_id, now_ms

logger = logging.getLogger(__name__)

# No O or 0
ROOM_CODE_ALPHABET = 'ABCDEFGHIJKLMNPQRSTUVWXYZ123456789'


def normalize_code(code) -> str:
    if not isinstance(code, str):
        return ''
    return code.strip().upper()


class Room:
    def __init__(self, code: str, state: RoomState):
        self.code = code
        self.state = state
        self.sessions: Set[str] = set()
        self.lock = threading.Lock()

    def snapshot(self) -> dict:
        return self.state.to_dict()


class RoomRegistry:
    def __init__(self, max_players=10, history_limit=100, code_length=4,
                 clock=now_ms, id_factory=generate_id, rng=None):
        self.max_players = max_players
        self.history_limit = history_limit
        self.code_length = code_length
        self._clock = clock
        self._id_factory = id_factory
        self._rng = rng or random.Random()
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._rooms)

    def __contains__(self, code):
        with self._lock:
            return normalize_code(code) in self._rooms

    def codes(self) -> List[str]:
        with self._lock:
            return sorted(self._rooms)

    def members(self, code) -> Set[str]:
        with self._lock:
            room = self._rooms.get(normalize_code(code))
            return set(room.sessions) if room else set()

    # ---- Lifecycle ----

    def _generate_code(self) -> str:
        # Caller holds self._lock
        while True:
            code = ''.join(self._rng.choice(ROOM_CODE_ALPHABET) for _ in range(self.code_length))
            if code not in self._rooms:
                return code

    def create_room(self, sid: str) -> Tuple[str, dict]:
        with self._lock:
            code = self._generate_code()
            room = Room(code, RoomState())
            room.sessions.add(sid)
            self._rooms[code] = room
            snapshot = room.snapshot()
        logger.info(f"[room-create] code={code} sid={sid}")
        return code, snapshot

    def join_room(self, code, sid: str) -> Tuple[str, dict]:
        code = normalize_code(code)
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                raise NotFound('Room not found.')
            with room.lock:
                room.sessions.add(sid)
                snapshot = room.snapshot()
        logger.info(f"[room-join] code={code} sid={sid}")
        return code, snapshot

    def disconnect(self, sid: str) -> List[Tuple[str, bool]]:
        """Drop ``sid`` from every room; rooms left empty are deleted at once.

        Returns ``(code, deleted)`` for each room the session was in.
        """
        affected = []
        with self._lock:
            for code, room in list(self._rooms.items()):
                with room.lock:
                    if sid not in room.sessions:
                        continue
                    room.sessions.discard(sid)
                    deleted = not room.sessions
                if deleted:
                    del self._rooms[code]
                affected.append((code, deleted))
        for code, deleted in affected:
            logger.info(f"[room-leave] code={code} sid={sid} deleted={deleted}")
        return affected

    @contextmanager
    def _member_room(self, code, sid: str):
        code = normalize_code(code)
        with self._lock:
            room = self._rooms.get(code)
            if room is None or sid not in room.sessions:
                raise NotFound('Not in room or room not found.')
        with room.lock:
            yield room

    # ---- Queries and mutations for members ----

    def request_state(self, code, sid: str) -> dict:
        with self._member_room(code, sid) as room:
            return room.snapshot()

    def add_player(self, code, sid: str, name) -> dict:
        with self._member_room(code, sid) as room:
            player_id = self._id_factory()
            while room.state.find_player(player_id):
                player_id = self._id_factory()
            player = actions.add_player(room.state, name, player_id, self.max_players)
            snapshot = room.snapshot()
        logger.info(f"[player-add] code={room.code} player={player.id} name={player.name!r}")
        return snapshot

    def remove_player(self, code, sid: str, player_id: str) -> dict:
        with self._member_room(code, sid) as room:
            actions.remove_player(room.state, player_id)
            snapshot = room.snapshot()
        logger.info(f"[player-remove] code={room.code} player={player_id}")
        return snapshot

    def start_game(self, code, sid: str) -> dict:
        with self._member_room(code, sid) as room:
            actions.start_game(room.state, self._clock())
            snapshot = room.snapshot()
        logger.info(f"[game-start] code={room.code} start_time={snapshot['startTime']}")
        return snapshot

    def player_action(self, code, sid: str, player_id: str, action: str) -> Tuple[dict, dict]:
        """Apply ``action``; returns the new state and the feedback payload."""
        with self._member_room(code, sid) as room:
            result = actions.apply_action(
                room.state, player_id, action,
                now=self._clock(), history_limit=self.history_limit,
            )
            snapshot = room.snapshot()
        logger.info(f"[player-action] code={room.code} player={player_id} action={action} change={result.change}")
        return snapshot, {'playerId': player_id, 'action': action}

    def update_settings(self, code, sid: str, new_settings) -> Tuple[dict, List[str]]:
        """Merge valid settings.

        Returns ``(snapshot, rejected_keys)``; the snapshot is None when no
        key was applied, so there is nothing to broadcast.
        """
        if not isinstance(new_settings, dict):
            logger.warning(f"[settings-invalid] code={code} received={new_settings!r}")
            raise ValidationError('Invalid settings format received.')
        with self._member_room(code, sid) as room:
            applied, rejected = room.state.settings.merge(new_settings)
            snapshot = room.snapshot() if applied else None
        for key in rejected:
            logger.warning(f"[settings-reject] code={room.code} key={key} value={new_settings[key]!r}")
        if applied:
            logger.info(f"[settings-update] code={room.code} updates={applied}")
        return snapshot, rejected

    def reset_game(self, code, sid: str) -> dict:
        with self._member_room(code, sid) as room:
            actions.reset_game(room.state)
            snapshot = room.snapshot()
        logger.info(f"[game-reset] code={room.code}")
        return snapshot

    def new_game_setup(self, code, sid: str) -> dict:
        with self._member_room(code, sid) as room:
            actions.pause_game(room.state)
            snapshot = room.snapshot()
        logger.info(f"[game-setup] code={room.code}")
        return snapshot
