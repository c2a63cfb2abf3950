"""Single-user game state with a durable snapshot, used when no room is joined.

Every mutation writes the snapshot before returning, so storage always
matches the last successful write. Storage failures are logged and passed
to ``on_error`` but never raised: the in-memory session stays usable.
"""
import json
import logging
from typing import Callable, Optional

from zombeers.exceptions import PersistenceError, RuleViolation, ValidationError
from zombeers.models import HistoryEntry, RoomState
from zombeers.services import actions
from zombeers.utils import generate_id, now_ms

logger = logging.getLogger(__name__)

STORAGE_KEY = 'zombeersGameState'

_PLAYER_FIELDS = ('name', 'points', 'beers', 'shots')


class LocalSession:
    def __init__(self, storage, key: str = STORAGE_KEY,
                 on_error: Optional[Callable[[PersistenceError], None]] = None,
                 max_players: int = 10, history_limit: int = 100,
                 clock=now_ms, id_factory=generate_id):
        self.storage = storage
        self.key = key
        self.on_error = on_error
        self.max_players = max_players
        self.history_limit = history_limit
        self._clock = clock
        self._id_factory = id_factory
        self.state = RoomState()
        self.room_code = None
        # Derived summary of the last finished game; never persisted
        self.last_game_stats = None

    def _report(self, error: PersistenceError) -> None:
        logger.error(f"[local-storage] {error.message}")
        if self.on_error:
            self.on_error(error)

    # ---- Snapshot round-trip ----

    def load(self) -> bool:
        """Load the stored snapshot over the defaults.

        Returns False when there is no usable snapshot; a corrupted one is
        removed and reported.
        """
        self.last_game_stats = None
        try:
            raw = self.storage.get_item(self.key)
        except PersistenceError as exc:
            self._report(exc)
            self.state = RoomState()
            return False
        if raw is None:
            logger.info("[local-load] no saved state found, using defaults")
            self.state = RoomState()
            return False
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError('snapshot is not an object')
            state = RoomState.from_dict(data)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            self._report(PersistenceError(f'Discarded corrupted snapshot: {exc}'))
            try:
                self.storage.remove_item(self.key)
            except PersistenceError as remove_exc:
                self._report(remove_exc)
            self.state = RoomState()
            return False
        if state.game_active and state.start_time is None:
            state.set_active(False)
        self.state = state
        logger.info(f"[local-load] players={len(state.players)} active={state.game_active}")
        return True

    def save(self) -> bool:
        try:
            payload = json.dumps(self.state.to_dict())
            self.storage.set_item(self.key, payload)
        except (TypeError, ValueError) as exc:
            self._report(PersistenceError(f'Could not serialize game state: {exc}'))
            return False
        except PersistenceError as exc:
            self._report(exc)
            return False
        return True

    # ---- Mutations ----

    def add_player(self, name):
        player_id = self._id_factory()
        while self.state.find_player(player_id):
            player_id = self._id_factory()
        player = actions.add_player(self.state, name, player_id, self.max_players)
        self.save()
        return player

    def remove_player(self, player_id):
        player = actions.remove_player(self.state, player_id)
        self.save()
        return player

    def update_player(self, player_id, **updates):
        player = self.state.find_player(player_id)
        if not player:
            return None
        for field, value in updates.items():
            if field not in _PLAYER_FIELDS:
                raise ValidationError(f'Unknown player field: {field}')
            setattr(player, field, value)
        self.save()
        return player

    def append_history(self, entry):
        if isinstance(entry, dict):
            entry = HistoryEntry.from_dict(entry)
        self.state.append_history(entry, limit=self.history_limit)
        self.save()
        return entry

    def reset_history(self):
        self.state.history = []
        self.save()

    def set_active(self, active, start_time=None):
        self.state.set_active(active, start_time)
        self.save()

    def update_settings(self, new_settings):
        """Merge valid settings; returns ``(applied, rejected_keys)``."""
        if not isinstance(new_settings, dict):
            raise ValidationError('Invalid settings format received.')
        applied, rejected = self.state.settings.merge(new_settings)
        for key in rejected:
            logger.warning(f"[local-settings] rejected key={key} value={new_settings[key]!r}")
        if applied:
            self.save()
        return applied, rejected

    def set_room_code(self, code):
        self.room_code = code
        self.save()

    def replace_state(self, state):
        """Overwrite the whole game state with a server broadcast."""
        self.state = state.copy() if isinstance(state, RoomState) else RoomState.from_dict(state)
        self.save()

    def set_last_game_stats(self, stats):
        self.last_game_stats = stats

    def reset_all(self):
        """Clear players, history and the active flag; the current settings survive."""
        self.state = RoomState(settings=self.state.settings)
        self.last_game_stats = None
        try:
            self.storage.remove_item(self.key)
        except PersistenceError as exc:
            self._report(exc)
        logger.info("[local-reset] game state reset")

    # ---- Game flow ----

    def start_game(self, now=None):
        actions.start_game(self.state, self._clock() if now is None else now)
        self.save()

    def player_action(self, player_id, action, now=None):
        result = actions.apply_action(
            self.state, player_id, action,
            now=self._clock() if now is None else now,
            history_limit=self.history_limit,
        )
        self.save()
        return result

    def end_game(self, now=None):
        if not self.state.game_active:
            raise RuleViolation('No active game to end.')
        stats = actions.compute_game_stats(self.state, self._clock() if now is None else now)
        self.set_last_game_stats(stats)
        return stats

    def start_fresh_game(self):
        self.reset_all()
