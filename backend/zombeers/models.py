import math
import re

from zombeers.utils import now_ms

DEFAULT_SETTINGS = {
    'pointsPerBeer': 2500,
    'pointsPerShot': 1000,
    'pointsPerRevive': 500,
    'redemptionCost': 500,
    'shotLimit': 3,
}

# wire key -> attribute name
SETTING_KEYS = {
    'pointsPerBeer': 'points_per_beer',
    'pointsPerShot': 'points_per_shot',
    'pointsPerRevive': 'points_per_revive',
    'redemptionCost': 'redemption_cost',
    'shotLimit': 'shot_limit',
}

_LEADING_INT = re.compile(r'\s*([+-]?\d+)')


def parse_int(value):
    """Parse like JavaScript's parseInt; return None when no integer can be read."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return None


class Settings:
    def __init__(self, **kwargs):
        for key, attr in SETTING_KEYS.items():
            setattr(self, attr, kwargs.get(attr, DEFAULT_SETTINGS[key]))

    @classmethod
    def from_dict(cls, data):
        """Build settings from a snapshot, falling back to defaults per key."""
        settings = cls()
        if isinstance(data, dict):
            for key, attr in SETTING_KEYS.items():
                value = parse_int(data.get(key))
                if value is not None and value >= 0:
                    setattr(settings, attr, value)
        return settings

    def merge(self, new_settings):
        """Apply recognized, valid keys from ``new_settings``.

        Returns ``(applied, rejected)``: a dict of the accepted wire keys and
        values, and the list of wire keys whose value was not a non-negative
        integer. Rejected keys keep their current value; unknown keys are
        ignored.
        """
        applied = {}
        rejected = []
        for key, attr in SETTING_KEYS.items():
            if key not in new_settings:
                continue
            value = parse_int(new_settings[key])
            if value is None or value < 0:
                rejected.append(key)
                continue
            applied[key] = value
        for key, value in applied.items():
            setattr(self, SETTING_KEYS[key], value)
        return applied, rejected

    def to_dict(self):
        return {key: getattr(self, attr) for key, attr in SETTING_KEYS.items()}


class Player:
    def __init__(self, id, name, points=0, beers=0, shots=0):
        self.id = id
        self.name = name
        self.points = points
        self.beers = beers
        self.shots = shots

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            name=data['name'],
            points=int(data.get('points') or 0),
            beers=int(data.get('beers') or 0),
            shots=int(data.get('shots') or 0),
        )

    def reset_stats(self):
        self.points = 0
        self.beers = 0
        self.shots = 0

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'points': self.points,
            'beers': self.beers,
            'shots': self.shots,
        }


class HistoryEntry:
    def __init__(self, timestamp, player, action, change, message):
        self.timestamp = timestamp
        self.player = player  # name at the time of the action
        self.action = action
        self.change = change
        self.message = message

    @classmethod
    def from_dict(cls, data):
        return cls(
            timestamp=data.get('timestamp'),
            player=data.get('player'),
            action=data.get('action'),
            change=int(data.get('change') or 0),
            message=data.get('message', ''),
        )

    def to_dict(self):
        return {
            'timestamp': self.timestamp,
            'player': self.player,
            'action': self.action,
            'change': self.change,
            'message': self.message,
        }


class RoomState:
    """Game state shared by a room (or held by a local session)."""

    def __init__(self, game_active=False, players=None, settings=None, start_time=None, history=None):
        self.game_active = game_active
        self.players = players if players is not None else []
        self.settings = settings if settings is not None else Settings()
        self.start_time = start_time
        self.history = history if history is not None else []

    @classmethod
    def from_dict(cls, data):
        """Merge a snapshot over the defaults; missing or null fields keep their defaults."""
        data = data or {}
        return cls(
            game_active=bool(data.get('gameActive', False)),
            players=[Player.from_dict(p) for p in (data.get('players') or [])],
            settings=Settings.from_dict(data.get('settings')),
            start_time=data.get('startTime'),
            history=[HistoryEntry.from_dict(h) for h in (data.get('history') or [])],
        )

    def copy(self):
        return RoomState.from_dict(self.to_dict())

    def find_player(self, player_id):
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def has_player_name(self, name):
        lowered = name.lower()
        return any(p.name.lower() == lowered for p in self.players)

    def append_history(self, entry, limit=100):
        self.history.append(entry)
        while len(self.history) > limit:
            self.history.pop(0)

    def set_active(self, active, start_time=None):
        # startTime is set iff the game is active
        self.game_active = bool(active)
        if not self.game_active:
            self.start_time = None
        else:
            self.start_time = start_time if start_time is not None else now_ms()

    def to_dict(self):
        return {
            'gameActive': self.game_active,
            'players': [p.to_dict() for p in self.players],
            'settings': self.settings.to_dict(),
            'startTime': self.start_time,
            'history': [h.to_dict() for h in self.history],
        }
