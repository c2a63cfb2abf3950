from typing import List, Optional

from zombeers.exceptions import NotFound, RuleViolation, ValidationError
from zombeers.models import HistoryEntry, Player, RoomState
from zombeers.utils import elapsed_since, now_ms

BEER = 'beer'
SHOT = 'shot'
REVIVE = 'revive'
REDEEM = 'redeem'
RESET_SCORE = 'reset-score'

ACTIONS = (BEER, SHOT, REVIVE, REDEEM, RESET_SCORE)


class ActionResult:
    def __init__(self, player: Player, entry: HistoryEntry):
        self.player = player
        self.entry = entry

    @property
    def change(self) -> int:
        return self.entry.change


def apply_action(state: RoomState, player_id: str, action: str,
                 now: Optional[int] = None, history_limit: int = 100) -> ActionResult:
    """Apply one player action to ``state`` and record it in the history.

    Shared by rooms and local sessions. Raises before touching the state
    when the player is unknown, the game is not running, a rule refuses
    the action or the action name is unknown, so a failed call never
    leaves a partial mutation behind.
    """
    player = state.find_player(player_id)
    if not player:
        raise NotFound('Player not found.')
    if not state.game_active:
        raise RuleViolation('Game is not active.')

    settings = state.settings
    if action == BEER:
        change = settings.points_per_beer
        player.beers += 1
        player.points += change
        message = f"{player.name} drank a beer! (+{change:,} pts)"
    elif action == SHOT:
        if player.shots >= settings.shot_limit:
            raise RuleViolation(f"{player.name} reached shot limit!")
        change = settings.points_per_shot
        player.shots += 1
        player.points += change
        message = f"{player.name} took a shot! (+{change:,} pts) ({player.shots}/{settings.shot_limit})"
    elif action == REVIVE:
        change = settings.points_per_revive
        player.points += change
        message = f"{player.name} got a revive! (+{change:,} pts)"
    elif action == REDEEM:
        if player.points < settings.redemption_cost:
            raise RuleViolation(f"{player.name} needs more points!")
        change = -settings.redemption_cost
        player.points += change
        message = f"{player.name} redeemed points! ({change:,} pts)"
    elif action == RESET_SCORE:
        change = -player.points
        player.reset_stats()
        message = f"{player.name}'s score was reset by an admin/host."
    else:
        raise ValidationError(f"Unknown action: {action}")

    entry = HistoryEntry(
        timestamp=now_ms() if now is None else now,
        player=player.name,
        action=action,
        change=change,
        message=message,
    )
    state.append_history(entry, limit=history_limit)
    return ActionResult(player, entry)


def add_player(state: RoomState, name, player_id: str, max_players: int = 10) -> Player:
    if name is not None and not isinstance(name, str):
        raise ValidationError('Player name must be text.')
    name = (name or '').strip()
    if not name:
        raise ValidationError('Please enter a player name.')
    if len(state.players) >= max_players:
        raise ValidationError(f'Maximum number of players reached ({max_players}).')
    if state.has_player_name(name):
        raise ValidationError('Player name already exists!')
    player = Player(id=player_id, name=name)
    state.players.append(player)
    return player


def remove_player(state: RoomState, player_id: str) -> Player:
    player = state.find_player(player_id)
    if not player:
        raise NotFound('Player not found.')
    state.players = [p for p in state.players if p.id != player_id]
    return player


def start_game(state: RoomState, now: Optional[int] = None) -> None:
    """Setup -> Active. History from the previous game is discarded."""
    if state.game_active:
        raise RuleViolation('Game already in progress.')
    if not state.players:
        raise RuleViolation('Add players first!')
    state.history = []
    state.set_active(True, now_ms() if now is None else now)


def reset_game(state: RoomState) -> None:
    """Back to Setup with zeroed stats; players and settings are kept."""
    for player in state.players:
        player.reset_stats()
    state.history = []
    state.set_active(False)


def pause_game(state: RoomState) -> None:
    """Active -> Setup keeping stats and history."""
    if not state.game_active:
        raise RuleViolation('No active game to end.')
    state.set_active(False)


def points_from_history(history: List[HistoryEntry], player_name: str) -> int:
    return sum(entry.change for entry in history if entry.player == player_name)


def compute_totals(history: List[HistoryEntry], players: List[Player]) -> dict:
    """Aggregate totals, recomputed from scratch on every call."""
    earned = 0
    spent = 0
    revives = 0
    for entry in history:
        if entry.action == REDEEM:
            if entry.change < 0:
                spent += abs(entry.change)
        elif entry.change > 0:
            earned += entry.change
        if entry.action == REVIVE:
            revives += 1
    return {
        'totalPointsEarned': earned,
        'totalPointsSpent': spent,
        'totalBeers': sum(p.beers for p in players),
        'totalShots': sum(p.shots for p in players),
        'totalRevives': revives,
    }


def leaderboard(players: List[Player]) -> List[Player]:
    # sorted() is stable: ties keep the roster order
    return sorted(players, key=lambda p: p.points, reverse=True)


def compute_game_stats(state: RoomState, now: Optional[int] = None) -> dict:
    """End-of-game summary shown before a fresh game is set up."""
    stats = {
        'duration': elapsed_since(state.start_time, now),
        'players': [
            {'name': p.name, 'points': p.points, 'beers': p.beers, 'shots': p.shots}
            for p in leaderboard(state.players)
        ],
    }
    stats.update(compute_totals(state.history, state.players))
    return stats
