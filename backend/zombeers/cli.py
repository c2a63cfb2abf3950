"""`flask local ...`: the single-player game, kept in the local snapshot store."""
import functools

import click
from flask import current_app
from flask.cli import AppGroup

from zombeers.exceptions import ZombeersError
from zombeers.services.actions import ACTIONS, compute_totals, leaderboard
from zombeers.services.local_session import LocalSession
from zombeers.services.storage import SQLStorage
from zombeers.utils import elapsed_since

local_cli = AppGroup('local', help='Play a local game without a room.')


def _open_session() -> LocalSession:
    cfg = current_app.config
    storage = SQLStorage(cfg.get('LOCAL_STORAGE_URL', 'sqlite:///zombeers-local.db'))
    session = LocalSession(
        storage,
        on_error=lambda exc: click.echo(f'Storage error: {exc.message}', err=True),
        max_players=cfg.get('MAX_PLAYERS', 10),
        history_limit=cfg.get('HISTORY_LIMIT', 100),
    )
    session.load()
    return session


def _player_id(session, name):
    lowered = name.strip().lower()
    for player in session.state.players:
        if player.name.lower() == lowered:
            return player.id
    raise click.ClickException(f'No player named {name!r}.')


def _game_errors(command):
    @functools.wraps(command)
    def wrapper(*args, **kwargs):
        try:
            return command(*args, **kwargs)
        except ZombeersError as exc:
            raise click.ClickException(exc.message) from exc
    return wrapper


@local_cli.command('show')
@click.option('--history', 'history_count', default=10, show_default=True, help='History entries to list.')
def show_command(history_count):
    """Print players, totals and recent history."""
    session = _open_session()
    state = session.state
    status = 'active' if state.game_active else 'setup'
    click.echo(f'Game: {status}  elapsed {elapsed_since(state.start_time)}')
    for rank, player in enumerate(leaderboard(state.players), start=1):
        click.echo(
            f'{rank}. {player.name}: {player.points:,} pts '
            f'({player.beers} beers, {player.shots}/{state.settings.shot_limit} shots)'
        )
    totals = compute_totals(state.history, state.players)
    click.echo(f"Earned {totals['totalPointsEarned']:,}  spent {totals['totalPointsSpent']:,}  revives {totals['totalRevives']}")
    for entry in reversed(state.history[-history_count:] if history_count > 0 else []):
        click.echo(f'  {entry.message}')


@local_cli.command('add-player')
@click.argument('name')
@_game_errors
def add_player_command(name):
    session = _open_session()
    player = session.add_player(name)
    click.echo(f'Added {player.name}.')


@local_cli.command('remove-player')
@click.argument('name')
@_game_errors
def remove_player_command(name):
    session = _open_session()
    player = session.remove_player(_player_id(session, name))
    click.echo(f'Removed {player.name}.')


@local_cli.command('start')
@_game_errors
def start_command():
    session = _open_session()
    session.start_game()
    click.echo(f'Game started with {len(session.state.players)} players.')


@local_cli.command('action')
@click.argument('name')
@click.argument('action', type=click.Choice(ACTIONS))
@_game_errors
def action_command(name, action):
    """Record ACTION for the player called NAME."""
    session = _open_session()
    result = session.player_action(_player_id(session, name), action)
    click.echo(result.entry.message)


@local_cli.command('settings')
@click.argument('pairs', nargs=-1)
@_game_errors
def settings_command(pairs):
    """Show settings, or update them with KEY=VALUE pairs (e.g. shotLimit=5)."""
    session = _open_session()
    updates = {}
    for pair in pairs:
        key, sep, value = pair.partition('=')
        if not sep:
            raise click.BadParameter(f'{pair!r} is not KEY=VALUE', param_hint='PAIRS')
        updates[key.strip()] = value.strip()
    if updates:
        _, rejected = session.update_settings(updates)
        for key in rejected:
            click.echo(f'Invalid value for {key}. Must be a non-negative number.', err=True)
    for key, value in session.state.settings.to_dict().items():
        click.echo(f'{key}={value}')


@local_cli.command('end')
@click.option('--fresh', is_flag=True, help='Clear players and history after the summary.')
@_game_errors
def end_command(fresh):
    """Show the end-of-game summary."""
    session = _open_session()
    stats = session.end_game()
    click.echo(f"Duration: {stats['duration']}")
    click.echo(f"Overall Points Earned: {stats['totalPointsEarned']:,}")
    click.echo(f"Overall Points Spent: {stats['totalPointsSpent']:,}")
    click.echo(f"Overall Beers: {stats['totalBeers']}")
    click.echo(f"Overall Shots: {stats['totalShots']}")
    click.echo(f"Overall Revives: {stats['totalRevives']}")
    for p in stats['players']:
        click.echo(f"{p['name']}: {p['points']:,} pts ({p['beers']} beers, {p['shots']} shots)")
    if fresh:
        session.start_fresh_game()
        click.echo('Starting fresh game setup.')


@local_cli.command('reset')
@click.confirmation_option(prompt='Reset the local game? Players and history will be lost.')
def reset_command():
    """Clear players and history, keeping the settings."""
    session = _open_session()
    session.reset_all()
    click.echo('Game state reset.')
