import pytest

from zombeers.models import DEFAULT_SETTINGS, HistoryEntry, Player, RoomState, Settings, parse_int


def test_default_settings():
    assert Settings().to_dict() == {
        'pointsPerBeer': 2500,
        'pointsPerShot': 1000,
        'pointsPerRevive': 500,
        'redemptionCost': 500,
        'shotLimit': 3,
    }
    assert DEFAULT_SETTINGS['shotLimit'] == 3


@pytest.mark.parametrize('value, expected', [
    (5, 5),
    ('42', 42),
    ('  7 ', 7),
    ('12abc', 12),
    ('-3', -3),
    (3.9, 3),
    ('abc', None),
    ('', None),
    (None, None),
    (True, None),
    ([1], None),
])
def test_parse_int(value, expected):
    assert parse_int(value) == expected


def test_merge_applies_valid_and_reports_invalid_keys():
    settings = Settings()
    applied, rejected = settings.merge({
        'pointsPerBeer': '3000',
        'shotLimit': -1,
        'redemptionCost': 'lots',
        'somethingElse': 99,
    })
    assert applied == {'pointsPerBeer': 3000}
    assert sorted(rejected) == ['redemptionCost', 'shotLimit']
    assert settings.points_per_beer == 3000
    assert settings.shot_limit == 3
    assert settings.redemption_cost == 500
    assert 'somethingElse' not in settings.to_dict()


def test_merge_accepts_zero():
    settings = Settings()
    applied, rejected = settings.merge({'pointsPerRevive': 0})
    assert applied == {'pointsPerRevive': 0}
    assert rejected == []
    assert settings.points_per_revive == 0


def test_settings_from_partial_snapshot_keeps_defaults_for_missing_keys():
    settings = Settings.from_dict({'pointsPerBeer': 100})
    assert settings.points_per_beer == 100
    assert settings.shot_limit == 3


def test_room_state_from_dict_tolerates_missing_and_extra_fields():
    state = RoomState.from_dict({'players': None, 'history': None, 'extra': 'ignored'})
    assert state.players == []
    assert state.history == []
    assert state.game_active is False
    assert state.start_time is None
    assert 'extra' not in state.to_dict()


def test_room_state_round_trip():
    state = RoomState(
        players=[Player('a', 'Alice', points=2500, beers=1)],
        history=[HistoryEntry(1, 'Alice', 'beer', 2500, 'Alice drank a beer! (+2,500 pts)')],
    )
    state.set_active(True, 1234)
    assert RoomState.from_dict(state.to_dict()).to_dict() == state.to_dict()


def test_copy_is_independent():
    state = RoomState(players=[Player('a', 'Alice')])
    clone = state.copy()
    clone.players[0].points = 99
    assert state.players[0].points == 0


def test_has_player_name_is_case_insensitive():
    state = RoomState(players=[Player('a', 'Alice')])
    assert state.has_player_name('ALICE')
    assert not state.has_player_name('Bob')


def test_history_is_capped_oldest_first():
    state = RoomState()
    for i in range(105):
        state.append_history(HistoryEntry(i, 'Alice', 'beer', 1, ''), limit=100)
    assert len(state.history) == 100
    assert state.history[0].timestamp == 5
    assert state.history[-1].timestamp == 104


def test_start_time_is_set_iff_active():
    state = RoomState()
    state.set_active(True)
    assert state.start_time is not None
    state.set_active(False, 1234)
    assert state.start_time is None
