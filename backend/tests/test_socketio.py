def _events(test_client, name):
    return [pkt['args'][0] for pkt in test_client.get_received() if pkt['name'] == name]


def _last_state(test_client):
    states = _events(test_client, 'gameStateUpdate')
    assert states, 'expected a gameStateUpdate'
    return states[-1]


def _create_room(test_client):
    response = test_client.emit('createRoom', callback=True)
    test_client.get_received()
    return response['roomCode']


def test_socket_connect(sio_client):
    assert sio_client.is_connected()


def test_create_room_ack(sio_client, registry):
    response = sio_client.emit('createRoom', callback=True)
    code = response['roomCode']
    assert len(code) == 4
    assert response['state']['players'] == []
    assert code in registry
    assert len(registry.members(code)) == 1


def test_join_room_and_presence(sio_client, make_sio_client, registry):
    code = _create_room(sio_client)
    guest = make_sio_client()

    response = guest.emit('joinRoom', code.lower(), callback=True)
    assert response['success'] is True
    assert response['roomCode'] == code
    assert response['state']['gameActive'] is False
    assert len(registry.members(code)) == 2

    joined = _events(sio_client, 'playerJoined')
    assert len(joined) == 1
    assert _events(guest, 'playerJoined') == []


def test_join_unknown_room(sio_client):
    response = sio_client.emit('joinRoom', 'ZZZZ', callback=True)
    assert response == {'success': False, 'message': 'Room not found.'}


def test_request_state_requires_membership(sio_client, make_sio_client):
    code = _create_room(sio_client)
    response = sio_client.emit('requestState', code, callback=True)
    assert response['success'] is True
    assert response['state']['players'] == []

    outsider = make_sio_client()
    response = outsider.emit('requestState', code, callback=True)
    assert response['success'] is False


def test_state_is_broadcast_to_the_whole_room(sio_client, make_sio_client):
    code = _create_room(sio_client)
    guest = make_sio_client()
    guest.emit('joinRoom', code, callback=True)
    sio_client.get_received()

    guest.emit('addPlayer', {'roomCode': code, 'name': 'Alice'})
    host_state = _last_state(sio_client)
    guest_state = _last_state(guest)
    assert host_state == guest_state
    assert [p['name'] for p in host_state['players']] == ['Alice']


def test_action_error_is_unicast(sio_client, make_sio_client):
    code = _create_room(sio_client)
    guest = make_sio_client()
    guest.emit('joinRoom', code, callback=True)
    sio_client.emit('addPlayer', {'roomCode': code, 'name': 'Alice'})
    sio_client.get_received()
    guest.get_received()

    guest.emit('addPlayer', {'roomCode': code, 'name': 'alice'})
    assert _events(guest, 'actionError') == [{'message': 'Player name already exists!'}]
    assert sio_client.get_received() == []


def test_non_member_events_are_rejected(sio_client, make_sio_client, registry):
    code = _create_room(sio_client)
    outsider = make_sio_client()
    outsider.emit('addPlayer', {'roomCode': code, 'name': 'Mallory'})
    errors = _events(outsider, 'actionError')
    assert errors == [{'message': 'Not in room or room not found.'}]
    assert sio_client.get_received() == []
    assert registry.request_state(code, next(iter(registry.members(code))))['players'] == []


def test_missing_room_code(sio_client):
    sio_client.emit('startGame', {})
    assert _events(sio_client, 'actionError') == [{'message': 'roomCode is required'}]


def test_full_game_over_sockets(sio_client):
    code = _create_room(sio_client)
    sio_client.emit('addPlayer', {'roomCode': code, 'name': 'Alice'})
    sio_client.emit('addPlayer', {'roomCode': code, 'name': 'Bob'})
    state = _last_state(sio_client)
    alice_id = state['players'][0]['id']

    sio_client.emit('startGame', {'roomCode': code})
    received = sio_client.get_received()
    assert [p['args'][0] for p in received if p['name'] == 'showScreen'] == ['game']
    state = [p['args'][0] for p in received if p['name'] == 'gameStateUpdate'][-1]
    assert state['gameActive'] is True
    assert state['startTime'] is not None

    sio_client.emit('playerAction', {'roomCode': code, 'playerId': alice_id, 'action': 'beer'})
    received = sio_client.get_received()
    state = [p['args'][0] for p in received if p['name'] == 'gameStateUpdate'][-1]
    feedback = [p['args'][0] for p in received if p['name'] == 'actionFeedback']
    assert feedback == [{'playerId': alice_id, 'action': 'beer'}]
    assert state['players'][0]['points'] == 2500
    assert state['players'][0]['beers'] == 1
    assert len(state['history']) == 1
    assert state['history'][0]['change'] == 2500

    sio_client.emit('playerAction', {'roomCode': code, 'playerId': alice_id, 'action': 'redeem'})
    state = _last_state(sio_client)
    assert state['players'][0]['points'] == 2000
    assert [h['change'] for h in state['history']] == [2500, -500]

    sio_client.emit('resetGame', {'roomCode': code})
    received = sio_client.get_received()
    assert [p['args'][0] for p in received if p['name'] == 'showScreen'] == ['setup']
    state = [p['args'][0] for p in received if p['name'] == 'gameStateUpdate'][-1]
    alice = state['players'][0]
    assert (alice['points'], alice['beers'], alice['shots']) == (0, 0, 0)
    assert state['history'] == []
    assert state['gameActive'] is False
    assert [p['name'] for p in state['players']] == ['Alice', 'Bob']


def test_rule_violation_does_not_broadcast(sio_client):
    code = _create_room(sio_client)
    sio_client.emit('addPlayer', {'roomCode': code, 'name': 'Alice'})
    alice_id = _last_state(sio_client)['players'][0]['id']
    sio_client.emit('startGame', {'roomCode': code})
    sio_client.get_received()

    sio_client.emit('playerAction', {'roomCode': code, 'playerId': alice_id, 'action': 'redeem'})
    received = sio_client.get_received()
    assert [p['name'] for p in received] == ['actionError']
    assert received[0]['args'][0] == {'message': 'Alice needs more points!'}


def test_update_settings_reports_each_bad_key(sio_client):
    code = _create_room(sio_client)
    sio_client.emit('updateSettings', {
        'roomCode': code,
        'newSettings': {'pointsPerBeer': '3000', 'shotLimit': 'many', 'redemptionCost': -5},
    })
    received = sio_client.get_received()
    errors = [p['args'][0]['message'] for p in received if p['name'] == 'actionError']
    assert sorted(errors) == [
        'Invalid value for redemptionCost. Must be a non-negative number.',
        'Invalid value for shotLimit. Must be a non-negative number.',
    ]
    state = [p['args'][0] for p in received if p['name'] == 'gameStateUpdate'][-1]
    assert state['settings']['pointsPerBeer'] == 3000
    assert state['settings']['shotLimit'] == 3


def test_update_settings_without_valid_keys_does_not_broadcast(sio_client):
    code = _create_room(sio_client)
    sio_client.emit('updateSettings', {'roomCode': code, 'newSettings': {'shotLimit': 'x'}})
    assert [p['name'] for p in sio_client.get_received()] == ['actionError']


def test_new_game_setup_keeps_history(sio_client):
    code = _create_room(sio_client)
    sio_client.emit('addPlayer', {'roomCode': code, 'name': 'Alice'})
    alice_id = _last_state(sio_client)['players'][0]['id']
    sio_client.emit('startGame', {'roomCode': code})
    sio_client.emit('playerAction', {'roomCode': code, 'playerId': alice_id, 'action': 'shot'})
    sio_client.get_received()

    sio_client.emit('newGameSetup', {'roomCode': code})
    received = sio_client.get_received()
    assert [p['args'][0] for p in received if p['name'] == 'showScreen'] == ['setup']
    state = [p['args'][0] for p in received if p['name'] == 'gameStateUpdate'][-1]
    assert state['gameActive'] is False
    assert state['players'][0]['shots'] == 1
    assert len(state['history']) == 1


def test_disconnect_notifies_and_tears_down(flask_app, sio_client, make_sio_client, registry):
    code = _create_room(sio_client)
    guest = make_sio_client()
    guest.emit('joinRoom', code, callback=True)
    guest.get_received()

    sio_client.disconnect()
    assert len(_events(guest, 'playerLeft')) == 1
    assert code in registry

    guest.disconnect()
    assert code not in registry

    late = make_sio_client()
    response = late.emit('joinRoom', code, callback=True)
    assert response['success'] is False
