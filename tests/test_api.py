import io

from PIL import Image

from conftest import FERRY_BUILDING, COIT_TOWER, LOMBARD_STREET, register


def _png_bytes(size=(64, 48)):
    buf = io.BytesIO()
    Image.new('RGB', size, (200, 40, 40)).save(buf, format='PNG')
    buf.seek(0)
    return buf


def _checkpoints(route):
    return {cp['name']: cp for cp in route['checkpoints']}


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'GeoQuest' in res.get_json()['message']


def test_register_login_logout(client):
    user = register(client, 'Alice@Example.com', 'alice')
    assert user['email'] == 'alice@example.com'
    assert user['role'] == 'player'
    assert user['total_points'] == 0 and user['games_played'] == 0

    assert client.get('/check_login').status_code == 200
    assert client.post('/logout').status_code == 200
    assert client.get('/check_login').status_code == 401

    res = client.post('/login', json={'email': 'alice@example.com'})
    assert res.status_code == 200
    assert res.get_json()['user']['username'] == 'alice'

    dup = client.post('/register', json={'email': 'alice@example.com', 'username': 'again'})
    assert dup.status_code == 400
    assert dup.get_json()['error'] == 'User with this email already exists'


def test_login_checks_password_and_unknown_email(client):
    register(client, 'bob@example.com', 'bob', password='s3cret')
    client.post('/logout')
    assert client.post('/login', json={'email': 'bob@example.com', 'password': 'nope'}).status_code == 401
    assert client.post('/login', json={'email': 'bob@example.com'}).status_code == 401
    assert client.post('/login', json={'email': 'bob@example.com', 'password': 's3cret'}).status_code == 200
    res = client.post('/login', json={'email': 'ghost@example.com'})
    assert res.status_code == 401
    assert res.get_json()['error'] == 'User not found'


def test_route_endpoints_require_admin(client, make_player):
    payload = {'name': 'Nope', 'checkpoints': []}
    assert client.post('/api/routes', json=payload).status_code == 401
    player = make_player()
    res = player.post('/api/routes', json=payload)
    assert res.status_code == 403
    assert res.get_json()['error'] == 'Admin access required'


def test_create_route_validates_checkpoints(admin_client):
    res = admin_client.post('/api/routes', json={
        'name': 'Broken',
        'checkpoints': [{'name': 'X', 'latitude': 1, 'longitude': 2, 'challenge': {'type': 'riddle'}}],
    })
    assert res.status_code == 400
    assert admin_client.get('/api/routes').get_json() == []


def test_route_answers_hidden_from_players(admin_client, make_player, route):
    assert [cp['order_index'] for cp in route['checkpoints']] == [0, 1, 2]
    assert route['total_points'] == 45

    player = make_player()
    seen = player.get(f"/api/routes/{route['id']}").get_json()
    assert all('answer' not in cp['challenge'] for cp in seen['checkpoints'])
    assert _checkpoints(seen)['Ferry Building']['challenge']['options'] == ['1898', '1906', '1915', '1888']

    admin_view = admin_client.get(f"/api/routes/{route['id']}").get_json()
    assert _checkpoints(admin_view)['Ferry Building']['challenge']['answer'] == '1898'

    listed = player.get('/api/routes').get_json()
    assert [r['id'] for r in listed] == [route['id']]
    assert admin_client.get('/api/routes/mine').get_json()[0]['id'] == route['id']


def test_add_checkpoint_appends_in_order(admin_client, route):
    res = admin_client.post(f"/api/routes/{route['id']}/checkpoints", json={
        'name': 'Pier 39', 'latitude': 37.8087, 'longitude': -122.4098, 'points': 5,
        'challenge_type': 'trivia', 'challenge_question': 'Sea lions?', 'challenge_answer': 'yes',
    })
    assert res.status_code == 201
    assert res.get_json()['order_index'] == 3
    updated = admin_client.get(f"/api/routes/{route['id']}").get_json()
    assert [cp['name'] for cp in updated['checkpoints']][-1] == 'Pier 39'


def test_create_and_join_room(admin_client, make_player, room):
    code = room['code']
    assert len(code) == 6 and code.isalnum() and code == code.upper()
    assert room['status'] == 'waiting'
    assert room['max_players'] == 3

    alice = make_player('alice')
    res = alice.post('/api/rooms/join', json={'room_code': code.lower()})
    assert res.status_code == 200
    assert res.get_json()['players'] == [alice.user['id']]

    # Joining twice is a no-op
    again = alice.post('/api/rooms/join', json={'room_code': code})
    assert again.get_json()['players'] == [alice.user['id']]

    preview = alice.get(f'/api/rooms/code/{code}').get_json()
    assert preview['route']['name'] == 'Waterfront Walk'

    missing = alice.post('/api/rooms/join', json={'room_code': 'ZZZZZZ'})
    assert missing.status_code == 404
    assert alice.post('/api/rooms/join', json={}).status_code == 400


def test_room_full_and_not_waiting(admin_client, make_player, room):
    players = [make_player() for _ in range(4)]
    for p in players[:3]:
        assert p.post('/api/rooms/join', json={'room_code': room['code']}).status_code == 200
    res = players[3].post('/api/rooms/join', json={'room_code': room['code']})
    assert res.status_code == 403
    assert res.get_json()['error'] == 'This room is full.'

    # Leaving frees a slot, but the room stops accepting players once started
    assert players[0].post(f"/api/rooms/{room['id']}/leave").status_code == 200
    admin_client.post(f"/api/rooms/{room['id']}/start")
    res = players[3].post('/api/rooms/join', json={'room_code': room['code']})
    assert res.status_code == 403
    assert res.get_json()['error'] == 'This room is not accepting new players.'


def test_start_and_end_transitions(admin_client, make_player, room):
    player = make_player()
    player.post('/api/rooms/join', json={'room_code': room['code']})
    assert player.post(f"/api/rooms/{room['id']}/start").status_code == 403

    # Cannot end a room that never started
    assert admin_client.post(f"/api/rooms/{room['id']}/end").status_code == 400

    started = admin_client.post(f"/api/rooms/{room['id']}/start").get_json()
    assert started['status'] == 'active'
    assert started['started_at'] is not None
    # Idempotent start
    assert admin_client.post(f"/api/rooms/{room['id']}/start").get_json()['status'] == 'active'
    assert [r['id'] for r in admin_client.get('/api/rooms/active').get_json()] == [room['id']]

    ended = admin_client.post(f"/api/rooms/{room['id']}/end").get_json()
    assert ended['status'] == 'completed'
    assert ended['completed_at'] is not None
    assert admin_client.post(f"/api/rooms/{room['id']}/start").status_code == 400


def test_submission_rules(admin_client, make_player, route, room):
    cps = _checkpoints(route)
    alice = make_player('alice')
    outsider = make_player('mallory')
    alice.post('/api/rooms/join', json={'room_code': room['code']})
    ferry = cps['Ferry Building']
    url = f"/api/rooms/{room['id']}/checkpoints/{ferry['id']}/submit"

    # Not started yet
    assert alice.post(url, json={'answer': '1898'}).status_code == 400
    admin_client.post(f"/api/rooms/{room['id']}/start")

    assert outsider.post(url, json={'answer': '1898'}).status_code == 403

    far = alice.post(url, json={'answer': '1898', 'latitude': COIT_TOWER[0], 'longitude': COIT_TOWER[1]})
    assert far.status_code == 403
    assert far.get_json()['error'] == 'You need to get closer to this checkpoint to unlock it!'

    wrong = alice.post(url, json={'answer': '1906', 'latitude': FERRY_BUILDING[0], 'longitude': FERRY_BUILDING[1]})
    assert wrong.status_code == 201
    body = wrong.get_json()
    assert body['is_correct'] is False
    assert body['points'] == 0
    assert body['feedback'] == 'Incorrect. The correct answer was: 1898'

    # A failed checkpoint can be retried
    right = alice.post(url, json={'answer': ' 1898 ', 'time_taken': 12,
                                  'latitude': FERRY_BUILDING[0], 'longitude': FERRY_BUILDING[1]})
    body = right.get_json()
    assert body['is_correct'] is True
    assert body['points'] == 10
    assert body['feedback'] == 'Correct! Well done! Quick thinking!'

    again = alice.post(url, json={'answer': '1898'})
    assert again.status_code == 400
    assert again.get_json()['error'] == 'Checkpoint already completed'

    other_route = admin_client.post('/api/routes', json={'name': 'Elsewhere', 'checkpoints': [
        {'name': 'Far', 'latitude': 0, 'longitude': 0, 'challenge': {'type': 'trivia', 'answer': 'x'}},
    ]}).get_json()
    foreign = other_route['checkpoints'][0]['id']
    assert alice.post(f"/api/rooms/{room['id']}/checkpoints/{foreign}/submit",
                      json={'answer': 'x'}).status_code == 404


def test_room_state_reports_checkpoint_status(admin_client, make_player, route, room):
    cps = _checkpoints(route)
    alice = make_player('alice')
    alice.post('/api/rooms/join', json={'room_code': room['code']})
    admin_client.post(f"/api/rooms/{room['id']}/start")
    alice.post(f"/api/rooms/{room['id']}/checkpoints/{cps['Ferry Building']['id']}/submit", json={'answer': '1898'})
    alice.post(f"/api/rooms/{room['id']}/checkpoints/{cps['Coit Tower']['id']}/submit", json={'answer': 'tower'})

    state = alice.get(f"/api/rooms/{room['id']}/state?latitude={LOMBARD_STREET[0]}&longitude={LOMBARD_STREET[1]}")
    assert state.status_code == 200
    by_name = {cp['name']: cp for cp in state.get_json()['checkpoints']}
    assert by_name['Ferry Building']['status'] == 'completed'
    assert by_name['Coit Tower']['status'] == 'failed'
    assert by_name['Lombard Street']['status'] == 'locked'
    assert by_name['Lombard Street']['distance'] == 'near'
    assert by_name['Ferry Building']['distance'] == 'far'
    assert state.get_json()['points'] == 10

    outsider = make_player('mallory')
    assert outsider.get(f"/api/rooms/{room['id']}/state").status_code == 403


def test_full_game_results_and_leaderboard(admin_client, make_player, route, room):
    cps = _checkpoints(route)
    alice = make_player('alice')
    bob = make_player('bob')
    for p in (alice, bob):
        p.post('/api/rooms/join', json={'room_code': room['code']})
    admin_client.post(f"/api/rooms/{room['id']}/start")

    def submit(player, name, **payload):
        return player.post(f"/api/rooms/{room['id']}/checkpoints/{cps[name]['id']}/submit", **payload)

    assert submit(alice, 'Ferry Building', json={'answer': '1898'}).get_json()['is_correct']
    puzzle = submit(alice, 'Coit Tower', json={'answer': 'TELEGRAPH'}).get_json()
    assert puzzle['is_correct'] and puzzle['points'] == 15
    photo = submit(alice, 'Lombard Street', data={'photo': (_png_bytes(), 'turns.png', 'image/png')},
                   content_type='multipart/form-data')
    assert photo.status_code == 201
    photo_body = photo.get_json()
    assert photo_body['is_correct'] is True
    assert photo_body['submission']['photo_url'].startswith('/photos/')
    assert alice.get(photo_body['submission']['photo_url']).status_code == 200

    near_miss = submit(bob, 'Coit Tower', json={'answer': 'telegrap'}).get_json()
    assert near_miss['is_correct'] is False
    assert near_miss['details']['fuzzy_match'] is True
    no_photo = submit(bob, 'Lombard Street', json={}).get_json()
    assert no_photo['is_correct'] is False
    assert no_photo['feedback'] == 'Please upload a photo to complete this challenge'
    assert submit(bob, 'Ferry Building', json={'answer': '1898'}).get_json()['is_correct']

    stats = alice.get(f"/api/rooms/{room['id']}/stats").get_json()
    assert stats['active_players'] == 2
    assert stats['completed_checkpoints'] == 4
    assert stats['total_checkpoints'] == 6
    assert stats['leaderboard'][0]['player_id'] == alice.user['id']

    admin_client.post(f"/api/rooms/{room['id']}/end")
    results = bob.get(f"/api/rooms/{room['id']}/results").get_json()
    assert results['route_name'] == 'Waterfront Walk'
    assert results['total_players'] == 2
    assert results['total_possible_points'] == 45
    first, second = results['player_scores']
    assert (first['username'], first['rank'], first['total_points']) == ('alice', 1, 45)
    assert first['completion_rate'] == 100
    assert (second['username'], second['rank'], second['total_points']) == ('bob', 2, 10)
    assert second['completed_checkpoints'] == 1
    assert len(second['submissions']) == 3
    assert first['breakdown']['base_points'] == 45
    assert results['game_stats']['most_points'] == 45
    assert results['game_stats']['average_score'] == 27.5

    board = alice.get('/leaderboard').get_json()
    assert [(e['username'], e['total_points'], e['games_played']) for e in board[:2]] == [
        ('alice', 45, 1), ('bob', 10, 1)]
    assert board[0]['rank'] == 1

    history = bob.get('/me/submissions').get_json()
    assert len(history) == 3


def test_results_for_unknown_room(client, make_player):
    player = make_player()
    res = player.get('/api/rooms/room_missing/results')
    assert res.status_code == 404
    assert res.get_json()['error'] == 'Room not found'


def test_position_updates_and_dashboard(admin_client, make_player, route, room):
    alice = make_player('alice')
    alice.post('/api/rooms/join', json={'room_code': room['code']})
    admin_client.post(f"/api/rooms/{room['id']}/start")

    res = alice.post(f"/api/rooms/{room['id']}/position",
                     json={'latitude': COIT_TOWER[0], 'longitude': COIT_TOWER[1], 'accuracy': 8})
    assert res.status_code == 200
    assert res.get_json()['accuracy'] == 8
    assert alice.post(f"/api/rooms/{room['id']}/position", json={'latitude': 'x'}).status_code == 400

    positions = admin_client.get(f"/api/rooms/{room['id']}/positions").get_json()
    assert [(p['player_id'], p['latitude']) for p in positions] == [(alice.user['id'], COIT_TOWER[0])]

    # The stored position gates submissions when none is sent with the answer
    ferry = _checkpoints(route)['Ferry Building']
    res = alice.post(f"/api/rooms/{room['id']}/checkpoints/{ferry['id']}/submit", json={'answer': '1898'})
    assert res.status_code == 403

    dashboard = admin_client.get('/api/rooms/dashboard').get_json()
    assert dashboard['active_rooms'] == 1
    assert dashboard['total_players'] == 1
    types = [e['type'] for e in dashboard['recent_events']]
    assert 'checkpoint_reached' in types
    assert 'game_started' in types
    assert 'player_joined' in types
    assert alice.get('/api/rooms/dashboard').status_code == 403


def test_route_payload_shape_errors(admin_client):
    def create(checkpoints):
        return admin_client.post('/api/routes', json={'name': 'Shapes', 'checkpoints': checkpoints})

    good = {'name': 'A', 'latitude': 1, 'longitude': 2, 'challenge': {'type': 'trivia', 'answer': 'x'}}
    cases = [
        ('nope', 'Checkpoints must be a list'),
        (['just a string'], 'Each checkpoint must be an object'),
        ([dict(good, challenge='trivia')], 'Checkpoint challenge must be an object'),
        ([dict(good, order_index='first')], 'Checkpoint order_index must be a number'),
        ([dict(good, challenge={'type': 'trivia', 'options': 'A,B'})], 'Challenge options must be a list'),
    ]
    for checkpoints, message in cases:
        res = create(checkpoints)
        assert res.status_code == 400
        assert res.get_json()['error'] == message
    assert admin_client.get('/api/routes').get_json() == []


def test_non_object_json_bodies_are_rejected(admin_client, make_player, room):
    player = make_player()
    assert admin_client.post('/api/routes', json=['name']).status_code == 400
    assert player.post('/api/rooms/join', json=[room['code']]).status_code == 400
    assert admin_client.post('/api/rooms/create', json=[room['route_id']]).status_code == 400
    assert player.post('/login', json=['player@example.com']).status_code == 400

    player.post('/api/rooms/join', json={'room_code': room['code']})
    assert player.post(f"/api/rooms/{room['id']}/position", json=[1, 2]).status_code == 400
    admin_client.post(f"/api/rooms/{room['id']}/start")
    state = admin_client.get(f"/api/rooms/{room['id']}/state").get_json()
    checkpoint_id = state['checkpoints'][0]['id']
    res = player.post(f"/api/rooms/{room['id']}/checkpoints/{checkpoint_id}/submit", json=['1898'])
    assert res.status_code == 201
    assert res.get_json()['is_correct'] is False


def test_results_are_limited_to_room_members(admin_client, make_player, room):
    alice = make_player('alice')
    alice.post('/api/rooms/join', json={'room_code': room['code']})
    outsider = make_player('mallory')
    res = outsider.get(f"/api/rooms/{room['id']}/results")
    assert res.status_code == 403
    assert res.get_json()['error'] == 'You are not a player in this room'
    assert alice.get(f"/api/rooms/{room['id']}/results").status_code == 200
    assert admin_client.get(f"/api/rooms/{room['id']}/results").status_code == 200
