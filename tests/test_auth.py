from extensions import mail


def test_register_returns_token_and_seeds_categories(client, register):
    with mail.record_messages() as outbox:
        data = register(email='Ana@Example.com')

    assert data['user']['email'] == 'ana@example.com'
    assert data['user']['preferences'] == {'currency': 'BRL', 'language': 'pt-BR', 'theme': 'light'}
    assert len(outbox) == 1
    assert outbox[0].subject == 'Welcome to Ledgerly'

    res = client.get('/api/categories', headers={'Authorization': f"Bearer {data['token']}"})
    names = {c['name'] for c in res.get_json()}
    assert {'Food', 'Salary', 'Investments'} <= names


def test_register_rejects_duplicate_email(client, user):
    res = client.post('/api/auth/register', json={'name': 'Other', 'email': 'ANA@example.com', 'password': 'secret123'})
    assert res.status_code == 400
    assert 'already exists' in res.get_json()['error']


def test_register_validates_fields(client):
    res = client.post('/api/auth/register', json={'name': 'A', 'email': 'not-an-email', 'password': '123'})
    assert res.status_code == 400
    fields = {e['field'] for e in res.get_json()['errors']}
    assert fields == {'name', 'email', 'password'}


def test_login_and_me(client, user):
    res = client.post('/api/auth/login', json={'email': 'ana@example.com', 'password': 'secret123'})
    assert res.status_code == 200
    token = res.get_json()['token']

    res = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert res.get_json()['user']['name'] == 'Ana Souza'


def test_login_with_wrong_password(client, user):
    res = client.post('/api/auth/login', json={'email': 'ana@example.com', 'password': 'nope'})
    assert res.status_code == 401


def test_protected_routes_require_token(client):
    assert client.get('/api/goals').status_code == 401
    res = client.get('/api/goals', headers={'Authorization': 'Bearer garbage'})
    assert res.status_code == 401
    assert res.get_json()['error'] == 'Token is invalid!'


def test_update_profile_merges_preferences(client, auth):
    res = client.put('/api/auth/profile', json={'name': 'Ana S.', 'preferences': {'currency': 'EUR'}}, headers=auth)
    user = res.get_json()['user']
    assert user['name'] == 'Ana S.'
    assert user['preferences'] == {'currency': 'EUR', 'language': 'pt-BR', 'theme': 'light'}


def test_change_password(client, auth):
    res = client.put('/api/auth/password', json={'currentPassword': 'wrong', 'newPassword': 'another1'}, headers=auth)
    assert res.status_code == 400

    with mail.record_messages() as outbox:
        res = client.put('/api/auth/password', json={'currentPassword': 'secret123', 'newPassword': 'another1'}, headers=auth)
    assert res.status_code == 200
    assert outbox[0].subject == 'Security Alert: Password Changed'

    res = client.post('/api/auth/login', json={'email': 'ana@example.com', 'password': 'another1'})
    assert res.status_code == 200


def test_deleted_account_cannot_log_in(client, auth):
    res = client.delete('/api/auth/account', json={'password': 'secret123'}, headers=auth)
    assert res.status_code == 200

    assert client.get('/api/auth/me', headers=auth).status_code == 401
    res = client.post('/api/auth/login', json={'email': 'ana@example.com', 'password': 'secret123'})
    assert res.status_code == 401


def test_health_and_unknown_route(client):
    assert client.get('/api/test').get_json() == {'message': 'API is running'}
    res = client.get('/api/nowhere')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'Route not found'}
