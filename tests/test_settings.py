def test_default_settings(client, auth):
    body = client.get('/api/settings', headers=auth).get_json()
    assert body['preferences'] == {'currency': 'BRL', 'language': 'pt-BR', 'theme': 'light'}
    assert body['customLabels']['balance'] == 'Balance'
    assert all(body['notifications'].values())


def test_update_preferences(client, auth):
    res = client.put('/api/settings/preferences', json={'theme': 'dark', 'language': 'en-US'}, headers=auth)
    assert res.get_json()['preferences'] == {'currency': 'BRL', 'language': 'en-US', 'theme': 'dark'}

    res = client.put('/api/settings/preferences', json={'currency': 'JPY'}, headers=auth)
    assert res.status_code == 400


def test_update_labels(client, auth):
    res = client.put('/api/settings/labels', json={'income': 'Earnings', 'goal': 'Dream'}, headers=auth)
    labels = res.get_json()['customLabels']
    assert labels['income'] == 'Earnings'
    assert labels['goal'] == 'Dream'
    assert labels['expense'] == 'Expenses'

    assert client.put('/api/settings/labels', json={'budget': ''}, headers=auth).status_code == 400


def test_update_notifications(client, auth):
    res = client.put('/api/settings/notifications', json={'push': False, 'monthlyReports': False}, headers=auth)
    notifications = res.get_json()['notifications']
    assert notifications['push'] is False
    assert notifications['monthlyReports'] is False
    assert notifications['budgetAlerts'] is True


def test_export_then_import_into_new_account(client, auth, register, add_transaction, category_id):
    add_transaction('income', 5000, 'Salary', date='2024-05-01T09:00:00')
    add_transaction('expense', 1200, 'Food', date='2024-05-03T09:00:00')
    client.post('/api/categories', json={'name': 'Pets', 'type': 'expense'}, headers=auth)
    budget = client.post('/api/budgets', json={'category': category_id('Food'), 'amount': 2000, 'startDate': '2024-05-01T00:00:00'}, headers=auth).get_json()['budget']
    client.put(f"/api/budgets/{budget['id']}", json={'isActive': False}, headers=auth)
    client.post('/api/goals', json={'title': 'Trip', 'targetAmount': 4000, 'currentAmount': 1000,
                                    'startDate': '2024-01-01T00:00:00', 'targetDate': '2030-01-01T00:00:00'}, headers=auth)
    client.put('/api/settings/labels', json={'income': 'Earnings'}, headers=auth)

    exported = client.post('/api/settings/export', headers=auth).get_json()['data']
    assert len(exported['transactions']) == 2
    assert len(exported['goals']) == 1

    other = register(email='bruno@example.com', name='Bruno')
    other_auth = {'Authorization': f"Bearer {other['token']}"}
    res = client.post('/api/settings/import', json={'data': exported}, headers=other_auth)
    assert res.status_code == 200
    report = res.get_json()['report']
    assert report['categories']['imported'] == 1
    assert report['transactions'] == {'imported': 2, 'skipped': 0}
    assert report['budgets'] == {'imported': 1, 'skipped': 0}
    assert report['goals'] == {'imported': 1, 'skipped': 0}

    budgets = client.get('/api/budgets', headers=other_auth).get_json()
    assert [(b['category']['name'], b['isActive']) for b in budgets] == [('Food', False)]

    dashboard = client.get('/api/dashboard', headers=other_auth).get_json()
    assert dashboard['balance'] == 3800
    assert dashboard['totalReservedInGoals'] == 1000

    goal = client.get('/api/goals', headers=other_auth).get_json()[0]
    assert [m['achieved'] for m in goal['milestones']] == [True, False, False, False]

    settings = client.get('/api/settings', headers=other_auth).get_json()
    assert settings['customLabels']['income'] == 'Earnings'


def test_import_skips_invalid_rows(client, auth):
    data = {'transactions': [
        {'type': 'income', 'amount': 100, 'description': 'Gift', 'category': {'name': 'Unknown'}},
        {'type': 'income', 'amount': 100, 'description': 'Bonus', 'category': {'name': 'Salary'}, 'date': '2999-01-01T00:00:00'},
        {'type': 'income', 'amount': 100, 'description': 'Bonus', 'category': {'name': 'Salary'}, 'date': '2024-01-01T00:00:00'},
    ]}
    report = client.post('/api/settings/import', json={'data': data}, headers=auth).get_json()['report']
    assert report['transactions'] == {'imported': 1, 'skipped': 2}
