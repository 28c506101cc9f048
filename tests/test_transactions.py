from datetime import datetime, timedelta


def test_expense_is_stored_negative(add_transaction):
    add_transaction('income', 5000, 'Salary')
    res = add_transaction('expense', 120.5, 'Food', paymentMethod='credit_card', tags=['market'])
    assert res.status_code == 201
    transaction = res.get_json()['transaction']
    assert transaction['amount'] == -120.5
    assert transaction['absoluteAmount'] == 120.5
    assert transaction['category']['name'] == 'Food'
    assert transaction['tags'] == ['market']


def test_non_positive_amount_is_rejected(add_transaction):
    res = add_transaction('income', -10, 'Salary')
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Amount must be greater than zero'


def test_future_date_is_rejected(add_transaction):
    tomorrow = (datetime.utcnow() + timedelta(days=1)).isoformat()
    res = add_transaction('income', 100, 'Salary', date=tomorrow)
    assert res.status_code == 400
    assert 'future' in res.get_json()['error']


def test_category_type_must_match(add_transaction):
    res = add_transaction('expense', 10, 'Salary')
    assert res.status_code == 400


def test_expense_above_available_balance_is_rejected(client, auth, add_transaction):
    add_transaction('income', 1000, 'Salary')
    client.post('/api/goals', json={'title': 'Trip', 'targetAmount': 5000, 'currentAmount': 0}, headers=auth)
    goal_id = client.get('/api/goals', headers=auth).get_json()[0]['id']
    client.post(f'/api/goals/{goal_id}/add-amount', json={'amount': 400}, headers=auth)

    res = add_transaction('expense', 700, 'Food')
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Insufficient balance: only 600.00 available'
    assert add_transaction('expense', 600, 'Food').status_code == 201


def test_non_finite_amounts_are_rejected(client, auth, category_id):
    for type_, category in (('income', 'Salary'), ('expense', 'Food')):
        body = f'{{"type": "{type_}", "amount": 1e400, "description": "x", "category": {category_id(category)}}}'
        res = client.post('/api/transactions', data=body, content_type='application/json', headers=auth)
        assert res.status_code == 400

    dashboard = client.get('/api/dashboard', headers=auth).get_json()
    assert dashboard['balance'] == 0
    assert dashboard['availableBalance'] == 0


def test_category_is_checked_before_balance(add_transaction):
    res = add_transaction('expense', 1000000, 'Salary')
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Category must be of type expense'


def test_list_filters_paginates_and_summarises(client, auth, add_transaction, category_id):
    add_transaction('income', 5000, 'Salary', date='2024-05-01T09:00:00')
    add_transaction('expense', 1200, 'Food', date='2024-05-03T09:00:00')
    add_transaction('expense', 300, 'Transport', date='2024-05-05T09:00:00')

    body = client.get('/api/transactions?limit=2', headers=auth).get_json()
    assert body['summary'] == {'income': 5000, 'expense': 1500, 'balance': 3500}
    assert body['pagination'] == {'current': 1, 'pages': 2, 'total': 3, 'limit': 2}
    assert [t['description'] for t in body['transactions']] == ['expense entry', 'expense entry']
    assert body['transactions'][0]['category']['name'] == 'Transport'

    body = client.get('/api/transactions?type=expense&startDate=2024-05-04T00:00:00', headers=auth).get_json()
    assert body['pagination']['total'] == 1
    assert body['summary'] == {'income': 0, 'expense': 300, 'balance': -300}

    body = client.get(f"/api/transactions?category={category_id('Food')}", headers=auth).get_json()
    assert body['pagination']['total'] == 1


def test_invalid_query(client, auth):
    assert client.get('/api/transactions?limit=500', headers=auth).status_code == 400
    assert client.get('/api/transactions?type=transfer', headers=auth).status_code == 400


def test_update_rederives_sign(client, auth, add_transaction, category_id):
    add_transaction('income', 5000, 'Salary')
    transaction = add_transaction('expense', 50, 'Food').get_json()['transaction']

    res = client.put(f"/api/transactions/{transaction['id']}", json={'amount': 80}, headers=auth)
    assert res.get_json()['transaction']['amount'] == -80

    res = client.put(
        f"/api/transactions/{transaction['id']}",
        json={'type': 'income', 'category': category_id('Freelance')},
        headers=auth,
    )
    updated = res.get_json()['transaction']
    assert updated['amount'] == 80
    assert updated['category']['name'] == 'Freelance'


def test_update_rejects_type_change_without_matching_category(client, auth, add_transaction):
    transaction = add_transaction('income', 100, 'Salary').get_json()['transaction']
    res = client.put(f"/api/transactions/{transaction['id']}", json={'type': 'expense'}, headers=auth)
    assert res.status_code == 400


def test_delete_is_soft(client, auth, add_transaction):
    transaction = add_transaction('income', 100, 'Salary').get_json()['transaction']
    assert client.delete(f"/api/transactions/{transaction['id']}", headers=auth).status_code == 200
    assert client.get(f"/api/transactions/{transaction['id']}", headers=auth).status_code == 404
    assert client.get('/api/transactions', headers=auth).get_json()['summary']['income'] == 0


def test_dashboard_figures(client, auth, add_transaction):
    add_transaction('income', 5000, 'Salary', date='2024-05-01T09:00:00')
    add_transaction('expense', 1200, 'Food', date='2024-05-03T09:00:00')
    add_transaction('expense', 300, 'Transport', date='2024-04-20T09:00:00')
    goal = client.post('/api/goals', json={'title': 'Car', 'targetAmount': 20000}, headers=auth).get_json()['goal']
    client.post(f"/api/goals/{goal['id']}/add-amount", json={'amount': 500}, headers=auth)

    body = client.get('/api/dashboard?month=5&year=2024', headers=auth).get_json()
    assert body['totalIncome'] == 5000
    assert body['totalExpense'] == 1500
    assert body['balance'] == 3500
    assert body['totalReservedInGoals'] == 500
    assert body['availableBalance'] == 3000
    assert body['monthlyIncome'] == 5000
    assert body['monthlyExpense'] == 1200
    assert body['monthlyBalance'] == 3800
    assert len(body['recentTransactions']) == 3


def test_dashboard_for_new_user(client, auth):
    body = client.get('/api/dashboard', headers=auth).get_json()
    assert body['balance'] == 0
    assert body['availableBalance'] == 0
    assert body['recentTransactions'] == []


def test_export_reports(client, auth, add_transaction):
    add_transaction('income', 5000, 'Salary')
    res = client.get('/api/export/csv', headers=auth)
    assert res.mimetype == 'text/csv'
    lines = res.get_data(as_text=True).strip().splitlines()
    assert lines[0] == 'Type,Category,Description,Amount,Date'
    assert lines[1].startswith('income,Salary,')

    res = client.get('/api/export/pdf', headers=auth)
    assert res.mimetype == 'application/pdf'
    assert res.data.startswith(b'%PDF')

    assert client.get('/api/export/xls', headers=auth).status_code == 404
