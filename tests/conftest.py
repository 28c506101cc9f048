import os

# Point the module-level app at an in-memory database before anything imports config.
os.environ.setdefault('DATABASE_URL', 'sqlite://')

import pytest

from app import create_app
from config import TestConfig
from models import db, Category


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _register(client, email='ana@example.com', name='Ana Souza', password='secret123'):
    res = client.post('/api/auth/register', json={'name': name, 'email': email, 'password': password})
    assert res.status_code == 201, res.get_json()
    return res.get_json()


@pytest.fixture
def register(client):
    def create(**kwargs):
        return _register(client, **kwargs)
    return create


@pytest.fixture
def user(register):
    return register()


@pytest.fixture
def auth(user):
    return {'Authorization': f"Bearer {user['token']}"}


@pytest.fixture
def category_id(app, user):
    """Look up one of the starter categories by name."""
    def lookup(name):
        with app.app_context():
            return Category.query.filter_by(user_id=user['user']['id'], name=name).one().id
    return lookup


@pytest.fixture
def add_transaction(client, auth, category_id):
    def create(type_, amount, category, date='2024-05-10T12:00:00', **extra):
        payload = {
            'type': type_, 'amount': amount, 'description': extra.pop('description', f'{type_} entry'),
            'category': category_id(category), 'date': date, **extra,
        }
        return client.post('/api/transactions', json=payload, headers=auth)
    return create
