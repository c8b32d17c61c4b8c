"""
Pytest configuration and fixtures for league API tests.
"""
import os
import sys
import json
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'

from league.app import create_app
from league.models import db


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Clear all tables before each test."""
    with app.app_context():
        db.session.remove()

        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

    yield db.session


def auth_headers(token: str) -> dict:
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def register(client):
    """Register a user over HTTP; returns {'id', 'token', 'headers', 'user'}."""
    def _register(email: str, name: str = 'Player', birthdate: str = '2000-01-01'):
        response = client.post('/api/v1/auth/register', json={
            'email': email,
            'name': name,
            'birthdate': birthdate
        })
        assert response.status_code == 201, response.data
        data = json.loads(response.data)
        return {
            'id': data['user']['id'],
            'token': data['token'],
            'headers': auth_headers(data['token']),
            'user': data['user']
        }
    return _register


@pytest.fixture
def admin_user(register):
    return register('admin@example.com', name='Alex Admin', birthdate='1990-05-17')


@pytest.fixture
def other_user(register):
    return register('other@example.com', name='Olive Other', birthdate='1995-11-02')


@pytest.fixture
def create_team(client):
    """Create a team as the given user; returns the team projection."""
    def _create(owner: dict, name: str):
        response = client.post('/api/v1/teams', json={'name': name}, headers=owner['headers'])
        assert response.status_code == 201, response.data
        return json.loads(response.data)['team']
    return _create


@pytest.fixture
def sample_team(admin_user, create_team):
    return create_team(admin_user, 'Red Lions')


@pytest.fixture
def sample_tournament(client, admin_user):
    """An empty tournament administered by admin_user."""
    response = client.post('/api/v1/tournaments', json={'name': 'Spring Cup'},
                           headers=admin_user['headers'])
    assert response.status_code == 201, response.data
    return json.loads(response.data)['tournament']


@pytest.fixture
def tournament_with_teams(client, admin_user, create_team, sample_tournament):
    """Spring Cup with four entered teams T1..T4, in entry order."""
    teams = []
    for name in ('T1', 'T2', 'T3', 'T4'):
        team = create_team(admin_user, name)
        response = client.post(
            f"/api/v1/tournaments/{sample_tournament['id']}/teams",
            json={'team_code_or_id': team['id']},
            headers=admin_user['headers']
        )
        assert response.status_code == 200, response.data
        teams.append(team)
    return {'tournament': sample_tournament, 'teams': teams}


@pytest.fixture
def mock_publisher(mocker):
    """Stand-in EventPublisher that records what would be published."""
    publisher = mocker.MagicMock()
    publisher.publish_tournament_event.return_value = True
    return publisher
