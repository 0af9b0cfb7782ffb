import pytest
from unittest.mock import Mock, patch
import sys
import os

# Add project root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tests.fakes import MockFirestore, MockBucket
from services.draft_buffer import DraftBuffer
from utils.config import Config

@pytest.fixture
def mock_firestore():
    """Mock Firestore database"""
    with patch('firebase_admin.firestore.client') as mock_client:
        mock_db = Mock()
        mock_client.return_value = mock_db
        yield mock_db

@pytest.fixture
def fake_db():
    """In-memory Firestore"""
    return MockFirestore()

@pytest.fixture
def fake_bucket():
    return MockBucket()

@pytest.fixture
def draft_buffer(tmp_path):
    return DraftBuffer(tmp_path / 'buffer')

@pytest.fixture
def mock_auth():
    """Mock Firebase token verification"""
    with patch('utils.auth_middleware.auth.verify_id_token') as mock_verify:
        mock_verify.return_value = {'uid': 'test-user-id', 'email': 'test@example.com'}
        yield mock_verify

@pytest.fixture
def test_config(tmp_path):
    return Config(environ={
        'NODE_ENV': 'test',
        'LOG_LEVEL': 'DEBUG',
        'REACT_APP_FIREBASE_PROJECT_ID': 'beginai-test',
        'REACT_APP_ADMIN_EMAILS': 'Admin@Example.com',
        'DRAFT_BUFFER_DIR': str(tmp_path / 'buffer'),
        'AUTOSAVE_DELAY_SECONDS': '0.05'
    })

@pytest.fixture
def sample_user_data():
    """Sample user data for testing"""
    return {
        'uid': 'test-user-id',
        'email': 'test@example.com',
        'displayName': 'Test User',
        'xp': 90,
        'level': 1,
        'streaks': {
            'currentStreak': 2,
            'longestStreak': 4,
            'lastActivityDate': '2024-03-09'
        },
        'badges': ['first-steps'],
        'lessonsCompleted': 4,
        'perfectQuizzes': 2,
        'role': 'user'
    }
