import pytest
from unittest.mock import Mock
import io
import json

from main import create_app, build_services
from tests.fakes import MockFirestore
from utils.error_handler import AuthorizationError, NotFoundError, ExternalServiceError

AUTH = {'Authorization': 'Bearer fake-token'}

@pytest.fixture
def services():
    return {
        'admin': Mock(),
        'drafts': Mock(),
        'draft_buffer': Mock(),
        'users': Mock(),
        'badges': Mock(),
        'progress': Mock(),
        'news': Mock(),
        'functions': Mock()
    }

@pytest.fixture
def client(test_config, services):
    """Test client for Flask app"""
    app = create_app(config=test_config, services=services)
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client

class TestAPIEndpoints:

    def test_health_check(self, client):
        """Test health check endpoint"""
        response = client.get('/health')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'healthy'

    def test_get_user_profile_success(self, client, services, mock_auth):
        services['users'].get_user_profile.return_value = {'uid': 'test-user-id', 'displayName': 'Test User'}

        response = client.get('/user/test-user-id', headers=AUTH)

        assert response.status_code == 200
        assert json.loads(response.data)['displayName'] == 'Test User'

    def test_get_user_profile_unauthorized(self, client):
        """Test get user profile without authorization"""
        response = client.get('/user/test-user-id')
        assert response.status_code == 401

    def test_get_other_users_profile_forbidden(self, client, mock_auth):
        response = client.get('/user/someone-else', headers=AUTH)
        assert response.status_code == 403

    def test_missing_profile(self, client, services, mock_auth):
        services['users'].get_user_profile.return_value = None
        assert client.get('/user/test-user-id', headers=AUTH).status_code == 404

    def test_unknown_endpoint(self, client):
        assert client.get('/nope').status_code == 404

class TestAdminEndpoints:

    def test_non_admin_rejected(self, client, services, mock_auth):
        services['admin'].check_admin_permission.side_effect = AuthorizationError('nope')

        response = client.get('/admin/drafts', headers=AUTH)

        assert response.status_code == 403
        services['drafts'].load_drafts.assert_not_called()

    def test_list_drafts(self, client, services, mock_auth):
        services['drafts'].load_drafts.return_value = [{'id': 'd1'}]

        response = client.get('/admin/drafts', headers=AUTH)

        assert json.loads(response.data) == {'drafts': [{'id': 'd1'}]}
        services['admin'].check_admin_permission.assert_called_once_with('test-user-id', email='test@example.com')

    def test_create_draft(self, client, services, mock_auth):
        services['drafts'].save_draft.return_value = {'id': 'd1', 'version': 1}

        response = client.post('/admin/drafts', json={'title': 'New'}, headers=AUTH)

        assert response.status_code == 201
        services['drafts'].save_draft.assert_called_once_with('test-user-id', {'title': 'New'})

    def test_invalid_draft_content(self, client, services, mock_auth):
        body = {'contentVersions': {'free': {'pages': [{'blocks': [{'type': 'marquee', 'content': {}}]}]}}}

        response = client.post('/admin/drafts', json=body, headers=AUTH)

        assert response.status_code == 400
        services['drafts'].save_draft.assert_not_called()

    def test_missing_draft(self, client, services, mock_auth):
        services['drafts'].load_draft.side_effect = NotFoundError('Draft not found')
        assert client.get('/admin/drafts/nope', headers=AUTH).status_code == 404

    def test_autosave(self, client, services, mock_auth):
        services['drafts'].auto_save_draft.return_value = {'id': 'd1', 'bufferOnly': True}

        response = client.post('/admin/drafts/d1/autosave', json={'title': 'WIP'}, headers=AUTH)

        assert response.status_code == 202
        services['drafts'].auto_save_draft.assert_called_once_with('test-user-id', {'title': 'WIP', 'id': 'd1'})

    def test_media_upload(self, client, services, mock_auth):
        services['draft_buffer'].stage_media.return_value = 'blob:d1/abc-photo.png'

        response = client.post('/admin/drafts/d1/media', headers=AUTH,
                               data={'file': (io.BytesIO(b'img'), 'photo.png')},
                               content_type='multipart/form-data')

        assert response.status_code == 201
        assert json.loads(response.data)['url'] == 'blob:d1/abc-photo.png'

    def test_publish_requires_target(self, client, services, mock_auth):
        response = client.post('/admin/drafts/d1/publish', json={'pathId': 'p1'}, headers=AUTH)

        assert response.status_code == 400
        services['drafts'].publish_draft.assert_not_called()

    def test_publish(self, client, services, mock_auth):
        services['drafts'].publish_draft.return_value = {'lessonId': 'l9', 'success': True}

        response = client.post('/admin/drafts/d1/publish', json={'pathId': 'p1', 'moduleId': 'm1'}, headers=AUTH)

        assert response.status_code == 201
        services['drafts'].publish_draft.assert_called_once_with('test-user-id', 'd1', 'p1', 'm1')

    def test_create_invalid_path(self, client, services, mock_auth):
        response = client.post('/admin/paths', json={'title': 'No description'}, headers=AUTH)

        assert response.status_code == 400
        assert 'Description is required' in json.loads(response.data)['details']

    def test_create_path_with_modules_uses_bulk(self, client, services, mock_auth):
        services['admin'].create_learning_path_with_modules.return_value = 'p9'
        body = {'title': 'T', 'description': 'D', 'modules': [{'title': 'M'}]}

        response = client.post('/admin/paths', json=body, headers=AUTH)

        assert json.loads(response.data) == {'id': 'p9'}
        services['admin'].create_learning_path.assert_not_called()

    def test_search(self, client, services, mock_auth):
        services['admin'].search_content.return_value = []

        client.get('/admin/search?q=agents&type=paths', headers=AUTH)

        services['admin'].search_content.assert_called_once_with('agents', 'paths')

class TestLearnerEndpoints:

    def test_complete_lesson(self, client, services, mock_auth):
        services['progress'].complete_lesson.return_value = {'success': True}

        response = client.post('/progress/l1/complete', json={'pathId': 'p1', 'moduleId': 'm1', 'score': 100},
                               headers=AUTH)

        assert response.status_code == 200
        services['progress'].complete_lesson.assert_called_once_with(
            'test-user-id', 'l1', module_id='m1', path_id='p1', score=100, email='test@example.com'
        )

    def test_check_badges(self, client, services, mock_auth):
        services['badges'].check_and_award_badges.return_value = [{'id': 'on-fire'}]

        data = json.loads(client.post('/badges/check', headers=AUTH).data)

        assert data['count'] == 1

    def test_news_is_public(self, client, services):
        services['news'].get_news.return_value = [{'title': 'A'}]

        response = client.get('/news?limit=5')

        assert json.loads(response.data) == {'articles': [{'title': 'A'}]}
        services['news'].get_news.assert_called_once_with(5)

    def test_like_article(self, client, services, mock_auth):
        services['news'].toggle_like.return_value = {'liked': True, 'totalLikes': 3, 'realLikes': 1}

        response = client.post('/news/a1/like', headers=AUTH)

        assert json.loads(response.data)['liked'] is True
        services['news'].toggle_like.assert_called_once_with('a1', 'test-user-id')

    def test_upsert_own_profile(self, client, services, mock_auth):
        services['users'].upsert_user_profile.return_value = {'uid': 'test-user-id'}

        response = client.post('/user', json={'displayName': 'New', 'role': 'admin'}, headers=AUTH)

        assert response.status_code == 200
        services['users'].upsert_user_profile.assert_called_once_with(
            'test-user-id', 'test@example.com', {'displayName': 'New'}
        )

    def test_refresh_news_forwards_token(self, client, services, mock_auth):
        services['functions'].update_news_manual.return_value = {'success': True}

        response = client.post('/admin/news/refresh', headers=AUTH)

        assert json.loads(response.data) == {'success': True}
        services['functions'].update_news_manual.assert_called_once_with('fake-token')

    def test_refresh_news_failure(self, client, services, mock_auth):
        services['functions'].update_news_manual.side_effect = ExternalServiceError('down')

        assert client.post('/admin/news/refresh', headers=AUTH).status_code == 503

class TestWiredServices:

    @pytest.fixture
    def wired(self, test_config):
        db = MockFirestore()
        app = create_app(config=test_config, services=build_services(test_config, db=db))
        with app.test_client() as client:
            yield client, db

    def test_functions_client_uses_project_url(self, test_config):
        services = build_services(test_config, db=MockFirestore())

        assert services['functions'].base_url == 'https://us-central1-beginai-test.cloudfunctions.net'

    def test_new_user_completes_lesson(self, wired, mock_auth):
        client, db = wired

        response = client.post('/progress/l1/complete', json={'score': 80}, headers=AUTH)

        assert response.status_code == 200
        assert json.loads(response.data)['firstCompletion'] is True
        user = db.data('users/test-user-id')
        assert user['email'] == 'test@example.com'
        assert user['lessonsCompleted'] == 1
        assert user['xp'] == 10

    def test_non_numeric_score_is_rejected(self, wired, mock_auth):
        client, db = wired

        response = client.post('/progress/l1/complete', json={'score': 'abc'}, headers=AUTH)

        assert response.status_code == 400
        assert db.data('userProgress/test-user-id_l1') is None

    def test_profile_created_on_sign_in(self, wired, mock_auth):
        client, db = wired

        client.post('/user', json={'displayName': 'Ada'}, headers=AUTH)

        user = db.data('users/test-user-id')
        assert user['displayName'] == 'Ada'
        assert user['role'] == 'user'
        assert user['xp'] == 0
