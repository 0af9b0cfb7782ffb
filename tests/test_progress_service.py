import pytest
from datetime import date
from unittest.mock import Mock

from services.badge_service import BadgeService
from services.progress_service import ProgressService
from services.user_service import UserService
from utils.error_handler import ValidationError, DatabaseError

@pytest.fixture
def progress_service(fake_db, sample_user_data, mocker):
    fake_db.seed('users/test-user-id', sample_user_data)
    user_service = UserService(fake_db)
    mocker.patch.object(user_service, 'today', return_value=date(2024, 3, 10))
    return ProgressService(fake_db, user_service, BadgeService(fake_db))

class TestProgressService:

    def test_complete_lesson_first_time(self, progress_service, fake_db):
        result = progress_service.complete_lesson('test-user-id', 'lesson-1', score=100)

        user = fake_db.data('users/test-user-id')
        assert result['firstCompletion'] is True
        assert user['lessonsCompleted'] == 5
        assert user['perfectQuizzes'] == 3
        assert user['xp'] == 100
        assert user['level'] == 2
        assert user['streaks']['currentStreak'] == 3
        assert fake_db.data('userProgress/test-user-id_lesson-1')['status'] == 'completed'

        earned = {badge['id'] for badge in result['badges']}
        assert {'quick-learner', 'on-fire', 'quiz-master'} <= earned

    def test_repeat_completion_does_not_double_count(self, progress_service, fake_db):
        progress_service.complete_lesson('test-user-id', 'lesson-1', score=100)
        result = progress_service.complete_lesson('test-user-id', 'lesson-1', score=100)

        user = fake_db.data('users/test-user-id')
        assert result['firstCompletion'] is False
        assert user['lessonsCompleted'] == 5
        assert user['perfectQuizzes'] == 3

    def test_lesson_xp_comes_from_lesson(self, progress_service, fake_db):
        fake_db.seed('learningPaths/p1/modules/m1/lessons/lesson-1', {'title': 'Intro', 'xpAward': 25})

        result = progress_service.complete_lesson('test-user-id', 'lesson-1', 'm1', 'p1')

        assert result['xp']['xpAwarded'] == 25
        assert fake_db.data('users/test-user-id')['xp'] == 115

    def test_invalid_score(self, progress_service):
        with pytest.raises(ValidationError):
            progress_service.complete_lesson('test-user-id', 'lesson-1', score=140)

    @pytest.mark.parametrize('score', ['abc', True, [100]])
    def test_non_numeric_score(self, progress_service, fake_db, score):
        with pytest.raises(ValidationError):
            progress_service.complete_lesson('test-user-id', 'lesson-1', score=score)
        assert fake_db.data('userProgress/test-user-id_lesson-1') is None

    def test_new_user_gets_profile(self, progress_service, fake_db):
        result = progress_service.complete_lesson('newcomer', 'lesson-1', score=80, email='new@beginai.test')

        user = fake_db.data('users/newcomer')
        assert result['firstCompletion'] is True
        assert user['email'] == 'new@beginai.test'
        assert user['lessonsCompleted'] == 1
        assert user['xp'] == 10
        assert user['streaks']['currentStreak'] == 1
        assert [badge['id'] for badge in result['badges']] == ['first-steps']

    def test_failed_counter_update_can_be_retried(self, progress_service, fake_db):
        progress_service.users_ref = Mock()
        progress_service.users_ref.document.return_value.update.side_effect = RuntimeError('unavailable')

        with pytest.raises(DatabaseError):
            progress_service.complete_lesson('test-user-id', 'lesson-1', score=100)
        assert fake_db.data('userProgress/test-user-id_lesson-1') is None

        progress_service.users_ref = fake_db.collection('users')
        result = progress_service.complete_lesson('test-user-id', 'lesson-1', score=100)

        user = fake_db.data('users/test-user-id')
        assert result['firstCompletion'] is True
        assert user['lessonsCompleted'] == 5
        assert user['perfectQuizzes'] == 3

    def test_start_lesson_keeps_completed_status(self, progress_service, fake_db):
        progress_service.complete_lesson('test-user-id', 'lesson-1')
        progress_service.start_lesson('test-user-id', 'lesson-1')

        assert fake_db.data('userProgress/test-user-id_lesson-1')['status'] == 'completed'

    def test_get_path_progress(self, progress_service):
        progress_service.complete_lesson('test-user-id', 'l1', 'm1', 'p1')
        progress_service.start_lesson('test-user-id', 'l2', 'm1', 'p1')
        progress_service.start_lesson('test-user-id', 'l3', 'm1', 'p1')

        progress = progress_service.get_path_progress('test-user-id', 'p1')

        assert progress == {'completedLessons': 1, 'totalLessons': 3, 'progressPercentage': 33}

    def test_get_path_progress_without_records(self, progress_service):
        assert progress_service.get_path_progress('test-user-id', 'unknown') is None

    def test_reset_user_progress(self, progress_service, fake_db):
        progress_service.complete_lesson('test-user-id', 'l1')
        progress_service.start_lesson('test-user-id', 'l2')

        result = progress_service.reset_user_progress('test-user-id')

        assert result['deleted'] == 2
        assert fake_db.data('userProgress/test-user-id_l1') is None
        assert fake_db.data('users/test-user-id')['lessonsCompleted'] == 0

class TestAwardExperiencePoints:

    def test_streak_only_updated_for_lessons(self):
        user_service = Mock()
        badge_service = Mock()
        badge_service.check_and_award_badges.return_value = []
        service = ProgressService(Mock(), user_service, badge_service)

        result = service.award_experience_points('u1', 50, 'daily_bonus')

        user_service.award_xp.assert_called_once_with('u1', 50, 'daily_bonus')
        user_service.update_user_streak.assert_not_called()
        badge_service.check_and_award_badges.assert_called_once_with('u1')
        assert result['streak'] is None

    def test_lesson_completion_updates_streak(self):
        user_service = Mock()
        service = ProgressService(Mock(), user_service, Mock())

        service.award_experience_points('u1', 10, 'lesson_completion')

        user_service.update_user_streak.assert_called_once_with('u1')
