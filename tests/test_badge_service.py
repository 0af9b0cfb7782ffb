import pytest
from unittest.mock import Mock

from services.badge_service import BadgeService, BADGE_CATALOG
from utils.error_handler import NotFoundError

class TestBadgeService:

    def test_catalog_ids_are_unique(self):
        ids = [badge['id'] for badge in BADGE_CATALOG]
        assert len(ids) == len(set(ids))

    def test_get_badge_by_id(self, mock_firestore):
        service = BadgeService(mock_firestore)

        assert service.get_badge_by_id('week-warrior')['criteria']['streak_days_required'] == 7
        assert service.get_badge_by_id('missing') is None

    def test_check_badge_criteria_xp_threshold(self, mock_firestore):
        service = BadgeService(mock_firestore)
        badge = service.get_badge_by_id('xp-collector')

        assert service._check_badge_criteria(badge, {'xp': 600}) is True
        assert service._check_badge_criteria(badge, {'xp': 100}) is False

    def test_check_badge_criteria_streak(self, mock_firestore):
        service = BadgeService(mock_firestore)
        badge = service.get_badge_by_id('on-fire')

        assert service._check_badge_criteria(badge, {'streaks': {'currentStreak': 3}}) is True
        assert service._check_badge_criteria(badge, {'streaks': {'currentStreak': 2}}) is False

    def test_unknown_criteria_never_awards(self, mock_firestore):
        service = BadgeService(mock_firestore)
        assert service._check_badge_criteria({'criteria': {'type': 'social'}}, {}) is False

    def test_awards_new_badges(self, fake_db, sample_user_data):
        sample_user_data['lessonsCompleted'] = 5
        fake_db.seed('users/test-user-id', sample_user_data)

        newly_earned = BadgeService(fake_db).check_and_award_badges('test-user-id')

        assert [b['id'] for b in newly_earned] == ['quick-learner']
        assert fake_db.data('users/test-user-id')['badges'] == ['first-steps', 'quick-learner']

    def test_awarding_is_idempotent(self, fake_db, sample_user_data):
        sample_user_data.update({'xp': 700, 'streaks': {'currentStreak': 8}})
        fake_db.seed('users/test-user-id', sample_user_data)
        service = BadgeService(fake_db)

        first = service.check_and_award_badges('test-user-id')
        second = service.check_and_award_badges('test-user-id')

        badges = fake_db.data('users/test-user-id')['badges']
        assert len(first) > 0
        assert second == []
        assert len(badges) == len(set(badges))

    def test_unknown_user(self, fake_db):
        with pytest.raises(NotFoundError):
            BadgeService(fake_db).check_and_award_badges('ghost')

    def test_get_user_badges_split(self, fake_db, sample_user_data):
        fake_db.seed('users/test-user-id', sample_user_data)

        result = BadgeService(fake_db).get_user_badges('test-user-id')

        assert result['earned_count'] == 1
        assert result['total_badges'] == len(BADGE_CATALOG)
        assert len(result['available_badges']) == len(BADGE_CATALOG) - 1

    def test_no_write_when_nothing_new(self):
        db = Mock()
        snapshot = Mock(exists=True)
        snapshot.to_dict.return_value = {'lessonsCompleted': 0, 'badges': []}
        db.collection.return_value.document.return_value.get.return_value = snapshot

        assert BadgeService(db).check_and_award_badges('u1') == []
        db.collection.return_value.document.return_value.update.assert_not_called()
