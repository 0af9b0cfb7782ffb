import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from google.api_core.exceptions import PermissionDenied

from services.news_service import NewsService, extract_summary, FALLBACK_NEWS
from utils.error_handler import NotFoundError

@pytest.fixture
def article():
    return {
        'title': 'New model released',
        'date': datetime(2024, 3, 1, tzinfo=timezone.utc),
        'isActive': True,
        'likes': {'simulated': 12, 'real': 0, 'total': 12},
        'likedBy': []
    }

class TestNewsFeed:

    def test_get_news_orders_and_filters_inactive(self, fake_db, article):
        base = datetime(2024, 3, 1, tzinfo=timezone.utc)
        for i in range(3):
            fake_db.seed(f'aiNews/a{i}', {**article, 'title': f'Article {i}', 'date': base + timedelta(days=i)})
        fake_db.seed('aiNews/hidden', {**article, 'isActive': False, 'date': base + timedelta(days=10)})

        articles = NewsService(fake_db).get_news()

        assert [a['title'] for a in articles] == ['Article 2', 'Article 1', 'Article 0']
        assert articles[0]['firestoreId'] == 'a2'

    def test_permission_denied_serves_fallback(self):
        db = Mock()
        db.collection.return_value.order_by.return_value.limit.return_value.stream.side_effect = \
            PermissionDenied('Missing or insufficient permissions.')

        articles = NewsService(db).get_news()

        assert [a['id'] for a in articles] == [a['id'] for a in FALLBACK_NEWS]

    def test_other_failures_serve_fallback(self):
        db = Mock()
        db.collection.return_value.order_by.side_effect = RuntimeError('offline')

        assert len(NewsService(db).get_news()) == len(FALLBACK_NEWS)

class TestLikes:

    def test_like_then_unlike(self, fake_db, article):
        fake_db.seed('aiNews/a1', article)
        service = NewsService(fake_db)

        liked = service.toggle_like('a1', 'u1')
        assert liked == {'liked': True, 'totalLikes': 13, 'realLikes': 1}

        unliked = service.toggle_like('a1', 'u1')
        assert unliked == {'liked': False, 'totalLikes': 12, 'realLikes': 0}
        assert fake_db.data('aiNews/a1')['likedBy'] == []

    def test_total_is_simulated_plus_real(self, fake_db, article):
        fake_db.seed('aiNews/a1', article)
        service = NewsService(fake_db)

        for uid in ('u1', 'u2', 'u3'):
            service.toggle_like('a1', uid)
        service.toggle_like('a1', 'u2')

        stored = fake_db.data('aiNews/a1')
        assert stored['likes']['real'] == 2
        assert stored['likes']['total'] == stored['likes']['simulated'] + stored['likes']['real']

    def test_real_likes_never_negative(self, fake_db, article):
        article.update({'likedBy': ['u1'], 'likes': {'simulated': 5, 'real': 0, 'total': 5}})
        fake_db.seed('aiNews/a1', article)

        result = NewsService(fake_db).toggle_like('a1', 'u1')

        assert result['realLikes'] == 0
        assert result['totalLikes'] == 5

    def test_missing_article(self, fake_db):
        with pytest.raises(NotFoundError):
            NewsService(fake_db).toggle_like('nope', 'u1')

    def test_like_status(self, fake_db, article):
        article['likedBy'] = ['u1']
        fake_db.seed('aiNews/a1', article)
        service = NewsService(fake_db)

        assert service.get_like_status('a1', 'u1') == {'liked': True, 'totalLikes': 12}
        assert service.get_like_status('missing', 'u1') == {'liked': False, 'totalLikes': 0}

    def test_like_status_failure(self):
        db = Mock()
        db.collection.return_value.document.return_value.get.side_effect = RuntimeError('offline')

        assert NewsService(db).get_like_status('a1', 'u1') == {'liked': False, 'totalLikes': 0}

class TestCleanup:

    def test_clean_old_news_keeps_newest(self, fake_db, article):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for i in range(5):
            fake_db.seed(f'aiNews/a{i}', {**article, 'date': base + timedelta(days=i)})

        deleted = NewsService(fake_db).clean_old_news(keep=3)

        assert deleted == 2
        assert fake_db.data('aiNews/a0') is None
        assert fake_db.data('aiNews/a4') is not None

    def test_nothing_to_clean(self, fake_db, article):
        fake_db.seed('aiNews/a1', article)
        assert NewsService(fake_db).clean_old_news() == 0

class TestExtractSummary:

    def test_strips_tags(self):
        assert extract_summary('<p>Hello <b>world</b></p>') == 'Hello world'

    def test_truncates_long_content(self):
        summary = extract_summary('x' * 200)
        assert len(summary) == 150
        assert summary.endswith('...')

    def test_exactly_150_characters_untouched(self):
        assert extract_summary('y' * 150) == 'y' * 150

    def test_empty_content(self):
        assert extract_summary('') == 'Latest AI development and research update.'
