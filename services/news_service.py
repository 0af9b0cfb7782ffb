"""
News Service for BeginAI Platform
Handles the AI news feed, article likes, and cleanup of old articles
"""

from datetime import datetime, timezone
import logging
import re

from google.api_core.exceptions import PermissionDenied
from firebase_admin import firestore

from utils.error_handler import BeginAIError, ValidationError, NotFoundError, DatabaseError

logger = logging.getLogger(__name__)

NEWS_COLLECTION = 'aiNews'
KEEP_ARTICLES = 100
BATCH_LIMIT = 450
SUMMARY_LENGTH = 150
DEFAULT_SUMMARY = 'Latest AI development and research update.'

TAG_PATTERN = re.compile(r'<[^>]*>')

FALLBACK_NEWS = [
    {
        'id': 'fallback-1',
        'title': 'Welcome to AI News',
        'summary': 'Stay up to date with the latest developments from major AI research labs.',
        'content': 'The feed covers OpenAI, Google AI, Meta AI, Anthropic and other major sources.',
        'source': 'BeginningWithAi',
        'category': 'Platform',
        'icon': '🎉',
        'url': 'https://beginningwithai.com',
        'isActive': True,
        'likes': {'simulated': 0, 'real': 0, 'total': 0},
        'likedBy': []
    },
    {
        'id': 'fallback-2',
        'title': 'Large Language Models Keep Getting Better',
        'summary': 'New models show stronger reasoning, longer context, and better tool use.',
        'content': 'Research labs continue to publish improvements in reasoning and efficiency.',
        'source': 'AI Research',
        'category': 'Research',
        'icon': '🧠',
        'url': 'https://beginningwithai.com/news',
        'isActive': True,
        'likes': {'simulated': 0, 'real': 0, 'total': 0},
        'likedBy': []
    },
    {
        'id': 'fallback-3',
        'title': 'Getting Started with Prompt Engineering',
        'summary': 'Clear instructions and good examples are the fastest way to better AI results.',
        'content': 'Practical prompting tips for beginners learning to work with AI assistants.',
        'source': 'BeginningWithAi',
        'category': 'Learning',
        'icon': '📚',
        'url': 'https://beginningwithai.com/lessons',
        'isActive': True,
        'likes': {'simulated': 0, 'real': 0, 'total': 0},
        'likedBy': []
    }
]

def extract_summary(content):
    """
    Strip HTML tags and cap the text at 150 characters
    """
    if not content:
        return DEFAULT_SUMMARY

    clean_content = TAG_PATTERN.sub('', content).strip()
    if len(clean_content) <= SUMMARY_LENGTH:
        return clean_content

    return clean_content[:SUMMARY_LENGTH - 3] + '...'

def get_fallback_news():
    now = datetime.now(timezone.utc)
    return [{**article, 'date': now} for article in FALLBACK_NEWS]

class NewsService:
    def __init__(self, db):
        self.db = db
        self.news_ref = db.collection(NEWS_COLLECTION)

    def get_news(self, limit=20):
        """
        Newest active articles. Any read failure serves the fallback articles instead.
        """
        try:
            query = self.news_ref.order_by('date', direction=firestore.Query.DESCENDING).limit(limit)

            articles = []
            for doc in query.stream():
                data = doc.to_dict()
                # Filtered client-side to avoid a composite index
                if data.get('isActive') is not False:
                    articles.append({**data, 'firestoreId': doc.id})

            if not articles:
                return get_fallback_news()
            return articles

        except PermissionDenied:
            logger.warning("Firestore permissions not set up yet. Using fallback news.")
            return get_fallback_news()
        except Exception as e:
            logger.error(f"Error fetching news from Firestore: {str(e)}")
            return get_fallback_news()

    def toggle_like(self, article_id, user_id):
        """
        Like or unlike an article for a user.
        Total likes are always simulated + real, and real likes never go below zero.
        """
        if not article_id or not user_id:
            raise ValidationError('Article ID and User ID are required')

        article_ref = self.news_ref.document(article_id)

        try:
            article_doc = article_ref.get()
            if not article_doc.exists:
                raise NotFoundError('Article not found')

            article_data = article_doc.to_dict()
            liked_by = article_data.get('likedBy') or []
            likes = article_data.get('likes') or {}
            real_likes = likes.get('real') or 0
            has_liked = user_id in liked_by

            if has_liked:
                liked_by = [uid for uid in liked_by if uid != user_id]
                real_likes = max(0, real_likes - 1)
            else:
                liked_by = liked_by + [user_id]
                real_likes += 1

            total_likes = (likes.get('simulated') or 0) + real_likes

            article_ref.update({
                'likedBy': liked_by,
                'likes.real': real_likes,
                'likes.total': total_likes
            })

            logger.info(f"Article {article_id} {'unliked' if has_liked else 'liked'} by user {user_id}")
            return {'liked': not has_liked, 'totalLikes': total_likes, 'realLikes': real_likes}

        except BeginAIError:
            raise
        except Exception as e:
            logger.error(f"Error toggling like: {str(e)}")
            raise DatabaseError(f"Failed to toggle like: {str(e)}")

    def get_like_status(self, article_id, user_id):
        try:
            article_doc = self.news_ref.document(article_id).get()
            if not article_doc.exists:
                return {'liked': False, 'totalLikes': 0}

            article_data = article_doc.to_dict()
            return {
                'liked': user_id in (article_data.get('likedBy') or []),
                'totalLikes': (article_data.get('likes') or {}).get('total', 0)
            }
        except Exception as e:
            logger.error(f"Error getting like status: {str(e)}")
            return {'liked': False, 'totalLikes': 0}

    def clean_old_news(self, keep=KEEP_ARTICLES):
        """
        Delete articles beyond the newest `keep`. Returns the number deleted.
        """
        try:
            query = self.news_ref.order_by('date', direction=firestore.Query.DESCENDING)
            refs = [doc.reference for doc in query.stream()][keep:]

            for start in range(0, len(refs), BATCH_LIMIT):
                batch = self.db.batch()
                for ref in refs[start:start + BATCH_LIMIT]:
                    batch.delete(ref)
                batch.commit()

        except Exception as e:
            logger.error(f"Error cleaning old news: {str(e)}")
            raise DatabaseError(f"Failed to clean old news: {str(e)}")

        if refs:
            logger.info(f"Cleaned {len(refs)} old news articles")
        return len(refs)
