"""
Badge Service for BeginAI Platform
Handles the badge catalog, criteria checking, and awarding system
"""

from datetime import datetime, timezone
import logging

from firebase_admin import firestore

from utils.error_handler import BeginAIError, NotFoundError, DatabaseError

logger = logging.getLogger(__name__)

BADGE_CATALOG = [
    {
        'id': 'first-steps',
        'name': 'First Steps',
        'description': 'Complete your first lesson',
        'icon': '🌱',
        'category': 'beginner',
        'rarity': 'common',
        'criteria': {
            'type': 'lessons_completed',
            'lessons_required': 1
        }
    },
    {
        'id': 'quick-learner',
        'name': 'Quick Learner',
        'description': 'Complete 5 lessons',
        'icon': '📚',
        'category': 'dedication',
        'rarity': 'common',
        'criteria': {
            'type': 'lessons_completed',
            'lessons_required': 5
        }
    },
    {
        'id': 'dedicated-learner',
        'name': 'Dedicated Learner',
        'description': 'Complete 25 lessons',
        'icon': '🎓',
        'category': 'dedication',
        'rarity': 'rare',
        'criteria': {
            'type': 'lessons_completed',
            'lessons_required': 25
        }
    },
    {
        'id': 'xp-collector',
        'name': 'XP Collector',
        'description': 'Earn 500 XP',
        'icon': '💎',
        'category': 'progression',
        'rarity': 'uncommon',
        'criteria': {
            'type': 'xp_threshold',
            'xp_required': 500
        }
    },
    {
        'id': 'level-five',
        'name': 'Rising Star',
        'description': 'Reach Level 5',
        'icon': '⭐',
        'category': 'progression',
        'rarity': 'uncommon',
        'criteria': {
            'type': 'level_threshold',
            'level_required': 5
        }
    },
    {
        'id': 'on-fire',
        'name': 'On Fire',
        'description': 'Maintain a 3-day learning streak',
        'icon': '🔥',
        'category': 'consistency',
        'rarity': 'common',
        'criteria': {
            'type': 'streak',
            'streak_days_required': 3
        }
    },
    {
        'id': 'week-warrior',
        'name': 'Week Warrior',
        'description': 'Maintain a 7-day learning streak',
        'icon': '🗓️',
        'category': 'consistency',
        'rarity': 'rare',
        'criteria': {
            'type': 'streak',
            'streak_days_required': 7
        }
    },
    {
        'id': 'quiz-master',
        'name': 'Quiz Master',
        'description': 'Score 100% on 3 lesson quizzes',
        'icon': '🧠',
        'category': 'achievement',
        'rarity': 'rare',
        'criteria': {
            'type': 'perfect_score',
            'perfect_quizzes_required': 3
        }
    }
]

class BadgeService:
    def __init__(self, db, catalog=None):
        self.db = db
        self.users_ref = db.collection('users')
        self.catalog = catalog if catalog is not None else BADGE_CATALOG

    def get_all_badges(self):
        """
        Get all available badges in the system
        """
        return [dict(badge) for badge in self.catalog]

    def get_badge_by_id(self, badge_id):
        for badge in self.catalog:
            if badge['id'] == badge_id:
                return dict(badge)
        return None

    def get_user_badges(self, user_id):
        """
        Get user's earned badges along with available badges
        """
        try:
            user_doc = self.users_ref.document(user_id).get()
        except Exception as e:
            logger.error(f"Error getting user badges: {str(e)}")
            raise DatabaseError(f"Failed to get user badges: {str(e)}")

        if not user_doc.exists:
            raise NotFoundError("User not found")

        earned_badge_ids = set(user_doc.to_dict().get('badges') or [])

        all_badges = self.get_all_badges()
        for badge in all_badges:
            badge['earned'] = badge['id'] in earned_badge_ids

        earned = [b for b in all_badges if b['earned']]
        return {
            'all_badges': all_badges,
            'earned_badges': earned,
            'available_badges': [b for b in all_badges if not b['earned']],
            'total_badges': len(all_badges),
            'earned_count': len(earned)
        }

    def check_and_award_badges(self, user_id):
        """
        Check user's eligibility for badges and award new ones.
        Badges already held are never awarded twice.
        """
        try:
            user_doc = self.users_ref.document(user_id).get()
            if not user_doc.exists:
                raise NotFoundError("User not found")

            user_data = user_doc.to_dict()
            current_badges = set(user_data.get('badges') or [])

            newly_earned = [
                self.get_badge_by_id(badge['id']) for badge in self.catalog
                if badge['id'] not in current_badges and self._check_badge_criteria(badge, user_data)
            ]

            if newly_earned:
                self.users_ref.document(user_id).update({
                    'badges': firestore.ArrayUnion([b['id'] for b in newly_earned]),
                    'updatedAt': datetime.now(timezone.utc)
                })

            logger.info(f"Checked badges for user {user_id}, awarded {len(newly_earned)} new badges")
            return newly_earned

        except BeginAIError:
            raise
        except Exception as e:
            logger.error(f"Error checking badge eligibility: {str(e)}")
            raise DatabaseError(f"Failed to check badge eligibility: {str(e)}")

    def _check_badge_criteria(self, badge, user_data):
        """
        Check if user meets specific badge criteria
        """
        criteria = badge.get('criteria', {})
        badge_type = criteria.get('type')
        streaks = user_data.get('streaks') or {}

        if badge_type == 'lessons_completed':
            return (user_data.get('lessonsCompleted') or 0) >= criteria.get('lessons_required', 1)

        elif badge_type == 'xp_threshold':
            return (user_data.get('xp') or 0) >= criteria.get('xp_required', 0)

        elif badge_type == 'level_threshold':
            return (user_data.get('level') or 1) >= criteria.get('level_required', 1)

        elif badge_type == 'streak':
            return (streaks.get('currentStreak') or 0) >= criteria.get('streak_days_required', 1)

        elif badge_type == 'perfect_score':
            return (user_data.get('perfectQuizzes') or 0) >= criteria.get('perfect_quizzes_required', 1)

        logger.warning(f"Unknown badge criteria type: {badge_type}")
        return False
