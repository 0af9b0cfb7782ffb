"""
User Service for BeginAI Platform
Handles user profile management, XP and level progression, and daily streaks
"""

from datetime import datetime, date, timezone
import logging
import math

from dateutil import parser as date_parser
import pytz

from utils.error_handler import BeginAIError, ValidationError, NotFoundError, DatabaseError

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 100

VALID_ROLES = ('user', 'admin', 'developer')

UPDATABLE_FIELDS = ['displayName', 'photoURL', 'bio', 'location', 'website',
                    'twitter', 'linkedin', 'preferences']

def calculate_level(xp):
    """
    Level = floor(XP / 100) + 1
    """
    if not xp or xp <= 0:
        return 1
    return math.floor(xp / XP_PER_LEVEL) + 1

def xp_for_level(level):
    """
    XP required to reach a specific level
    """
    if level <= 1:
        return 0
    return (level - 1) * XP_PER_LEVEL

def _now():
    return datetime.now(timezone.utc)

def _as_date(value, tz):
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    return date_parser.isoparse(value).date()

class UserService:
    def __init__(self, db, timezone_name='America/New_York'):
        self.db = db
        self.users_ref = db.collection('users')
        self.tz = pytz.timezone(timezone_name)

    def _get_user_data(self, user_id):
        user_doc = self.users_ref.document(user_id).get()
        if not user_doc.exists:
            raise NotFoundError("User not found")
        return user_doc.to_dict()

    def today(self):
        """
        Current calendar day in the platform timezone
        """
        return datetime.now(self.tz).date()

    def upsert_user_profile(self, uid, email=None, additional_data=None):
        """
        Create or update a user's profile. Defaults are only written for new users.
        """
        if not uid:
            raise ValidationError('User authentication object or UID is missing.')

        additional_data = additional_data or {}
        user_ref = self.users_ref.document(uid)

        try:
            profile = {
                'uid': uid,
                'email': email,
                'lastLoginAt': _now()
            }

            if not user_ref.get().exists:
                profile.update({
                    'createdAt': _now(),
                    'xp': 0,
                    'level': 1,
                    'streaks': {
                        'currentStreak': 0,
                        'longestStreak': 0,
                        'lastActivityDate': None
                    },
                    'badges': [],
                    'lessonsCompleted': 0,
                    'perfectQuizzes': 0,
                    'currentLearningPathId': None,
                    'currentLessonModuleId': None,
                    'currentLessonId': None,
                    'subscriptionTier': 'free',
                    'subscriptionValidUntil': None,
                    'role': 'user',
                    'preferences': {
                        'theme': 'system',
                        'notifications': True
                    },
                    'bio': '',
                    'location': '',
                    'website': '',
                    'twitter': '',
                    'linkedin': ''
                })

            profile.update(additional_data)
            user_ref.set(profile, merge=True)

            logger.info(f"User profile for {uid} upserted")
            return profile

        except Exception as e:
            logger.error(f"Error upserting user profile: {str(e)}")
            raise DatabaseError(f"Failed to upsert user profile: {str(e)}")

    def ensure_user_profile(self, uid, email=None):
        """
        Return the user's profile, creating it with defaults on first sight
        """
        profile = self.get_user_profile(uid)
        if profile is not None:
            return profile
        return self.upsert_user_profile(uid, email)

    def get_user_profile(self, user_id):
        """
        Fetch a user's profile, or None when it does not exist
        """
        if not user_id:
            logger.error('UID is required to fetch user profile.')
            return None

        try:
            user_doc = self.users_ref.document(user_id).get()
        except Exception as e:
            logger.error(f"Error fetching user profile: {str(e)}")
            raise DatabaseError(f"Failed to get user profile: {str(e)}")

        if not user_doc.exists:
            logger.warning(f"No profile document found for user {user_id}")
            return None

        return user_doc.to_dict()

    def update_user_profile(self, user_id, update_data):
        """
        Update whitelisted profile fields
        """
        filtered_data = {
            k: v for k, v in (update_data or {}).items()
            if k in UPDATABLE_FIELDS
        }

        if not filtered_data:
            raise ValidationError("No valid fields to update")

        filtered_data['updatedAt'] = _now()

        try:
            self.users_ref.document(user_id).update(filtered_data)
        except Exception as e:
            logger.error(f"Error updating user profile: {str(e)}")
            raise DatabaseError(f"Failed to update profile: {str(e)}")

        logger.info(f"Updated profile for user: {user_id}")

        return {
            'success': True,
            'updated_fields': list(filtered_data.keys()),
            'message': 'Profile updated successfully'
        }

    def set_user_role(self, user_id, role):
        if role not in VALID_ROLES:
            raise ValidationError(f"Unknown role: {role}", field='role')

        try:
            self.users_ref.document(user_id).update({'role': role, 'updatedAt': _now()})
        except Exception as e:
            logger.error(f"Error setting role for {user_id}: {str(e)}")
            raise DatabaseError(f"Failed to set role: {str(e)}")

        logger.info(f"Role for {user_id} set to {role}")
        return True

    def check_user_role(self, user_id):
        profile = self.get_user_profile(user_id)
        if profile is None:
            return None
        return profile.get('role')

    def award_xp(self, user_id, amount, reason='general'):
        """
        Add XP and recompute the level
        """
        if not user_id:
            raise ValidationError('User ID is required for awarding XP')
        if amount is None or amount < 0:
            raise ValidationError('XP amount must be a non-negative number', field='amount')

        try:
            user_data = self._get_user_data(user_id)

            previous_xp = user_data.get('xp', 0) or 0
            previous_level = user_data.get('level') or calculate_level(previous_xp)
            new_xp = previous_xp + amount
            new_level = calculate_level(new_xp)

            self.users_ref.document(user_id).update({
                'xp': new_xp,
                'level': new_level,
                'updatedAt': _now()
            })

            logger.info(f"Awarded {amount} XP to {user_id} for {reason}: XP {new_xp}, Level {new_level}")

            return {
                'xpAwarded': amount,
                'totalXP': new_xp,
                'previousLevel': previous_level,
                'level': new_level,
                'leveledUp': new_level > previous_level,
                'reason': reason
            }

        except BeginAIError:
            raise
        except Exception as e:
            logger.error(f"Error awarding XP: {str(e)}")
            raise DatabaseError(f"Failed to award XP: {str(e)}")

    def calculate_streak(self, streaks, today):
        """
        Work out the new streak for activity on `today`.
        Returns the new streaks map, or None when it is unchanged.
        """
        streaks = streaks or {}
        last_active = _as_date(streaks.get('lastActivityDate'), self.tz)
        current_streak = streaks.get('currentStreak', 0) or 0
        longest_streak = streaks.get('longestStreak', 0) or 0

        if last_active is not None:
            days_diff = (today - last_active).days
            if days_diff <= 0:
                # Same day, no streak update
                return None
            if days_diff == 1:
                new_streak = current_streak + 1
            else:
                new_streak = 1
        else:
            new_streak = 1

        return {
            'currentStreak': new_streak,
            'longestStreak': max(longest_streak, new_streak),
            'lastActivityDate': today.isoformat()
        }

    def update_user_streak(self, user_id, today=None):
        """
        Record activity for today and update the daily streak
        """
        today = today or self.today()

        try:
            user_data = self._get_user_data(user_id)
            current = user_data.get('streaks') or {}
            new_streaks = self.calculate_streak(current, today)

            if new_streaks is None:
                return {
                    'currentStreak': current.get('currentStreak', 0),
                    'longestStreak': current.get('longestStreak', 0),
                    'lastActivityDate': current.get('lastActivityDate'),
                    'changed': False
                }

            self.users_ref.document(user_id).update({
                'streaks': new_streaks,
                'updatedAt': _now()
            })

            logger.info(f"Streak for {user_id} is now {new_streaks['currentStreak']}")
            return {**new_streaks, 'changed': True}

        except BeginAIError:
            raise
        except Exception as e:
            logger.error(f"Error updating user streak: {str(e)}")
            raise DatabaseError(f"Failed to update streak: {str(e)}")

    def get_user_stats(self, user_id):
        """
        Profile stats with level progress
        """
        try:
            user_data = self._get_user_data(user_id)
        except BeginAIError:
            raise
        except Exception as e:
            logger.error(f"Error getting user stats: {str(e)}")
            raise DatabaseError(f"Failed to get user stats: {str(e)}")

        current_xp = user_data.get('xp', 0) or 0
        current_level = calculate_level(current_xp)
        level_floor = xp_for_level(current_level)
        level_ceiling = xp_for_level(current_level + 1)
        streaks = user_data.get('streaks') or {}

        return {
            'xp': current_xp,
            'level': current_level,
            'level_progress': {
                'xp_in_level': current_xp - level_floor,
                'xp_needed_for_next': level_ceiling - current_xp,
                'progress_percentage': ((current_xp - level_floor) / XP_PER_LEVEL) * 100
            },
            'currentStreak': streaks.get('currentStreak', 0),
            'longestStreak': streaks.get('longestStreak', 0),
            'badgesEarned': len(user_data.get('badges') or []),
            'lessonsCompleted': user_data.get('lessonsCompleted', 0),
            'perfectQuizzes': user_data.get('perfectQuizzes', 0)
        }
