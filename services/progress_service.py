"""
Progress Service for BeginAI Platform
Handles lesson completion tracking, learning path progress, and XP/streak/badge updates
"""

from datetime import datetime, timezone
import logging

from firebase_admin import firestore

from utils.error_handler import BeginAIError, ValidationError, DatabaseError

logger = logging.getLogger(__name__)

DEFAULT_LESSON_XP = 10
BATCH_LIMIT = 450

def _now():
    return datetime.now(timezone.utc)

def progress_doc_id(user_id, lesson_id):
    return f"{user_id}_{lesson_id}"

class ProgressService:
    def __init__(self, db, user_service, badge_service):
        self.db = db
        self.progress_ref = db.collection('userProgress')
        self.users_ref = db.collection('users')
        self.paths_ref = db.collection('learningPaths')
        self.user_service = user_service
        self.badge_service = badge_service

    def _lesson_xp(self, lesson_id, module_id, path_id):
        if not module_id or not path_id:
            return DEFAULT_LESSON_XP

        lesson_doc = (self.paths_ref.document(path_id)
                      .collection('modules').document(module_id)
                      .collection('lessons').document(lesson_id).get())
        if not lesson_doc.exists:
            return DEFAULT_LESSON_XP
        return lesson_doc.to_dict().get('xpAward') or DEFAULT_LESSON_XP

    def start_lesson(self, user_id, lesson_id, module_id=None, path_id=None):
        """
        Mark a lesson as in progress. Completed lessons are left untouched.
        """
        if not user_id or not lesson_id:
            raise ValidationError('User ID and Lesson ID are required')

        doc_ref = self.progress_ref.document(progress_doc_id(user_id, lesson_id))
        try:
            existing = doc_ref.get()
            if existing.exists and existing.to_dict().get('status') == 'completed':
                return existing.to_dict()

            record = {
                'userId': user_id,
                'lessonId': lesson_id,
                'moduleId': module_id,
                'pathId': path_id,
                'status': 'in_progress',
                'startedAt': _now(),
                'lastAccessedAt': _now()
            }
            doc_ref.set(record, merge=True)
            return record

        except Exception as e:
            logger.error(f"Error starting lesson: {str(e)}")
            raise DatabaseError(f"Failed to start lesson: {str(e)}")

    def complete_lesson(self, user_id, lesson_id, module_id=None, path_id=None, score=None, xp_award=None,
                        email=None):
        """
        Mark a lesson complete, award its XP, update the streak and check badges.
        Counters only move on the first completion of a lesson, and they are
        written before the progress record so a failed update can be retried.
        """
        if not user_id or not lesson_id:
            raise ValidationError('User ID and Lesson ID are required')
        if score is not None:
            if isinstance(score, bool) or not isinstance(score, (int, float)):
                raise ValidationError('Score must be a number', field='score')
            if not 0 <= score <= 100:
                raise ValidationError('Score must be between 0 and 100', field='score')

        self.user_service.ensure_user_profile(user_id, email)
        doc_ref = self.progress_ref.document(progress_doc_id(user_id, lesson_id))

        try:
            existing = doc_ref.get()
            first_completion = not (existing.exists and existing.to_dict().get('status') == 'completed')

            if first_completion:
                counters = {'lessonsCompleted': firestore.Increment(1)}
                if score == 100:
                    counters['perfectQuizzes'] = firestore.Increment(1)
                self.users_ref.document(user_id).update(counters)

            doc_ref.set({
                'userId': user_id,
                'lessonId': lesson_id,
                'moduleId': module_id,
                'pathId': path_id,
                'status': 'completed',
                'score': score,
                'completedAt': _now(),
                'lastAccessedAt': _now()
            }, merge=True)

            if xp_award is None:
                xp_award = self._lesson_xp(lesson_id, module_id, path_id)

        except BeginAIError:
            raise
        except Exception as e:
            logger.error(f"Error completing lesson: {str(e)}")
            raise DatabaseError(f"Failed to complete lesson: {str(e)}")

        rewards = self.award_experience_points(user_id, xp_award, 'lesson_completion')

        logger.info(f"User {user_id} completed lesson {lesson_id} (first: {first_completion})")
        return {
            'success': True,
            'lessonId': lesson_id,
            'firstCompletion': first_completion,
            'score': score,
            **rewards
        }

    def award_experience_points(self, user_id, amount, reason='general'):
        """
        Award XP, update the streak for lesson completions, then check badges
        """
        if not user_id:
            raise ValidationError('User ID is required for awarding XP')

        xp_result = self.user_service.award_xp(user_id, amount, reason)

        streak_result = None
        if reason == 'lesson_completion':
            streak_result = self.user_service.update_user_streak(user_id)

        new_badges = self.badge_service.check_and_award_badges(user_id)

        return {
            'xp': xp_result,
            'streak': streak_result,
            'badges': new_badges,
            'awardedAt': _now()
        }

    def get_user_progress_for_lesson(self, user_id, lesson_id):
        try:
            progress_doc = self.progress_ref.document(progress_doc_id(user_id, lesson_id)).get()
        except Exception as e:
            logger.error(f"Error getting lesson progress: {str(e)}")
            raise DatabaseError(f"Failed to get lesson progress: {str(e)}")

        if not progress_doc.exists:
            return None
        return {'id': progress_doc.id, **progress_doc.to_dict()}

    def get_user_progress_for_path(self, user_id, path_id):
        try:
            query = self.progress_ref.where('userId', '==', user_id).where('pathId', '==', path_id)
            return [{'id': doc.id, **doc.to_dict()} for doc in query.stream()]
        except Exception as e:
            logger.error(f"Error getting path progress: {str(e)}")
            raise DatabaseError(f"Failed to get path progress: {str(e)}")

    def get_path_progress(self, user_id, path_id):
        """
        Completion summary for a learning path, or None when the user has no records for it
        """
        if not user_id or not path_id:
            return None

        records = self.get_user_progress_for_path(user_id, path_id)
        if not records:
            return None

        completed = len([r for r in records if r.get('status') == 'completed'])
        total = len(records)

        return {
            'completedLessons': completed,
            'totalLessons': total,
            'progressPercentage': round((completed / total) * 100)
        }

    def reset_user_progress(self, user_id):
        """
        Delete every progress record for the user and reset the counters
        """
        if not user_id:
            raise ValidationError('User ID is required for resetting progress')

        try:
            refs = [doc.reference for doc in self.progress_ref.where('userId', '==', user_id).stream()]

            for start in range(0, len(refs), BATCH_LIMIT):
                batch = self.db.batch()
                for ref in refs[start:start + BATCH_LIMIT]:
                    batch.delete(ref)
                batch.commit()

            self.users_ref.document(user_id).update({
                'lessonsCompleted': 0,
                'perfectQuizzes': 0,
                'currentLearningPathId': None,
                'currentLessonModuleId': None,
                'currentLessonId': None,
                'updatedAt': _now()
            })

        except Exception as e:
            logger.error(f"Error resetting user progress: {str(e)}")
            raise DatabaseError(f"Failed to reset progress: {str(e)}")

        logger.info(f"Reset {len(refs)} progress records for user {user_id}")
        return {
            'reset': True,
            'deleted': len(refs),
            'resetAt': _now()
        }
