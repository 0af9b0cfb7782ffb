"""
Draft Service for BeginAI Platform
Firestore-based draft management with a local buffer as non-authoritative fallback,
debounced autosave, and promotion of drafts into the published lesson tree
"""

from datetime import datetime, timezone
import logging

from dateutil import parser as date_parser
from firebase_admin import firestore

from utils.error_handler import BeginAIError, ValidationError, NotFoundError, DatabaseError

logger = logging.getLogger(__name__)

DRAFTS_CACHE_KEY = 'drafts_all'

def _now():
    return datetime.now(timezone.utc)

class DraftService:
    def __init__(self, db, draft_buffer, media_service=None, autosaver=None):
        self.db = db
        self.draft_buffer = draft_buffer
        self.media_service = media_service
        self.autosaver = autosaver
        self.cache = {}
        self.subscribers = set()

    def get_drafts_collection(self):
        """
        Admin-only drafts live in a flat root collection
        """
        return self.db.collection('drafts')

    def _lessons_collection(self, path_id, module_id):
        return (self.db.collection('learningPaths').document(path_id)
                .collection('modules').document(module_id)
                .collection('lessons'))

    def subscribe_to_drafts(self, user_id, callback):
        """
        Subscribe to real-time draft updates ordered by lastModified (newest first).
        callback(drafts, error) receives either the draft list or the error.
        Returns an unsubscribe callable, or None when the listener could not start.
        """
        def on_snapshot(doc_snapshots, changes, read_time):
            drafts = [{'id': snap.id, **snap.to_dict()} for snap in doc_snapshots]
            self.cache[DRAFTS_CACHE_KEY] = drafts
            callback(drafts, None)

        try:
            query = self.get_drafts_collection().order_by('lastModified', direction=firestore.Query.DESCENDING)
            watch = query.on_snapshot(on_snapshot)
        except Exception as e:
            logger.error(f"Error setting up draft subscription: {str(e)}")
            callback(None, e)
            return None

        unsubscribe = watch.unsubscribe
        self.subscribers.add(unsubscribe)
        logger.info(f"Draft subscription started for {user_id}")
        return unsubscribe

    def _build_draft_document(self, user_id, draft_data):
        created_at = draft_data.get('createdAt')
        if isinstance(created_at, str):
            created_at = date_parser.isoparse(created_at)

        return {
            'title': draft_data.get('title') or 'Untitled Draft',
            'lessonId': draft_data.get('lessonId'),
            'contentVersions': draft_data.get('contentVersions') or {'free': None, 'premium': None},
            'metadata': {
                'lessonType': draft_data.get('lessonType') or 'concept_explanation',
                'estimatedTimeMinutes': draft_data.get('estimatedTimeMinutes') or 15,
                'xpAward': draft_data.get('xpAward') or 10,
                'category': draft_data.get('category') or 'General',
                'tags': draft_data.get('tags') or []
            },
            'status': 'draft',
            'createdBy': user_id,
            'lastModified': _now(),
            'createdAt': created_at or _now(),
            'version': draft_data.get('version') or 1
        }

    def save_draft(self, user_id, draft_data):
        """
        Save draft to Firestore.
        With an id the document is upserted (merge) and the version bumped;
        without one a new document is created.
        """
        if not user_id:
            raise ValidationError('User ID is required to save draft')

        try:
            draft_doc = self._build_draft_document(user_id, draft_data)

            if draft_data.get('id'):
                draft_doc['version'] = (draft_data.get('version') or 1) + 1
                self.get_drafts_collection().document(draft_data['id']).set(draft_doc, merge=True)
                result = {'id': draft_data['id'], **draft_doc}
            else:
                _, doc_ref = self.get_drafts_collection().add(draft_doc)
                result = {'id': doc_ref.id, **draft_doc}

            self.draft_buffer.update(user_id, result)
            self.cache.pop(DRAFTS_CACHE_KEY, None)

            logger.info(f"Draft saved to Firestore: {result['id']} (version {result['version']})")
            return result

        except Exception as e:
            logger.error(f"Error saving draft: {str(e)}")

            # Keep the edit locally so it is not lost
            self.draft_buffer.save(user_id, draft_data)
            raise DatabaseError(f"Failed to save draft: {str(e)}")

    def load_drafts(self, user_id):
        """
        Load all drafts, newest first. Falls back to the local buffer when Firestore fails.
        """
        if not user_id:
            return []

        cached = self.cache.get(DRAFTS_CACHE_KEY)
        if cached is not None:
            return cached

        try:
            query = self.get_drafts_collection().order_by('lastModified', direction=firestore.Query.DESCENDING)
            drafts = [{'id': doc.id, **doc.to_dict()} for doc in query.stream()]

            self.cache[DRAFTS_CACHE_KEY] = drafts
            logger.info(f"Loaded {len(drafts)} drafts from Firestore")
            return drafts

        except Exception as e:
            logger.error(f"Error loading drafts from Firestore: {str(e)}")
            return self.draft_buffer.load(user_id)

    def load_draft(self, user_id, draft_id):
        """
        Load a specific draft by ID
        """
        if not user_id or not draft_id:
            raise ValidationError('User ID and Draft ID are required')

        try:
            draft_snap = self.get_drafts_collection().document(draft_id).get()
        except Exception as e:
            logger.error(f"Error loading draft: {str(e)}")
            raise DatabaseError(f"Failed to load draft: {str(e)}")

        if not draft_snap.exists:
            raise NotFoundError('Draft not found')

        return {'id': draft_snap.id, **draft_snap.to_dict()}

    def delete_draft(self, user_id, draft_id):
        """
        Delete draft from Firestore and from the local buffer
        """
        if not user_id or not draft_id:
            raise ValidationError('User ID and Draft ID are required')

        try:
            self.get_drafts_collection().document(draft_id).delete()
        except Exception as e:
            logger.error(f"Error deleting draft: {str(e)}")
            raise DatabaseError(f"Failed to delete draft: {str(e)}")

        self.draft_buffer.remove(user_id, draft_id)
        self.cache.pop(DRAFTS_CACHE_KEY, None)

        logger.info(f"Draft deleted: {draft_id}")
        return True

    def publish_draft(self, user_id, draft_id, path_id, module_id):
        """
        Publish a draft into learningPaths/{path}/modules/{module}/lessons.
        Local media references are uploaded to Storage and rewritten first.
        There is no rollback: a failure part-way leaves uploaded files in place
        and the draft unpublished.
        """
        if not user_id or not draft_id or not path_id or not module_id:
            raise ValidationError('User ID, Draft ID, Path ID, and Module ID are required')

        try:
            draft = self.load_draft(user_id, draft_id)
            content_versions = draft.get('contentVersions') or {}
            metadata = draft.get('metadata') or {}

            uploaded_media = []
            if self.media_service:
                uploaded_media = self.media_service.rewrite_local_media(draft_id, content_versions)

            now = _now()
            lesson_data = {
                'title': draft.get('title'),
                'lessonType': metadata.get('lessonType') or 'concept_explanation',
                'estimatedTimeMinutes': metadata.get('estimatedTimeMinutes') or 15,
                'xpAward': metadata.get('xpAward') or 10,
                'category': metadata.get('category') or 'General',
                'tags': metadata.get('tags') or [],
                'content': content_versions.get('free') or [],
                'premiumContent': content_versions.get('premium'),
                'status': 'published',
                'publishedAt': now,
                'publishedBy': user_id,
                'draftId': draft_id,
                'version': 1,
                'createdAt': now,
                'updatedAt': now
            }

            lessons_ref = self._lessons_collection(path_id, module_id)
            max_order = 0
            for lesson_doc in lessons_ref.stream():
                max_order = max(max_order, lesson_doc.to_dict().get('order') or 0)

            lesson_data['order'] = max_order + 1
            lesson_data['lessonModuleId'] = module_id

            _, lesson_ref = lessons_ref.add(lesson_data)

            draft_update = {
                'status': 'published',
                'publishedAt': now,
                'publishedLessonId': lesson_ref.id,
                'publishedPath': path_id,
                'publishedModule': module_id
            }
            if uploaded_media:
                draft_update['contentVersions'] = content_versions
            self.get_drafts_collection().document(draft_id).set(draft_update, merge=True)

            if uploaded_media:
                self.draft_buffer.discard_media(draft_id)
            self.cache.pop(DRAFTS_CACHE_KEY, None)

            logger.info(f"Draft {draft_id} published as lesson {lesson_ref.id}")
            return {
                'lessonId': lesson_ref.id,
                'pathId': path_id,
                'moduleId': module_id,
                'uploadedMedia': uploaded_media,
                'success': True
            }

        except BeginAIError as e:
            logger.error(f"Error publishing draft: {e.message}")
            raise
        except Exception as e:
            logger.error(f"Error publishing draft: {str(e)}")
            raise DatabaseError(f"Failed to publish draft: {str(e)}")

    def auto_save_draft(self, user_id, draft_data):
        """
        Buffer the draft immediately, then schedule a debounced Firestore save.
        A newer autosave for the same user replaces the pending one.
        """
        if not user_id:
            return None

        buffered = self.draft_buffer.save(user_id, draft_data, is_auto_save=True)

        if self.autosaver:
            self.autosaver.schedule(user_id, self.save_draft, user_id, draft_data)

        return buffered

    def dispose(self):
        """
        Unsubscribe real-time listeners, clear the cache and cancel pending autosaves
        """
        for unsubscribe in list(self.subscribers):
            if callable(unsubscribe):
                unsubscribe()
        self.subscribers.clear()
        self.cache.clear()

        if self.autosaver:
            self.autosaver.cancel_all()
