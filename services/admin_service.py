"""
Admin Service for BeginAI Platform
CRUD over the published content tree:
learningPaths/{pathId}/modules/{moduleId}/lessons/{lessonId}
"""

from datetime import datetime, timezone
import logging

from firebase_admin import firestore

from utils.error_handler import BeginAIError, AuthorizationError, NotFoundError, DatabaseError

logger = logging.getLogger(__name__)

# Firestore allows 500 writes per batch; stay below it
BATCH_LIMIT = 450

ADMIN_ROLES = ('admin', 'developer')

def _now():
    return datetime.now(timezone.utc)

def _max_order(collection_ref):
    max_order = 0
    for doc in collection_ref.stream():
        max_order = max(max_order, doc.to_dict().get('order') or 0)
    return max_order

class AdminService:
    def __init__(self, db, admin_emails=None):
        self.db = db
        self.paths_ref = db.collection('learningPaths')
        self.users_ref = db.collection('users')
        self.admin_emails = [email.lower() for email in (admin_emails or [])]

    # ============= REFERENCES =============

    def _path_ref(self, path_id):
        return self.paths_ref.document(path_id)

    def _modules_ref(self, path_id):
        return self._path_ref(path_id).collection('modules')

    def _module_ref(self, path_id, module_id):
        return self._modules_ref(path_id).document(module_id)

    def _lessons_ref(self, path_id, module_id):
        return self._module_ref(path_id, module_id).collection('lessons')

    def _lesson_ref(self, path_id, module_id, lesson_id):
        return self._lessons_ref(path_id, module_id).document(lesson_id)

    def _ordered(self, collection_ref):
        return collection_ref.order_by('order', direction=firestore.Query.ASCENDING).stream()

    def _commit_deletes(self, refs):
        """
        Delete document references in batches below the write limit
        """
        self._commit_writes((ref, None) for ref in refs)

    def _commit_writes(self, writes):
        """
        Apply (ref, update) pairs in batches below the write limit.
        A None update deletes the document.
        """
        batch = self.db.batch()
        ops = 0
        for ref, update in writes:
            if update is None:
                batch.delete(ref)
            else:
                batch.update(ref, update)
            ops += 1
            if ops >= BATCH_LIMIT:
                batch.commit()
                batch = self.db.batch()
                ops = 0
        if ops > 0:
            batch.commit()

    def _run(self, action, fn, *args):
        try:
            return fn(*args)
        except BeginAIError:
            raise
        except Exception as e:
            logger.error(f"Error {action}: {str(e)}")
            raise DatabaseError(f"Failed {action}: {str(e)}")

    # ============= PERMISSIONS =============

    def check_admin_permission(self, user_id, email=None):
        """
        Require the admin or developer role on the user's profile
        """
        user_doc = self.users_ref.document(user_id).get()
        profile = user_doc.to_dict() if user_doc.exists else None

        if profile and profile.get('role') in ADMIN_ROLES:
            return profile

        email = email or (profile or {}).get('email')
        if email and email.lower() in self.admin_emails:
            return profile or {'uid': user_id, 'email': email, 'role': 'admin'}

        raise AuthorizationError('Insufficient permissions: Admin or Developer role required')

    def _authorize(self, user_id):
        if user_id:
            self.check_admin_permission(user_id)

    # ============= LEARNING PATHS =============

    def get_all_learning_paths(self):
        """
        Get every learning path with its modules and lessons, all ordered
        """
        def fetch():
            paths = []
            for path_doc in self._ordered(self.paths_ref):
                path_data = {'id': path_doc.id, **path_doc.to_dict()}

                modules = []
                for module_doc in self._ordered(self._modules_ref(path_doc.id)):
                    module_data = {'id': module_doc.id, **module_doc.to_dict()}
                    module_data['lessons'] = [
                        {'id': lesson_doc.id, **lesson_doc.to_dict()}
                        for lesson_doc in self._ordered(self._lessons_ref(path_doc.id, module_doc.id))
                    ]
                    modules.append(module_data)

                path_data['modules'] = modules
                paths.append(path_data)
            return paths

        return self._run('fetching learning paths', fetch)

    def create_learning_path(self, path_data, user_id=None):
        self._authorize(user_id)

        def create():
            new_path = {
                **path_data,
                'order': _max_order(self.paths_ref) + 1,
                'createdAt': _now(),
                'updatedAt': _now(),
                'version': 1
            }
            _, doc_ref = self.paths_ref.add(new_path)
            logger.info(f"Created learning path {doc_ref.id}")
            return doc_ref.id

        return self._run('creating learning path', create)

    def update_learning_path(self, path_id, updates, user_id=None):
        self._authorize(user_id)
        self._run('updating learning path', self._path_ref(path_id).update,
                  {**updates, 'updatedAt': _now()})

    def delete_learning_path(self, path_id, user_id=None):
        """
        Delete a learning path with all of its modules and lessons
        """
        self._authorize(user_id)

        def delete():
            refs = []
            lesson_count = 0
            module_docs = list(self._modules_ref(path_id).stream())
            for module_doc in module_docs:
                for lesson_doc in self._lessons_ref(path_id, module_doc.id).stream():
                    refs.append(lesson_doc.reference)
                    lesson_count += 1
                refs.append(module_doc.reference)
            refs.append(self._path_ref(path_id))

            self._commit_deletes(refs)
            logger.info(f"Deleted learning path {path_id} with {len(module_docs)} modules and {lesson_count} lessons")
            return {'deletedModules': len(module_docs), 'deletedLessons': lesson_count}

        return self._run('deleting learning path', delete)

    # ============= MODULES =============

    def create_module(self, path_id, module_data, user_id=None):
        self._authorize(user_id)

        def create():
            modules_ref = self._modules_ref(path_id)
            new_module = {
                **module_data,
                'learningPathId': path_id,
                'order': _max_order(modules_ref) + 1,
                'createdAt': _now(),
                'updatedAt': _now()
            }
            _, doc_ref = modules_ref.add(new_module)
            return doc_ref.id

        return self._run('creating module', create)

    def update_module(self, path_id, module_id, updates, user_id=None):
        self._authorize(user_id)
        self._run('updating module', self._module_ref(path_id, module_id).update,
                  {**updates, 'updatedAt': _now()})

    def delete_module(self, path_id, module_id, user_id=None):
        self._authorize(user_id)

        def delete():
            refs = [doc.reference for doc in self._lessons_ref(path_id, module_id).stream()]
            lesson_count = len(refs)
            refs.append(self._module_ref(path_id, module_id))
            self._commit_deletes(refs)
            return {'deletedLessons': lesson_count}

        return self._run('deleting module', delete)

    # ============= LESSONS =============

    def create_lesson(self, path_id, module_id, lesson_data, user_id=None):
        self._authorize(user_id)

        def create():
            lessons_ref = self._lessons_ref(path_id, module_id)
            new_lesson = {
                **lesson_data,
                'lessonModuleId': module_id,
                'order': _max_order(lessons_ref) + 1,
                'createdAt': _now(),
                'updatedAt': _now()
            }
            _, doc_ref = lessons_ref.add(new_lesson)
            return doc_ref.id

        return self._run('creating lesson', create)

    def update_lesson(self, path_id, module_id, lesson_id, updates, user_id=None):
        self._authorize(user_id)
        self._run('updating lesson', self._lesson_ref(path_id, module_id, lesson_id).update,
                  {**updates, 'updatedAt': _now()})

    def delete_lesson(self, path_id, module_id, lesson_id, user_id=None):
        self._authorize(user_id)
        self._run('deleting lesson', self._lesson_ref(path_id, module_id, lesson_id).delete)

    def get_lesson_with_pages(self, path_id, module_id, lesson_id):
        def fetch():
            lesson_snap = self._lesson_ref(path_id, module_id, lesson_id).get()
            if not lesson_snap.exists:
                raise NotFoundError('Lesson not found')
            return {'id': lesson_snap.id, 'pathId': path_id, 'moduleId': module_id, **lesson_snap.to_dict()}

        return self._run('fetching lesson', fetch)

    def update_lesson_pages(self, path_id, module_id, lesson_id, pages, user_id=None):
        self._authorize(user_id)
        self._run('updating lesson pages', self._lesson_ref(path_id, module_id, lesson_id).update,
                  {'content': pages, 'updatedAt': _now()})

    def move_lesson(self, path_id, from_module_id, to_module_id, lesson_id, new_order, user_id=None):
        """
        Move a lesson to another module (or reposition it within the same one)
        """
        self._authorize(user_id)

        def move():
            source_ref = self._lesson_ref(path_id, from_module_id, lesson_id)
            source_snap = source_ref.get()
            if not source_snap.exists:
                raise NotFoundError('Lesson not found')

            batch = self.db.batch()
            batch.set(self._lesson_ref(path_id, to_module_id, lesson_id), {
                **source_snap.to_dict(),
                'lessonModuleId': to_module_id,
                'order': new_order,
                'updatedAt': _now()
            })
            if from_module_id != to_module_id:
                batch.delete(source_ref)
            batch.commit()

        self._run('moving lesson', move)

    # ============= REORDERING =============

    def reorder_modules(self, path_id, module_orders, user_id=None):
        self._authorize(user_id)

        self._run('reordering modules', self._commit_writes, [
            (self._module_ref(path_id, entry['moduleId']), {'order': entry['order'], 'updatedAt': _now()})
            for entry in module_orders
        ])

    def reorder_lessons(self, path_id, module_id, lesson_orders, user_id=None):
        self._authorize(user_id)

        self._run('reordering lessons', self._commit_writes, [
            (self._lesson_ref(path_id, module_id, entry['lessonId']), {'order': entry['order'], 'updatedAt': _now()})
            for entry in lesson_orders
        ])

    def reorder_pages(self, path_id, module_id, lesson_id, page_orders, user_id=None):
        """
        Rearrange a lesson's content pages. page_orders is a list of
        {'pageIndex': old_index} in the new order; unknown indexes are dropped.
        """
        self._authorize(user_id)

        def reorder():
            lesson_ref = self._lesson_ref(path_id, module_id, lesson_id)
            lesson_snap = lesson_ref.get()
            if not lesson_snap.exists:
                raise NotFoundError('Lesson not found')

            content = lesson_snap.to_dict().get('content') or []
            reordered = [
                content[entry['pageIndex']] for entry in page_orders
                if 0 <= entry.get('pageIndex', -1) < len(content)
            ]
            lesson_ref.update({'content': reordered, 'updatedAt': _now()})
            return reordered

        return self._run('reordering pages', reorder)

    # ============= BULK OPERATIONS =============

    def create_learning_path_with_modules(self, path_data, user_id=None):
        """
        Create a path, its modules and their lessons in one batch
        """
        self._authorize(user_id)

        def create():
            batch = self.db.batch()
            path_ref = self.paths_ref.document()

            path_doc = {k: v for k, v in path_data.items() if k != 'modules'}
            path_doc.update({'createdAt': _now(), 'updatedAt': _now(), 'version': 1, 'order': 0})
            batch.set(path_ref, path_doc)

            for module_index, module_data in enumerate(path_data.get('modules') or []):
                module_ref = path_ref.collection('modules').document()
                module_doc = {k: v for k, v in module_data.items() if k != 'lessons'}
                module_doc.update({
                    'learningPathId': path_ref.id,
                    'order': module_index + 1,
                    'createdAt': _now(),
                    'updatedAt': _now()
                })
                batch.set(module_ref, module_doc)

                for lesson_index, lesson_data in enumerate(module_data.get('lessons') or []):
                    lesson_ref = module_ref.collection('lessons').document()
                    batch.set(lesson_ref, {
                        **lesson_data,
                        'lessonModuleId': module_ref.id,
                        'order': lesson_index + 1,
                        'createdAt': _now(),
                        'updatedAt': _now()
                    })

            batch.commit()
            return path_ref.id

        return self._run('creating learning path with modules', create)

    # ============= SEARCH & ANALYTICS =============

    def search_content(self, search_term, content_type='all'):
        def search():
            term = (search_term or '').lower()
            results = []
            if content_type in ('all', 'paths'):
                for doc in self.paths_ref.stream():
                    data = doc.to_dict()
                    title = data.get('title') or ''
                    description = data.get('description') or ''
                    if term in title.lower() or term in description.lower():
                        results.append({
                            'type': 'path',
                            'id': doc.id,
                            'title': data.get('title'),
                            'description': data.get('description')
                        })
            return results

        return self._run('searching content', search)

    def get_content_stats(self):
        def stats():
            result = {
                'totalPaths': 0,
                'totalModules': 0,
                'totalLessons': 0,
                'publishedPaths': 0,
                'premiumPaths': 0
            }
            for path_doc in self.paths_ref.stream():
                path_data = path_doc.to_dict()
                result['totalPaths'] += 1
                if path_data.get('published'):
                    result['publishedPaths'] += 1
                if path_data.get('isPremium'):
                    result['premiumPaths'] += 1

                for module_doc in self._modules_ref(path_doc.id).stream():
                    result['totalModules'] += 1
                    result['totalLessons'] += len(list(self._lessons_ref(path_doc.id, module_doc.id).stream()))
            return result

        return self._run('getting content stats', stats)

    def get_all_modules_flat(self):
        def fetch():
            modules = []
            for path_doc in self.paths_ref.stream():
                path_data = path_doc.to_dict()
                for module_doc in self._ordered(self._modules_ref(path_doc.id)):
                    module_data = {
                        'id': module_doc.id,
                        'pathId': path_doc.id,
                        'pathTitle': path_data.get('title'),
                        **module_doc.to_dict()
                    }
                    module_data['lessons'] = [
                        {'id': lesson_doc.id, 'pathId': path_doc.id, 'moduleId': module_doc.id, **lesson_doc.to_dict()}
                        for lesson_doc in self._ordered(self._lessons_ref(path_doc.id, module_doc.id))
                    ]
                    modules.append(module_data)
            return modules

        return self._run('fetching all modules', fetch)

    # ============= CLEANUP =============

    def _delete_tree(self, keep_paths=None, keep_modules=None, keep_all_paths=False):
        keep_paths = set(keep_paths or [])
        keep_modules = set(keep_modules or [])
        refs = []
        stats = {'deletedPaths': 0, 'deletedModules': 0, 'deletedLessons': 0}

        for path_doc in self.paths_ref.stream():
            path_kept = keep_all_paths or path_doc.id in keep_paths
            for module_doc in self._modules_ref(path_doc.id).stream():
                if path_kept and module_doc.id in keep_modules:
                    continue
                for lesson_doc in self._lessons_ref(path_doc.id, module_doc.id).stream():
                    refs.append(lesson_doc.reference)
                    stats['deletedLessons'] += 1
                refs.append(module_doc.reference)
                stats['deletedModules'] += 1

            if not path_kept:
                refs.append(path_doc.reference)
                stats['deletedPaths'] += 1

        self._commit_deletes(refs)
        return stats

    def clear_all_content(self, user_id=None):
        """
        Delete every learning path, module and lesson
        """
        self._authorize(user_id)
        stats = self._run('clearing content', self._delete_tree)
        logger.info(f"Cleared content: {stats}")
        return stats

    def cleanup_modules(self, user_id=None):
        """
        Delete all modules and lessons but keep the learning path documents
        """
        self._authorize(user_id)
        stats = self._run('cleaning up modules', self._delete_tree, None, None, True)
        logger.info(f"Cleaned up modules: {stats}")
        return stats

    def cleanup_fake_data(self, keep_paths, keep_modules, user_id=None):
        """
        Delete every path and module not explicitly listed as real content
        """
        self._authorize(user_id)
        stats = self._run('cleaning up fake data', self._delete_tree, keep_paths, keep_modules)
        return {
            'success': True,
            'message': (f"Cleanup completed: {stats['deletedPaths']} paths, {stats['deletedModules']} modules, "
                        f"and {stats['deletedLessons']} lessons removed"),
            'stats': stats
        }

# ============= VALIDATION =============

def _blank(value):
    return not isinstance(value, str) or not value.strip()

def validate_learning_path(path_data):
    errors = []
    if _blank(path_data.get('title')):
        errors.append('Title is required')
    if _blank(path_data.get('description')):
        errors.append('Description is required')
    if path_data.get('targetAudience') is not None and not isinstance(path_data['targetAudience'], list):
        errors.append('Target audience must be an array')
    return {'isValid': not errors, 'errors': errors}

def validate_module(module_data):
    errors = []
    if _blank(module_data.get('title')):
        errors.append('Title is required')
    if _blank(module_data.get('description')):
        errors.append('Description is required')
    return {'isValid': not errors, 'errors': errors}

def validate_lesson(lesson_data):
    errors = []
    if _blank(lesson_data.get('title')):
        errors.append('Title is required')
    if not lesson_data.get('lessonType'):
        errors.append('Lesson type is required')
    content = lesson_data.get('content')
    if not isinstance(content, list) or not content:
        errors.append('Content is required and must be an array with at least one item')
    return {'isValid': not errors, 'errors': errors}
