"""
BeginAI Backend - AI Education Platform
Firebase Cloud Functions + Firestore Backend

Main entry point for the Flask API wrapped as Firebase Functions
"""

import logging

from flask import Flask, Blueprint, request, jsonify, current_app, make_response
from flask_cors import CORS
from firebase_functions import https_fn, scheduler_fn, options

from services.admin_service import AdminService, validate_learning_path, validate_module, validate_lesson
from services.autosave import AutoSaver
from services.badge_service import BadgeService
from services.content_blocks import create_block, validate_content_versions
from services.draft_buffer import DraftBuffer
from services.draft_service import DraftService
from services.functions_client import FunctionsClient
from services.media_service import MediaService
from services.news_service import NewsService
from services.progress_service import ProgressService
from services.user_service import UserService, UPDATABLE_FIELDS
from utils.auth_middleware import require_auth, require_admin, get_user_from_token
from utils.config import load_config
from utils.error_handler import handle_error, validate_request_data, format_success_response, ExternalServiceError
from utils.firebase_app import get_db, get_bucket
from utils.logger import configure_logging

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__)

def build_services(config, db=None, bucket=None):
    """
    Wire every service against one Firestore client and Storage bucket
    """
    db = db if db is not None else get_db(config)
    if bucket is None and config.storage_bucket:
        bucket = get_bucket(config)

    draft_buffer = DraftBuffer(config.draft_buffer_dir)
    media_service = MediaService(bucket, draft_buffer) if bucket is not None else None
    user_service = UserService(db, timezone_name=config.timezone)
    badge_service = BadgeService(db)

    return {
        'admin': AdminService(db, admin_emails=config.admin_emails),
        'drafts': DraftService(db, draft_buffer, media_service=media_service,
                               autosaver=AutoSaver(config.autosave_delay_seconds)),
        'draft_buffer': draft_buffer,
        'users': user_service,
        'badges': badge_service,
        'progress': ProgressService(db, user_service, badge_service),
        'news': NewsService(db),
        'functions': FunctionsClient(config.functions_base_url) if config.functions_base_url else None
    }

def create_app(config=None, services=None):
    config = config or load_config()
    configure_logging(config)

    app = Flask(__name__)
    CORS(app)

    services = services if services is not None else build_services(config)
    app.config['SERVICES'] = services
    app.config['ADMIN_SERVICE'] = services['admin']
    app.config['BEGINAI_CONFIG'] = config

    app.register_blueprint(api_bp)
    register_error_handlers(app)
    return app

def _services():
    return current_app.config['SERVICES']

def _current_uid():
    return request.current_user['uid']

def _owns(user_id):
    return _current_uid() == user_id

# Health check endpoint
@api_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        'status': 'healthy',
        'service': 'beginai-backend',
        'version': '1.0.0'
    })

# ============= DRAFT ENDPOINTS =============

@api_bp.route('/admin/drafts', methods=['GET'])
@require_admin
def list_drafts():
    """List all drafts, newest first"""
    try:
        drafts = _services()['drafts'].load_drafts(_current_uid())
        return jsonify({'drafts': drafts})
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/drafts', methods=['POST'])
@require_admin
def save_draft():
    """Create a draft, or update it when the body carries an id"""
    try:
        data = request.get_json() or {}

        errors = validate_content_versions(data.get('contentVersions'))
        if errors:
            return jsonify({'error': 'Invalid lesson content', 'details': errors}), 400

        draft = _services()['drafts'].save_draft(_current_uid(), data)
        return jsonify(draft), 201 if not data.get('id') else 200
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/drafts/<draft_id>', methods=['GET'])
@require_admin
def get_draft(draft_id):
    try:
        return jsonify(_services()['drafts'].load_draft(_current_uid(), draft_id))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/drafts/<draft_id>', methods=['DELETE'])
@require_admin
def delete_draft(draft_id):
    try:
        _services()['drafts'].delete_draft(_current_uid(), draft_id)
        return jsonify(format_success_response(message='Draft deleted'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/drafts/<draft_id>/autosave', methods=['POST'])
@require_admin
def autosave_draft(draft_id):
    """Buffer the draft now and save it to Firestore after the debounce delay"""
    try:
        data = {**(request.get_json() or {}), 'id': draft_id}
        buffered = _services()['drafts'].auto_save_draft(_current_uid(), data)
        return jsonify({'buffered': buffered}), 202
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/drafts/<draft_id>/media', methods=['POST'])
@require_admin
def upload_draft_media(draft_id):
    """Stage a media file locally; it is uploaded to Storage when the draft is published"""
    try:
        upload = request.files.get('file')
        if upload is None:
            return jsonify({'error': 'Missing required field: file'}), 400

        url = _services()['draft_buffer'].stage_media(draft_id, upload.filename, upload.stream)
        return jsonify({'url': url, 'fileName': upload.filename}), 201
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/drafts/<draft_id>/publish', methods=['POST'])
@require_admin
def publish_draft(draft_id):
    try:
        data = request.get_json() or {}
        validate_request_data(data, ['pathId', 'moduleId'])

        result = _services()['drafts'].publish_draft(
            _current_uid(), draft_id, data['pathId'], data['moduleId']
        )
        return jsonify(result), 201
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/blocks/<block_type>', methods=['GET'])
@require_admin
def new_block(block_type):
    """Default payload for a new content block"""
    try:
        return jsonify(create_block(block_type))
    except Exception as e:
        return handle_error(e)

# ============= CONTENT TREE ENDPOINTS =============

@api_bp.route('/admin/paths', methods=['GET'])
@require_admin
def get_learning_paths():
    try:
        return jsonify({'paths': _services()['admin'].get_all_learning_paths()})
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths', methods=['POST'])
@require_admin
def create_learning_path():
    """Create a learning path; a 'modules' list creates the whole tree in one batch"""
    try:
        data = request.get_json() or {}
        validation = validate_learning_path(data)
        if not validation['isValid']:
            return jsonify({'error': 'Invalid learning path', 'details': validation['errors']}), 400

        admin_service = _services()['admin']
        if data.get('modules'):
            path_id = admin_service.create_learning_path_with_modules(data, _current_uid())
        else:
            path_id = admin_service.create_learning_path(data, _current_uid())
        return jsonify({'id': path_id}), 201
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>', methods=['PUT'])
@require_admin
def update_learning_path(path_id):
    try:
        _services()['admin'].update_learning_path(path_id, request.get_json() or {}, _current_uid())
        return jsonify(format_success_response(message='Learning path updated'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>', methods=['DELETE'])
@require_admin
def delete_learning_path(path_id):
    try:
        result = _services()['admin'].delete_learning_path(path_id, _current_uid())
        return jsonify(format_success_response(result, 'Learning path deleted'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules', methods=['POST'])
@require_admin
def create_module(path_id):
    try:
        data = request.get_json() or {}
        validation = validate_module(data)
        if not validation['isValid']:
            return jsonify({'error': 'Invalid module', 'details': validation['errors']}), 400

        module_id = _services()['admin'].create_module(path_id, data, _current_uid())
        return jsonify({'id': module_id}), 201
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/reorder', methods=['POST'])
@require_admin
def reorder_modules(path_id):
    try:
        data = request.get_json() or {}
        validate_request_data(data, ['modules'])
        _services()['admin'].reorder_modules(path_id, data['modules'], _current_uid())
        return jsonify(format_success_response(message='Modules reordered'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/<module_id>', methods=['PUT'])
@require_admin
def update_module(path_id, module_id):
    try:
        _services()['admin'].update_module(path_id, module_id, request.get_json() or {}, _current_uid())
        return jsonify(format_success_response(message='Module updated'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/<module_id>', methods=['DELETE'])
@require_admin
def delete_module(path_id, module_id):
    try:
        result = _services()['admin'].delete_module(path_id, module_id, _current_uid())
        return jsonify(format_success_response(result, 'Module deleted'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/<module_id>/lessons', methods=['POST'])
@require_admin
def create_lesson(path_id, module_id):
    try:
        data = request.get_json() or {}
        validation = validate_lesson(data)
        if not validation['isValid']:
            return jsonify({'error': 'Invalid lesson', 'details': validation['errors']}), 400

        lesson_id = _services()['admin'].create_lesson(path_id, module_id, data, _current_uid())
        return jsonify({'id': lesson_id}), 201
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/<module_id>/lessons/reorder', methods=['POST'])
@require_admin
def reorder_lessons(path_id, module_id):
    try:
        data = request.get_json() or {}
        validate_request_data(data, ['lessons'])
        _services()['admin'].reorder_lessons(path_id, module_id, data['lessons'], _current_uid())
        return jsonify(format_success_response(message='Lessons reordered'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/<module_id>/lessons/<lesson_id>', methods=['GET'])
@require_admin
def get_lesson(path_id, module_id, lesson_id):
    try:
        return jsonify(_services()['admin'].get_lesson_with_pages(path_id, module_id, lesson_id))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/<module_id>/lessons/<lesson_id>', methods=['PUT'])
@require_admin
def update_lesson(path_id, module_id, lesson_id):
    try:
        _services()['admin'].update_lesson(path_id, module_id, lesson_id,
                                           request.get_json() or {}, _current_uid())
        return jsonify(format_success_response(message='Lesson updated'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/<module_id>/lessons/<lesson_id>', methods=['DELETE'])
@require_admin
def delete_lesson(path_id, module_id, lesson_id):
    try:
        _services()['admin'].delete_lesson(path_id, module_id, lesson_id, _current_uid())
        return jsonify(format_success_response(message='Lesson deleted'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/<module_id>/lessons/<lesson_id>/pages', methods=['PUT'])
@require_admin
def update_lesson_pages(path_id, module_id, lesson_id):
    try:
        data = request.get_json() or {}
        validate_request_data(data, ['pages'])
        _services()['admin'].update_lesson_pages(path_id, module_id, lesson_id, data['pages'], _current_uid())
        return jsonify(format_success_response(message='Lesson pages updated'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/<module_id>/lessons/<lesson_id>/pages/reorder', methods=['POST'])
@require_admin
def reorder_pages(path_id, module_id, lesson_id):
    try:
        data = request.get_json() or {}
        validate_request_data(data, ['pages'])
        pages = _services()['admin'].reorder_pages(path_id, module_id, lesson_id, data['pages'], _current_uid())
        return jsonify({'pages': pages})
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/paths/<path_id>/modules/<module_id>/lessons/<lesson_id>/move', methods=['POST'])
@require_admin
def move_lesson(path_id, module_id, lesson_id):
    try:
        data = request.get_json() or {}
        validate_request_data(data, ['toModuleId', 'order'])
        _services()['admin'].move_lesson(path_id, module_id, data['toModuleId'], lesson_id,
                                         data['order'], _current_uid())
        return jsonify(format_success_response(message='Lesson moved'))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/modules', methods=['GET'])
@require_admin
def get_all_modules():
    try:
        return jsonify({'modules': _services()['admin'].get_all_modules_flat()})
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/stats', methods=['GET'])
@require_admin
def get_content_stats():
    try:
        return jsonify(_services()['admin'].get_content_stats())
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/search', methods=['GET'])
@require_admin
def search_content():
    try:
        results = _services()['admin'].search_content(
            request.args.get('q', ''),
            request.args.get('type', 'all')
        )
        return jsonify({'results': results})
    except Exception as e:
        return handle_error(e)

# ============= USER ENDPOINTS =============

@api_bp.route('/user', methods=['POST'])
@require_auth
def upsert_user_profile():
    """Create the caller's profile on first sign-in, or refresh lastLoginAt"""
    try:
        data = request.get_json(silent=True) or {}
        profile_data = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS}
        profile = _services()['users'].upsert_user_profile(
            _current_uid(), request.current_user.get('email'), profile_data
        )
        return jsonify(profile)
    except Exception as e:
        return handle_error(e)

@api_bp.route('/user/<user_id>', methods=['GET'])
@require_auth
def get_user_profile(user_id):
    """Get user profile"""
    try:
        # Verify user can access this profile
        if not _owns(user_id):
            return jsonify({'error': 'Unauthorized'}), 403

        profile = _services()['users'].get_user_profile(user_id)
        if profile is None:
            return jsonify({'error': 'User not found'}), 404
        return jsonify(profile)
    except Exception as e:
        return handle_error(e)

@api_bp.route('/user/<user_id>', methods=['PUT'])
@require_auth
def update_user_profile(user_id):
    """Update user profile"""
    try:
        if not _owns(user_id):
            return jsonify({'error': 'Unauthorized'}), 403

        result = _services()['users'].update_user_profile(user_id, request.get_json() or {})
        return jsonify(result)
    except Exception as e:
        return handle_error(e)

@api_bp.route('/user/<user_id>/stats', methods=['GET'])
@require_auth
def get_user_stats(user_id):
    try:
        if not _owns(user_id):
            return jsonify({'error': 'Unauthorized'}), 403

        return jsonify(_services()['users'].get_user_stats(user_id))
    except Exception as e:
        return handle_error(e)

# ============= PROGRESS ENDPOINTS =============

@api_bp.route('/progress/<lesson_id>/start', methods=['POST'])
@require_auth
def start_lesson(lesson_id):
    try:
        data = request.get_json(silent=True) or {}
        record = _services()['progress'].start_lesson(
            _current_uid(), lesson_id, data.get('moduleId'), data.get('pathId')
        )
        return jsonify(record)
    except Exception as e:
        return handle_error(e)

@api_bp.route('/progress/<lesson_id>/complete', methods=['POST'])
@require_auth
def complete_lesson(lesson_id):
    """Mark a lesson complete and award XP, streak and badges"""
    try:
        data = request.get_json(silent=True) or {}
        result = _services()['progress'].complete_lesson(
            _current_uid(),
            lesson_id,
            module_id=data.get('moduleId'),
            path_id=data.get('pathId'),
            score=data.get('score'),
            email=request.current_user.get('email')
        )
        return jsonify(result)
    except Exception as e:
        return handle_error(e)

@api_bp.route('/progress/<lesson_id>', methods=['GET'])
@require_auth
def get_lesson_progress(lesson_id):
    try:
        progress = _services()['progress'].get_user_progress_for_lesson(_current_uid(), lesson_id)
        return jsonify({'progress': progress, 'status': (progress or {}).get('status', 'not_started')})
    except Exception as e:
        return handle_error(e)

@api_bp.route('/progress/path/<path_id>', methods=['GET'])
@require_auth
def get_path_progress(path_id):
    try:
        return jsonify({'progress': _services()['progress'].get_path_progress(_current_uid(), path_id)})
    except Exception as e:
        return handle_error(e)

@api_bp.route('/progress', methods=['DELETE'])
@require_auth
def reset_progress():
    try:
        return jsonify(_services()['progress'].reset_user_progress(_current_uid()))
    except Exception as e:
        return handle_error(e)

# ============= BADGE ENDPOINTS =============

@api_bp.route('/badges', methods=['GET'])
@require_auth
def get_badges():
    """Get all badges with the user's earned status"""
    try:
        badges = _services()['badges'].get_user_badges(_current_uid())
        return jsonify({'badges': badges})
    except Exception as e:
        return handle_error(e)

@api_bp.route('/badges/check', methods=['POST'])
@require_auth
def check_badge_eligibility():
    """Check and award eligible badges for user"""
    try:
        newly_earned = _services()['badges'].check_and_award_badges(_current_uid())
        return jsonify({
            'newly_earned': newly_earned,
            'count': len(newly_earned)
        })
    except Exception as e:
        return handle_error(e)

# ============= NEWS ENDPOINTS =============

@api_bp.route('/news', methods=['GET'])
def get_news():
    try:
        limit = int(request.args.get('limit', 20))
        return jsonify({'articles': _services()['news'].get_news(limit)})
    except Exception as e:
        return handle_error(e)

@api_bp.route('/admin/news/refresh', methods=['POST'])
@require_admin
def refresh_news():
    """Trigger the updateAINewsManual Cloud Function with the caller's token"""
    try:
        client = _services().get('functions')
        if client is None:
            raise ExternalServiceError('Cloud Functions URL is not configured', service_name='updateAINewsManual')

        id_token = request.headers.get('Authorization', '').replace('Bearer ', '').strip()
        return jsonify(client.update_news_manual(id_token))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/news/<article_id>/like', methods=['POST'])
@require_auth
def toggle_news_like(article_id):
    try:
        return jsonify(_services()['news'].toggle_like(article_id, _current_uid()))
    except Exception as e:
        return handle_error(e)

@api_bp.route('/news/<article_id>/like', methods=['GET'])
@require_auth
def get_news_like_status(article_id):
    return jsonify(_services()['news'].get_like_status(article_id, _current_uid()))

# Error handlers
def register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {str(error)}")
        return jsonify({'error': 'Internal server error'}), 500

_application = None

def get_application():
    """The Flask app behind the Cloud Functions, created on first request"""
    global _application
    if _application is None:
        _application = create_app()
    return _application

CORS_OPTIONS = options.CorsOptions(
    cors_origins=["*"],
    cors_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
)

# Firebase Cloud Function wrapper
@https_fn.on_request(cors=CORS_OPTIONS)
def api(req):
    """Main Cloud Function entry point"""
    application = get_application()
    with application.request_context(req.environ):
        return application.full_dispatch_request()

@https_fn.on_request(cors=CORS_OPTIONS)
def toggleNewsLike(req):
    """Like or unlike a news article for the caller identified by the bearer token"""
    application = get_application()
    with application.app_context():
        user = get_user_from_token(req.headers.get('Authorization', ''))
        if not user:
            return make_response(jsonify({'error': 'Unauthorized'}), 401)

        data = req.get_json(silent=True) or {}
        try:
            result = application.config['SERVICES']['news'].toggle_like(data.get('articleId'), user['uid'])
            return make_response(jsonify(result))
        except Exception as e:
            return make_response(handle_error(e))

@scheduler_fn.on_schedule(schedule="every day 00:00", timezone=scheduler_fn.Timezone("America/New_York"))
def cleanAINewsScheduled(event):
    """Keep only the newest 100 news articles"""
    deleted = get_application().config['SERVICES']['news'].clean_old_news()
    logger.info(f"Scheduled news cleanup removed {deleted} articles")

# For local development
if __name__ == '__main__':
    get_application().run(debug=True, host='0.0.0.0', port=8080)
