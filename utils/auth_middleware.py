"""
Authentication Middleware for BeginAI Platform
Handles Firebase token validation and request authentication
"""

from functools import wraps
from flask import request, jsonify, current_app
from firebase_admin import auth
import logging

logger = logging.getLogger(__name__)

def _extract_token():
    auth_header = request.headers.get('Authorization')
    if not auth_header:
        return None
    return auth_header.replace('Bearer ', '').strip() or None

def require_auth(f):
    """
    Decorator to require authentication for API endpoints
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _extract_token()
        if not token:
            return jsonify({'error': 'Authorization header required'}), 401

        try:
            decoded_token = auth.verify_id_token(token)
        except auth.ExpiredIdTokenError:
            logger.warning("Expired token provided")
            return jsonify({'error': 'Token expired'}), 401
        except auth.RevokedIdTokenError:
            logger.warning("Revoked token provided")
            return jsonify({'error': 'Token revoked'}), 401
        except auth.InvalidIdTokenError:
            logger.warning("Invalid token provided")
            return jsonify({'error': 'Invalid token'}), 401
        except Exception as e:
            logger.error(f"Authentication error: {str(e)}")
            return jsonify({'error': 'Authentication failed'}), 401

        request.current_user = decoded_token
        return f(*args, **kwargs)

    return decorated_function

def get_user_from_token(token):
    """
    Extract user information from Firebase ID token
    """
    try:
        if not token:
            return None

        clean_token = token.replace('Bearer ', '').strip()
        decoded_token = auth.verify_id_token(clean_token)

        return {
            'uid': decoded_token['uid'],
            'email': decoded_token.get('email', ''),
            'email_verified': decoded_token.get('email_verified', False),
            'name': decoded_token.get('name', ''),
            'picture': decoded_token.get('picture', ''),
            'firebase_claims': decoded_token
        }

    except Exception as e:
        logger.error(f"Error extracting user from token: {str(e)}")
        return None

def require_admin(f):
    """
    Decorator to require the admin or developer role.
    The role lives on the user's Firestore profile; emails listed in
    REACT_APP_ADMIN_EMAILS are treated as admins as well.
    """
    @wraps(f)
    @require_auth
    def decorated_function(*args, **kwargs):
        decoded_token = request.current_user
        admin_service = current_app.config['ADMIN_SERVICE']

        try:
            admin_service.check_admin_permission(
                decoded_token['uid'],
                email=decoded_token.get('email')
            )
        except Exception as e:
            logger.warning(f"Non-admin user attempted admin action: {decoded_token.get('uid')} ({str(e)})")
            return jsonify({'error': 'Admin privileges required'}), 403

        return f(*args, **kwargs)

    return decorated_function
