"""
Firebase Admin SDK initialization shared by the API and the CLI scripts
"""

import os
import logging

from firebase_admin import initialize_app, get_app, credentials, firestore, storage

from utils.config import Config, ensure_firebase_env

logger = logging.getLogger(__name__)


def init_firebase(config=None):
    """
    Return the default Firebase app, initializing it on first use.
    Raises ConfigError when the required Firebase settings are missing.
    """
    config = config or Config()
    try:
        return get_app()
    except ValueError:
        pass

    ensure_firebase_env(config)

    options = {}
    if config.storage_bucket:
        options['storageBucket'] = config.storage_bucket
    if config.firebase_project_id:
        options['projectId'] = config.firebase_project_id

    try:
        cred_path = config.credentials_path
        if cred_path and os.path.exists(cred_path):
            # For local development, use service account key
            app = initialize_app(credentials.Certificate(cred_path), options or None)
            logger.info(f"Firebase Admin SDK initialized using: {cred_path}")
        else:
            # Use default credentials in production
            app = initialize_app(options=options or None)
            logger.info("Firebase Admin SDK initialized with application default credentials")
        return app
    except Exception as e:
        logger.error(f"Error initializing Firebase: {str(e)}")
        raise


def get_db(config=None):
    init_firebase(config)
    return firestore.client()


def get_bucket(config=None):
    init_firebase(config)
    return storage.bucket()
