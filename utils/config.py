"""
Configuration for BeginAI Platform
Reads settings from environment variables (optionally loaded from .env)
"""

import os
import logging

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

REQUIRED_FIREBASE_VARS = [
    'REACT_APP_FIREBASE_API_KEY',
    'REACT_APP_FIREBASE_AUTH_DOMAIN',
    'REACT_APP_FIREBASE_PROJECT_ID',
    'REACT_APP_FIREBASE_STORAGE_BUCKET',
    'REACT_APP_FIREBASE_MESSAGING_SENDER_ID',
    'REACT_APP_FIREBASE_APP_ID'
]

OPTIONAL_VARS = [
    'REACT_APP_FIREBASE_MEASUREMENT_ID',
    'REACT_APP_OPENAI_API_KEY',
    'REACT_APP_GOOGLE_SEARCH_API_KEY',
    'REACT_APP_BING_SEARCH_API_KEY',
    'REACT_APP_STRIPE_PUBLISHABLE_KEY',
    'REACT_APP_SENTRY_DSN'
]


class ConfigError(RuntimeError):
    pass


class Config:
    def __init__(self, environ=None):
        self.environ = os.environ if environ is None else environ

    def _get(self, key, default=None):
        value = self.environ.get(key)
        return value if value else default

    @property
    def environment(self):
        return self._get('NODE_ENV') or self._get('ENVIRONMENT', 'development')

    @property
    def is_production(self):
        return self.environment == 'production'

    @property
    def log_level(self):
        return self._get('LOG_LEVEL', 'INFO').upper()

    @property
    def firebase_project_id(self):
        return self._get('REACT_APP_FIREBASE_PROJECT_ID') or self._get('FIREBASE_PROJECT_ID')

    @property
    def storage_bucket(self):
        return self._get('REACT_APP_FIREBASE_STORAGE_BUCKET') or self._get('FIREBASE_STORAGE_BUCKET')

    @property
    def credentials_path(self):
        return self._get('GOOGLE_APPLICATION_CREDENTIALS', 'serviceAccountKey.json')

    @property
    def admin_emails(self):
        raw = self._get('REACT_APP_ADMIN_EMAILS', '')
        return [email.strip().lower() for email in raw.split(',') if email.strip()]

    @property
    def draft_buffer_dir(self):
        return self._get('DRAFT_BUFFER_DIR', '.draft_buffer')

    @property
    def autosave_delay_seconds(self):
        return float(self._get('AUTOSAVE_DELAY_SECONDS', 2.0))

    @property
    def timezone(self):
        return self._get('APP_TIMEZONE', 'America/New_York')

    @property
    def functions_base_url(self):
        default = None
        if self.firebase_project_id:
            default = f"https://us-central1-{self.firebase_project_id}.cloudfunctions.net"
        return self._get('FUNCTIONS_BASE_URL', default)


def load_config(env_file='.env'):
    """Load .env (if present) into the process environment and return a Config"""
    if os.path.exists(env_file):
        load_dotenv(env_file)
        logger.debug(f"Loaded environment from {env_file}")
    return Config()


def ensure_firebase_env(config=None):
    config = config or Config()
    missing = [key for key in REQUIRED_FIREBASE_VARS if not config.environ.get(key)]
    if missing:
        raise ConfigError(f"Missing Firebase env vars: {', '.join(missing)}")
