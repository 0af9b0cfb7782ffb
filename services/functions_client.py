"""
Client for the BeginAI Cloud Functions that are called over HTTPS with a Firebase ID token
"""

import logging

import requests

from utils.error_handler import ValidationError, ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

class FunctionsClient:
    def __init__(self, base_url, timeout=DEFAULT_TIMEOUT, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def _call(self, function_name, id_token, payload=None):
        if not id_token:
            raise ValidationError('An ID token is required to call Cloud Functions')

        url = f"{self.base_url}/{function_name}"
        headers = {
            'Authorization': f"Bearer {id_token}",
            'Content-Type': 'application/json'
        }

        try:
            response = self.session.post(url, json=payload or {}, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Error calling {function_name}: {str(e)}")
            raise ExternalServiceError(f"Failed to call {function_name}: {str(e)}", service_name=function_name)

        if not response.ok:
            logger.error(f"{function_name} returned HTTP {response.status_code}")
            raise ExternalServiceError(
                f"{function_name} failed with HTTP {response.status_code}",
                service_name=function_name
            )

        return response.json()

    def toggle_news_like(self, id_token, article_id):
        return self._call('toggleNewsLike', id_token, {'articleId': article_id})

    def update_news_manual(self, id_token):
        return self._call('updateAINewsManual', id_token)
