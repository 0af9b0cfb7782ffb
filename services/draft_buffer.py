"""
Draft Buffer for BeginAI Platform
Non-authoritative local copy of drafts and staging area for lesson media.
Used when a Firestore write fails and before remote data is available.
"""

from datetime import datetime, timezone
from pathlib import Path
import json
import logging
import re
import time
import uuid

from utils.error_handler import ValidationError

logger = logging.getLogger(__name__)

MAX_BUFFERED_DRAFTS = 5
LOCAL_MEDIA_SCHEME = 'blob:'
DRAFT_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class DraftBuffer:
    def __init__(self, base_dir):
        self.base_dir = Path(base_dir)
        self.media_dir = self.base_dir / 'media'

    def _buffer_path(self, user_id):
        return self.base_dir / f"draft_buffer_{user_id}.json"

    def _read(self, user_id):
        path = self._buffer_path(user_id)
        if not path.exists():
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                drafts = json.load(f)
            return drafts if isinstance(drafts, list) else []
        except (OSError, ValueError) as e:
            logger.error(f"Error reading draft buffer for {user_id}: {str(e)}")
            return []

    def _write(self, user_id, drafts):
        self.base_dir.mkdir(parents=True, exist_ok=True)
        with open(self._buffer_path(user_id), 'w', encoding='utf-8') as f:
            json.dump(drafts, f, default=_json_default)

    def save(self, user_id, draft_data, is_auto_save=False):
        """
        Buffer a draft that has not (yet) reached Firestore
        """
        try:
            draft = {
                **draft_data,
                'id': draft_data.get('id') or f"temp_{int(time.time() * 1000)}",
                'lastModified': datetime.now(timezone.utc).isoformat(),
                'isTemporary': is_auto_save,
                'bufferOnly': True
            }

            existing = [d for d in self._read(user_id) if d.get('id') != draft['id']]
            existing.insert(0, draft)
            self._write(user_id, existing[:MAX_BUFFERED_DRAFTS])
            return draft

        except (OSError, TypeError) as e:
            logger.error(f"Error saving to draft buffer: {str(e)}")
            return None

    def update(self, user_id, draft_data):
        """
        Mirror a draft that was persisted to Firestore
        """
        try:
            existing = [d for d in self._read(user_id) if d.get('id') != draft_data.get('id')]
            existing.insert(0, {**draft_data, 'bufferOnly': False})
            self._write(user_id, existing[:MAX_BUFFERED_DRAFTS])
        except (OSError, TypeError) as e:
            logger.error(f"Error updating draft buffer: {str(e)}")

    def remove(self, user_id, draft_id):
        try:
            existing = self._read(user_id)
            self._write(user_id, [d for d in existing if d.get('id') != draft_id])
        except OSError as e:
            logger.error(f"Error removing from draft buffer: {str(e)}")

    def load(self, user_id):
        drafts = self._read(user_id)
        logger.info(f"Loaded {len(drafts)} drafts from draft buffer")
        return drafts

    def get(self, user_id, draft_id):
        for draft in self._read(user_id):
            if draft.get('id') == draft_id:
                return draft
        return None

    # Media staging

    def _draft_media_dir(self, draft_id):
        if not draft_id or not DRAFT_ID_PATTERN.match(draft_id):
            raise ValidationError(f"Invalid draft ID: {draft_id}", field='draftId')
        return self.media_dir / draft_id

    def stage_media(self, draft_id, filename, stream):
        """
        Store an uploaded file locally and return its blob: reference
        """
        safe_name = re.sub(r'[^A-Za-z0-9._-]', '_', filename or 'upload') or 'upload'
        staged_name = f"{uuid.uuid4().hex}-{safe_name}"
        target_dir = self._draft_media_dir(draft_id)
        target_dir.mkdir(parents=True, exist_ok=True)

        data = stream.read() if hasattr(stream, 'read') else stream
        with open(target_dir / staged_name, 'wb') as f:
            f.write(data)

        logger.info(f"Staged media {staged_name} for draft {draft_id}")
        return f"{LOCAL_MEDIA_SCHEME}{draft_id}/{staged_name}"

    def resolve_media(self, url):
        """
        Map a blob: reference back to the staged file, or None
        """
        if not url or not url.startswith(LOCAL_MEDIA_SCHEME):
            return None

        relative = url[len(LOCAL_MEDIA_SCHEME):]
        candidate = (self.media_dir / relative).resolve()
        if self.media_dir.resolve() not in candidate.parents:
            return None
        return candidate if candidate.is_file() else None

    def discard_media(self, draft_id):
        target_dir = self._draft_media_dir(draft_id)
        if not target_dir.exists():
            return 0
        removed = 0
        for path in target_dir.iterdir():
            path.unlink()
            removed += 1
        target_dir.rmdir()
        return removed
