"""
Media Service for BeginAI Platform
Promotes locally staged lesson media (blob: references) to Firebase Storage
"""

from urllib.parse import quote
import logging
import mimetypes
import uuid

from services.content_blocks import iter_blocks, media_field, media_folder
from services.draft_buffer import LOCAL_MEDIA_SCHEME
from utils.error_handler import NotFoundError, ExternalServiceError

logger = logging.getLogger(__name__)

DOWNLOAD_URL_TEMPLATE = 'https://firebasestorage.googleapis.com/v0/b/{bucket}/o/{path}?alt=media&token={token}'


def is_local_media_url(url):
    return isinstance(url, str) and url.startswith(LOCAL_MEDIA_SCHEME)


class MediaService:
    def __init__(self, bucket, draft_buffer):
        self.bucket = bucket
        self.draft_buffer = draft_buffer

    def upload_local_media(self, draft_id, url, block_type):
        """
        Upload a staged file to lessons/{draft_id}/{folder}/ and return its download URL
        """
        local_path = self.draft_buffer.resolve_media(url)
        if local_path is None:
            raise NotFoundError(f"Staged media not found for {url}")

        storage_path = f"lessons/{draft_id}/{media_folder(block_type)}/{local_path.name}"
        content_type = mimetypes.guess_type(local_path.name)[0] or 'application/octet-stream'
        token = str(uuid.uuid4())

        try:
            blob = self.bucket.blob(storage_path)
            blob.metadata = {'firebaseStorageDownloadTokens': token}
            blob.upload_from_filename(str(local_path), content_type=content_type)
        except Exception as e:
            logger.error(f"Error uploading {storage_path}: {str(e)}")
            raise ExternalServiceError(f"Failed to upload media: {str(e)}", service_name='storage')

        logger.info(f"Uploaded lesson media to {storage_path}")
        return DOWNLOAD_URL_TEMPLATE.format(
            bucket=self.bucket.name,
            path=quote(storage_path, safe=''),
            token=token
        )

    def rewrite_local_media(self, draft_id, content_versions):
        """
        Replace every blob: media URL in both tiers with a durable Storage URL.
        Sequential and best effort: files uploaded before a failure stay in Storage.
        """
        uploaded = []
        for tier, page_index, block in iter_blocks(content_versions):
            field = media_field(block)
            if not field:
                continue

            content = block.get('content') or {}
            url = content.get(field)
            if not is_local_media_url(url):
                continue

            content[field] = self.upload_local_media(draft_id, url, block['type'])
            uploaded.append({
                'tier': tier,
                'page': page_index,
                'blockId': block.get('id'),
                'url': content[field]
            })

        return uploaded
