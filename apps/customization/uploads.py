import logging
import mimetypes
import os
import re
import uuid

from django.conf import settings
from django.core.files.storage import default_storage

from apps.customization.exceptions import CustomizationValidationError, FileTooLarge, GatewayError, InvalidFileType

logger = logging.getLogger(__name__)

ALLOWED_DESIGN_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
        "image/tiff",
        "image/bmp",
        "application/pdf",
        "application/postscript",
        "image/vnd.adobe.photoshop",
    }
)

FILE_ID_PATTERN = re.compile(r"^[0-9a-f]{32}(\.[a-z0-9]{1,8})?$")
DESIGN_PREFIX = "designs"


def _extension_for(file, content_type):
    _, ext = os.path.splitext(getattr(file, "name", "") or "")
    ext = ext.lower()
    if re.fullmatch(r"\.[a-z0-9]{1,8}", ext):
        return ext
    guessed = mimetypes.guess_extension(content_type) or ""
    return guessed if re.fullmatch(r"\.[a-z0-9]{1,8}", guessed) else ""


class DesignUploadManager:
    def __init__(self, storage=None, max_bytes=None):
        self.storage = storage or default_storage
        self.max_bytes = max_bytes or settings.DESIGN_UPLOAD_MAX_BYTES

    def validate(self, file):
        content_type = (getattr(file, "content_type", "") or "").split(";")[0].strip().lower()
        if content_type not in ALLOWED_DESIGN_TYPES:
            raise InvalidFileType(f"Files of type '{content_type or 'unknown'}' cannot be used as designs.")
        if file.size > self.max_bytes:
            limit_mb = self.max_bytes // (1024 * 1024)
            raise FileTooLarge(f"Design files must be {limit_mb} MB or smaller.")
        return content_type

    def _path(self, owner, file_id):
        return f"{DESIGN_PREFIX}/{owner.pk}/{file_id}"

    def upload(self, file, *, owner):
        content_type = self.validate(file)
        file_id = f"{uuid.uuid4().hex}{_extension_for(file, content_type)}"
        try:
            saved_name = self.storage.save(self._path(owner, file_id), file)
            url = self.storage.url(saved_name)
        except Exception as exc:
            logger.error("Design upload failed for user %s: %s", owner.pk, exc)
            raise GatewayError() from exc

        file_id = saved_name.rsplit("/", 1)[-1]
        logger.info("Stored design %s for user %s (%s bytes)", file_id, owner.pk, file.size)
        return {
            "url": url,
            "file_id": file_id,
            "content_type": content_type,
            "size": file.size,
        }

    def delete(self, file_id, *, owner):
        if not file_id or not FILE_ID_PATTERN.match(file_id):
            raise CustomizationValidationError("file_id", "Invalid design file id.")
        path = self._path(owner, file_id)
        try:
            existed = self.storage.exists(path)
            if existed:
                self.storage.delete(path)
        except Exception as exc:
            logger.error("Design delete failed for user %s file %s: %s", owner.pk, file_id, exc)
            raise GatewayError() from exc
        return existed
