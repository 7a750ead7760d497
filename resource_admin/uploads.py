"""
Local filesystem storage for file and image fields
"""

import logging
import os
import uuid

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)


class UploadStore:
    """Writes uploads into one shared directory under collision-free names"""

    def __init__(self, upload_dir, url_prefix='/admin/uploads'):
        self.upload_dir = upload_dir
        self.url_prefix = url_prefix.rstrip('/')

    def generate_name(self, original_filename):
        """Random name that keeps the original extension"""
        _, ext = os.path.splitext(secure_filename(original_filename or ''))
        return f'{uuid.uuid4().hex}{ext.lower()}'

    def save(self, file_storage):
        """Store a werkzeug FileStorage and return its public reference path, or None when nothing was uploaded"""
        if file_storage is None or not file_storage.filename:
            return None
        os.makedirs(self.upload_dir, exist_ok=True)
        name = self.generate_name(file_storage.filename)
        file_storage.save(os.path.join(self.upload_dir, name))
        logger.info('Stored upload %s as %s', file_storage.filename, name)
        return f'{self.url_prefix}/{name}'
