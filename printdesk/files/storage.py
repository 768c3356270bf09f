"""File storage with organization-scoped isolation."""

import logging
import os
import uuid

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.utils import secure_filename

from printdesk.errors import NotFound, StorageError

logger = logging.getLogger(__name__)


class FileStorage:
    """
    Stores uploaded print artifacts under organization-scoped directories.

    - Each organization has an isolated directory
    - Files stored with UUID-based names to prevent conflicts
    - Keys are relative to the storage root and never built from raw
      client input

    Storage structure:
        storage/
        └── organizations/
            ├── 1/
            │   ├── abc123.pdf
            │   └── def456.jpg
            └── 2/
                └── ghi789.docx
    """

    URL_SALT = 'printdesk.file-url'

    def __init__(self, root, secret_key, url_max_age=3600):
        self.root = os.path.abspath(root)
        self.url_max_age = url_max_age
        self._serializer = URLSafeTimedSerializer(secret_key, salt=self.URL_SALT)

    def get_organization_dir(self, organization_id):
        return os.path.join(self.root, 'organizations', str(organization_id))

    def ensure_organization_dir(self, organization_id):
        org_dir = self.get_organization_dir(organization_id)
        os.makedirs(org_dir, exist_ok=True)
        return org_dir

    @staticmethod
    def generate_unique_filename(original_filename):
        """
        Generate unique filename preserving extension.

        Args:
            original_filename: Original filename from user

        Returns:
            str: Unique secure filename
        """
        ext = os.path.splitext(original_filename)[1].lower()
        return secure_filename(f"{uuid.uuid4().hex}{ext}")

    def save_file(self, upload, organization_id):
        """
        Save an uploaded file to the organization's directory.

        Args:
            upload: Werkzeug FileStorage object
            organization_id: Organization ID

        Returns:
            str: Storage key (path relative to the storage root)

        Raises:
            StorageError: If the file cannot be written
        """
        filename = self.generate_unique_filename(upload.filename or '')
        absolute_path = None
        try:
            absolute_path = os.path.join(self.ensure_organization_dir(organization_id), filename)
            upload.save(absolute_path)
        except OSError as e:
            logger.error(f"Failed to store upload for org {organization_id}: {e}")
            # Do not leave a half-written file behind
            if absolute_path and os.path.exists(absolute_path):
                os.remove(absolute_path)
            raise StorageError(str(e)) from e

        return '/'.join(['organizations', str(organization_id), filename])

    def get_file_path(self, key):
        """
        Convert a storage key to an absolute path inside the storage root.

        Raises:
            NotFound: If the key escapes the storage root
        """
        absolute_path = os.path.abspath(os.path.join(self.root, key))
        if os.path.commonpath([self.root, absolute_path]) != self.root:
            raise NotFound(f"Storage key outside root: {key}")
        return absolute_path

    def exists(self, key):
        return os.path.isfile(self.get_file_path(key))

    def delete_file(self, key):
        """
        Delete file from storage.

        Returns:
            bool: True if file was deleted, False if not found

        Raises:
            StorageError: If the file exists but cannot be removed
        """
        absolute_path = self.get_file_path(key)
        if not os.path.exists(absolute_path):
            return False
        try:
            os.remove(absolute_path)
        except OSError as e:
            raise StorageError(str(e)) from e
        return True

    def issue_token(self, key):
        """Signed, expiring token granting read access to one stored file."""
        return self._serializer.dumps({'key': key})

    def resolve_token(self, token):
        """
        Return the storage key behind a token from issue_token().

        Raises:
            NotFound: If the token is forged or expired
        """
        try:
            payload = self._serializer.loads(token, max_age=self.url_max_age)
        except SignatureExpired as e:
            raise NotFound("File URL expired") from e
        except BadSignature as e:
            raise NotFound("File URL signature invalid") from e
        return payload['key']
