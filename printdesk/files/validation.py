"""Upload validation rules for print artifacts."""

import mimetypes
import os

from printdesk.errors import ValidationError

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

ALLOWED_EXTENSIONS = {
    'pdf', 'doc', 'docx', 'ppt', 'pptx', 'xls', 'xlsx', 'csv',
    'txt', 'md', 'rtf', 'odt',
    'jpg', 'jpeg', 'png', 'webp', 'svg',
}

# Rejected even when the client claims an allowed MIME type
BLOCKED_EXTENSIONS = {'zip', 'rar', '7z', 'exe', 'sh', 'mp4', 'mp3', 'gif', 'wav', 'mov', 'avi'}


def file_extension(filename):
    return os.path.splitext(filename or '')[1].lstrip('.').lower()


def measure(upload):
    """Size of an uploaded stream in bytes, leaving it rewound."""
    stream = upload.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def validate_upload(upload, max_size=MAX_FILE_SIZE):
    """
    Check an uploaded artifact before it is stored.

    Returns:
        tuple: (size_bytes, mimetype)

    Raises:
        ValidationError: Missing, empty, oversized or disallowed file
    """
    if upload is None or not upload.filename:
        raise ValidationError('File is required')

    ext = file_extension(upload.filename)
    if ext in BLOCKED_EXTENSIONS:
        raise ValidationError('File type not allowed. No archives, video, audio or GIF.')
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f'File type not allowed. Allowed types: {", ".join(sorted(ALLOWED_EXTENSIONS))}'
        )

    size = measure(upload)
    if size == 0:
        raise ValidationError('File is empty')
    if size > max_size:
        raise ValidationError(f'File too large. Maximum size: {max_size // (1024 * 1024)}MB')

    mimetype = upload.mimetype
    if not mimetype or mimetype == 'application/octet-stream':
        mimetype = mimetypes.guess_type(upload.filename)[0] or 'application/octet-stream'

    return size, mimetype
