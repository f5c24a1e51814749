"""MIME type detection and file reading for attachments."""

import mimetypes
from pathlib import Path

from bugzilla_client.core.exceptions import PreconditionError

DEFAULT_BINARY_TYPE = "application/octet-stream"
DEFAULT_TEXT_TYPE = "text/plain"

# Bytes sampled when sniffing content without a known extension
_SNIFF_LENGTH = 1024


def _looks_like_text(data: bytes) -> bool:
    sample = data[:_SNIFF_LENGTH]
    if b"\x00" in sample:
        return False
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte character cut by the sample boundary is still text
        return e.start >= len(sample) - 3
    return True


def guess_mime_type(data: bytes, filename: str) -> str:
    """Guess the MIME type of attachment data.

    The file extension decides when it is known; otherwise the content is
    sniffed for text.

    Args:
        data: The attachment content.
        filename: The attachment's file name.

    Returns:
        str: The guessed MIME type.
    """
    mime_type, _ = mimetypes.guess_type(filename, strict=False)
    if mime_type:
        return mime_type
    if data and _looks_like_text(data):
        return DEFAULT_TEXT_TYPE
    return DEFAULT_BINARY_TYPE


def read_attachment(path: str | Path) -> tuple[bytes, str]:
    """Read a file for upload as an attachment.

    Args:
        path: Path of the file.

    Returns:
        tuple[bytes, str]: The file content and its base name.

    Raises:
        PreconditionError: If the path does not point to a readable file.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise PreconditionError("path", f"not an existing file: {file_path}")
    try:
        return file_path.read_bytes(), file_path.name
    except OSError as e:
        raise PreconditionError("path", f"cannot read {file_path}: {e}") from e
