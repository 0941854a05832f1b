import base64
import binascii
import mimetypes
import re
import time
import unicodedata
from pathlib import PurePosixPath

from intake.workflow.exceptions import AttachmentDecodeError

FINANCIAL_EXTENSIONS = frozenset({".pdf", ".jpg", ".jpeg", ".png", ".xlsx", ".xls", ".csv"})
FINANCIAL_CONTENT_TYPES = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/png",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/csv",
    }
)
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_DATA_URI_MARKER = "base64,"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def decode_attachment_content(
    content: bytes | bytearray | str | None,
    content_base64: str | None = None,
) -> bytes:
    """Normalize raw bytes, base64 strings and data URIs to bytes.

    Raises:
        AttachmentDecodeError: if there is no content or it is not valid base64.
    """
    if isinstance(content, (bytes, bytearray)):
        if not content:
            raise AttachmentDecodeError("Attachment content is empty")
        return bytes(content)

    encoded = content or content_base64
    if not encoded:
        raise AttachmentDecodeError("Attachment has no content")

    if _DATA_URI_MARKER in encoded:
        encoded = encoded[encoded.index(_DATA_URI_MARKER) + len(_DATA_URI_MARKER):]
    encoded = "".join(encoded.split())
    try:
        decoded = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AttachmentDecodeError(f"Attachment content is not valid base64: {exc}") from exc
    if not decoded:
        raise AttachmentDecodeError("Attachment content is empty")
    return decoded


def sanitize_filename(filename: str | None, fallback_prefix: str = "attachment") -> str:
    """Strip directories and replace anything outside [A-Za-z0-9._-] with '_'."""
    fallback = f"{fallback_prefix}-{int(time.time() * 1000)}"
    if not filename:
        return fallback
    basename = PurePosixPath(filename.replace("\\", "/")).name
    if not basename or basename in {".", ".."}:
        return fallback
    ascii_name = unicodedata.normalize("NFKD", basename).encode("ascii", "ignore").decode("ascii")
    return _UNSAFE_FILENAME_CHARS.sub("_", ascii_name) or fallback


def file_extension(filename: str) -> str:
    dot = filename.rfind(".")
    return filename[dot:].lower() if dot != -1 else ""


def resolve_content_type(filename: str, content_type: str | None) -> str:
    """Use the declared content type, else guess from the extension."""
    if content_type:
        return content_type.lower()
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or DEFAULT_CONTENT_TYPE


def is_financial_document(filename: str, content_type: str | None) -> bool:
    """True when the extension or content type is one we process."""
    return (
        file_extension(filename) in FINANCIAL_EXTENSIONS
        or (content_type or "").lower() in FINANCIAL_CONTENT_TYPES
    )
