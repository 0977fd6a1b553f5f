from email.message import Message
from enum import Enum

DEFAULT_CONTENT_TYPE = "application/octet-stream"
SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


class RenderMode(str, Enum):
    EMBEDDED_FRAME = "embedded_frame"
    LITERAL_TEXT = "literal_text"
    DOWNLOAD_FALLBACK = "download_fallback"


def _header(name: str, value: str) -> Message:
    msg = Message()
    msg[name] = value
    return msg


def parse_content_type(header: str | None) -> tuple[str, str | None]:
    """Split a Content-Type header into (media type, charset)."""
    if not header or not header.strip():
        return DEFAULT_CONTENT_TYPE, None
    msg = _header("content-type", header)
    media_type = msg.get_content_type()
    # email falls back to text/plain for garbage, which would render it as text
    if "/" not in header.split(";", 1)[0]:
        media_type = DEFAULT_CONTENT_TYPE
    return media_type, msg.get_content_charset()


def filename_from_disposition(header: str | None) -> str | None:
    if not header:
        return None
    filename = _header("content-disposition", header).get_filename()
    if not filename or not filename.strip():
        return None
    return filename.strip()


def is_displayable(content_type: str) -> bool:
    return select_render_mode(content_type) is not RenderMode.DOWNLOAD_FALLBACK


def select_render_mode(content_type: str) -> RenderMode:
    media_type, _ = parse_content_type(content_type)
    if media_type.startswith("image/") or media_type == "application/pdf":
        return RenderMode.EMBEDDED_FRAME
    if media_type == "text/plain":
        return RenderMode.LITERAL_TEXT
    return RenderMode.DOWNLOAD_FALLBACK


def decode_text(payload: bytes, charset: str | None) -> str:
    try:
        return payload.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def format_file_size(size: int | None) -> str:
    if not size or size <= 0:
        return "0 B"
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(SIZE_UNITS) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {SIZE_UNITS[exponent]}"


def format_file_type(content_type: str | None) -> str:
    if not content_type:
        return "FILE"
    return content_type.split("/")[-1].upper()
