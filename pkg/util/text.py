import re
from typing import Union

# "[Name]: " / "[Name]："
_BRACKET_PREFIX = re.compile(r"^\[[^\]]+\][:：]\s*")
# "Name: " made only of letters or CJK; digits never match so "12:30" survives
_NAME_PREFIX = re.compile(r"^[a-zA-Z\u4e00-\u9fa5]+[:：]\s*")


def decode_message(message: Union[str, bytes, bytearray]) -> str:
    """Decode a raw WebSocket frame into text."""
    if isinstance(message, str):
        return message
    return bytes(message).decode("utf-8", errors="replace")


def clean_ai_response(text: str) -> str:
    """
    Strip self-attribution prefixes a model may echo back: every leading
    "[Name]:" tag, then at most one bare "Name:" prefix.
    """
    cleaned = (text or "").strip()
    while True:
        untagged = _BRACKET_PREFIX.sub("", cleaned, count=1).strip()
        if untagged == cleaned:
            break
        cleaned = untagged
    return _NAME_PREFIX.sub("", cleaned, count=1).strip()


def truncate(text: str, limit: int = 300) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
