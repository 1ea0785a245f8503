"""Outbound frame formatting and WebSocket close codes."""

from typing import Optional

CLOSE_GOING_AWAY = 1001
CLOSE_POLICY_VIOLATION = 1008
CLOSE_SERVER_ERROR = 1011

CLOSE_REASONS = {
    1000: "normal closure",
    1001: "going away (e.g. page closed)",
    1002: "protocol error",
    1003: "unsupported data",
    1005: "no status (client disconnected)",
    1006: "abnormal closure (network problem)",
    1008: "policy violation",
    1009: "message too big",
    1011: "server error",
}


def describe_close(code: int, reason: Optional[str] = None) -> str:
    if reason:
        return f"code: {code}, reason: {reason}"
    return CLOSE_REASONS.get(code, f"unknown close code: {code}")


def chat_line(sender: str, content: str) -> str:
    return f"[{sender}]: {content}"


def notice(content: str) -> str:
    """Validation, rate-limit and command answers."""
    return chat_line("System Notice", content)


def error_notice(content: str) -> str:
    return chat_line("System", content)


def notification(content: str) -> str:
    """Room-wide lifecycle events (join/leave)."""
    return chat_line("System Notification", content)


def refusal(reason: str) -> str:
    return chat_line("Connection Refused", reason)
