"""Chat request failures and their user-facing messages."""

from enum import Enum

from chatgate.gating.ratelimit import RateLimitResult
from chatgate.providers.base import UpstreamReason


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_TIMEOUT = "upstream_timeout"
    UPSTREAM_ERROR = "upstream_error"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPSTREAM_TIMEOUT: 504,
    ErrorKind.UPSTREAM_ERROR: 500,
}

_KIND_MESSAGES = {
    ErrorKind.INVALID_INPUT: "Invalid request body. Message must be a non-empty string.",
    ErrorKind.RATE_LIMITED: "Too many requests. Please wait a moment and try again.",
    ErrorKind.UPSTREAM_TIMEOUT: "The AI service took too long to respond. Please try again.",
}

_REASON_MESSAGES = {
    UpstreamReason.AUTH: "Oops! Having trouble connecting to the AI service. Please try again later.",
    UpstreamReason.QUOTA: "I'm getting too many requests right now. Please give me a moment and try again!",
    UpstreamReason.BLOCKED: "I can't respond to that request, but I'm happy to help with other questions!",
}

GENERIC_MESSAGE = "Sorry, I ran into an issue. Could you try asking again?"


def user_message(kind: ErrorKind, reason: UpstreamReason | None = None) -> str:
    if kind in _KIND_MESSAGES:
        return _KIND_MESSAGES[kind]
    return _REASON_MESSAGES.get(reason, GENERIC_MESSAGE)


class ChatError(Exception):
    """A request ended in the Failed state.

    `user_message` is safe to return to the browser; `detail` carries the
    real cause and is only exposed in development.
    """

    def __init__(
        self,
        kind: ErrorKind,
        detail: str = "",
        reason: UpstreamReason | None = None,
        rate_limit: RateLimitResult | None = None,
    ):
        self.kind = kind
        self.reason = reason
        self.detail = detail
        self.rate_limit = rate_limit
        self.user_message = user_message(kind, reason)
        super().__init__(detail or self.user_message)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]
