"""CORS headers for the chat widget's browser requests.

Allowed origins may contain `*` wildcards for one host label run, e.g.
`https://*.vercel.app` for preview deployments. In development every
origin is allowed.
"""

import re

from chatgate.config.settings import Settings

ALLOW_METHODS = "POST, OPTIONS, GET"
ALLOW_HEADERS = "Content-Type, Authorization"


def _pattern_to_regex(pattern: str) -> re.Pattern:
    return re.compile("^" + re.escape(pattern).replace(r"\*", r"[^/]+") + "$", re.I)


def is_allowed_origin(origin: str, allowed: list[str]) -> bool:
    if not origin:
        return False
    return any(_pattern_to_regex(p).match(origin) for p in allowed)


def cors_headers(origin: str, settings: Settings) -> dict[str, str]:
    """Echo an allowed origin; otherwise pin to the first configured one."""
    allowed = settings.allowed_origins_list

    if origin and (settings.is_development or is_allowed_origin(origin, allowed)):
        allow_origin = origin
    else:
        allow_origin = allowed[0] if allowed else "*"

    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": ALLOW_METHODS,
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
        "Vary": "Origin",
    }
