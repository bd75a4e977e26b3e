from typing import Dict, Iterable, Optional
from urllib.parse import urlsplit

import structlog

logger = structlog.get_logger(__name__)

ALLOWED_METHODS = "GET, OPTIONS"
ALLOWED_HEADERS = "Content-Type"


class CorsGate:
    """
    Decides whether a request origin may read responses.

    An origin passes when it matches the allowlist exactly, or, in
    development, when its host is exactly the configured development host
    (any port, http or https). A rejected origin gets no CORS headers at all;
    the browser then blocks the response on its side.
    """

    def __init__(
        self,
        allowed_origins: Iterable[str],
        dev_host: Optional[str] = None,
        development: bool = False,
        preflight_max_age: int = 86400,
    ):
        self.allowed_origins = {o.rstrip("/") for o in allowed_origins}
        self.dev_host = dev_host
        self.development = development
        self.preflight_max_age = preflight_max_age

    def _matches_dev_host(self, origin: str) -> bool:
        if not (self.development and self.dev_host):
            return False
        try:
            parts = urlsplit(origin)
            hostname, _ = parts.hostname, parts.port
        except ValueError:
            return False
        return parts.scheme in ("http", "https") and hostname == self.dev_host and not parts.path

    def allowed_origin(self, origin: Optional[str]) -> Optional[str]:
        """Return the origin to echo back, or None when it is not allowed."""
        if not origin:
            return None
        if origin in self.allowed_origins or self._matches_dev_host(origin):
            return origin
        logger.info("cors_origin_rejected", origin=origin)
        return None

    def response_headers(self, origin: Optional[str], preflight: bool = False) -> Dict[str, str]:
        allowed = self.allowed_origin(origin)
        if allowed is None:
            return {}
        headers = {
            "Access-Control-Allow-Origin": allowed,
            "Vary": "Origin",
        }
        if preflight:
            headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
            headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
            headers["Access-Control-Max-Age"] = str(self.preflight_max_age)
        return headers
