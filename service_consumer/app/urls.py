"""
Absolute URLs of the Consumer's own endpoints.

Endpoints are served at the root of the consumer URL's origin: any path
on the consumer URL itself is not part of them.
"""

from typing import Dict, Optional
from urllib.parse import urlsplit, urlunsplit, urlencode, quote

from shared.config import BaseConfig


def _origin_url(consumer_url: str, path: str, query: Optional[Dict[str, str]] = None) -> str:
    parts = urlsplit(consumer_url)
    query_string = urlencode({k: v for k, v in (query or {}).items() if v is not None})
    return urlunsplit((parts.scheme, parts.netloc, path, query_string, ""))


def access_token_url(config: BaseConfig) -> str:
    """Audience Tools must use in client assertions."""
    return _origin_url(config.consumer_url, config.accesstoken_route)


def deep_linking_return_url(config: BaseConfig, context_id: Optional[str], dl_state: Optional[str]) -> str:
    return _origin_url(
        config.consumer_url,
        config.deep_linking_route,
        {"contextId": context_id, "dlState": dl_state},
    )


def memberships_url(config: BaseConfig, context_id: str) -> str:
    return _origin_url(config.consumer_url, f"{config.memberships_route}/{quote(str(context_id), safe='')}")
