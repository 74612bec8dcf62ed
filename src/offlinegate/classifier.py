"""Request classification: which caching strategy serves a request."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from offlinegate.models.request import Category

if TYPE_CHECKING:
    from offlinegate.config import Settings
    from offlinegate.models.request import InterceptedRequest

STATIC_EXTENSIONS = (".html", ".css", ".js", ".json")
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".svg", ".ico")


def classify(url: str, *, origin: str, api_prefix: str = "/api/") -> Category:
    """Map a target URL to its category. First matching rule wins."""
    parts = urlsplit(url)
    path = parts.path or "/"
    lowered = path.lower()

    if path == "/" or lowered.endswith(STATIC_EXTENSIONS):
        return Category.STATIC
    if lowered.endswith(IMAGE_EXTENSIONS):
        return Category.IMAGE
    if path.startswith(api_prefix) or parts.hostname != urlsplit(origin).hostname:
        return Category.API
    return Category.DYNAMIC


def classify_request(request: InterceptedRequest, settings: Settings) -> Category:
    return classify(
        request.url,
        origin=settings.interceptor.origin,
        api_prefix=settings.interceptor.api_prefix,
    )
