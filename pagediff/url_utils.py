"""Shared URL utilities — resolve page paths, derive routes and session names."""

from __future__ import annotations

import re
from urllib.parse import urlparse


def route_from_url(url: str) -> str:
    """Return the URL path, or the raw string when it is not an absolute URL."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return url
    return parsed.path or "/"


def resolve_url(base_url: str, path: str) -> str:
    """Join a page path onto ``base_url``; absolute http(s) URLs pass through."""
    if path.startswith(("http://", "https://")):
        return path
    return f"{base_url.rstrip('/')}{path if path.startswith('/') else '/' + path}"


def session_name_from_path(path: str) -> str:
    """Derive a filesystem-friendly session name ("/blog/post" -> "blog-post")."""
    if path.startswith(("http://", "https://")):
        path = urlparse(path).path
    name = re.sub(r"^/+", "", path).replace("/", "-")
    name = re.sub(r"[^a-zA-Z0-9_-]", "", name)
    return name or "homepage"
