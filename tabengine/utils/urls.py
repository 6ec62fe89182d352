"""URL canonicalization shared by favorites and session analytics."""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

from tabengine.errors import InvalidArgumentError

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


def normalize_url(url: str) -> str:
    """Return the canonical join key for ``url``.

    Scheme and host are lowercased, default ports are dropped and a bare ``/``
    path collapses to nothing, so ``HTTPS://A.com:443/`` and ``https://a.com``
    address the same record. Path, query and fragment are kept verbatim.
    Strings without a scheme/host (``about:blank``, ``chrome://newtab``)
    are only stripped of surrounding whitespace.
    """

    if not isinstance(url, str) or not url.strip():
        raise InvalidArgumentError("URL must be a non-empty string")

    candidate = url.strip()
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return candidate

    if not parts.scheme or not parts.netloc:
        return candidate

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    try:
        port = parts.port
    except ValueError:
        return candidate

    netloc = host
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"
    if parts.username is not None:
        credentials = parts.username
        if parts.password is not None:
            credentials = f"{credentials}:{parts.password}"
        netloc = f"{credentials}@{netloc}"

    path = "" if parts.path == "/" else parts.path
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))
