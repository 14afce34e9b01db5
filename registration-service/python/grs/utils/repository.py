"""
Repository URL handling: validation, normalization and fingerprinting.

The fingerprint is the first 8 hex characters of the SHA-256 of the normalized
URL. It is stored as a label on the tenant namespace and the AppProject so that
conflicting registrations can be found with a label selector.
"""

import hashlib
import re
from urllib.parse import SplitResult, urlsplit, urlunsplit

from grs.utils.naming import sanitize_label_value

FINGERPRINT_LENGTH = 8

_ALLOWED_SCHEMES = ("https", "http", "ssh", "git")

# Schemes where a user part in the URL is a secret (token or password)
_HTTP_SCHEMES = ("https", "http")

# scp-like syntax: git@github.com:org/repo.git
_SCP_LIKE = re.compile(r"^(?P<user>[A-Za-z0-9._-]+)@(?P<host>[A-Za-z0-9.-]+):(?P<path>[^/].*)$")


def _split(url: str) -> SplitResult | None:
    try:
        parts = urlsplit(url)
        # the port is parsed lazily and raises on a non-numeric value
        _ = parts.port
    except ValueError:
        return None
    return parts


def validate_repository_url(url: str) -> str | None:
    """
    Check that a repository URL is syntactically usable as a GitOps source.

    HTTP(S) URLs must not carry a user or password; access credentials belong
    in ``repository.credentials`` and never end up in labels, annotations or
    the AppProject.

    Args:
        url: The repository URL from the request

    Returns:
        None if the URL is valid, otherwise a human readable reason
    """
    url = (url or "").strip()
    if not url:
        return "repository URL is required"
    if any(c.isspace() for c in url):
        return "repository URL must not contain whitespace"

    if _SCP_LIKE.match(url):
        return None

    parts = _split(url)
    if parts is None:
        return "repository URL is malformed"
    scheme = parts.scheme.lower()
    if scheme not in _ALLOWED_SCHEMES:
        return f"repository URL scheme must be one of {', '.join(_ALLOWED_SCHEMES)}"
    if not parts.hostname:
        return "repository URL must include a host"
    if parts.password is not None or (scheme in _HTTP_SCHEMES and parts.username is not None):
        return "repository URL must not embed credentials, use repository.credentials instead"
    if not parts.path.strip("/"):
        return "repository URL must include a repository path"
    return None


def normalize_repository_url(url: str) -> str:
    """
    Normalize a repository URL so that equivalent spellings fingerprint the same.

    Surrounding whitespace, a trailing slash, a trailing ``.git`` and any user
    or password are removed, and the scheme and host are lowercased. The port
    is kept. The path keeps its case because Git servers may treat it case
    sensitively.

    Example:
        normalize_repository_url("HTTPS://GitHub.com/Org/Repo.git/") -> "https://github.com/Org/Repo"

    Raises:
        ValueError: If the URL cannot be parsed; validate it first
    """
    url = url.strip()

    match = _SCP_LIKE.match(url)
    if match:
        path = _strip_suffixes(match.group("path"))
        return f"{match.group('user')}@{match.group('host').lower()}:{path}"

    parts = urlsplit(url)
    netloc = parts.netloc.rpartition("@")[2].lower()
    return urlunsplit((parts.scheme.lower(), netloc, _strip_suffixes(parts.path), parts.query, ""))


def _strip_suffixes(path: str) -> str:
    path = path.rstrip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    return path.rstrip("/")


def repository_fingerprint(url: str) -> str:
    """
    Compute the stable short fingerprint of a repository URL.

    Args:
        url: The repository URL, normalized before hashing

    Returns:
        8 lowercase hex characters
    """
    digest = hashlib.sha256(normalize_repository_url(url).encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_LENGTH]


def repository_domain(url: str) -> str:
    """
    Host part of a repository URL, sanitized for use as a label value.

    Example:
        repository_domain("https://github.com/org/repo") -> "github.com"
    """
    url = url.strip()
    match = _SCP_LIKE.match(url)
    if match:
        host = match.group("host")
    else:
        parts = _split(url)
        host = (parts.hostname if parts else None) or ""
    return sanitize_label_value(host.lower())
