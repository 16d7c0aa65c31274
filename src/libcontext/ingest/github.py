"""GitHub URL helpers: library ids and blob links for ingested files."""

from __future__ import annotations

import re
from collections.abc import Callable

from libcontext.errors import InvalidLibraryIdError

_SSH_PREFIX = "git@github.com:"
_REPO_RE = re.compile(r"github\.com/([^/\s]+/[^/\s#?]+)")


def build_library_id(repo_url: str) -> str:
    """Derive ``/org/project`` from a GitHub HTTPS or SSH URL.

    Raises:
        InvalidLibraryIdError: If *repo_url* is not a GitHub repository URL.
    """
    normalized = repo_url.strip()
    if normalized.startswith(_SSH_PREFIX):
        normalized = "https://github.com/" + normalized[len(_SSH_PREFIX):]
    normalized = re.sub(r"\.git/?$", "", normalized).rstrip("/")

    match = _REPO_RE.search(normalized)
    if not match:
        raise InvalidLibraryIdError(f"Invalid GitHub URL: {repo_url}")
    return f"/{match.group(1)}"


def build_source_url(repo_url: str, path: str, ref: str = "main") -> str:
    """Blob URL of *path* at *ref* in the GitHub repository *repo_url*."""
    library_id = build_library_id(repo_url)
    return f"https://github.com{library_id}/blob/{ref}/{path.lstrip('/')}"


def github_source_url_builder(repo_url: str, version: str) -> Callable[[str], str] | None:
    """Return a path → URL builder for *repo_url*, or None if it is not on GitHub.

    The ``latest`` version links to the ``main`` branch.
    """
    try:
        build_library_id(repo_url)
    except InvalidLibraryIdError:
        return None
    ref = "main" if version == "latest" else version
    return lambda path: build_source_url(repo_url, path, ref)
