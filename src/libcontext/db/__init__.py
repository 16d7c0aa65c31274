"""libcontext index store."""

from libcontext.db.connection import Database
from libcontext.db.migrations import MIGRATIONS, run_migrations
from libcontext.db.models import Library, Snippet
from libcontext.db.repository import Repository
from libcontext.db.schema import initialize

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "Library",
    "Snippet",
    "Repository",
]
