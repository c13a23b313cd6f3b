"""Core clone pipeline, specifier parsing and events."""

from repo_scaffold.core.cloner import Cloner, create_clone
from repo_scaffold.core.events import Event, EventEmitter
from repo_scaffold.core.reference import (
    ResolvedCommit,
    SourceReference,
    is_full_hash,
    parse,
)

__all__ = [
    "Cloner",
    "Event",
    "EventEmitter",
    "ResolvedCommit",
    "SourceReference",
    "create_clone",
    "is_full_hash",
    "parse",
]
