"""Scaffold projects from hosted repository templates without git history."""

from repo_scaffold.config.schema import CloneMode, CloneOptions, Settings
from repo_scaffold.core.cloner import Cloner, create_clone
from repo_scaffold.core.events import Event, EventEmitter
from repo_scaffold.core.reference import ResolvedCommit, SourceReference, parse
from repo_scaffold.errors import (
    CacheIOError,
    DestinationNotEmptyError,
    ExtractionError,
    FetchError,
    ParseError,
    RepoScaffoldError,
    ResolutionError,
    UnknownHostError,
)
from repo_scaffold.fetch.cache import CacheStore

__version__ = "0.1.0"

__all__ = [
    "CacheIOError",
    "CacheStore",
    "CloneMode",
    "CloneOptions",
    "Cloner",
    "DestinationNotEmptyError",
    "Event",
    "EventEmitter",
    "ExtractionError",
    "FetchError",
    "ParseError",
    "RepoScaffoldError",
    "ResolutionError",
    "ResolvedCommit",
    "Settings",
    "SourceReference",
    "UnknownHostError",
    "create_clone",
    "parse",
]
