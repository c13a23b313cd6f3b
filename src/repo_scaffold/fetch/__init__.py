"""Repository fetching: host adapters, cache, extraction and git transport."""

from repo_scaffold.fetch.cache import CacheStore
from repo_scaffold.fetch.git import GitTransport
from repo_scaffold.fetch.hosts import ADAPTERS, get_adapter
from repo_scaffold.fetch.protocols import HostAdapter

__all__ = ["ADAPTERS", "CacheStore", "GitTransport", "HostAdapter", "get_adapter"]
