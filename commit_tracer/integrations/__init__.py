"""External-system integrations for commit-tracer.

This package provides the HiBob employee directory client, the cache that
keeps the whole directory in memory between refreshes, and the email
normalization used to match commit authors to employees.
"""

from .base import IntegrationClient
from .cache import DEFAULT_TTL, DirectoryCache
from .credentials import ConfigCredentialStore, CredentialStore, InMemoryCredentialStore
from .directory import DirectoryClient
from .models import (
    STALE_SENTINEL,
    CacheEntry,
    CommitRecord,
    DirectoryCacheState,
    EmployeeRecord,
    TicketInfo,
    TicketInfoSource,
    normalize_email_key,
    parse_timestamp,
    utc_now,
)
from .normalizer import EmailNormalizer

__all__ = [
    # Clients
    "IntegrationClient",
    "DirectoryClient",
    # Cache
    "DirectoryCache",
    "DEFAULT_TTL",
    "STALE_SENTINEL",
    # Credentials
    "CredentialStore",
    "ConfigCredentialStore",
    "InMemoryCredentialStore",
    "EmailNormalizer",
    # Models
    "EmployeeRecord",
    "CacheEntry",
    "DirectoryCacheState",
    "TicketInfo",
    "TicketInfoSource",
    "CommitRecord",
    # Utilities
    "normalize_email_key",
    "parse_timestamp",
    "utc_now",
]
