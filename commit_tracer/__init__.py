"""commit-tracer - correlate Git commit authors with the HiBob employee directory

Keeps the whole directory in a file-backed cache, maps personal commit
addresses to corporate ones through a hot-reloaded JSON config, and
aggregates commits per author.
"""

__version__ = "0.1.0"
__description__ = "Correlate Git commit authors with the HiBob employee directory"

from .aggregation import AuthorStats, aggregate_by_author, extract_ticket_ids, is_test_file
from .cli import main as cli_main
from .config import ConfigStore, ConfigStoreRegistry, resolve_config_path
from .integrations import DirectoryCache, DirectoryClient, EmailNormalizer, EmployeeRecord

__all__ = [
    "ConfigStore",
    "ConfigStoreRegistry",
    "resolve_config_path",
    "DirectoryClient",
    "DirectoryCache",
    "EmailNormalizer",
    "EmployeeRecord",
    "AuthorStats",
    "aggregate_by_author",
    "extract_ticket_ids",
    "is_test_file",
    "cli_main",
]
