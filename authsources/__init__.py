"""
authsources

Pluggable login source registry: LDAP, SMTP, PAM and GitHub backends
stored in a database or in local configuration files, with a single
credential verification entry point and optional auto-registration.
"""

__version__ = "0.1.0"

from .auth.authenticator import Authenticator
from .auth.users import PeeweeUserStore, UserRecord, UserStore
from .core.cache import LocalSourceCache
from .core.configs import GitHubConfig, LDAPConfig, PAMConfig, SMTPConfig, config_class_for
from .core.models import AuthSource, LoginType, Origin, SecurityProtocol
from .core.registry import SourceRegistry
from .core.store import DatabaseSourceProvider
from .utils.config import config


def bootstrap(database_url=None, sources_dir=None):
    """
    Startup wiring: connect the database, load file sources once, and
    return (registry, authenticator).

    Raises:
        SourceLoadError: A source file is broken (fatal by design)
    """
    from playhouse.db_url import connect

    from .utils.logging import setup_logging

    logger = setup_logging()
    db = connect(database_url or config.DATABASE_URL)
    users = PeeweeUserStore(db)
    local_sources = LocalSourceCache()
    local_sources.load(sources_dir or config.SOURCES_DIR, config.SOURCE_SUFFIX)

    registry = SourceRegistry(DatabaseSourceProvider(db), local_sources, users)
    logger.info(f"Login sources ready: {registry.count()} ({len(local_sources)} from files)")
    return registry, Authenticator(users, registry)


__all__ = [
    "__version__",
    "AuthSource",
    "Authenticator",
    "DatabaseSourceProvider",
    "GitHubConfig",
    "LDAPConfig",
    "LocalSourceCache",
    "LoginType",
    "Origin",
    "PAMConfig",
    "PeeweeUserStore",
    "SMTPConfig",
    "SecurityProtocol",
    "SourceRegistry",
    "UserRecord",
    "UserStore",
    "bootstrap",
    "config",
    "config_class_for",
]
