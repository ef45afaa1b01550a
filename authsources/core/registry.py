"""
Source Registry - One Catalog over Two Storages

Composes the database provider and the local (file) source cache into a
single view. Reads concatenate both; writes are routed on source.origin.

The registry owns the catalog invariants:
- names are unique across database and file sources
- at most one source is default (default-reset protocol)
- a source referenced by users cannot be deleted
"""

import logging
from typing import Dict, List, Optional

from authsources.auth.users import UserStore
from authsources.core.cache import LocalSourceCache
from authsources.core.configs import ensure_config_type
from authsources.core.models import AuthSource, Origin
from authsources.core.store import DatabaseSourceProvider
from authsources.errors import (
    AlreadyExists,
    InUse,
    NotFound,
    PersistenceFailure,
    SourceNotDeletable,
)
from authsources.utils.audit import log_default_source_changed, log_source_changed

logger = logging.getLogger(__name__)


class SourceRegistry:
    """
    Facade over database-backed and file-backed login sources.

    Args:
        database: DatabaseSourceProvider for rows in 'login_source'
        local_sources: Loaded LocalSourceCache
        users: User-persistence collaborator (for the in-use check)
        mirror_default_config: When a source becomes default, also write its
            config into the [config] section of every other file source
    """

    def __init__(
        self,
        database: DatabaseSourceProvider,
        local_sources: LocalSourceCache,
        users: UserStore,
        mirror_default_config: Optional[bool] = None,
    ):
        self.database = database
        self.local_sources = local_sources
        self.users = users

        if mirror_default_config is None:
            from authsources.utils.config import config

            mirror_default_config = config.MIRROR_DEFAULT_CONFIG
        self.mirror_default_config = mirror_default_config

    # ========================================
    # Reads (merged view)
    # ========================================

    def list(self) -> List[AuthSource]:
        """All login sources: database rows first, then file sources."""
        return self.database.find() + self.local_sources.list()

    def activated_list(self) -> List[AuthSource]:
        return self.database.find(activated_only=True) + self.local_sources.activated_list()

    def count(self) -> int:
        """Database and file namespaces do not overlap, so counts add."""
        return self.database.count() + len(self.local_sources)

    def get_by_id(self, source_id: int) -> AuthSource:
        """
        Looks up the database first, then the file sources.

        Raises:
            NotFound: Neither storage has this ID
        """
        try:
            return self.database.get_by_id(source_id)
        except NotFound:
            return self.local_sources.get_by_id(source_id)

    # ========================================
    # Writes
    # ========================================

    def create(self, source: AuthSource) -> AuthSource:
        """
        Inserts a new database-backed source.

        Raises:
            AlreadyExists: Name used by a database or file source
            InvalidSourceType: Config is not the variant of source.type
            PersistenceFailure: Store write failed
        """
        ensure_config_type(source.type, source.config)
        self._check_name_free(source)

        self.database.insert(source)
        logger.info(f"Login source '{source.name}' created (id={source.id}, type={source.type_name})")
        log_source_changed("SOURCE_CREATED", source.id, source.name, source.origin.value)

        if source.is_default:
            self.reset_non_default_sources(source)
        return source

    def update(self, source: AuthSource) -> None:
        """
        Persists a changed source to its origin, then enforces the
        single-default invariant across both storages.

        Raises:
            AlreadyExists: New name used by another database or file source
            InvalidSourceType: Config is not the variant of source.type
            PersistenceFailure: Store or file write failed
        """
        ensure_config_type(source.type, source.config)
        self._check_name_free(source)

        if source.origin is Origin.FILE:
            if source.local_file is None:
                raise PersistenceFailure(
                    "update login source file", ValueError(f"source {source.id} has no origin file")
                )
            self._write_file(
                source,
                general={
                    "name": source.name,
                    "is_activated": _bool_str(source.is_activated),
                    "is_default": _bool_str(source.is_default),
                },
                config=source.config.to_section(),
            )
        else:
            self.database.update(source)

        logger.info(f"Login source '{source.name}' updated (id={source.id}, origin={source.origin.value})")
        log_source_changed("SOURCE_UPDATED", source.id, source.name, source.origin.value)
        self.reset_non_default_sources(source)

    def delete(self, source: AuthSource) -> None:
        """
        Removes a database-backed source.

        Raises:
            InUse: At least one user logs in through this source
            SourceNotDeletable: File-backed source
            PersistenceFailure: Store write failed
        """
        if self.users.count_by_login_source(source.id) > 0:
            raise InUse(source.id)

        if source.origin is Origin.FILE:
            path = source.local_file.abspath if source.local_file else ""
            raise SourceNotDeletable(source.id, path)

        self.database.delete(source.id)
        logger.info(f"Login source '{source.name}' deleted (id={source.id})")
        log_source_changed("SOURCE_DELETED", source.id, source.name, source.origin.value)

    # ========================================
    # Default-reset protocol
    # ========================================

    def reset_non_default_sources(self, source: AuthSource) -> None:
        """
        Clears is_default on every source other than `source`.

        Database rows are demoted in one statement; file sources are
        rewritten one by one, so a failure part-way leaves some files
        updated. The error is raised and the caller may re-run update().
        """
        if source.is_default:
            except_id = source.id if source.origin is Origin.DATABASE else None
            self.database.clear_default(except_id=except_id)

            for other in self.local_sources.list():
                if source.is_file_backed and other.id == source.id:
                    continue
                if other.local_file is None:
                    continue
                mirrored = source.config.to_section() if self.mirror_default_config else None
                self._write_file(other, general={"is_default": "false"}, config=mirrored)

            log_default_source_changed(source.id, source.name)

        # Keep the in-memory view in line with what was written
        self.local_sources.update_in_memory(source)

    def _check_name_free(self, source: AuthSource) -> None:
        """Names are unique across both storages; the source itself does not count."""
        file_id = source.id if source.origin is Origin.FILE and source.id else None
        db_id = source.id if source.origin is Origin.DATABASE and source.id else None
        if source.name in self.local_sources.names(except_id=file_id) or self.database.exists_by_name(
            source.name, except_id=db_id
        ):
            raise AlreadyExists(source.name)

    @staticmethod
    def _write_file(source: AuthSource, general: Dict[str, str], config: Optional[Dict[str, str]]) -> None:
        try:
            source.local_file.write(general, config)
        except OSError as e:
            raise PersistenceFailure(f"save login source file {source.local_file.abspath}", e) from e


def _bool_str(value: bool) -> str:
    return "true" if value else "false"
