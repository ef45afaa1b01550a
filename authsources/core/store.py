"""
Database-backed Login Sources via Peewee

Works with SQLite, PostgreSQL and MySQL through playhouse.db_url DSNs.
Store errors are re-raised as PersistenceFailure with the failing
operation attached, never swallowed.
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from peewee import (
    AutoField,
    BigIntegerField,
    BooleanField,
    CharField,
    Database,
    DoesNotExist,
    IntegerField,
    Model,
    PeeweeException,
    TextField,
)
from playhouse.db_url import connect

from authsources.core.configs import config_class_for
from authsources.core.models import AuthSource, LoginType, Origin
from authsources.errors import NotFound, PersistenceFailure

logger = logging.getLogger(__name__)


class LoginSourceTable(Model):
    """
    Internal Peewee model for login source persistence.
    Mapped to 'login_source' table.
    """

    id = AutoField()
    type = IntegerField()
    name = CharField(max_length=255, unique=True)
    is_actived = BooleanField(default=False)
    is_default = BooleanField(default=False)
    cfg = TextField(default="")
    created_unix = BigIntegerField(default=0)
    updated_unix = BigIntegerField(default=0)

    class Meta:
        table_name = "login_source"


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Re-raise peewee errors as PersistenceFailure(operation, cause)."""
    try:
        yield
    except PeeweeException as e:
        logger.error(f"SQL error during '{operation}': {e}")
        raise PersistenceFailure(operation, e) from e


class DatabaseSourceProvider:
    """
    Login sources stored in the relational database.

    Args:
        database: Peewee database, or a DSN for playhouse.db_url.connect
    """

    def __init__(self, database):
        if isinstance(database, str):
            database = connect(database)
        self.db: Database = database
        LoginSourceTable._meta.database = self.db

        # Idempotent table creation
        with store_errors("create login_source table"):
            self.db.create_tables([LoginSourceTable])

        logger.info(f"DatabaseSourceProvider: Initialized using {type(self.db).__name__}")

    # ========================================
    # Hydration
    # ========================================

    @staticmethod
    def _to_source(row: LoginSourceTable) -> AuthSource:
        """
        Row -> AuthSource.

        Raises:
            InvalidSourceType: Unknown stored type
            PersistenceFailure: Stored config cannot be decoded
        """
        cfg_class = config_class_for(row.type)
        try:
            cfg = cfg_class.from_db(row.cfg)
        except (ValueError, TypeError) as e:
            # Bad JSON or a value of the wrong shape, e.g. a non-numeric port
            raise PersistenceFailure(f"decode config of login source {row.id}", e) from e

        return AuthSource(
            id=row.id,
            type=LoginType(row.type),
            name=row.name,
            is_activated=row.is_actived,
            is_default=row.is_default,
            config=cfg,
            created=datetime.fromtimestamp(row.created_unix),
            updated=datetime.fromtimestamp(row.updated_unix),
            origin=Origin.DATABASE,
        )

    # ========================================
    # Reads
    # ========================================

    def exists_by_name(self, name: str, except_id: Optional[int] = None) -> bool:
        query = LoginSourceTable.select().where(LoginSourceTable.name == name)
        if except_id is not None:
            query = query.where(LoginSourceTable.id != except_id)
        with store_errors("check login source name"):
            return query.exists()

    def get_by_id(self, source_id: int) -> AuthSource:
        with store_errors("get login source"):
            try:
                row = LoginSourceTable.get_by_id(source_id)
            except DoesNotExist:
                raise NotFound(source_id) from None
        return self._to_source(row)

    def find(self, activated_only: bool = False) -> List[AuthSource]:
        with store_errors("find login sources"):
            query = LoginSourceTable.select().order_by(LoginSourceTable.id)
            if activated_only:
                query = query.where(LoginSourceTable.is_actived == True)  # noqa: E712
            rows = list(query)
        return [self._to_source(row) for row in rows]

    def count(self) -> int:
        with store_errors("count login sources"):
            return LoginSourceTable.select().count()

    # ========================================
    # Writes
    # ========================================

    def insert(self, source: AuthSource) -> AuthSource:
        """Inserts the source and assigns its ID and timestamps in place."""
        now = int(time.time())
        with store_errors("insert login source"):
            row = LoginSourceTable.create(
                type=int(source.type),
                name=source.name,
                is_actived=source.is_activated,
                is_default=source.is_default,
                cfg=source.config.to_db().decode("utf-8"),
                created_unix=now,
                updated_unix=now,
            )
        source.id = row.id
        source.created = source.updated = datetime.fromtimestamp(now)
        source.origin = Origin.DATABASE
        return source

    def update(self, source: AuthSource) -> None:
        """Persists all columns (type is immutable and left alone)."""
        now = int(time.time())
        with store_errors("update login source"):
            LoginSourceTable.update(
                name=source.name,
                is_actived=source.is_activated,
                is_default=source.is_default,
                cfg=source.config.to_db().decode("utf-8"),
                updated_unix=now,
            ).where(LoginSourceTable.id == source.id).execute()
        source.updated = datetime.fromtimestamp(now)

    def delete(self, source_id: int) -> int:
        with store_errors("delete login source"):
            return LoginSourceTable.delete().where(LoginSourceTable.id == source_id).execute()

    def clear_default(self, except_id: Optional[int] = None) -> int:
        """Sets is_default = false on every row but except_id (all rows if None)."""
        query = LoginSourceTable.update(is_default=False)
        if except_id is not None:
            query = query.where(LoginSourceTable.id != except_id)
        with store_errors("reset default login sources"):
            return query.execute()
