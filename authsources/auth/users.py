"""
User Persistence Collaborator

The registry and the authenticator only need a handful of user
operations: existence check, create, update, and counting the users
bound to a login source. UserStore is that contract; PeeweeUserStore is
the bundled SQL implementation.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from peewee import (
    AutoField,
    BooleanField,
    CharField,
    DateTimeField,
    IntegerField,
    Model,
)
from playhouse.db_url import connect

from authsources.core.models import LoginType
from authsources.core.store import store_errors

logger = logging.getLogger(__name__)


@dataclass
class UserRecord:
    """
    Local user materialized from an external login.

    login_name keeps the upstream identifier, which may differ from the
    local name (e.g. SMTP "jdoe@example.com" vs local "jdoe").
    """

    name: str
    email: str
    login_type: LoginType
    login_source: int
    login_name: str
    lower_name: str = ""
    full_name: str = ""
    is_active: bool = True
    is_admin: bool = False
    website: str = ""
    location: str = ""
    id: int = 0

    def __post_init__(self):
        if not self.lower_name:
            self.lower_name = self.name.lower()


class UserStore(ABC):
    """Contract of the external user-persistence collaborator."""

    @abstractmethod
    def is_user_exist(self, uid: int, name: str) -> bool:
        """True if a user other than `uid` already has this name (case-insensitive)."""

    @abstractmethod
    def create_user(self, user: UserRecord) -> None:
        """Persists a new user and sets user.id."""

    @abstractmethod
    def update_user(self, user: UserRecord) -> None:
        """Updates the profile of the user with the same (lower) name."""

    @abstractmethod
    def count_by_login_source(self, source_id: int) -> int:
        """Number of users whose login source is `source_id`."""


class UserTable(Model):
    """
    Internal Peewee model for user persistence.
    Mapped to 'user' table.
    """

    id = AutoField()
    lower_name = CharField(max_length=255, unique=True)
    name = CharField(max_length=255, unique=True)
    full_name = CharField(max_length=255, default="")
    email = CharField(max_length=255, default="")
    login_type = IntegerField(default=int(LoginType.PLAIN))
    login_source = IntegerField(default=0, index=True)
    login_name = CharField(max_length=255, default="")
    is_active = BooleanField(default=True)
    is_admin = BooleanField(default=False)
    website = CharField(max_length=255, default="")
    location = CharField(max_length=255, default="")
    created_at = DateTimeField(default=datetime.utcnow)
    updated_at = DateTimeField(default=datetime.utcnow)

    class Meta:
        table_name = "user"


class PeeweeUserStore(UserStore):
    """
    User store using Peewee ORM.

    Args:
        database: Peewee database, or a DSN for playhouse.db_url.connect
    """

    def __init__(self, database):
        if isinstance(database, str):
            database = connect(database)
        self.db = database
        UserTable._meta.database = self.db

        with store_errors("create user table"):
            self.db.create_tables([UserTable])

    def is_user_exist(self, uid: int, name: str) -> bool:
        if not name:
            return False
        with store_errors("check user existence"):
            return (
                UserTable.select()
                .where((UserTable.lower_name == name.lower()) & (UserTable.id != uid))
                .exists()
            )

    def create_user(self, user: UserRecord) -> None:
        with store_errors("create user"):
            row = UserTable.create(
                lower_name=user.lower_name,
                name=user.name,
                full_name=user.full_name,
                email=user.email,
                login_type=int(user.login_type),
                login_source=user.login_source,
                login_name=user.login_name,
                is_active=user.is_active,
                is_admin=user.is_admin,
                website=user.website,
                location=user.location,
            )
        user.id = row.id
        logger.info(f"User '{user.name}' created (login source {user.login_source})")

    def update_user(self, user: UserRecord) -> None:
        with store_errors("update user"):
            UserTable.update(
                full_name=user.full_name,
                email=user.email,
                login_type=int(user.login_type),
                login_source=user.login_source,
                login_name=user.login_name,
                is_active=user.is_active,
                is_admin=user.is_admin,
                website=user.website,
                location=user.location,
                updated_at=datetime.utcnow(),
            ).where(UserTable.lower_name == user.lower_name).execute()
            row = UserTable.get_or_none(UserTable.lower_name == user.lower_name)
        if row is not None:
            user.id = row.id

    def count_by_login_source(self, source_id: int) -> int:
        with store_errors("count users by login source"):
            return UserTable.select().where(UserTable.login_source == source_id).count()
