"""
Authenticator - Single Credential Verification Entry Point

Per attempt:
    Dispatched -> BackendInvoked -> Verified | Rejected | BackendError
    Verified -> Provisioned | Skipped | ProvisionFailed

Provisioning (auto-registration) only happens on Verified and only when
the caller asks for it.
"""

import logging
import re
from typing import Callable, Dict, Optional

from authsources.auth.backends.base import ExternalProfile
from authsources.auth.users import UserRecord, UserStore
from authsources.core.configs import ensure_config_type
from authsources.core.models import AuthSource, LoginType
from authsources.errors import (
    AuthSourceError,
    InvalidSourceType,
    InvalidUsernamePattern,
    PersistenceFailure,
    SourceNotActivated,
)
from authsources.utils.audit import log_login_attempt, log_user_provisioned

logger = logging.getLogger(__name__)

ALPHA_DASH_DOT = re.compile(r"^[A-Za-z0-9._-]+$")


# ========================================
# Local user shape per backend
# ========================================


def compose_full_name(first_name: str, surname: str, username: str) -> str:
    if first_name and surname:
        return f"{first_name} {surname}"
    return first_name or surname or username


def _ldap_user(source: AuthSource, profile: ExternalProfile) -> UserRecord:
    username = profile.username or profile.login
    if not ALPHA_DASH_DOT.match(username):
        raise InvalidUsernamePattern(username)

    return UserRecord(
        name=username,
        full_name=compose_full_name(profile.first_name, profile.surname, username),
        email=profile.email or f"{username}@localhost",
        login_type=source.type,
        login_source=source.id,
        login_name=profile.login,
        is_admin=profile.is_admin,
    )


def _smtp_user(source: AuthSource, profile: ExternalProfile) -> UserRecord:
    username = profile.login.partition("@")[0].lower()
    return UserRecord(
        name=username,
        email=profile.login,
        login_type=source.type,
        login_source=source.id,
        login_name=profile.login,
    )


def _pam_user(source: AuthSource, profile: ExternalProfile) -> UserRecord:
    return UserRecord(
        name=profile.login.lower(),
        email=profile.login,
        login_type=source.type,
        login_source=source.id,
        login_name=profile.login,
    )


def _github_user(source: AuthSource, profile: ExternalProfile) -> UserRecord:
    return UserRecord(
        name=profile.login.lower(),
        full_name=profile.full_name,
        email=profile.email or profile.login,
        login_type=source.type,
        login_source=source.id,
        login_name=profile.login,
        website=profile.website,
        location=profile.location,
    )


USER_BUILDERS: Dict[LoginType, Callable[[AuthSource, ExternalProfile], UserRecord]] = {
    LoginType.LDAP: _ldap_user,
    LoginType.DLDAP: _ldap_user,
    LoginType.SMTP: _smtp_user,
    LoginType.PAM: _pam_user,
    LoginType.GITHUB: _github_user,
}


class Authenticator:
    """
    Verifies credentials through a login source and optionally
    materializes the local user.

    Args:
        users: User-persistence collaborator
        registry: SourceRegistry, only needed by login()
    """

    def __init__(self, users: UserStore, registry=None):
        self.users = users
        self.registry = registry

    def authenticate(
        self, source: AuthSource, login: str, password: str, auto_register: bool = True
    ) -> Optional[UserRecord]:
        """
        Verifies `login`/`password` against `source`.

        Returns:
            The created/updated UserRecord, or None when auto_register is False

        Raises:
            SourceNotActivated: Source is disabled (no backend call made)
            InvalidSourceType: No adapter for the source type, or a config
                of another type's shape
            CredentialRejected: Bad login or password
            BackendUnavailable: Backend could not be reached or misbehaved
            InvalidUsernamePattern: LDAP username not usable locally
            PersistenceFailure: User store failed (error.user is attached)
        """
        if not source.is_activated:
            log_login_attempt(login, source.id, False, "source not activated")
            raise SourceNotActivated(source.id)

        try:
            ensure_config_type(source.type, source.config)
        except InvalidSourceType:
            log_login_attempt(login, source.id, False, "invalid source type")
            raise

        try:
            profile = source.config.verify(login, password, source)
        except AuthSourceError as e:
            log_login_attempt(login, source.id, False, type(e).__name__)
            raise

        log_login_attempt(login, source.id, True)

        if not auto_register:
            logger.debug(f"Verified '{login}' via source {source.id} without registration")
            return None

        user = USER_BUILDERS[source.type](source, profile)
        return self._provision(source, user)

    def login(
        self, source_id: int, login: str, password: str, auto_register: bool = True
    ) -> Optional[UserRecord]:
        """Resolves the source through the registry, then authenticate()."""
        if self.registry is None:
            raise RuntimeError("Authenticator.login() needs a registry")
        return self.authenticate(self.registry.get_by_id(source_id), login, password, auto_register)

    def _provision(self, source: AuthSource, user: UserRecord) -> UserRecord:
        try:
            exists = self.users.is_user_exist(0, user.name)
            if exists:
                self.users.update_user(user)
            else:
                self.users.create_user(user)
        except PersistenceFailure as e:
            e.user = user
            logger.error(f"Provisioning '{user.name}' from source {source.id} failed: {e}")
            raise
        except Exception as e:
            logger.error(f"Provisioning '{user.name}' from source {source.id} failed: {e}")
            raise PersistenceFailure("provision user", e, user=user) from e

        log_user_provisioned(user.name, source.id, created=not exists)
        return user
