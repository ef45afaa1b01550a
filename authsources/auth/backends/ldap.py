"""
LDAP Backend Adapter

Two modes, chosen by the source type:
- LDAP (via BindDN): bind with a service account, search for the user,
  then bind as the user to check the password.
- LDAP (simple auth): bind directly as the user through a DN template.

Uses ldap3 (pure Python, thread-safe, cross-platform). Every failure,
including a missing user, a wrong password and an unreachable server,
is reported as CredentialRejected.
"""

import logging
import ssl
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from ldap3 import ANONYMOUS, NONE, SAFE_SYNC, SIMPLE, SUBTREE, Connection, Server, Tls
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from authsources.auth.backends.base import BackendAdapter, ExternalProfile
from authsources.core.models import SecurityProtocol
from authsources.errors import CredentialRejected

logger = logging.getLogger(__name__)

# RFC 4515 filter metacharacters
FILTER_BAD_CHARACTERS = "\x00()*\\"
# RFC 4514 DN special characters
DN_BAD_CHARACTERS = "\x00()*\\,='\"#+;<>"


class _Failed(Exception):
    """Internal: abort the attempt; the reason is only logged."""


class LDAPAdapter(BackendAdapter):
    """
    LDAP/Active Directory credential verification.

    Args:
        config: LDAPConfig of the source
        direct_bind: True for LDAP (simple auth) sources
    """

    def __init__(self, config, direct_bind: bool = False):
        super().__init__(config)
        self.direct_bind = direct_bind

    def get_name(self) -> str:
        return "ldap_simple_auth" if self.direct_bind else "ldap_bind_dn"

    # ========================================
    # Core Authentication
    # ========================================

    def verify(self, login: str, password: str) -> ExternalProfile:
        # RFC 4513 section 5.1.2: an empty password is an unauthenticated bind
        if not password:
            logger.debug(f"LDAP: authentication failed for '{login}' with empty password")
            raise CredentialRejected(login)

        try:
            profile = self._search_entry(login, password)
        except _Failed as e:
            logger.warning(f"LDAP: authentication failed for '{login}': {e}")
            raise CredentialRejected(login) from None
        except LDAPException as e:
            logger.error(f"LDAP: error while authenticating '{login}': {e}")
            raise CredentialRejected(login) from None

        logger.info(f"LDAP: user '{login}' verified as '{profile.username}'")
        return profile

    def _search_entry(self, login: str, password: str) -> ExternalProfile:
        cfg = self.config
        user_filter = self.sanitized_user_query(login)

        if self.direct_bind:
            with self._session(self.sanitized_user_dn(login), password) as conn:
                user_dn = self._find_user_dn(conn, login) if cfg.user_base else self.sanitized_user_dn(login)
                return self._read_profile(conn, login, user_dn, user_filter)

        if cfg.bind_dn and cfg.bind_password:
            service_dn, service_password = cfg.bind_dn.replace("%s", login), cfg.bind_password
        else:
            service_dn, service_password = None, None

        with self._session(service_dn, service_password) as conn:
            user_dn = self._find_user_dn(conn, login)
            if cfg.attributes_in_bind:
                # Attributes are read in the bind DN context, password checked after
                profile = self._read_profile(conn, login, user_dn, user_filter)
                with self._session(user_dn, password):
                    pass
                return profile

        with self._session(user_dn, password) as user_conn:
            return self._read_profile(user_conn, login, user_dn, user_filter)

    # ========================================
    # LDAP Helpers (SAFE_SYNC Architecture)
    # ========================================

    def sanitized_user_query(self, login: str) -> str:
        if any(c in FILTER_BAD_CHARACTERS for c in login):
            raise _Failed(f"login contains invalid query characters: {login!r}")
        return self.config.filter.replace("%s", login)

    def sanitized_user_dn(self, login: str) -> str:
        if any(c in DN_BAD_CHARACTERS for c in login) or login.startswith(" ") or login.endswith(" "):
            raise _Failed(f"login contains invalid DN characters: {login!r}")
        return self.config.user_dn.replace("%s", login)

    def _server(self) -> Server:
        cfg = self.config
        tls_config = None
        if cfg.security_protocol != SecurityProtocol.UNENCRYPTED:
            tls_config = Tls(validate=ssl.CERT_NONE if cfg.skip_verify else ssl.CERT_REQUIRED)

        return Server(
            cfg.host,
            port=cfg.port,
            use_ssl=cfg.security_protocol == SecurityProtocol.LDAPS,
            tls=tls_config,
            get_info=NONE,
        )

    @contextmanager
    def _session(self, dn: Optional[str], password: Optional[str]) -> Iterator[Connection]:
        """Opens a connection, negotiates StartTLS if configured, binds as dn."""
        conn = Connection(
            self._server(),
            user=dn,
            password=password,
            authentication=SIMPLE if dn else ANONYMOUS,
            client_strategy=SAFE_SYNC,
            auto_bind=False,
            raise_exceptions=False,
        )
        try:
            conn.open()
            if self.config.security_protocol == SecurityProtocol.START_TLS and not conn.start_tls():
                raise _Failed(f"StartTLS negotiation with {self.config.host} failed")

            status, result, _, _ = conn.bind()
            if not status:
                raise _Failed(f"bind as '{dn or 'anonymous'}' failed: {result.get('description')}")

            yield conn
        finally:
            conn.unbind()

    def _find_user_dn(self, conn: Connection, login: str) -> str:
        status, _, response, _ = conn.search(
            search_base=self.config.user_base,
            search_filter=self.sanitized_user_query(login),
            search_scope=SUBTREE,
            attributes=[],
        )
        entries = _entries(response) if status else []
        if not entries:
            raise _Failed(f"user '{login}' not found under '{self.config.user_base}'")
        if len(entries) > 1:
            raise _Failed(f"filter matched more than one user for '{login}'")
        return entries[0]["dn"]

    def _read_profile(self, conn: Connection, login: str, user_dn: str, user_filter: str) -> ExternalProfile:
        cfg = self.config
        wanted = [
            a
            for a in (
                cfg.attribute_username,
                cfg.attribute_name,
                cfg.attribute_surname,
                cfg.attribute_mail,
                cfg.user_uid,
            )
            if a
        ]

        status, _, response, _ = conn.search(
            search_base=user_dn,
            search_filter=user_filter,
            search_scope=SUBTREE,
            attributes=wanted,
        )
        entries = _entries(response) if status else []
        if not entries:
            raise _Failed(f"search for '{login}' under '{user_dn}' returned nothing")

        attrs = entries[0].get("attributes", {})
        profile = ExternalProfile(
            login=login,
            username=_first(attrs, cfg.attribute_username),
            first_name=_first(attrs, cfg.attribute_name),
            surname=_first(attrs, cfg.attribute_surname),
            email=_first(attrs, cfg.attribute_mail),
        )

        if cfg.admin_filter:
            status, _, response, _ = conn.search(
                search_base=user_dn,
                search_filter=cfg.admin_filter,
                search_scope=SUBTREE,
                attributes=[cfg.attribute_name] if cfg.attribute_name else [],
            )
            profile.is_admin = bool(status and _entries(response))
            if not profile.is_admin:
                logger.debug(f"LDAP: '{user_dn}' does not match admin filter")

        if cfg.group_enabled:
            self._check_group_membership(conn, user_dn, _first(attrs, cfg.user_uid))

        return profile

    def _check_group_membership(self, conn: Connection, user_dn: str, uid: str) -> None:
        cfg = self.config
        group_filter = f"(&{cfg.group_filter}({cfg.group_member_uid}={escape_filter_chars(uid)}))"
        status, _, response, _ = conn.search(
            search_base=cfg.group_dn,
            search_filter=group_filter,
            search_scope=SUBTREE,
            attributes=[cfg.group_member_uid],
        )
        if not (status and _entries(response)):
            raise _Failed(f"group membership test failed for '{user_dn}'")


def _entries(response: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Drops search references, keeps real entries."""
    return [e for e in (response or []) if e.get("type", "searchResEntry") == "searchResEntry"]


def _first(attrs: Dict[str, Any], name: str) -> str:
    """First value of an attribute; ldap3 returns lists or scalars."""
    if not name:
        return ""
    value = attrs.get(name)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return "" if value is None else str(value)
