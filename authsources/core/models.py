"""
Login Source Model

AuthSource is the backend-agnostic representation of one configured
external identity backend, whichever storage it came from.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from authsources.core.files import AuthSourceFile


class LoginType(IntEnum):
    """
    Stored as an integer column; new types must be appended.

    NOTYPE and PLAIN are reserved (local accounts) and never describe
    an external source.
    """

    NOTYPE = 0
    PLAIN = 1
    LDAP = 2  # LDAP via BindDN
    SMTP = 3
    PAM = 4
    DLDAP = 5  # LDAP simple auth (direct bind)
    GITHUB = 6


LOGIN_NAMES = {
    LoginType.LDAP: "LDAP (via BindDN)",
    LoginType.DLDAP: "LDAP (simple auth)",
    LoginType.SMTP: "SMTP",
    LoginType.PAM: "PAM",
    LoginType.GITHUB: "GitHub",
}

# Tags used by the `type` key of source files
FILE_TYPE_TAGS = {
    "ldap_bind_dn": LoginType.LDAP,
    "ldap_simple_auth": LoginType.DLDAP,
    "smtp": LoginType.SMTP,
    "pam": LoginType.PAM,
    "github": LoginType.GITHUB,
}


class SecurityProtocol(IntEnum):
    UNENCRYPTED = 0
    LDAPS = 1
    START_TLS = 2


SECURITY_PROTOCOL_NAMES = {
    SecurityProtocol.UNENCRYPTED: "Unencrypted",
    SecurityProtocol.LDAPS: "LDAPS",
    SecurityProtocol.START_TLS: "StartTLS",
}


class Origin(str, Enum):
    """Where a source is persisted; writes are routed on this tag."""

    DATABASE = "database"
    FILE = "file"


@dataclass
class AuthSource:
    """
    One configured login source.

    Attributes:
        id: Database-assigned or read from the source file
        type: Backend type, immutable after creation
        name: Unique across database and file sources
        is_activated: Inactive sources refuse every login attempt
        is_default: At most one source system-wide
        config: LDAPConfig / SMTPConfig / PAMConfig / GitHubConfig
        origin: DATABASE or FILE
        local_file: Origin document handle (FILE sources only)
    """

    type: LoginType
    name: str
    config: Any
    id: int = 0
    is_activated: bool = False
    is_default: bool = False
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    origin: Origin = Origin.DATABASE
    local_file: Optional["AuthSourceFile"] = field(default=None, repr=False, compare=False)

    def copy(self) -> "AuthSource":
        """Independent copy; the file handle is shared, everything else is not."""
        clone = copy.copy(self)
        clone.config = copy.deepcopy(self.config)
        return clone

    @property
    def type_name(self) -> str:
        return LOGIN_NAMES.get(self.type, "")

    @property
    def is_file_backed(self) -> bool:
        return self.origin is Origin.FILE

    def is_ldap(self) -> bool:
        return self.type == LoginType.LDAP

    def is_dldap(self) -> bool:
        return self.type == LoginType.DLDAP

    def is_smtp(self) -> bool:
        return self.type == LoginType.SMTP

    def is_pam(self) -> bool:
        return self.type == LoginType.PAM

    def is_github(self) -> bool:
        return self.type == LoginType.GITHUB

    def has_tls(self) -> bool:
        """Whether TLS settings are meaningful for this source."""
        if self.is_ldap() or self.is_dldap():
            return self.config.security_protocol > SecurityProtocol.UNENCRYPTED
        return self.is_smtp()

    def use_tls(self) -> bool:
        if self.is_ldap() or self.is_dldap():
            return self.config.security_protocol != SecurityProtocol.UNENCRYPTED
        if self.is_smtp():
            return self.config.tls
        return False

    def skip_verify(self) -> bool:
        if self.is_ldap() or self.is_dldap() or self.is_smtp():
            return self.config.skip_verify
        return False
