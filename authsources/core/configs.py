"""
Login Source Configuration Variants

One dataclass per backend shape. Each variant knows how to:
- serialize itself to a JSON byte blob for the database (to_db/from_db)
- project itself onto the `config` section of a source file
  (to_section/from_section)
- verify credentials through its backend adapter (verify)

The variant is chosen once, from the source type, by config_class_for().
"""

import json
import logging
from dataclasses import asdict, dataclass, fields
from typing import TYPE_CHECKING, Any, Dict, Mapping, Type

from authsources.core.models import SECURITY_PROTOCOL_NAMES, LoginType, SecurityProtocol
from authsources.errors import InvalidSourceType

if TYPE_CHECKING:
    from authsources.auth.backends.base import ExternalProfile
    from authsources.core.models import AuthSource

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean for '{key}': {value!r}")


class SourceConfig:
    """Shared (de)serialization for the dataclass variants below."""

    def to_db(self) -> bytes:
        return json.dumps(asdict(self), separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_db(cls, raw: Any) -> "SourceConfig":
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        data = json.loads(raw) if raw else {}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.debug(f"{cls.__name__}: ignoring unknown stored keys {sorted(unknown)}")
        return cls._coerce({k: v for k, v in data.items() if k in known})

    def to_section(self) -> Dict[str, str]:
        """Flatten to the string mapping written under [config]."""
        section = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool):
                section[f.name] = "true" if value else "false"
            elif isinstance(value, SecurityProtocol):
                section[f.name] = str(int(value))
            else:
                section[f.name] = str(value)
        return section

    @classmethod
    def from_section(cls, section: Mapping[str, str]) -> "SourceConfig":
        """Build from a [config] section; missing keys keep their defaults."""
        return cls._coerce({f.name: section[f.name] for f in fields(cls) if f.name in section})

    @classmethod
    def _coerce(cls, values: Dict[str, Any]) -> "SourceConfig":
        kwargs = {}
        for f in fields(cls):
            if f.name not in values:
                continue
            value = values[f.name]
            if f.type is bool:
                value = _parse_bool(f.name, value) if isinstance(value, str) else bool(value)
            elif f.type is int:
                value = int(value)
            elif f.type is SecurityProtocol:
                value = SecurityProtocol(int(value))
            else:
                value = "" if value is None else str(value)
            kwargs[f.name] = value
        return cls(**kwargs)

    def verify(self, login: str, password: str, source: "AuthSource") -> "ExternalProfile":
        raise NotImplementedError


@dataclass
class LDAPConfig(SourceConfig):
    """Shared by LDAP (via BindDN) and LDAP (simple auth) sources."""

    name: str = ""  # Canonical name (ie. corporate.ad)
    host: str = ""
    port: int = 389
    security_protocol: SecurityProtocol = SecurityProtocol.UNENCRYPTED
    skip_verify: bool = False
    bind_dn: str = ""  # DN to bind with, may contain %s
    bind_password: str = ""
    user_base: str = ""  # Base search path for users
    user_dn: str = ""  # Template for simple auth, e.g. uid=%s,ou=Users,dc=example,dc=com
    attribute_username: str = ""
    attribute_name: str = ""
    attribute_surname: str = ""
    attribute_mail: str = ""
    attributes_in_bind: bool = False  # Fetch attributes in the bind DN context
    filter: str = ""  # User filter, e.g. (&(objectClass=posixAccount)(uid=%s))
    admin_filter: str = ""
    group_enabled: bool = False
    group_dn: str = ""
    group_filter: str = ""
    group_member_uid: str = ""  # Group attribute holding member uids
    user_uid: str = ""  # User attribute matched against group_member_uid

    @property
    def security_protocol_name(self) -> str:
        return SECURITY_PROTOCOL_NAMES.get(self.security_protocol, "")

    def verify(self, login: str, password: str, source: "AuthSource") -> "ExternalProfile":
        from authsources.auth.backends.ldap import LDAPAdapter

        return LDAPAdapter(self, direct_bind=source.type == LoginType.DLDAP).verify(login, password)


@dataclass
class SMTPConfig(SourceConfig):
    auth: str = "PLAIN"  # PLAIN or LOGIN
    host: str = ""
    port: int = 25
    allowed_domains: str = ""  # Comma-separated, empty means any domain
    tls: bool = False
    skip_verify: bool = False

    def domain_allowed(self, login: str) -> bool:
        if not self.allowed_domains:
            return True
        _, at, domain = login.partition("@")
        if not at:
            return False
        allowed = [d.strip().lower() for d in self.allowed_domains.split(",") if d.strip()]
        return domain.lower() in allowed

    def verify(self, login: str, password: str, source: "AuthSource") -> "ExternalProfile":
        from authsources.auth.backends.smtp import SMTPAdapter

        return SMTPAdapter(self).verify(login, password)


@dataclass
class PAMConfig(SourceConfig):
    service_name: str = ""  # PAM service (e.g. system-auth)

    def verify(self, login: str, password: str, source: "AuthSource") -> "ExternalProfile":
        from authsources.auth.backends.pam import PAMAdapter

        return PAMAdapter(self).verify(login, password)


@dataclass
class GitHubConfig(SourceConfig):
    api_endpoint: str = "https://api.github.com/"

    def verify(self, login: str, password: str, source: "AuthSource") -> "ExternalProfile":
        from authsources.auth.backends.github import GitHubAdapter

        return GitHubAdapter(self).verify(login, password)


CONFIG_CLASSES: Dict[LoginType, Type[SourceConfig]] = {
    LoginType.LDAP: LDAPConfig,
    LoginType.DLDAP: LDAPConfig,
    LoginType.SMTP: SMTPConfig,
    LoginType.PAM: PAMConfig,
    LoginType.GITHUB: GitHubConfig,
}


def config_class_for(login_type: Any) -> Type[SourceConfig]:
    """
    Resolve the config variant for a source type.

    Raises:
        InvalidSourceType: Unknown or non-external type (e.g. corrupted rows)
    """
    try:
        return CONFIG_CLASSES[LoginType(int(login_type))]
    except (KeyError, ValueError, TypeError):
        raise InvalidSourceType(login_type) from None


def ensure_config_type(login_type: Any, cfg: Any) -> None:
    """
    Check that `cfg` is the variant the source type uses.

    Raises:
        InvalidSourceType: Unknown type, or config of another type's shape
    """
    expected = config_class_for(login_type)
    if not isinstance(cfg, expected):
        raise InvalidSourceType(login_type)
