"""
Pytest configuration and fixtures.

Provides fixtures for:
- In-memory SQLite database (peewee) with user and login source tables
- A temporary auth.d directory with file-backed sources
- Loaded local source cache and the registry on top of it
"""

import textwrap

import pytest
from peewee import SqliteDatabase

from authsources.auth.users import PeeweeUserStore
from authsources.core.cache import LocalSourceCache
from authsources.core.configs import LDAPConfig, SMTPConfig
from authsources.core.models import AuthSource, LoginType
from authsources.core.registry import SourceRegistry
from authsources.core.store import DatabaseSourceProvider

LDAP_FILE = """\
id           = 101
name         = Corporate LDAP
type         = ldap_bind_dn
is_activated = true
is_default   = true

[config]
host               = ldap.example.com
port               = 636
security_protocol  = 1
skip_verify        = false
bind_dn            = cn=reader,dc=example,dc=com
bind_password      = secret
user_base          = ou=people,dc=example,dc=com
attribute_username = uid
attribute_name     = givenName
attribute_surname  = sn
attribute_mail     = mail
filter             = (&(objectClass=posixAccount)(uid=%s))
"""

SMTP_FILE = """\
id           = 102
name         = Mail Gateway
type         = smtp
is_activated = false
is_default   = false

[config]
auth            = LOGIN
host            = smtp.example.com
port            = 587
allowed_domains = example.com,example.org
tls             = true
skip_verify     = true
"""


def write_source(directory, filename, content):
    path = directory / filename
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


@pytest.fixture
def db():
    """Fresh in-memory SQLite database per test."""
    database = SqliteDatabase(":memory:")
    yield database
    database.close()


@pytest.fixture
def users(db):
    return PeeweeUserStore(db)


@pytest.fixture
def db_sources(db):
    return DatabaseSourceProvider(db)


@pytest.fixture
def sources_dir(tmp_path):
    """auth.d directory with one LDAP and one SMTP source (plus a stray file)."""
    directory = tmp_path / "auth.d"
    directory.mkdir()
    write_source(directory, "ldap.conf", LDAP_FILE)
    write_source(directory, "smtp.conf", SMTP_FILE)
    write_source(directory, "README.txt", "not a source")
    return directory


@pytest.fixture
def cache(sources_dir):
    local_sources = LocalSourceCache()
    local_sources.load(str(sources_dir))
    return local_sources


@pytest.fixture
def registry(db_sources, cache, users):
    return SourceRegistry(db_sources, cache, users, mirror_default_config=True)


@pytest.fixture
def make_smtp_source():
    def _make(name="Office SMTP", **overrides):
        fields = {
            "type": LoginType.SMTP,
            "name": name,
            "is_activated": True,
            "config": SMTPConfig(host="mail.example.net", port=25),
        }
        fields.update(overrides)
        return AuthSource(**fields)

    return _make


@pytest.fixture
def make_ldap_source():
    def _make(name="Directory", login_type=LoginType.LDAP, **overrides):
        fields = {
            "type": login_type,
            "name": name,
            "is_activated": True,
            "config": LDAPConfig(host="ldap.example.net", attribute_username="uid"),
        }
        fields.update(overrides)
        return AuthSource(**fields)

    return _make
