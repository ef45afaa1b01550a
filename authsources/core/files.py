"""
File-backed Login Sources

Each source lives in its own ini-style document:

    id           = 101
    name         = Corporate LDAP
    type         = ldap_bind_dn
    is_activated = true
    is_default   = false

    [config]
    host = ldap.example.com
    ...

The general keys sit at the top of the file without a section header
(an explicit [DEFAULT] header means the same thing). The document is
held by configupdater, so writes keep the operator's comments and
layout; a synthetic header is added on read and stripped on write.
"""

import configparser
import logging
import os
import threading
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from configupdater import ConfigUpdater

from authsources.core.configs import config_class_for
from authsources.core.models import FILE_TYPE_TAGS, AuthSource, Origin
from authsources.errors import SourceLoadError

logger = logging.getLogger(__name__)

GENERAL_SECTION = "__general__"
DEFAULT_SECTION = "DEFAULT"
CONFIG_SECTION = "config"


def _is_headed(text: str) -> bool:
    """True if the first non-comment line is a section header."""
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped[0] in "#;":
            continue
        return stripped.startswith("[")
    return False


class AuthSourceFile:
    """
    Parsed document plus the absolute path it was read from.

    Only the registry writes through this handle; the cache never does.
    Cache copies of a source share the handle, and with it the lock that
    serializes edit + save.
    """

    def __init__(self, abspath: str, document: ConfigUpdater, general_section: str = GENERAL_SECTION):
        self.abspath = abspath
        self.document = document
        self.general_section = general_section
        self.lock = threading.RLock()

    @classmethod
    def load(cls, path: str) -> "AuthSourceFile":
        abspath = os.path.abspath(path)
        with open(abspath, "r", encoding="utf-8") as f:
            text = f.read()

        document = ConfigUpdater()
        if _is_headed(text):
            document.read_string(text, source=abspath)
            return cls(abspath, document, DEFAULT_SECTION)

        document.read_string(f"[{GENERAL_SECTION}]\n{text}", source=abspath)
        return cls(abspath, document, GENERAL_SECTION)

    def _section(self, name: str) -> Mapping[str, str]:
        if not self.document.has_section(name):
            return {}
        return self.document[name].to_dict()

    @property
    def general(self) -> Mapping[str, str]:
        return self._section(self.general_section)

    def config_section(self) -> Mapping[str, str]:
        return self._section(CONFIG_SECTION)

    def set_general(self, key: str, value: str) -> None:
        """Sets a key in the general (unnamed) section."""
        if not self.document.has_section(self.general_section):
            self.document.add_section(self.general_section)
        self.document.set(self.general_section, key, value)

    def set_config(self, values: Dict[str, str]) -> None:
        """Writes values into the [config] section, keeping unrelated keys."""
        if not self.document.has_section(CONFIG_SECTION):
            self.document.add_section(CONFIG_SECTION)
        for key, value in values.items():
            self.document.set(CONFIG_SECTION, key, value)

    def save(self) -> None:
        """Writes the document back to its origin path."""
        text = str(self.document)
        if self.general_section == GENERAL_SECTION:
            text = text.partition("\n")[2]

        with open(self.abspath, "w", encoding="utf-8") as f:
            f.write(text)

    def write(self, general: Dict[str, str], config: Optional[Dict[str, str]] = None) -> None:
        """Applies general keys (and [config] values, if given) and saves, under the file lock."""
        with self.lock:
            for key, value in general.items():
                self.set_general(key, value)
            if config is not None:
                self.set_config(config)
            self.save()

    def __repr__(self):
        return f"<AuthSourceFile {self.abspath}>"


def _general_bool(path: str, general: Mapping[str, str], key: str) -> bool:
    value = general.get(key, "").strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise SourceLoadError(path, f"invalid boolean for '{key}': {value!r}")


def source_from_file(path: str) -> AuthSource:
    """
    Builds one AuthSource from a source file.

    Raises:
        SourceLoadError: Unreadable file, bad values or unknown type tag
    """
    try:
        local_file = AuthSourceFile.load(path)
    except (OSError, configparser.Error) as e:
        raise SourceLoadError(path, str(e)) from e

    general = local_file.general

    type_tag = general.get("type", "").strip()
    login_type = FILE_TYPE_TAGS.get(type_tag)
    if login_type is None:
        raise SourceLoadError(path, f"unknown type '{type_tag}'")

    try:
        source_id = int(general.get("id", "0").strip() or 0)
    except ValueError:
        raise SourceLoadError(path, f"invalid id: {general.get('id')!r}") from None

    try:
        cfg = config_class_for(login_type).from_section(local_file.config_section())
    except ValueError as e:
        raise SourceLoadError(path, f"failed to parse 'config': {e}") from e

    try:
        updated = datetime.fromtimestamp(os.stat(local_file.abspath).st_mtime)
    except OSError as e:
        raise SourceLoadError(path, str(e)) from e

    return AuthSource(
        id=source_id,
        type=login_type,
        name=general.get("name", ""),
        is_activated=_general_bool(path, general, "is_activated"),
        is_default=_general_bool(path, general, "is_default"),
        config=cfg,
        updated=updated,
        origin=Origin.FILE,
        local_file=local_file,
    )


def load_source_files(directory: str, suffix: str = ".conf") -> List[AuthSource]:
    """
    Loads every source file in a directory, sorted by path.

    A missing directory means no file sources. Any broken file aborts
    the whole load: a misconfigured deployment must not silently drop
    a source.
    """
    if not os.path.isdir(directory):
        logger.debug(f"Source directory {directory} does not exist, no file sources loaded")
        return []

    try:
        names = sorted(os.listdir(directory))
    except OSError as e:
        raise SourceLoadError(directory, f"failed to list authentication sources: {e}") from e

    sources = []
    for name in names:
        path = os.path.join(directory, name)
        if not name.endswith(suffix) or not os.path.isfile(path):
            continue
        source = source_from_file(path)
        logger.info(f"Loaded {source.type_name} source '{source.name}' (id={source.id}) from {path}")
        sources.append(source)

    return sources
