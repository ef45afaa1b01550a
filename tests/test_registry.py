"""Unit tests for core/registry.py -- the merged database + file catalog."""

import re

import pytest

from authsources.auth.users import UserRecord
from authsources.core.configs import PAMConfig, SMTPConfig
from authsources.core.files import source_from_file
from authsources.core.models import AuthSource, LoginType, Origin
from authsources.core.store import LoginSourceTable
from authsources.errors import (
    AlreadyExists,
    InUse,
    InvalidSourceType,
    NotFound,
    PersistenceFailure,
    SourceNotDeletable,
)


def defaults(registry):
    return [s.name for s in registry.list() if s.is_default]


@pytest.mark.unit
class TestCreate:
    def test_create_assigns_id_and_timestamps(self, registry, make_smtp_source):
        source = registry.create(make_smtp_source())

        assert source.id > 0
        assert source.origin is Origin.DATABASE
        assert source.created is not None and source.updated is not None
        assert registry.get_by_id(source.id).name == "Office SMTP"

    def test_duplicate_database_name(self, registry, make_smtp_source):
        registry.create(make_smtp_source())

        with pytest.raises(AlreadyExists):
            registry.create(make_smtp_source())

    def test_duplicate_file_source_name(self, registry, make_smtp_source):
        with pytest.raises(AlreadyExists):
            registry.create(make_smtp_source(name="Mail Gateway"))

        assert registry.count() == 2

    def test_config_of_another_type_is_refused(self, registry):
        source = AuthSource(type=LoginType.LDAP, name="Mixed", config=SMTPConfig(host="h"), is_activated=True)

        with pytest.raises(InvalidSourceType):
            registry.create(source)

        assert "Mixed" not in [s.name for s in registry.list()]

    def test_create_default_demotes_everything_else(self, registry, make_smtp_source, sources_dir):
        registry.create(make_smtp_source(name="Old default", is_default=True))
        registry.create(make_smtp_source(name="New default", is_default=True))

        assert defaults(registry) == ["New default"]
        assert not source_from_file(str(sources_dir / "ldap.conf")).is_default


@pytest.mark.unit
class TestReads:
    def test_list_merges_database_then_files(self, registry, make_smtp_source):
        registry.create(make_smtp_source(name="A"))
        registry.create(make_smtp_source(name="B", is_activated=False))

        assert [s.name for s in registry.list()] == ["A", "B", "Corporate LDAP", "Mail Gateway"]
        assert [s.name for s in registry.activated_list()] == ["A", "Corporate LDAP"]
        assert registry.count() == 4

    def test_get_by_id_falls_back_to_files(self, registry):
        source = registry.get_by_id(102)

        assert source.origin is Origin.FILE
        assert source.name == "Mail Gateway"

    def test_get_by_id_not_found(self, registry):
        with pytest.raises(NotFound):
            registry.get_by_id(4242)

    def test_unknown_stored_type_is_an_error_not_a_crash(self, registry, make_smtp_source):
        source = registry.create(make_smtp_source())
        LoginSourceTable.update(type=99).where(LoginSourceTable.id == source.id).execute()

        with pytest.raises(InvalidSourceType):
            registry.get_by_id(source.id)

    def test_undecodable_stored_config_is_persistence_failure(self, registry, make_smtp_source):
        source = registry.create(make_smtp_source())
        LoginSourceTable.update(cfg='{"host":"h","port":"twenty-five"}').where(
            LoginSourceTable.id == source.id
        ).execute()

        with pytest.raises(PersistenceFailure):
            registry.list()


@pytest.mark.unit
class TestUpdate:
    def test_database_update_persists_columns(self, registry, make_smtp_source):
        source = registry.create(make_smtp_source())
        source.name = "Renamed"
        source.config.allowed_domains = "example.com"

        registry.update(source)

        stored = registry.get_by_id(source.id)
        assert stored.name == "Renamed"
        assert stored.config.allowed_domains == "example.com"
        assert stored.type is LoginType.SMTP

    def test_file_update_rewrites_origin_file(self, registry, sources_dir):
        source = registry.get_by_id(102)
        source.name = "Relay"
        source.is_activated = True
        source.config.port = 465

        registry.update(source)

        on_disk = source_from_file(str(sources_dir / "smtp.conf"))
        assert on_disk.name == "Relay"
        assert on_disk.is_activated
        assert on_disk.config.port == 465
        assert registry.get_by_id(102).name == "Relay"

    def test_file_default_demotes_database_sources(self, registry, make_smtp_source, sources_dir):
        db_source = registry.create(make_smtp_source(is_default=True))
        source = registry.get_by_id(102)
        source.is_default = True

        registry.update(source)

        assert defaults(registry) == ["Mail Gateway"]
        assert not registry.get_by_id(db_source.id).is_default
        assert not source_from_file(str(sources_dir / "ldap.conf")).is_default
        assert source_from_file(str(sources_dir / "smtp.conf")).is_default

    def test_default_mirrors_config_into_other_files(self, registry, make_smtp_source, sources_dir):
        registry.create(
            make_smtp_source(
                name="PAM default",
                type=LoginType.PAM,
                config=PAMConfig(service_name="system-auth"),
                is_default=True,
            )
        )

        text = (sources_dir / "smtp.conf").read_text(encoding="utf-8")
        assert re.search(r"^service_name\s*=\s*system-auth$", text, re.M)
        assert re.search(r"^is_default\s*=\s*false$", text, re.M)

    def test_mirroring_can_be_disabled(self, db_sources, cache, users, make_smtp_source, sources_dir):
        from authsources.core.registry import SourceRegistry

        registry = SourceRegistry(db_sources, cache, users, mirror_default_config=False)
        registry.create(
            make_smtp_source(
                name="PAM default",
                type=LoginType.PAM,
                config=PAMConfig(service_name="system-auth"),
                is_default=True,
            )
        )

        text = (sources_dir / "smtp.conf").read_text(encoding="utf-8")
        assert "service_name" not in text
        assert re.search(r"^is_default\s*=\s*false$", text, re.M)

    def test_single_default_after_any_sequence(self, registry, make_smtp_source):
        a = registry.create(make_smtp_source(name="A", is_default=True))
        b = registry.create(make_smtp_source(name="B"))
        file_source = registry.get_by_id(102)

        for source in (b, file_source, a, registry.get_by_id(101), b):
            source.is_default = True
            registry.update(source)
            assert len(defaults(registry)) == 1

        assert defaults(registry) == ["B"]

    def test_non_default_update_keeps_current_default(self, registry, make_smtp_source):
        source = registry.create(make_smtp_source())
        source.name = "Still not default"

        registry.update(source)

        assert defaults(registry) == ["Corporate LDAP"]

    def test_file_rename_to_database_name_is_refused(self, registry, make_smtp_source, sources_dir):
        registry.create(make_smtp_source(name="Taken"))
        source = registry.get_by_id(102)
        source.name = "Taken"

        with pytest.raises(AlreadyExists):
            registry.update(source)

        assert source_from_file(str(sources_dir / "smtp.conf")).name == "Mail Gateway"

    def test_database_rename_to_file_name_is_refused(self, registry, make_smtp_source):
        source = registry.create(make_smtp_source())
        source.name = "Corporate LDAP"

        with pytest.raises(AlreadyExists):
            registry.update(source)

        assert registry.get_by_id(source.id).name == "Office SMTP"

    def test_keeping_own_name_is_not_a_clash(self, registry, make_smtp_source):
        db_source = registry.create(make_smtp_source())
        db_source.is_activated = False
        registry.update(db_source)

        file_source = registry.get_by_id(102)
        file_source.is_activated = True
        registry.update(file_source)

        assert registry.get_by_id(102).is_activated

    def test_update_with_config_of_another_type_is_refused(self, registry, sources_dir):
        source = registry.get_by_id(102)
        source.config = PAMConfig(service_name="login")

        with pytest.raises(InvalidSourceType):
            registry.update(source)

        assert "service_name" not in (sources_dir / "smtp.conf").read_text(encoding="utf-8")

    def test_file_write_failure_is_surfaced(self, registry, sources_dir):
        source = registry.get_by_id(102)
        source.local_file.abspath = str(sources_dir / "missing-dir" / "smtp.conf")

        with pytest.raises(PersistenceFailure):
            registry.update(source)


@pytest.mark.unit
class TestDelete:
    def test_delete_unreferenced(self, registry, make_smtp_source):
        source = registry.create(make_smtp_source())

        registry.delete(source)

        assert "Office SMTP" not in [s.name for s in registry.list()]

    def test_delete_in_use(self, registry, users, make_smtp_source):
        source = registry.create(make_smtp_source())
        users.create_user(
            UserRecord(
                name="jdoe",
                email="jdoe@example.net",
                login_type=LoginType.SMTP,
                login_source=source.id,
                login_name="jdoe@example.net",
            )
        )

        with pytest.raises(InUse):
            registry.delete(source)

        assert registry.get_by_id(source.id).name == "Office SMTP"

    def test_file_sources_are_not_deletable(self, registry, sources_dir):
        with pytest.raises(SourceNotDeletable):
            registry.delete(registry.get_by_id(102))

        assert (sources_dir / "smtp.conf").exists()
        assert registry.count() == 2
