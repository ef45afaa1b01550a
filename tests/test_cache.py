"""Unit tests for core/cache.py -- the in-memory file source cache."""

import threading

import pytest

from authsources.core.cache import LocalSourceCache
from authsources.errors import NotFound


@pytest.mark.unit
class TestReads:
    def test_len_and_list(self, cache):
        assert len(cache) == 2
        assert cache.len() == 2
        assert [s.id for s in cache.list()] == [101, 102]

    def test_list_returns_copies(self, cache):
        first = cache.list()[0]
        first.name = "Mutated"
        first.is_activated = False
        first.config.host = "evil.example.com"

        again = cache.list()[0]
        assert again.name == "Corporate LDAP"
        assert again.is_activated
        assert again.config.host == "ldap.example.com"

    def test_activated_list_filters(self, cache):
        assert [s.name for s in cache.activated_list()] == ["Corporate LDAP"]

    def test_get_by_id(self, cache):
        source = cache.get_by_id(102)
        source.name = "changed"

        assert cache.get_by_id(102).name == "Mail Gateway"

    def test_get_by_id_not_found(self, cache):
        with pytest.raises(NotFound):
            cache.get_by_id(999)

    def test_empty_before_load(self):
        assert LocalSourceCache().list() == []


@pytest.mark.unit
class TestLoad:
    def test_load_twice_is_refused(self, cache, sources_dir):
        with pytest.raises(RuntimeError):
            cache.load(str(sources_dir))

    def test_injected_lock_is_used(self, sources_dir):
        lock = threading.RLock()
        local_sources = LocalSourceCache(lock=lock)
        local_sources.load(str(sources_dir))

        assert local_sources._lock is lock


@pytest.mark.unit
class TestUpdateInMemory:
    def test_replaces_matching_entry(self, cache):
        source = cache.get_by_id(102)
        source.name = "SMTP Relay"
        source.is_activated = True

        cache.update_in_memory(source)

        assert cache.get_by_id(102).name == "SMTP Relay"
        assert [s.id for s in cache.activated_list()] == [101, 102]

    def test_new_default_clears_others(self, cache):
        source = cache.get_by_id(102)
        source.is_default = True

        cache.update_in_memory(source)

        assert [s.id for s in cache.list() if s.is_default] == [102]

    def test_database_source_with_same_id_does_not_replace(self, cache, make_smtp_source):
        db_source = make_smtp_source(id=101, is_default=True)

        cache.update_in_memory(db_source)

        cached = cache.get_by_id(101)
        assert cached.name == "Corporate LDAP"
        assert not cached.is_default

    def test_does_not_touch_files(self, cache, sources_dir):
        before = (sources_dir / "smtp.conf").read_text(encoding="utf-8")
        source = cache.get_by_id(102)
        source.name = "Only in memory"

        cache.update_in_memory(source)

        assert (sources_dir / "smtp.conf").read_text(encoding="utf-8") == before

    def test_concurrent_readers_and_writer(self, cache):
        errors = []

        def reader():
            try:
                for _ in range(200):
                    assert len(cache.list()) == 2
                    assert sum(1 for s in cache.list() if s.is_default) <= 1
            except AssertionError as e:
                errors.append(e)

        def writer():
            for i in range(200):
                source = cache.get_by_id(101 if i % 2 else 102)
                source.is_default = True
                cache.update_in_memory(source)

        threads = [threading.Thread(target=reader) for _ in range(4)] + [threading.Thread(target=writer)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
