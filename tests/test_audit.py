"""Unit tests for utils/audit.py."""

import json
import logging

import pytest

from authsources.utils.audit import AuditLogger


def events(caplog):
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == "authsources.utils.audit"]


@pytest.mark.unit
class TestAuditLogger:
    def test_failed_login_carries_reason(self, caplog):
        caplog.set_level(logging.INFO, logger="authsources.utils.audit")

        AuditLogger().login_attempt("jdoe", 7, False, "CredentialRejected")

        (event,) = events(caplog)
        assert event["event_type"] == "LOGIN_ATTEMPT"
        assert event["status"] == "FAILURE"
        assert event["reason"] == "CredentialRejected"
        assert event["source_id"] == 7
        assert "timestamp" in event

    def test_successful_login_has_no_reason(self, caplog):
        caplog.set_level(logging.INFO, logger="authsources.utils.audit")

        AuditLogger().login_attempt("jdoe", 7, True, "ignored")

        (event,) = events(caplog)
        assert event["status"] == "SUCCESS"
        assert "reason" not in event

    def test_source_lifecycle_event(self, caplog):
        caplog.set_level(logging.INFO, logger="authsources.utils.audit")

        AuditLogger().source_changed("SOURCE_UPDATED", 102, "Mail Gateway", "file")

        (event,) = events(caplog)
        assert event == {**event, "event_type": "SOURCE_UPDATED", "name": "Mail Gateway", "origin": "file"}

    def test_disabled_logger_is_silent(self, caplog):
        caplog.set_level(logging.INFO, logger="authsources.utils.audit")

        AuditLogger(enabled=False).user_provisioned("jdoe", 7, created=True)

        assert events(caplog) == []
