"""Settings, logging and error taxonomy."""

import json
import logging

import pytest
from pydantic import ValidationError as SettingsValidationError

from quiz_portal.config import Settings
from quiz_portal.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
    error_from_payload,
)
from quiz_portal.logging_config import JSONFormatter, get_logger, set_request_id


class TestSettings:
    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("QUIZ_PORTAL_MIN_OPTIONS", "3")
        monkeypatch.setenv("QUIZ_PORTAL_ENVIRONMENT", "production")

        s = Settings()
        assert s.MIN_OPTIONS == 3
        assert s.is_production is True

    def test_log_format_is_checked(self, monkeypatch):
        monkeypatch.setenv("QUIZ_PORTAL_LOG_FORMAT", "xml")
        with pytest.raises(SettingsValidationError):
            Settings()


class TestLogging:
    def test_module_loggers_are_children(self):
        assert get_logger("services.ledger").name == "quiz_portal.services.ledger"
        assert get_logger("quiz_portal.services.ledger").name == "quiz_portal.services.ledger"

    def test_json_formatter_includes_request_id_and_extras(self):
        set_request_id("abc12345")
        record = logging.LogRecord("quiz_portal.test", logging.INFO, __file__, 1, "submitted %s", ("q1",), None)
        record.http_status = 201

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "submitted q1"
        assert data["request_id"] == "abc12345"
        assert data["http_status"] == 201
        set_request_id("")


class TestErrors:
    def test_to_dict(self):
        err = NotFoundError("Quiz not found", details={"quiz_id": 3})
        assert err.status_code == 404
        assert err.to_dict() == {"code": "NOT_FOUND", "message": "Quiz not found", "details": {"quiz_id": 3}}

    def test_validation_error_carries_field_map(self):
        err = ValidationError("Title is required.", errors={"title": "Title is required."})
        assert err.to_dict()["details"] == {"errors": {"title": "Title is required."}}

    def test_payload_round_trip(self):
        err = error_from_payload(409, ConflictError("Already submitted").to_dict())
        assert isinstance(err, ConflictError)
        assert err.message == "Already submitted"

    @pytest.mark.parametrize("payload", [None, "oops", {"code": "TEAPOT", "message": "short and stout"}])
    def test_unknown_payload_is_internal(self, payload):
        assert isinstance(error_from_payload(418, payload), InternalError)
