import json
import logging
from unittest.mock import patch

import pytest

from chatline.main import ensure_database_or_exit
from chatline.utils.logger import JSONFormatter


pytestmark = pytest.mark.unit


def test_unreachable_database_exits_with_status_1():
    with patch("chatline.main.database.check_connection", return_value=False):
        with pytest.raises(SystemExit) as exc_info:
            ensure_database_or_exit()

    assert exc_info.value.code == 1


def test_reachable_database_lets_startup_continue():
    with patch("chatline.main.database.check_connection", return_value=True):
        ensure_database_or_exit()


def _record(**extra):
    record = logging.LogRecord("chatline", logging.INFO, __file__, 10, "Message stored", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extra_fields():
    line = JSONFormatter().format(_record(message_id=7, receiver_id="u2"))
    payload = json.loads(line)

    assert payload["message"] == "Message stored"
    assert payload["level"] == "INFO"
    assert payload["message_id"] == 7
    assert payload["receiver_id"] == "u2"


def test_json_formatter_drops_sensitive_fields():
    payload = json.loads(JSONFormatter().format(_record(public_key="KEY", signature="SIG", user_id="u1")))

    assert "public_key" not in payload
    assert "signature" not in payload
    assert payload["user_id"] == "u1"
