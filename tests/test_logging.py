import json
import logging

from leaveflow.core.logging import CustomJsonFormatter, leave_request_context, request_id_var


def _format(message="transition"):
    formatter = CustomJsonFormatter("%(timestamp) %(level) %(name) %(message)")
    record = logging.LogRecord("leaveflow.test", logging.INFO, __file__, 1, message, None, None)
    return json.loads(formatter.format(record))


def test_leave_request_id_is_bound_inside_context():
    with leave_request_context(42):
        payload = _format()

    assert payload["leave_request_id"] == 42
    assert payload["level"] == "INFO"
    assert "leave_request_id" not in _format()


def test_request_and_leave_request_ids_together():
    token = request_id_var.set("req-1")
    try:
        with leave_request_context(7):
            payload = _format()
    finally:
        request_id_var.reset(token)

    assert payload["request_id"] == "req-1"
    assert payload["leave_request_id"] == 7


def test_nested_contexts_restore_outer_id():
    with leave_request_context(1):
        with leave_request_context(2):
            assert _format()["leave_request_id"] == 2
        assert _format()["leave_request_id"] == 1
