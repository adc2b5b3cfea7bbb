import json
import logging

import pytest

from certifier.app.config import CertifierSettings
from certifier.app.logging_config import JsonFormatter, configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


def test_structured_fields_are_serialized():
    record = logging.LogRecord(
        name="certifier.app.engine.authorization",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="authorization_rejected",
        args=(),
        exc_info=None,
    )
    record.run_id = "run-1"
    record.kind = "signer_denied"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["msg"] == "authorization_rejected"
    assert payload["run_id"] == "run-1"
    assert payload["kind"] == "signer_denied"
    assert "review_id" not in payload


def test_file_handler_receives_json_lines(tmp_path, restore_root_logger):
    log_file = tmp_path / "certifier.log"
    configure_logging(CertifierSettings(log_file=log_file, log_level="WARNING"))

    logger = logging.getLogger("certifier.test")
    logger.info("hidden")
    logger.warning("collaborator_fault", extra={"stage": "content_bound"})

    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["stage"] == "content_bound"
