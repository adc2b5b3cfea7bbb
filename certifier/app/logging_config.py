import json
import logging
import sys
from datetime import datetime, timezone

from certifier.app.config import CertifierSettings

# Structured fields passed through `extra={...}` by the engine and adapters
_CONTEXT_FIELDS = (
    "run_id",
    "document_type",
    "stage",
    "kind",
    "reason",
    "review_id",
    "signature_id",
    "source",
    "error_type",
)


class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in _CONTEXT_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(settings: CertifierSettings) -> None:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JsonFormatter())
    handlers = [console_handler]

    # Optional file handler (always append)
    if settings.log_file is not None:
        file_handler = logging.FileHandler(settings.log_file, mode="a")
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(settings.numeric_log_level)
    root.handlers = handlers
