# src/utils/logging_setup.py
import json
import logging
import sys
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    """로그 레코드를 한 줄짜리 JSON으로 출력합니다."""

    EXTRA_FIELDS = ("username", "image", "tag", "operation", "method", "path", "status")

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in self.EXTRA_FIELDS:
            value = record.__dict__.get(key)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """
    루트 로거를 설정합니다. 서버 시작 시 한 번만 호출합니다.

    Args:
        level: 로그 레벨 이름 (DEBUG, INFO, WARNING, ERROR).
        fmt: 'json'이면 JSON 한 줄 형식, 그 외에는 사람이 읽기 쉬운 형식.
    """
    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
