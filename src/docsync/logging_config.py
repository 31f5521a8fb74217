from __future__ import annotations

import json
import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

_EVENT = re.compile(r"([a-z]+(?:_[a-z]+)+)(?: |$)")


class JsonFormatter(logging.Formatter):
    """One JSON object per line. Messages written as "event key=value ..." also get an `event` field."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        }
        event = _EVENT.match(message)
        if event:
            payload["event"] = event.group(1)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _handler(path: Path, level: int) -> RotatingFileHandler:
    fh = RotatingFileHandler(path, maxBytes=2_000_000, backupCount=5, encoding="utf-8")
    fh.setFormatter(JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    fh.setLevel(level)
    return fh


def setup_logging(logs_dir: Path, level: int = logging.INFO, console: bool = True) -> None:
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return

    root.addHandler(_handler(logs_dir / "app.log", logging.INFO))
    root.addHandler(_handler(logs_dir / "errors.log", logging.ERROR))
    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        stream.setLevel(level)
        root.addHandler(stream)

    fetch_handler = _handler(logs_dir / "fetch.log", logging.INFO)
    logging.getLogger("docsync.fetch").addHandler(fetch_handler)
    logging.getLogger("docsync.fetch").setLevel(logging.INFO)

    sync_handler = _handler(logs_dir / "sync.log", logging.INFO)
    logging.getLogger("docsync.sync").addHandler(sync_handler)
    logging.getLogger("docsync.sync").setLevel(logging.INFO)
