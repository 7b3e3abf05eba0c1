"""Console and audit-trail logging for the election orchestrator.

Console output goes through rich.  The optional audit file holds one JSON
object per record; the election identifiers every stage attaches through
``extra=`` (``election_id``, ``candidate_id``, ``voter``, ``action``,
``tx_hash``, ``block``) are lifted to top-level keys so a single election or
ballot can be traced with a plain filter.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler

AUDIT_FIELDS: Sequence[str] = ("election_id", "candidate_id", "voter", "action", "tx_hash", "block")
CHATTY_LIBRARIES: Sequence[str] = ("web3", "httpx", "httpcore", "urllib3", "matplotlib")

_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def configure_logging(log_file: Optional[str] = None, *, level: int = logging.INFO) -> logging.Logger:
    """Attach a rich console handler, and an audit file if asked, to the package logger.

    Transport libraries stay at WARNING unless ``level`` is DEBUG.
    """

    handler = RichHandler(console=Console(stderr=True), show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("mj_orchestrator")
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        audit = logging.FileHandler(path, encoding="utf-8")
        audit.setFormatter(AuditJsonFormatter())
        logger.addHandler(audit)

    for name in CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)

    logger.debug("Logging configured", extra={"action": "configure_logging", "audit_file": log_file})
    return logger


class AuditJsonFormatter(logging.Formatter):
    """One JSON line per record; audit fields on top, other ``extra=`` values under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context: Dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in _STANDARD_ATTRS:
                continue
            if key in AUDIT_FIELDS:
                entry[key] = value
            else:
                context[key] = value
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


__all__ = ["AUDIT_FIELDS", "AuditJsonFormatter", "configure_logging"]
