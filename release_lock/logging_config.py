"""Logging setup for the release lock service.

``local`` mode writes readable lines; every other mode writes one JSON
object per line so log shippers can index the delivery context fields.
"""

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any

CONTEXT_FIELDS = (
    "delivery_id",
    "event_kind",
    "owner",
    "repo",
    "installation_id",
)

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """Formats records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        document: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                document[name] = value
        if record.exc_info:
            document["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str)


class DeliveryLogAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Attaches one delivery's context to every record.

    Text output gets a ``[delivery owner/repo]`` prefix; the JSON formatter
    reads the same values from the record attributes.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        context = dict(self.extra or {})
        kwargs["extra"] = {**context, **kwargs.get("extra", {})}
        delivery = context.get("delivery_id") or "-"
        if context.get("owner") and context.get("repo"):
            return f"[{delivery} {context['owner']}/{context['repo']}] {msg}", kwargs
        return f"[{delivery}] {msg}", kwargs

    def bind(self, **fields: Any) -> "DeliveryLogAdapter":
        """Return an adapter with ``fields`` added to the context."""
        return DeliveryLogAdapter(self.logger, {**(self.extra or {}), **fields})


def configure_logging(level: str = "INFO", mode: str = "prod") -> None:
    """Install the root handler on stdout.

    Args:
        level: Logging level name
        mode: ``local`` for text lines, anything else for JSON lines
    """
    handler = logging.StreamHandler(sys.stdout)
    if mode == "local":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JsonFormatter())

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )
