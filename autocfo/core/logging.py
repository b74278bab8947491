"""
Structured Logging
------------------
loguru output carrying the trace ID, agent ID and cycle number of whatever
treasury cycle is currently running.

Context lives in ``contextvars`` so it follows the call stack: ``log_context``
sets fields for a block, ``with_trace_id`` gives each top-level call its own
trace, and every message sent through ``log`` is bound with the active fields.
"""

import contextlib
import contextvars
import functools
import json
import sys
import uuid
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from loguru import logger

CONTEXT_FIELDS = ("trace_id", "agent_id", "cycle")

_context_vars: dict[str, contextvars.ContextVar] = {
    name: contextvars.ContextVar(name, default=None) for name in CONTEXT_FIELDS
}

# Console colour per context field
_FIELD_COLOURS = {"trace_id": "cyan", "agent_id": "blue", "cycle": "yellow"}

F = TypeVar("F", bound=Callable[..., Any])


def new_trace_id() -> str:
    return uuid.uuid4().hex[:8]


def get_trace_id() -> Optional[str]:
    return _context_vars["trace_id"].get()


def get_context() -> dict[str, Any]:
    """Active context fields; unset ones are None."""
    return {name: var.get() for name, var in _context_vars.items()}


@contextlib.contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Set context fields for the duration of a block.

    Example:
        with log_context(agent_id=agent.agent_id, cycle=3):
            log.info("Rebalancing")
    """
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown log context fields: {sorted(unknown)}")

    tokens = [(_context_vars[name], _context_vars[name].set(value)) for name, value in fields.items()]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def with_trace_id(func: F) -> F:
    """Run ``func`` under a fresh trace ID unless one is already active."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if get_trace_id():
            return func(*args, **kwargs)
        with log_context(trace_id=new_trace_id()):
            return func(*args, **kwargs)

    return cast(F, wrapper)


class StructuredLogger:
    """loguru facade that binds the active context to each message."""

    def _emit(self, level: str, message: str, *args: Any, exception: bool = False, **kwargs: Any) -> None:
        bound = {k: v for k, v in get_context().items() if v is not None}
        # depth=2 attributes the record to the caller of debug()/info()/...
        logger.bind(**bound).opt(depth=2, exception=exception).log(level, message, *args, **kwargs)

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._emit("DEBUG", message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._emit("INFO", message, *args, **kwargs)

    def success(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._emit("SUCCESS", message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._emit("WARNING", message, *args, **kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._emit("ERROR", message, *args, **kwargs)

    def exception(self, message: str, *args: Any, **kwargs: Any) -> None:
        """ERROR with the active exception's traceback attached."""
        self._emit("ERROR", message, *args, exception=True, **kwargs)

    def log(self, level: str, message: str, *args: Any, **kwargs: Any) -> None:
        self._emit(level, message, *args, **kwargs)


def json_formatter(record: dict[str, Any]) -> str:
    """
    One JSON object per line.

    loguru treats the returned string as a template, so the payload is
    stashed in ``extra`` and referenced from it.
    """
    extra = record["extra"]
    payload: dict[str, Any] = {
        "time": record["time"].isoformat(timespec="milliseconds"),
        "level": record["level"].name,
        "message": record["message"],
        "source": f'{record["module"]}:{record["function"]}:{record["line"]}',
    }
    payload.update({name: extra[name] for name in CONTEXT_FIELDS if extra.get(name) is not None})

    exc = record.get("exception")
    if exc:
        payload["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    extra["_json"] = json.dumps(payload, default=str)
    return "{extra[_json]}\n"


def human_formatter(record: dict[str, Any]) -> str:
    parts = ["<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green>", "<level>{level: <8}</level>"]
    for name in CONTEXT_FIELDS:
        if record["extra"].get(name) is not None:
            colour = _FIELD_COLOURS[name]
            parts.append(f"<{colour}>{name.split('_')[0]}={{extra[{name}]}}</{colour}>")
    parts.append("<level>{message}</level>")

    fmt = " | ".join(parts) + "\n"
    if record.get("exception"):
        fmt += "{exception}\n"
    return fmt


def configure_logging(
    level: str = "INFO",
    format: str = "human",
    log_file: Optional[str] = None,
) -> None:
    """
    Replace loguru's default sink.

    Args:
        level: Minimum level (DEBUG, INFO, SUCCESS, WARNING, ERROR)
        format: Console format, "human" or "json"
        log_file: Optional rotating file sink; always JSON
    """
    logger.remove()

    json_console = format == "json"
    logger.add(
        sys.stderr,
        level=level,
        format=json_formatter if json_console else human_formatter,
        colorize=not json_console,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        logger.add(
            log_file,
            level=level,
            format=json_formatter,
            rotation="100 MB",
            retention="30 days",
            compression="gz",
            backtrace=True,
            diagnose=False,
        )


log = StructuredLogger()
