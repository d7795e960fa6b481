from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import Any, Dict

# stdout carries the MCP protocol stream; everything else goes to stderr
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("stock_helper")


def configure_logging(level: str = "ERROR") -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.ERROR))


def silent_logger(name: str = "stock_helper.silent") -> logging.Logger:
    """Logger that drops every record; handed to chatty third-party clients."""
    quiet = logging.getLogger(name)
    quiet.handlers = [logging.NullHandler()]
    quiet.propagate = False
    quiet.setLevel(logging.CRITICAL + 1)
    return quiet


def _is_broken_pipe(exc: BaseException | None) -> bool:
    return isinstance(exc, BrokenPipeError)


def _excepthook(exc_type, exc, tb) -> None:
    if _is_broken_pipe(exc):
        return
    logger.critical("Uncaught exception: %s", exc, exc_info=(exc_type, exc, tb))


def _thread_excepthook(args: threading.ExceptHookArgs) -> None:
    if _is_broken_pipe(args.exc_value):
        return
    logger.critical(
        "Uncaught exception in thread %s: %s",
        getattr(args.thread, "name", "?"),
        args.exc_value,
        exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
    )


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
    exc = context.get("exception")
    if _is_broken_pipe(exc):
        return
    logger.critical("Unhandled rejection: %s", exc or context.get("message"), exc_info=exc)


def install_fault_handlers(loop: asyncio.AbstractEventLoop | None = None) -> None:
    """Route uncaught faults to stderr without terminating the process."""
    sys.excepthook = _excepthook
    threading.excepthook = _thread_excepthook
    if loop is not None:
        loop.set_exception_handler(_loop_exception_handler)
