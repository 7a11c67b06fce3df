"""
Context-aware logging for the scoring engine.

A tool entry point installs an adapter with `set_logger(logger, vendor_name=...,
questionnaire_type=...)`; everything below it calls `get_logger()` and the
context fields end up in each record's prefix via ContextFilter and
DynamicPrefixFormatter.
"""

import re
import json
import logging
import pathlib
import datetime
import logging.config
from typing import Union
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler


_logger_var: ContextVar[Union[logging.Logger, logging.LoggerAdapter]] = ContextVar(
    "scoring_tool_logger", default=None
)

DEFAULT_LOGGER_NAME = "VendorScoring"
DEFAULT_CONFIG_FILE = pathlib.Path(__file__).resolve().parent.parent / "logging_config.json"
QUIET_LIBRARIES = ("openpyxl",)

CONTEXT_FIELDS = {
    "tool_name": "N/A",
    "project_id": "N/A",
    "vendor_name": "N/A",
    "request_type": "N/A",
    "questionnaire_type": "N/A",
}

RED = "\033[31m"
GREEN = "\033[32m"
BLUE = "\033[34m"
ORANGE = "\033[33m"
GREY = "\033[90m"
WHITE = "\033[97m"
PURPLE = "\033[35m"
RESET = "\033[0m"


def set_logger(logger: logging.Logger, **extra):
    _logger_var.set(logging.LoggerAdapter(logger, extra))


def get_logger() -> Union[logging.Logger, logging.LoggerAdapter]:
    # scoring functions are pure and may be called without a tool context
    return _logger_var.get() or logging.getLogger(DEFAULT_LOGGER_NAME)


class NoDebugFilter(logging.Filter):
    """Filter that blocks DEBUG messages"""

    def filter(self, record):
        return record.levelno > logging.DEBUG


class ContextFilter(logging.Filter):
    """Copy the current adapter's context fields onto every record."""

    def filter(self, record):
        adapter = _logger_var.get()
        extra = (adapter.extra or {}) if isinstance(adapter, logging.LoggerAdapter) else {}
        for key, default in CONTEXT_FIELDS.items():
            if not hasattr(record, key):
                setattr(record, key, extra.get(key, default))
        return True


class ProjectHandlerFilter(logging.Filter):
    """Filter for the per-project file handler - only allows DEBUG, ERROR, CRITICAL"""

    def filter(self, record):
        return record.levelno == logging.DEBUG or record.levelno >= logging.ERROR


def _prepare_file_handlers(config: dict) -> None:
    """Expand ~ in file handler paths and create their directories."""
    for handler in config.get("handlers", {}).values():
        if "filename" not in handler:
            continue
        path = pathlib.Path(handler["filename"]).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler["filename"] = str(path)


def setup_logging(config_file: str | pathlib.Path | None = None):
    config = json.loads(pathlib.Path(config_file or DEFAULT_CONFIG_FILE).read_text())
    _prepare_file_handlers(config)
    logging.config.dictConfig(config)

    # openpyxl reports unsupported extensions through logging as well as warnings
    for name in QUIET_LIBRARIES:
        quiet = logging.getLogger(name)
        quiet.setLevel(logging.ERROR)
        quiet.propagate = False

    context = ContextFilter()
    root = logging.getLogger()
    root.addFilter(context)
    for handler in root.handlers:
        handler.addFilter(context)
        handler.addFilter(NoDebugFilter())


def _project_file_handler(log_file: pathlib.Path) -> RotatingFileHandler:
    handler = RotatingFileHandler(filename=log_file, maxBytes=5_000_000, backupCount=1)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    handler.addFilter(ProjectHandlerFilter())
    return handler


def project_logger(
    project_id: str, tool_name: str, base_dir: pathlib.Path | None = None
) -> logging.Logger:
    """
    Logger named "<project_id>.<tool_name>" that also writes DEBUG and ERROR+
    records to <base_dir>/<project_id>/<tool_name>.log (base_dir defaults to
    ~/process_logs). Records still propagate to the root handlers.
    """
    log_dir = (base_dir or pathlib.Path.home() / "process_logs") / (project_id or "unknown")
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(f"{project_id}.{tool_name}")
    logger.setLevel(logging.DEBUG)
    # one file handler per logger, replaced on every call
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.addHandler(_project_file_handler(log_dir / f"{tool_name}.log"))
    logger.propagate = True
    return logger


class DynamicPrefixFormatter(logging.Formatter):
    """
    Color-aware formatter. Pass color=True/False from logging config.
    """

    PID_W = 20  # project_id
    VENDOR_W = 18
    PROC_W = 6  # POST/GET/WORKER/CLI
    TOOL_W = 13  # questionnaire type
    FUNC_W = 22  # function name
    LEVEL_W = 7  # INFO/WARNING/ERROR

    # (logger-name keywords, label) checked in order
    TOOL_LABELS = (
        (("cost", "procurement"), "PROCUREMENT"),
        (("build", "generate"), "TEMPLATE"),
        (("score", "scoring"), "SCORING"),
        (("parse",), "PARSE"),
    )

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = bool(color)

    def _c(self, code: str) -> str:
        """Return ANSI code only if color mode is enabled."""
        return code if self.color else ""

    @classmethod
    def _derive_tool_base(cls, record: logging.LogRecord) -> str:
        qtype = getattr(record, "questionnaire_type", None)
        if qtype and qtype != "N/A":
            return str(qtype).upper()

        name = getattr(record, "name", "")
        source = name.split(".", 1)[1] if "." in name else getattr(record, "tool_name", "")
        tool = re.sub(r"(_main|_worker)$", "", (source or "").lower())
        for keywords, label in cls.TOOL_LABELS:
            if any(k in tool for k in keywords):
                return label
        return "-"

    def _col(self, color: str, text: str, width: int) -> str:
        return f"{self._c(color)}{text:<{width}}"

    @staticmethod
    def _field(record: logging.LogRecord, name: str, width: int) -> str:
        return (getattr(record, name, "N/A") or "N/A")[:width]

    def format(self, record: logging.LogRecord) -> str:
        is_warning = record.levelno >= logging.WARNING
        is_error = record.levelno >= logging.ERROR
        process = self._field(record, "request_type", self.PROC_W)
        ts = datetime.datetime.fromtimestamp(record.created).strftime(
            "%Y-%m-%d %H:%M:%S"
        )

        marker = f"{self._c(RED)}[-]" if is_warning else f"{self._c(GREEN)}[+]"
        head = " ".join(
            [
                marker,
                f"{self._c(WHITE)}{ts}",
                self._col(BLUE, self._field(record, "project_id", self.PID_W), self.PID_W),
                self._col(ORANGE, self._field(record, "vendor_name", self.VENDOR_W), self.VENDOR_W),
                self._col(GREEN if process in ("POST", "WORKER") else WHITE, process, self.PROC_W),
            ]
        )
        dash = f"{self._c(RED)} - "
        level = self._col(RED if is_error else PURPLE, record.levelname, self.LEVEL_W)
        tool = self._col(GREY, self._derive_tool_base(record)[: self.TOOL_W], self.TOOL_W)
        func = self._col(GREY, self._field(record, "tool_name", self.FUNC_W), self.FUNC_W)

        parts = [f"{head}{dash}{level}{dash}{tool}: {func} {self._c(GREY)}{record.getMessage()}"]
        if record.exc_info:
            parts.append(self.formatException(record.exc_info))
        if record.stack_info:
            parts.append(self.formatStack(record.stack_info))

        reset = RESET if self.color else ""
        return "\n".join(p + reset for p in parts)
