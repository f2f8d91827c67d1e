import logging
import logging.handlers
import sys
import traceback
from pathlib import Path
from types import TracebackType

from pushwire.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_FILE_NAME = "pushwire.log"

_LOGGING_INITIALIZED = False


class TruncatedFormatter(logging.Formatter):
  """Formatter that keeps the exception header and only the innermost traceback lines."""

  tail_lines = 5

  # ruff: noqa: N802
  def formatException(self, ei: tuple[type[BaseException] | None, BaseException | None, TracebackType | None]) -> str:
    lines = traceback.format_exception(*ei)
    if len(lines) <= self.tail_lines + 1:
      return "".join(lines)

    omitted = len(lines) - self.tail_lines - 1
    return "".join([lines[0], f"    ... {omitted} lines omitted\n", *lines[-self.tail_lines :]])


def _backup_namer(default_name: str) -> str:
  """Name rotated files ``pushwire.log-1`` instead of ``pushwire.log.1``."""
  base, _, num = default_name.rpartition(".")
  if num.isdigit():
    return f"{base}-{num}"
  return default_name


def _build_file_handler(settings: Settings) -> logging.Handler:
  log_dir = Path(settings.log_dir or ".")
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log directory at {log_dir}: {exc}") from exc

  file_handler = logging.handlers.RotatingFileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)
  file_handler.namer = _backup_namer
  file_handler.setFormatter(logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  return file_handler


def setup_logging(settings: Settings) -> Path | None:
  """Route root and uvicorn loggers to stdout and, when configured, a rotating file."""
  global _LOGGING_INITIALIZED
  if _LOGGING_INITIALIZED:
    return Path(settings.log_dir) / LOG_FILE_NAME if settings.log_dir else None

  stream_handler = logging.StreamHandler(sys.stdout)
  stream_handler.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  handlers: list[logging.Handler] = [stream_handler]

  log_path: Path | None = None
  if settings.log_dir:
    handlers.append(_build_file_handler(settings))
    log_path = Path(settings.log_dir) / LOG_FILE_NAME

  for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    log = logging.getLogger(logger_name)
    log.handlers = list(handlers)
    log.propagate = False

  logging.basicConfig(level=settings.log_level, handlers=handlers, force=True)
  # httpx logs every request line at INFO, including full endpoint URLs.
  logging.getLogger("httpx").setLevel(logging.WARNING)

  _LOGGING_INITIALIZED = True
  logging.getLogger(__name__).info("Logging initialized level=%s file=%s", settings.log_level, log_path)
  return log_path
