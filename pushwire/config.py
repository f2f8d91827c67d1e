"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from pushwire.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

PUSH_MODES = ("silent", "encrypted")
DEFAULT_ALLOWED_PUSH_HOSTS = ("fcm.googleapis.com", "updates.push.services.mozilla.com", "push.services.mozilla.com", "web.push.apple.com", "notify.windows.com")


@dataclass(frozen=True)
class Settings:
  """Typed settings for the pushwire service."""

  environment: str
  debug: bool
  log_level: str
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int
  push_enabled: bool
  vapid_public_key: str | None
  vapid_private_key: str | None
  vapid_subject: str | None
  push_mode: str
  push_ttl_seconds: int
  push_timeout_seconds: float
  allowed_push_hosts: tuple[str, ...]

  @property
  def push_configured(self) -> bool:
    """Return True when every VAPID value needed to sign requests is present."""
    return bool(self.vapid_public_key and self.vapid_private_key and self.vapid_subject)

  def __repr__(self) -> str:
    # Keep the private key out of debug output and tracebacks.
    return f"Settings(environment={self.environment!r}, push_enabled={self.push_enabled}, push_mode={self.push_mode!r}, vapid_subject={self.vapid_subject!r})"


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  stripped = raw.strip()
  return stripped or None


def _parse_number(name: str, default: str, convert: type[int] | type[float]) -> int | float:
  raw = os.getenv(name, default).strip()
  try:
    return convert(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number, got {raw!r}.") from exc


def _parse_hosts(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return DEFAULT_ALLOWED_PUSH_HOSTS

  hosts = tuple(host.strip().lower() for host in raw.split(",") if host.strip())
  if not hosts:
    raise ValueError("PUSHWIRE_ALLOWED_PUSH_HOSTS must include at least one host.")

  return hosts


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("PUSHWIRE_ENV", "development").strip().lower()
  debug = _parse_bool(os.getenv("PUSHWIRE_DEBUG"))
  log_level = (os.getenv("PUSHWIRE_LOG_LEVEL") or ("DEBUG" if debug else "INFO")).strip().upper()
  log_dir = _optional_str(os.getenv("PUSHWIRE_LOG_DIR"))

  log_max_bytes = _parse_number("PUSHWIRE_LOG_MAX_BYTES", "5242880", int)  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("PUSHWIRE_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = _parse_number("PUSHWIRE_LOG_BACKUP_COUNT", "10", int)
  if log_backup_count < 0:
    raise ValueError("PUSHWIRE_LOG_BACKUP_COUNT must be zero or a positive integer.")

  push_enabled = _parse_bool(os.getenv("PUSHWIRE_PUSH_ENABLED"))
  vapid_public_key = _optional_str(os.getenv("PUSHWIRE_VAPID_PUBLIC_KEY"))
  vapid_private_key = _optional_str(os.getenv("PUSHWIRE_VAPID_PRIVATE_KEY"))
  vapid_subject = _optional_str(os.getenv("PUSHWIRE_VAPID_SUBJECT"))

  push_mode = (os.getenv("PUSHWIRE_PUSH_MODE") or "silent").strip().lower()
  if push_mode not in PUSH_MODES:
    raise ValueError("PUSHWIRE_PUSH_MODE must be 'silent' or 'encrypted'.")

  push_ttl_seconds = _parse_number("PUSHWIRE_PUSH_TTL_SECONDS", "86400", int)
  if push_ttl_seconds < 0:
    raise ValueError("PUSHWIRE_PUSH_TTL_SECONDS must be zero or a positive integer.")

  push_timeout_seconds = _parse_number("PUSHWIRE_PUSH_TIMEOUT_SECONDS", "10", float)
  if push_timeout_seconds <= 0:
    raise ValueError("PUSHWIRE_PUSH_TIMEOUT_SECONDS must be a positive number.")

  # Validate VAPID configuration only when push delivery is enabled.
  if push_enabled:
    if not vapid_public_key:
      raise ValueError("PUSHWIRE_VAPID_PUBLIC_KEY must be set when push is enabled.")

    if not vapid_private_key:
      raise ValueError("PUSHWIRE_VAPID_PRIVATE_KEY must be set when push is enabled.")

    if not vapid_subject:
      raise ValueError("PUSHWIRE_VAPID_SUBJECT must be set when push is enabled.")

    if not (vapid_subject.startswith("mailto:") or vapid_subject.startswith("https://")):
      raise ValueError("PUSHWIRE_VAPID_SUBJECT must start with 'mailto:' or 'https://'.")

  return Settings(
    environment=environment,
    debug=debug,
    log_level=log_level,
    log_dir=log_dir,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    push_enabled=push_enabled,
    vapid_public_key=vapid_public_key,
    vapid_private_key=vapid_private_key,
    vapid_subject=vapid_subject,
    push_mode=push_mode,
    push_ttl_seconds=push_ttl_seconds,
    push_timeout_seconds=push_timeout_seconds,
    allowed_push_hosts=_parse_hosts(os.getenv("PUSHWIRE_ALLOWED_PUSH_HOSTS")),
  )
