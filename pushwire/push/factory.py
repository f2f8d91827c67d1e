"""Factory helpers for push delivery."""

from __future__ import annotations

import logging

from pushwire.config import Settings
from pushwire.push.contracts import DeliveryMode, PushSender, ServerIdentity
from pushwire.push.push_sender import NullPushSender, WebPushSender

logger = logging.getLogger(__name__)


def identity_from_settings(settings: Settings) -> ServerIdentity | None:
  """Return the VAPID identity described by settings, or None when incomplete."""
  if not settings.push_configured:
    return None
  return ServerIdentity(public_key=settings.vapid_public_key or "", private_key=settings.vapid_private_key or "", subject=settings.vapid_subject or "")


def build_push_sender(settings: Settings) -> PushSender:
  """Construct a push sender based on environment configuration."""
  identity = identity_from_settings(settings)

  # Fall back to a no-op sender so callers never branch on configuration.
  if not settings.push_enabled or identity is None:
    logger.debug("Push delivery disabled enabled=%s configured=%s", settings.push_enabled, settings.push_configured)
    return NullPushSender()

  return WebPushSender(identity=identity, mode=DeliveryMode(settings.push_mode), ttl_seconds=settings.push_ttl_seconds, timeout_seconds=settings.push_timeout_seconds)
