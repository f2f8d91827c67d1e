"""Push notification delivery implementations."""

from __future__ import annotations

import logging
from http import HTTPStatus
from urllib.parse import urlsplit

import httpx

from pushwire.push.contracts import (
  AuthTokenError,
  CallerAction,
  DeliveryError,
  DeliveryMode,
  DeliveryOutcome,
  DeliveryResult,
  EncryptionError,
  InvalidPushSubscriptionError,
  KeyFormatError,
  MalformedPushRequestError,
  NotificationPayload,
  PushError,
  PushSender,
  RateLimitedError,
  ServerIdentity,
  Subscription,
  TransientPushProviderError,
  VapidRejectedError,
)
from pushwire.push.encryption import AUTH_SECRET_LENGTH, encrypt_payload
from pushwire.push.signing import import_signing_key
from pushwire.push.vapid import VapidToken, build_auth_token
from pushwire.utils.codec import CodecError, b64url_decode

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 86400
DEFAULT_TIMEOUT_SECONDS = 10.0
BODY_PREVIEW_CHARS = 200

_STATUS_CLASSES: dict[int, tuple[type[DeliveryError], DeliveryOutcome, CallerAction, str]] = {
  HTTPStatus.BAD_REQUEST: (MalformedPushRequestError, DeliveryOutcome.INVALID_REQUEST, CallerAction.REPORT_MISCONFIGURATION, "Push service rejected the request as malformed"),
  HTTPStatus.UNAUTHORIZED: (VapidRejectedError, DeliveryOutcome.AUTH_REJECTED, CallerAction.CHECK_VAPID_KEYS, "Push service rejected the VAPID credentials"),
  HTTPStatus.FORBIDDEN: (VapidRejectedError, DeliveryOutcome.AUTH_REJECTED, CallerAction.CHECK_VAPID_KEYS, "Push service rejected the VAPID credentials"),
  HTTPStatus.NOT_FOUND: (InvalidPushSubscriptionError, DeliveryOutcome.SUBSCRIPTION_EXPIRED, CallerAction.RESUBSCRIBE, "Push subscription is invalid"),
  HTTPStatus.GONE: (InvalidPushSubscriptionError, DeliveryOutcome.SUBSCRIPTION_EXPIRED, CallerAction.RESUBSCRIBE, "Push subscription has expired"),
  HTTPStatus.TOO_MANY_REQUESTS: (RateLimitedError, DeliveryOutcome.RATE_LIMITED, CallerAction.RETRY_LATER, "Push service is rate limiting this sender"),
}


def endpoint_host(endpoint: str) -> str | None:
  """Return the push service host of an endpoint; the only part of it that is logged."""
  try:
    return urlsplit(endpoint).hostname
  except ValueError:
    return None


def classify_response(status: int, body: str = "", *, endpoint_host: str | None = None) -> DeliveryResult:
  """Map a push service HTTP status onto a typed delivery result."""
  if 200 <= status < 300:
    return DeliveryResult(outcome=DeliveryOutcome.DELIVERED, status=status, reason="accepted", endpoint_host=endpoint_host)

  preview = body[:BODY_PREVIEW_CHARS]
  error_type, outcome, action, message = _STATUS_CLASSES.get(status, (TransientPushProviderError, DeliveryOutcome.TRANSIENT_FAILURE, CallerAction.RETRY_LATER, "Push delivery failed"))
  reason = f"{message} (status={status})" + (f": {preview}" if preview else "")
  error = error_type(reason, status=status, body=preview)
  return DeliveryResult(outcome=outcome, action=action, status=status, reason=reason, endpoint_host=endpoint_host, error=error)


def _local_failure(error: PushError, *, action: CallerAction, endpoint_host: str | None) -> DeliveryResult:
  logger.error("Push delivery aborted before sending host=%s error=%s: %s", endpoint_host, type(error).__name__, error)
  return DeliveryResult(outcome=DeliveryOutcome.LOCAL_ERROR, action=action, reason=str(error), endpoint_host=endpoint_host, error=error)


def _network_failure(exc: Exception, *, endpoint_host: str | None) -> DeliveryResult:
  reason = f"Push request failed before a response: {type(exc).__name__}"
  logger.warning("Push delivery transport failure host=%s error=%s", endpoint_host, exc)
  error = TransientPushProviderError(reason)
  error.__cause__ = exc
  return DeliveryResult(outcome=DeliveryOutcome.TRANSIENT_FAILURE, action=CallerAction.RETRY_LATER, reason=reason, endpoint_host=endpoint_host, error=error)


def _decode_key(value: str, label: str) -> bytes:
  try:
    return b64url_decode(value)
  except CodecError as exc:
    raise KeyFormatError(f"{label} is not valid base64url") from exc


def _subscriber_keys(subscription: Subscription) -> tuple[bytes, bytes]:
  """Decode and check the subscription key material; both keys are mandatory in every mode."""
  if not subscription.endpoint or not subscription.p256dh or not subscription.auth:
    raise KeyFormatError("Push subscription is missing its endpoint, p256dh key or auth secret")

  try:
    parts = urlsplit(subscription.endpoint)
    host, port = parts.hostname, parts.port
  except ValueError as exc:
    raise KeyFormatError("Push subscription endpoint is not a valid URL") from exc

  if parts.scheme not in {"https", "http"} or not host or port == 0:
    raise KeyFormatError("Push subscription endpoint must be an absolute http(s) URL")

  p256dh = _decode_key(subscription.p256dh, "subscription p256dh key")
  auth = _decode_key(subscription.auth, "subscription auth secret")
  if len(auth) != AUTH_SECRET_LENGTH:
    raise KeyFormatError(f"subscription auth secret must be {AUTH_SECRET_LENGTH} bytes, got {len(auth)}")

  return p256dh, auth


def _vapid_token(endpoint: str, identity: ServerIdentity) -> VapidToken:
  signing_key = import_signing_key(_decode_key(identity.private_key, "VAPID private key"), _decode_key(identity.public_key, "VAPID public key"))
  return build_auth_token(endpoint, identity.subject, signing_key)


async def send(
  subscription: Subscription,
  payload: NotificationPayload | None,
  identity: ServerIdentity,
  *,
  mode: DeliveryMode = DeliveryMode.SILENT,
  ttl_seconds: int = DEFAULT_TTL_SECONDS,
  timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
  client: httpx.AsyncClient | None = None,
) -> DeliveryResult:
  """Make exactly one delivery attempt; every failure comes back as a result, never an exception."""
  host = endpoint_host(subscription.endpoint)

  try:
    mode = DeliveryMode(mode)
  except ValueError as exc:
    error = PushError(f"unknown delivery mode {mode!r}")
    error.__cause__ = exc
    return _local_failure(error, action=CallerAction.REPORT_MISCONFIGURATION, endpoint_host=host)

  try:
    subscriber_key, auth_secret = _subscriber_keys(subscription)
  except KeyFormatError as exc:
    return _local_failure(exc, action=CallerAction.RESUBSCRIBE, endpoint_host=host)

  try:
    token = _vapid_token(subscription.endpoint, identity)
  except (KeyFormatError, AuthTokenError) as exc:
    return _local_failure(exc, action=CallerAction.CHECK_VAPID_KEYS, endpoint_host=host)

  headers = {"Authorization": token.authorization_header, "TTL": str(int(ttl_seconds))}
  content: bytes | None = None

  if mode is DeliveryMode.ENCRYPTED:
    plaintext = payload.to_bytes() if payload is not None else b""
    try:
      content = encrypt_payload(plaintext, subscriber_key, auth_secret)
    except KeyFormatError as exc:
      return _local_failure(exc, action=CallerAction.RESUBSCRIBE, endpoint_host=host)
    except EncryptionError as exc:
      return _local_failure(exc, action=CallerAction.REPORT_MISCONFIGURATION, endpoint_host=host)
    headers["Content-Type"] = "application/octet-stream"
    headers["Content-Encoding"] = "aes128gcm"
  else:
    # An empty body tells the service worker to show its default notification.
    headers["Content-Length"] = "0"

  try:
    if client is None:
      async with httpx.AsyncClient(timeout=timeout_seconds) as owned_client:
        response = await owned_client.post(subscription.endpoint, headers=headers, content=content)
    else:
      response = await client.post(subscription.endpoint, headers=headers, content=content, timeout=timeout_seconds)
  except (httpx.HTTPError, httpx.InvalidURL) as exc:
    return _network_failure(exc, endpoint_host=host)

  result = classify_response(response.status_code, response.text, endpoint_host=host)
  _log_result(result, mode)
  return result


def _log_result(result: DeliveryResult, mode: DeliveryMode) -> None:
  if result.ok:
    logger.info("Push delivered host=%s status=%s mode=%s", result.endpoint_host, result.status, mode.value)
  elif result.fatal:
    logger.error("Push rejected host=%s status=%s action=%s reason=%s", result.endpoint_host, result.status, result.action.value, result.reason)
  else:
    logger.warning("Push not delivered host=%s status=%s action=%s", result.endpoint_host, result.status, result.action.value)


class WebPushSender(PushSender):
  """Sender bound to the process-wide VAPID identity."""

  def __init__(
    self,
    *,
    identity: ServerIdentity,
    mode: DeliveryMode = DeliveryMode.SILENT,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    client: httpx.AsyncClient | None = None,
  ) -> None:
    self._identity = identity
    self._mode = DeliveryMode(mode)
    self._ttl_seconds = ttl_seconds
    self._timeout_seconds = timeout_seconds
    self._client = client

  async def send(self, subscription: Subscription, payload: NotificationPayload | None = None, *, mode: DeliveryMode | None = None) -> DeliveryResult:
    """Send one push message using the configured mode unless *mode* overrides it."""
    return await send(subscription, payload, self._identity, mode=mode or self._mode, ttl_seconds=self._ttl_seconds, timeout_seconds=self._timeout_seconds, client=self._client)


class NullPushSender(PushSender):
  """No-op push sender used when push notifications are disabled or unconfigured."""

  async def send(self, subscription: Subscription, payload: NotificationPayload | None = None, *, mode: DeliveryMode | None = None) -> DeliveryResult:
    """Drop the notification while recording a debug log."""
    host = endpoint_host(subscription.endpoint)
    logger.debug("Push notifications disabled; dropping push host=%s", host)
    return DeliveryResult(outcome=DeliveryOutcome.DISABLED, reason="Push notifications are disabled", endpoint_host=host)
