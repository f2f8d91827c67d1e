"""Contracts for Web Push delivery: data model, error taxonomy and crypto capabilities."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class DeliveryMode(str, Enum):
  """How a push message is delivered to the push service."""

  SILENT = "silent"
  ENCRYPTED = "encrypted"


class DeliveryOutcome(str, Enum):
  """Classified outcome of one delivery attempt."""

  DELIVERED = "delivered"
  INVALID_REQUEST = "invalid_request"
  AUTH_REJECTED = "auth_rejected"
  SUBSCRIPTION_EXPIRED = "subscription_expired"
  RATE_LIMITED = "rate_limited"
  TRANSIENT_FAILURE = "transient_failure"
  LOCAL_ERROR = "local_error"
  DISABLED = "disabled"


class CallerAction(str, Enum):
  """What the owner of a subscription should do next."""

  NONE = "none"
  RESUBSCRIBE = "resubscribe"
  CHECK_VAPID_KEYS = "check_vapid_keys"
  REPORT_MISCONFIGURATION = "report_misconfiguration"
  RETRY_LATER = "retry_later"


@dataclass(frozen=True)
class Subscription:
  """Where and how to reach one recipient's push agent."""

  endpoint: str
  p256dh: str
  auth: str

  @classmethod
  def from_dict(cls, data: dict[str, Any]) -> Subscription:
    """Build a subscription from the browser's ``PushSubscription.toJSON()`` shape."""
    keys = data.get("keys") or {}
    return cls(endpoint=str(data.get("endpoint") or ""), p256dh=str(keys.get("p256dh") or ""), auth=str(keys.get("auth") or ""))


@dataclass(frozen=True)
class ServerIdentity:
  """Process-wide VAPID key pair and contact subject."""

  public_key: str
  private_key: str = field(repr=False)
  subject: str


@dataclass(frozen=True)
class NotificationPayload:
  """Represents a push notification payload."""

  title: str
  body: str

  def to_bytes(self) -> bytes:
    """Serialize the payload as the UTF-8 JSON document delivered to the service worker."""
    return json.dumps({"title": self.title, "body": self.body}, ensure_ascii=False).encode("utf-8")


class PushError(Exception):
  """Base class for all push delivery failures."""


class KeyFormatError(PushError):
  """Exception raised when key material has the wrong size or is not a valid P-256 key."""


class SignatureFormatError(PushError):
  """Exception raised when an ECDSA signature is neither raw r||s nor DER."""


class AuthTokenError(PushError):
  """Exception raised when a VAPID token cannot be built or signed."""


class EncryptionError(PushError):
  """Exception raised when key agreement, derivation or AEAD encryption fails."""


class DeliveryError(PushError):
  """Exception raised when the push service rejects or fails a request."""

  def __init__(self, message: str, *, status: int | None = None, body: str = "") -> None:
    super().__init__(message)
    self.status = status
    self.body = body


class MalformedPushRequestError(DeliveryError):
  """Exception raised when the push service reports a malformed request (400)."""


class VapidRejectedError(DeliveryError):
  """Exception raised when the push service rejects the VAPID credentials (401/403)."""


class InvalidPushSubscriptionError(DeliveryError):
  """Exception raised when a push subscription endpoint is expired or invalid (404/410)."""


class RateLimitedError(DeliveryError):
  """Exception raised when the push service throttles the sender (429)."""


class TransientPushProviderError(DeliveryError):
  """Exception raised for unclassified statuses and network failures."""


_FATAL_OUTCOMES = {DeliveryOutcome.INVALID_REQUEST, DeliveryOutcome.AUTH_REJECTED, DeliveryOutcome.LOCAL_ERROR}
_RETRYABLE_OUTCOMES = {DeliveryOutcome.RATE_LIMITED, DeliveryOutcome.TRANSIENT_FAILURE}


@dataclass(frozen=True)
class DeliveryResult:
  """Outcome of one send attempt; failures carry the typed error instead of raising it."""

  outcome: DeliveryOutcome
  action: CallerAction = CallerAction.NONE
  status: int | None = None
  reason: str = ""
  endpoint_host: str | None = None
  error: PushError | None = None

  @property
  def ok(self) -> bool:
    return self.outcome is DeliveryOutcome.DELIVERED

  @property
  def fatal(self) -> bool:
    """Return True when retrying the same request cannot succeed."""
    return self.outcome in _FATAL_OUTCOMES

  @property
  def retryable(self) -> bool:
    return self.outcome in _RETRYABLE_OUTCOMES

  def to_dict(self) -> dict[str, Any]:
    """Return the JSON shape reported to API callers."""
    if self.ok:
      return {"ok": True, "status": self.status, "endpointHost": self.endpoint_host}
    return {"ok": False, "status": self.status, "reason": self.reason, "endpointHost": self.endpoint_host, "action": self.action.value, "outcome": self.outcome.value}


class Signer(Protocol):
  """ECDSA P-256 signing capability."""

  def sign(self, message: bytes) -> bytes:
    """Sign *message* with ECDSA over SHA-256; the encoding is backend specific."""

  def public_key_bytes(self) -> bytes:
    """Return the 65-byte uncompressed public point."""


class EphemeralKey(Protocol):
  """One-shot ECDH key pair."""

  def public_key_bytes(self) -> bytes:
    """Return the 65-byte uncompressed public point."""

  def exchange(self, peer_public_key: bytes) -> bytes:
    """Derive the ECDH shared secret with a peer's uncompressed public point."""


class KeyAgreement(Protocol):
  """ECDH P-256 capability."""

  def generate_ephemeral(self) -> EphemeralKey:
    """Return a freshly generated key pair."""


class AeadCipher(Protocol):
  """AES-128-GCM capability."""

  def encrypt(self, key: bytes, nonce: bytes, plaintext: bytes) -> bytes:
    """Return ciphertext with the 16-byte tag appended."""


class PushSender(Protocol):
  """Delivery contract for sending push notifications."""

  async def send(self, subscription: Subscription, payload: NotificationPayload | None = None, *, mode: DeliveryMode | None = None) -> DeliveryResult:
    """Make one delivery attempt and classify the result."""
