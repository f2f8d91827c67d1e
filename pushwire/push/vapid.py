"""VAPID (RFC 8292) token construction."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from urllib.parse import urlsplit

from pushwire.push.contracts import AuthTokenError, PushError, Signer
from pushwire.push.signing import normalize_signature, sign
from pushwire.utils.codec import b64url_encode

logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 12 * 60 * 60
_JWT_HEADER = {"alg": "ES256", "typ": "JWT"}


@dataclass(frozen=True)
class VapidToken:
  """Signed JWT plus the public key the push service verifies it with."""

  jwt: str
  public_key: str

  @property
  def authorization_header(self) -> str:
    return f"vapid t={self.jwt}, k={self.public_key}"


def audience_for(endpoint_url: str) -> str:
  """Return the ``scheme://host`` origin of a push endpoint."""
  try:
    parts = urlsplit(endpoint_url)
    host = parts.hostname
    port = parts.port
  except ValueError as exc:
    raise AuthTokenError("push endpoint is not a valid URL") from exc

  if not parts.scheme or not host:
    raise AuthTokenError("push endpoint must be an absolute URL")

  # hostname drops userinfo and brackets; IPv6 literals need theirs back.
  if ":" in host:
    host = f"[{host}]"
  return f"{parts.scheme}://{host}:{port}" if port is not None else f"{parts.scheme}://{host}"


def _b64url_json(value: dict[str, object]) -> str:
  return b64url_encode(json.dumps(value, separators=(",", ":")).encode("utf-8"))


def build_auth_token(endpoint_url: str, subject: str, signing_key: Signer, *, now: float | None = None) -> VapidToken:
  """Build a 12 hour ES256 JWT bound to the push service origin of *endpoint_url*."""
  audience = audience_for(endpoint_url)
  issued_at = int(time.time() if now is None else now)
  claims = {"aud": audience, "exp": issued_at + TOKEN_TTL_SECONDS, "sub": subject}

  unsigned = f"{_b64url_json(_JWT_HEADER)}.{_b64url_json(claims)}"
  try:
    signature = normalize_signature(sign(signing_key, unsigned.encode("utf-8")))
    public_key = b64url_encode(signing_key.public_key_bytes())
  except PushError as exc:
    raise AuthTokenError(f"VAPID token signing failed: {exc}") from exc
  except Exception as exc:  # noqa: BLE001
    raise AuthTokenError(f"VAPID token signing failed: {type(exc).__name__}") from exc

  logger.debug("VAPID token built aud=%s exp=%s", audience, claims["exp"])
  return VapidToken(jwt=f"{unsigned}.{b64url_encode(signature)}", public_key=public_key)
