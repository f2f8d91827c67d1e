"""VAPID key generation and identity checks."""

from __future__ import annotations

from cryptography.hazmat.primitives.asymmetric import ec

from pushwire.push.contracts import KeyFormatError, ServerIdentity
from pushwire.push.primitives import uncompressed_point
from pushwire.push.signing import PRIVATE_KEY_LENGTH
from pushwire.utils.codec import CodecError, b64url_decode, b64url_encode


def generate_vapid_keypair() -> tuple[str, str]:
  """Generate a new P-256 key pair as base64url ``(public_key, private_key)``."""
  private_key = ec.generate_private_key(ec.SECP256R1())
  private_bytes = private_key.private_numbers().private_value.to_bytes(PRIVATE_KEY_LENGTH, "big")
  return b64url_encode(uncompressed_point(private_key.public_key())), b64url_encode(private_bytes)


def public_key_for(private_key_b64: str) -> str:
  """Derive the base64url uncompressed public key that belongs to a raw private scalar."""
  try:
    private_bytes = b64url_decode(private_key_b64)
  except CodecError as exc:
    raise KeyFormatError("VAPID private key is not valid base64url") from exc

  if len(private_bytes) != PRIVATE_KEY_LENGTH:
    raise KeyFormatError(f"VAPID private key must be {PRIVATE_KEY_LENGTH} bytes, got {len(private_bytes)}")

  try:
    private_key = ec.derive_private_key(int.from_bytes(private_bytes, "big"), ec.SECP256R1())
  except ValueError as exc:
    raise KeyFormatError("VAPID private key is out of range for P-256") from exc

  return b64url_encode(uncompressed_point(private_key.public_key()))


def check_identity(identity: ServerIdentity) -> None:
  """Raise ``KeyFormatError`` unless the identity's public key matches its private key."""
  expected = public_key_for(identity.private_key)
  try:
    configured = b64url_encode(b64url_decode(identity.public_key))
  except CodecError as exc:
    raise KeyFormatError("VAPID public key is not valid base64url") from exc

  # Push services answer a mismatched pair with 401/403; catch it before the first send.
  if configured != expected:
    raise KeyFormatError("VAPID public key does not belong to the configured private key")
