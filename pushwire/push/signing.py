"""ECDSA P-256 signing bridge.

Signing backends disagree on output encoding: some return IEEE P1363 raw
``r || s`` (64 bytes), others ASN.1 DER (``0x30 len 0x02 rlen r 0x02 slen s``)
with a leading zero byte whenever the high bit of an integer is set. JWTs need
the raw form, so every signature goes through :func:`normalize_signature`
before use. This is a permanent compatibility layer, not legacy code.
"""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from pushwire.push.contracts import KeyFormatError, SignatureFormatError, Signer
from pushwire.push.primitives import UNCOMPRESSED_POINT_LENGTH, UNCOMPRESSED_POINT_PREFIX, EcdsaP256Signer, load_public_point

PRIVATE_KEY_LENGTH = 32
COORDINATE_LENGTH = 32
RAW_SIGNATURE_LENGTH = 64

_DER_SEQUENCE = 0x30
_DER_INTEGER = 0x02

SigningKey = EcdsaP256Signer


def import_signing_key(private_key_raw: bytes, public_key_raw: bytes) -> SigningKey:
  """Rebuild a P-256 signing key from its raw scalar and uncompressed public point."""
  if len(private_key_raw) != PRIVATE_KEY_LENGTH:
    raise KeyFormatError(f"VAPID private key must be {PRIVATE_KEY_LENGTH} bytes, got {len(private_key_raw)}")

  if len(public_key_raw) != UNCOMPRESSED_POINT_LENGTH:
    raise KeyFormatError(f"VAPID public key must be {UNCOMPRESSED_POINT_LENGTH} bytes, got {len(public_key_raw)}")

  if public_key_raw[0] != UNCOMPRESSED_POINT_PREFIX:
    raise KeyFormatError("VAPID public key must be an uncompressed point (0x04 prefix)")

  # Build the key from (x, y, d) so the public half is checked against the scalar.
  x = int.from_bytes(public_key_raw[1 : 1 + COORDINATE_LENGTH], "big")
  y = int.from_bytes(public_key_raw[1 + COORDINATE_LENGTH :], "big")
  d = int.from_bytes(private_key_raw, "big")
  try:
    public_numbers = ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1())
    private_key = ec.EllipticCurvePrivateNumbers(d, public_numbers).private_key()
  except ValueError as exc:
    # Never echo the key bytes; the message only names the failure.
    raise KeyFormatError("VAPID key material does not form a valid P-256 key pair") from exc

  return EcdsaP256Signer(private_key)


def sign(key: Signer, message: bytes) -> bytes:
  """Sign *message* with ECDSA-SHA256, returning the backend's native encoding."""
  return key.sign(message)


def _read_der_integer(der: bytes, offset: int, label: str) -> tuple[bytes, int]:
  if offset + 2 > len(der) or der[offset] != _DER_INTEGER:
    raise SignatureFormatError(f"DER signature is missing the INTEGER tag for {label}")

  length = der[offset + 1]
  start = offset + 2
  end = start + length
  if length == 0 or end > len(der):
    raise SignatureFormatError(f"DER signature has an invalid length for {label}")

  value = der[start:end]
  if length == COORDINATE_LENGTH + 1:
    # A 33-byte integer only exists to keep a high-bit value unsigned.
    if value[0] != 0:
      raise SignatureFormatError(f"DER signature {label} is 33 bytes without a leading zero")
    value = value[1:]
  elif length > COORDINATE_LENGTH + 1:
    raise SignatureFormatError(f"DER signature {label} is longer than a P-256 integer")

  return value, end


def normalize_signature(signature: bytes) -> bytes:
  """Return the 64-byte raw ``r || s`` form of a raw or DER encoded P-256 signature."""
  if len(signature) == RAW_SIGNATURE_LENGTH:
    return bytes(signature)

  if len(signature) < 8 or signature[0] != _DER_SEQUENCE:
    first = f"0x{signature[0]:02x}" if signature else "none"
    raise SignatureFormatError(f"unknown signature format: length={len(signature)}, first byte={first}")

  if signature[1] != len(signature) - 2:
    raise SignatureFormatError("DER sequence length does not match the signature size")

  r, offset = _read_der_integer(signature, 2, "r")
  s, offset = _read_der_integer(signature, offset, "s")
  if offset != len(signature):
    raise SignatureFormatError("DER signature has trailing bytes")

  # Right-align each integer in its fixed 32-byte field.
  return r.rjust(COORDINATE_LENGTH, b"\x00") + s.rjust(COORDINATE_LENGTH, b"\x00")


def verify_signature(public_key_raw: bytes, signature: bytes, message: bytes) -> bool:
  """Check a raw or DER signature over *message* against an uncompressed public point."""
  raw = normalize_signature(signature)
  r = int.from_bytes(raw[:COORDINATE_LENGTH], "big")
  s = int.from_bytes(raw[COORDINATE_LENGTH:], "big")
  public_key = load_public_point(public_key_raw)
  try:
    public_key.verify(encode_dss_signature(r, s), message, ec.ECDSA(hashes.SHA256()))
  except InvalidSignature:
    return False
  return True
