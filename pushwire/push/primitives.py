"""`cryptography` backed implementations of the push crypto capabilities."""

from __future__ import annotations

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from pushwire.push.contracts import KeyFormatError

UNCOMPRESSED_POINT_LENGTH = 65
UNCOMPRESSED_POINT_PREFIX = 0x04


def uncompressed_point(public_key: ec.EllipticCurvePublicKey) -> bytes:
  """Return the X9.62 uncompressed encoding of a public key."""
  return public_key.public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)


def load_public_point(data: bytes) -> ec.EllipticCurvePublicKey:
  """Load a 65-byte uncompressed P-256 point, rejecting any other shape."""
  if len(data) != UNCOMPRESSED_POINT_LENGTH or data[0] != UNCOMPRESSED_POINT_PREFIX:
    raise KeyFormatError(f"expected a {UNCOMPRESSED_POINT_LENGTH}-byte uncompressed P-256 point, got {len(data)} bytes")

  try:
    return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), data)
  except ValueError as exc:
    raise KeyFormatError("public key is not a point on P-256") from exc


def hkdf_sha256(ikm: bytes, *, salt: bytes, info: bytes, length: int) -> bytes:
  """Run HKDF-SHA256 extract-then-expand and return *length* bytes."""
  return HKDF(algorithm=hashes.SHA256(), length=length, salt=salt, info=info).derive(ikm)


class EcdsaP256Signer:
  """Signer over a `cryptography` private key; signatures come back DER encoded."""

  def __init__(self, private_key: ec.EllipticCurvePrivateKey) -> None:
    self._private_key = private_key

  def sign(self, message: bytes) -> bytes:
    return self._private_key.sign(message, ec.ECDSA(hashes.SHA256()))

  def public_key_bytes(self) -> bytes:
    return uncompressed_point(self._private_key.public_key())

  def __repr__(self) -> str:
    return "EcdsaP256Signer(<redacted>)"


class _EphemeralP256Key:
  def __init__(self) -> None:
    self._private_key = ec.generate_private_key(ec.SECP256R1())

  def public_key_bytes(self) -> bytes:
    return uncompressed_point(self._private_key.public_key())

  def exchange(self, peer_public_key: bytes) -> bytes:
    return self._private_key.exchange(ec.ECDH(), load_public_point(peer_public_key))


class EcdhP256KeyAgreement:
  """Key agreement that hands out a brand-new P-256 key pair on every call."""

  def generate_ephemeral(self) -> _EphemeralP256Key:
    return _EphemeralP256Key()


class AesGcmCipher:
  """AES-GCM with the default 128-bit tag."""

  def encrypt(self, key: bytes, nonce: bytes, plaintext: bytes) -> bytes:
    return AESGCM(key).encrypt(nonce, plaintext, None)
