"""Message Encryption for Web Push (RFC 8291) using the ``aes128gcm`` content coding.

Output frame::

    salt(16) | record_size(4, big-endian) | key_id_len(1) | ephemeral_public_key(65) | ciphertext+tag

Only single-record messages are produced: the plaintext gets one ``0x02``
delimiter byte and no further padding.
"""

from __future__ import annotations

import os

from pushwire.push.contracts import AeadCipher, EncryptionError, KeyAgreement, KeyFormatError
from pushwire.push.primitives import UNCOMPRESSED_POINT_LENGTH, UNCOMPRESSED_POINT_PREFIX, AesGcmCipher, EcdhP256KeyAgreement, hkdf_sha256
from pushwire.utils.codec import pack_uint32

SALT_LENGTH = 16
AUTH_SECRET_LENGTH = 16
RECORD_SIZE = 4096
TAG_LENGTH = 16
KEY_LENGTH = 16
NONCE_LENGTH = 12
HEADER_LENGTH = SALT_LENGTH + 4 + 1 + UNCOMPRESSED_POINT_LENGTH
LAST_RECORD_DELIMITER = b"\x02"
MAX_PLAINTEXT_LENGTH = RECORD_SIZE - TAG_LENGTH - len(LAST_RECORD_DELIMITER)

_KEY_INFO_PREFIX = b"WebPush: info\x00"
_CEK_INFO = b"Content-Encoding: aes128gcm\x00"
_NONCE_INFO = b"Content-Encoding: nonce\x00"

_default_key_agreement = EcdhP256KeyAgreement()
_default_cipher = AesGcmCipher()


def build_key_info(subscriber_public_key: bytes, ephemeral_public_key: bytes) -> bytes:
  """Return the HKDF info string binding both public keys to the shared secret.

  RFC 8291 section 3.4: ``"WebPush: info" || 0x00 || ua_public || as_public``.
  The keys are not length prefixed; that layout belongs to the older
  ``aesgcm`` draft and browsers reject ``aes128gcm`` bodies built with it.
  """
  return _KEY_INFO_PREFIX + subscriber_public_key + ephemeral_public_key


def derive_key_and_nonce(shared_secret: bytes, *, auth_secret: bytes, subscriber_public_key: bytes, ephemeral_public_key: bytes, salt: bytes) -> tuple[bytes, bytes]:
  """Derive the AES-128-GCM content key and nonce for one message."""
  ikm = hkdf_sha256(shared_secret, salt=auth_secret, info=build_key_info(subscriber_public_key, ephemeral_public_key), length=32)
  key = hkdf_sha256(ikm, salt=salt, info=_CEK_INFO, length=KEY_LENGTH)
  nonce = hkdf_sha256(ikm, salt=salt, info=_NONCE_INFO, length=NONCE_LENGTH)
  return key, nonce


def build_header(salt: bytes, ephemeral_public_key: bytes) -> bytes:
  """Return the fixed 86-byte ``aes128gcm`` header."""
  return salt + pack_uint32(RECORD_SIZE) + bytes([len(ephemeral_public_key)]) + ephemeral_public_key


def _check_subscriber_keys(subscriber_public_key: bytes, auth_secret: bytes) -> None:
  if len(subscriber_public_key) != UNCOMPRESSED_POINT_LENGTH or subscriber_public_key[0] != UNCOMPRESSED_POINT_PREFIX:
    raise KeyFormatError(f"subscriber p256dh key must be a {UNCOMPRESSED_POINT_LENGTH}-byte uncompressed point")

  if len(auth_secret) != AUTH_SECRET_LENGTH:
    raise KeyFormatError(f"subscriber auth secret must be {AUTH_SECRET_LENGTH} bytes, got {len(auth_secret)}")


def encrypt_payload(
  plaintext: bytes,
  subscriber_public_key: bytes,
  auth_secret: bytes,
  *,
  key_agreement: KeyAgreement | None = None,
  cipher: AeadCipher | None = None,
  salt: bytes | None = None,
) -> bytes:
  """Encrypt *plaintext* for one subscriber and return the framed message body."""
  _check_subscriber_keys(subscriber_public_key, auth_secret)

  if len(plaintext) > MAX_PLAINTEXT_LENGTH:
    raise EncryptionError(f"payload of {len(plaintext)} bytes exceeds the single-record limit of {MAX_PLAINTEXT_LENGTH}")

  if salt is None:
    salt = os.urandom(SALT_LENGTH)
  elif len(salt) != SALT_LENGTH:
    raise EncryptionError(f"salt must be {SALT_LENGTH} bytes")

  key_agreement = key_agreement or _default_key_agreement
  cipher = cipher or _default_cipher

  try:
    # A new ephemeral key per message keeps messages unlinkable.
    ephemeral = key_agreement.generate_ephemeral()
    ephemeral_public_key = ephemeral.public_key_bytes()
    shared_secret = ephemeral.exchange(subscriber_public_key)
    key, nonce = derive_key_and_nonce(shared_secret, auth_secret=auth_secret, subscriber_public_key=subscriber_public_key, ephemeral_public_key=ephemeral_public_key, salt=salt)
    ciphertext = cipher.encrypt(key, nonce, plaintext + LAST_RECORD_DELIMITER)
  except KeyFormatError:
    raise
  except Exception as exc:  # noqa: BLE001
    raise EncryptionError(f"payload encryption failed: {type(exc).__name__}: {exc}") from exc

  return build_header(salt, ephemeral_public_key) + ciphertext
