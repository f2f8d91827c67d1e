from __future__ import annotations

import http_ece
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from pushwire.push.contracts import EncryptionError, KeyFormatError
from pushwire.push.encryption import HEADER_LENGTH, MAX_PLAINTEXT_LENGTH, RECORD_SIZE, TAG_LENGTH, build_key_info, encrypt_payload
from pushwire.push.primitives import uncompressed_point


class _FixedKeyAgreement:
  """Key agreement that always hands out the same ephemeral key."""

  def __init__(self) -> None:
    self._key = ec.generate_private_key(ec.SECP256R1())
    self.generated = 0

  def generate_ephemeral(self):
    self.generated += 1
    return self

  def public_key_bytes(self) -> bytes:
    return uncompressed_point(self._key.public_key())

  def exchange(self, peer_public_key: bytes) -> bytes:
    peer = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), peer_public_key)
    return self._key.exchange(ec.ECDH(), peer)


class _FailingCipher:
  def encrypt(self, key: bytes, nonce: bytes, plaintext: bytes) -> bytes:
    raise RuntimeError("cipher unavailable")


@pytest.fixture
def subscriber_public(subscriber_key) -> bytes:
  return uncompressed_point(subscriber_key.public_key())


def _decrypt(body: bytes, subscriber_key, auth_secret: bytes) -> bytes:
  return http_ece.decrypt(body, private_key=subscriber_key, auth_secret=auth_secret, version="aes128gcm")


def test_key_info_concatenates_both_points_after_label():
  ua_public = b"\x04" + b"\x11" * 64
  as_public = b"\x04" + b"\x22" * 64

  info = build_key_info(ua_public, as_public)

  assert info == b"WebPush: info\x00" + ua_public + as_public
  assert len(info) == 144


def test_reference_decryptor_recovers_plaintext(subscriber_key, subscriber_public, auth_secret):
  plaintext = '{"title":"Hello","body":"Grüße"}'.encode()

  body = encrypt_payload(plaintext, subscriber_public, auth_secret)

  assert _decrypt(body, subscriber_key, auth_secret) == plaintext


def test_empty_plaintext_round_trips(subscriber_key, subscriber_public, auth_secret):
  body = encrypt_payload(b"", subscriber_public, auth_secret)

  assert len(body) == HEADER_LENGTH + 1 + TAG_LENGTH
  assert _decrypt(body, subscriber_key, auth_secret) == b""


def test_header_layout(subscriber_public, auth_secret):
  agreement = _FixedKeyAgreement()
  salt = bytes(range(16))

  body = encrypt_payload(b"hi", subscriber_public, auth_secret, key_agreement=agreement, salt=salt)

  assert body[:16] == salt
  assert int.from_bytes(body[16:20], "big") == RECORD_SIZE
  assert body[20] == 65
  assert body[21:86] == agreement.public_key_bytes()
  assert len(body) == HEADER_LENGTH + len(b"hi") + 1 + TAG_LENGTH


def test_fixed_inputs_give_identical_output(subscriber_public, auth_secret):
  agreement = _FixedKeyAgreement()
  salt = b"\x07" * 16

  first = encrypt_payload(b"same", subscriber_public, auth_secret, key_agreement=agreement, salt=salt)
  second = encrypt_payload(b"same", subscriber_public, auth_secret, key_agreement=agreement, salt=salt)

  assert first == second
  assert agreement.generated == 2


def test_each_message_uses_fresh_salt_and_ephemeral_key(subscriber_public, auth_secret):
  first = encrypt_payload(b"same", subscriber_public, auth_secret)
  second = encrypt_payload(b"same", subscriber_public, auth_secret)

  assert first[:16] != second[:16]
  assert first[21:86] != second[21:86]


def test_wrong_auth_secret_cannot_decrypt(subscriber_key, subscriber_public, auth_secret):
  body = encrypt_payload(b"secret", subscriber_public, auth_secret)

  with pytest.raises(Exception):
    _decrypt(body, subscriber_key, bytes(16))


def test_largest_single_record_payload_is_accepted(subscriber_key, subscriber_public, auth_secret):
  plaintext = b"x" * MAX_PLAINTEXT_LENGTH

  body = encrypt_payload(plaintext, subscriber_public, auth_secret)

  assert len(body) == HEADER_LENGTH + RECORD_SIZE
  assert _decrypt(body, subscriber_key, auth_secret) == plaintext


def test_oversized_payload_is_rejected(subscriber_public, auth_secret):
  with pytest.raises(EncryptionError, match="single-record limit"):
    encrypt_payload(b"x" * (MAX_PLAINTEXT_LENGTH + 1), subscriber_public, auth_secret)


@pytest.mark.parametrize("public_key", [b"", b"\x04" * 64, b"\x03" + b"\x01" * 64])
def test_malformed_subscriber_key_is_a_key_format_error(public_key, auth_secret):
  with pytest.raises(KeyFormatError):
    encrypt_payload(b"hi", public_key, auth_secret)


def test_subscriber_point_off_curve_is_a_key_format_error(auth_secret):
  with pytest.raises(KeyFormatError):
    encrypt_payload(b"hi", b"\x04" + b"\x01" * 64, auth_secret)


def test_short_auth_secret_is_rejected(subscriber_public):
  with pytest.raises(KeyFormatError, match="16 bytes"):
    encrypt_payload(b"hi", subscriber_public, b"\x00" * 15)


def test_bad_salt_length_is_rejected(subscriber_public, auth_secret):
  with pytest.raises(EncryptionError, match="salt"):
    encrypt_payload(b"hi", subscriber_public, auth_secret, salt=b"\x00" * 8)


def test_cipher_failures_are_wrapped(subscriber_public, auth_secret):
  with pytest.raises(EncryptionError, match="RuntimeError"):
    encrypt_payload(b"hi", subscriber_public, auth_secret, cipher=_FailingCipher())
