from __future__ import annotations

import json

import pytest

from pushwire.push.contracts import AuthTokenError
from pushwire.push.signing import import_signing_key, normalize_signature, verify_signature
from pushwire.push.vapid import TOKEN_TTL_SECONDS, audience_for, build_auth_token
from pushwire.utils.codec import b64url_decode


class _BrokenSigner:
  def sign(self, message: bytes) -> bytes:
    raise RuntimeError("hsm offline")

  def public_key_bytes(self) -> bytes:
    return b"\x04" + b"\x00" * 64


class _RawSigner:
  """Signer that already returns 64-byte raw signatures, like WebCrypto does."""

  def __init__(self, inner) -> None:
    self._inner = inner

  def sign(self, message: bytes) -> bytes:
    return normalize_signature(self._inner.sign(message))

  def public_key_bytes(self) -> bytes:
    return self._inner.public_key_bytes()


@pytest.fixture
def signing_key(vapid_keypair):
  public_key, private_key = vapid_keypair
  return import_signing_key(b64url_decode(private_key), b64url_decode(public_key))


def _segments(jwt: str) -> tuple[dict, dict, bytes]:
  header, claims, signature = jwt.split(".")
  return json.loads(b64url_decode(header)), json.loads(b64url_decode(claims)), b64url_decode(signature)


def test_audience_is_scheme_and_host_of_endpoint():
  assert audience_for("https://fcm.googleapis.com/fcm/send/abc?x=1") == "https://fcm.googleapis.com"
  assert audience_for("https://push.example.com:8443/p/1") == "https://push.example.com:8443"
  assert audience_for("https://user:pw@push.example.com/x") == "https://push.example.com"
  assert audience_for("https://Push.Example.COM/x") == "https://push.example.com"
  assert audience_for("https://[::1]:8443/push") == "https://[::1]:8443"


@pytest.mark.parametrize("endpoint", ["", "/relative/path", "fcm.googleapis.com/send", "https://[::1/push", "https://push.example.com:99999/push"])
def test_audience_requires_absolute_url(endpoint):
  with pytest.raises(AuthTokenError):
    audience_for(endpoint)


def test_token_carries_expected_header_and_claims(signing_key, vapid_keypair):
  token = build_auth_token("https://updates.push.services.mozilla.com/wpush/v2/xyz", "mailto:ops@example.com", signing_key, now=1_700_000_000.7)

  header, claims, signature = _segments(token.jwt)
  assert header == {"alg": "ES256", "typ": "JWT"}
  assert claims == {"aud": "https://updates.push.services.mozilla.com", "exp": 1_700_000_000 + TOKEN_TTL_SECONDS, "sub": "mailto:ops@example.com"}
  assert len(signature) == 64
  assert token.public_key == vapid_keypair[0]


def test_token_signature_verifies_over_signing_input(signing_key, vapid_keypair):
  token = build_auth_token("https://fcm.googleapis.com/fcm/send/abc", "https://example.com/contact", signing_key)

  signing_input, _, signature = token.jwt.rpartition(".")
  assert verify_signature(b64url_decode(vapid_keypair[0]), b64url_decode(signature), signing_input.encode())


def test_raw_signing_backend_produces_the_same_token_shape(signing_key, vapid_keypair):
  token = build_auth_token("https://fcm.googleapis.com/fcm/send/abc", "mailto:ops@example.com", _RawSigner(signing_key))

  signing_input, _, signature = token.jwt.rpartition(".")
  assert len(b64url_decode(signature)) == 64
  assert verify_signature(b64url_decode(vapid_keypair[0]), b64url_decode(signature), signing_input.encode())


def test_authorization_header_format(signing_key, vapid_keypair):
  token = build_auth_token("https://fcm.googleapis.com/fcm/send/abc", "mailto:ops@example.com", signing_key)

  assert token.authorization_header == f"vapid t={token.jwt}, k={vapid_keypair[0]}"
  assert "=" not in token.jwt


def test_signing_failures_become_auth_token_errors():
  with pytest.raises(AuthTokenError, match="RuntimeError"):
    build_auth_token("https://fcm.googleapis.com/fcm/send/abc", "mailto:ops@example.com", _BrokenSigner())
