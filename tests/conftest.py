"""Shared fixtures: VAPID identity, subscriber key material and a mocked push service."""

from __future__ import annotations

import dataclasses
import os

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from pushwire.config import DEFAULT_ALLOWED_PUSH_HOSTS, Settings
from pushwire.push.contracts import ServerIdentity, Subscription
from pushwire.push.keys import generate_vapid_keypair
from pushwire.push.primitives import uncompressed_point
from pushwire.utils.codec import b64url_encode

ENDPOINT = "https://fcm.googleapis.com/fcm/send/abc123"


class RecordingPushService:
  """httpx transport handler that records requests and answers with a fixed status."""

  def __init__(self, status_code: int = 201, text: str = "") -> None:
    self.status_code = status_code
    self.text = text
    self.requests: list[httpx.Request] = []

  def __call__(self, request: httpx.Request) -> httpx.Response:
    self.requests.append(request)
    return httpx.Response(self.status_code, text=self.text)

  def client(self) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def vapid_keypair() -> tuple[str, str]:
  return generate_vapid_keypair()


@pytest.fixture
def identity(vapid_keypair) -> ServerIdentity:
  public_key, private_key = vapid_keypair
  return ServerIdentity(public_key=public_key, private_key=private_key, subject="mailto:ops@example.com")


@pytest.fixture
def subscriber_key() -> ec.EllipticCurvePrivateKey:
  return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def auth_secret() -> bytes:
  return os.urandom(16)


@pytest.fixture
def subscription(subscriber_key, auth_secret) -> Subscription:
  return Subscription(endpoint=ENDPOINT, p256dh=b64url_encode(uncompressed_point(subscriber_key.public_key())), auth=b64url_encode(auth_secret))


@pytest.fixture
def make_push_service():
  return RecordingPushService


@pytest.fixture
def push_service(make_push_service) -> RecordingPushService:
  return make_push_service()


@pytest.fixture
def settings_factory(vapid_keypair):
  public_key, private_key = vapid_keypair
  base = Settings(
    environment="test",
    debug=False,
    log_level="INFO",
    log_dir=None,
    log_max_bytes=1024,
    log_backup_count=1,
    push_enabled=True,
    vapid_public_key=public_key,
    vapid_private_key=private_key,
    vapid_subject="mailto:ops@example.com",
    push_mode="silent",
    push_ttl_seconds=60,
    push_timeout_seconds=5.0,
    allowed_push_hosts=DEFAULT_ALLOWED_PUSH_HOSTS,
  )

  def _build(**overrides) -> Settings:
    return dataclasses.replace(base, **overrides)

  return _build
