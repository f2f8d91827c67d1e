"""Routes for VAPID key discovery and diagnostic push delivery."""

from __future__ import annotations

import logging
import re
import urllib.parse

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from pushwire.config import Settings, get_settings
from pushwire.push.contracts import DeliveryMode, DeliveryOutcome, NotificationPayload, PushSender, Subscription
from pushwire.push.factory import build_push_sender

_BASE64URL_RE = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")

logger = logging.getLogger(__name__)
router = APIRouter()


class PushSubscriptionKeys(BaseModel):
  """Browser-provided key material for Web Push encryption."""

  p256dh: str = Field(min_length=40, max_length=512)
  auth: str = Field(min_length=16, max_length=256)
  model_config = ConfigDict(extra="forbid")

  @field_validator("p256dh", "auth")
  @classmethod
  def validate_base64url(cls, value: str) -> str:
    """Require the url-safe alphabet the browser uses for subscription keys."""
    normalized = value.strip()
    if not _BASE64URL_RE.fullmatch(normalized):
      raise PydanticCustomError("push_key_format", "subscription keys must be base64url encoded.")

    return normalized


class PushSubscriptionBody(BaseModel):
  """Standard browser push subscription object payload."""

  endpoint: str = Field(min_length=1, max_length=2048)
  expiration_time: int | None = Field(default=None, alias="expirationTime")
  keys: PushSubscriptionKeys
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    """Push endpoints are always HTTPS URLs owned by the push service."""
    normalized = value.strip()
    parsed = urllib.parse.urlparse(normalized)

    if parsed.scheme.lower() != "https" or not parsed.hostname:
      raise PydanticCustomError("push_endpoint_https", "endpoint must be an https URL.")

    return normalized

  def to_subscription(self) -> Subscription:
    return Subscription(endpoint=self.endpoint, p256dh=self.keys.p256dh, auth=self.keys.auth)


class PushTestRequest(BaseModel):
  """Diagnostic push request: one subscription plus optional notification text."""

  subscription: PushSubscriptionBody
  title: str = Field(default="Test push", max_length=200)
  body: str = Field(default="", max_length=1000)
  mode: DeliveryMode | None = None
  model_config = ConfigDict(extra="forbid")


class VapidPublicKeyResponse(BaseModel):
  public_key: str | None = Field(default=None, serialization_alias="publicKey")


def get_push_sender(settings: Settings = Depends(get_settings)) -> PushSender:
  return build_push_sender(settings)


def _host_allowed(host: str, allowed_hosts: tuple[str, ...]) -> bool:
  # Suffix match covers providers with per-region hosts (e.g. wns2-*.notify.windows.com).
  return any(host == allowed or host.endswith(f".{allowed}") for allowed in allowed_hosts)


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse, response_model_by_alias=True)
async def get_vapid_public_key(settings: Settings = Depends(get_settings)) -> VapidPublicKeyResponse:
  """Return the application server key browsers pass to ``pushManager.subscribe``."""
  public_key = settings.vapid_public_key if settings.push_enabled else None
  return VapidPublicKeyResponse(public_key=public_key)


@router.post("/test")
async def send_test_push(request: PushTestRequest, settings: Settings = Depends(get_settings), sender: PushSender = Depends(get_push_sender)) -> JSONResponse:
  """Deliver one push message and report the classified result."""
  host = (urllib.parse.urlparse(request.subscription.endpoint).hostname or "").lower()
  if not _host_allowed(host, settings.allowed_push_hosts):
    raise HTTPException(status_code=422, detail="endpoint host is not allowed.")

  payload = NotificationPayload(title=request.title, body=request.body)
  result = await sender.send(request.subscription.to_subscription(), payload, mode=request.mode)

  if result.outcome is DeliveryOutcome.DISABLED:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Push notifications are not configured.")

  if result.ok:
    return JSONResponse(status_code=status.HTTP_200_OK, content=result.to_dict())

  logger.warning("Test push failed host=%s outcome=%s", result.endpoint_host, result.outcome.value)
  return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=result.to_dict())
