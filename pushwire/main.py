from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pushwire.api.routes import push
from pushwire.config import get_settings
from pushwire.core.logging import setup_logging
from pushwire.push.contracts import KeyFormatError
from pushwire.push.factory import identity_from_settings
from pushwire.push.keys import check_identity

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
  """Configure logging and verify the VAPID key pair once per process."""
  settings = get_settings()
  setup_logging(settings)

  identity = identity_from_settings(settings)
  if settings.push_enabled and identity is not None:
    try:
      check_identity(identity)
    except KeyFormatError as exc:
      # Keep serving; every send will report the problem as a typed result.
      logger.error("VAPID identity check failed: %s", exc)
    else:
      logger.info("VAPID keys ready (public=%s...)", identity.public_key[:20])
  else:
    logger.warning("VAPID keys not configured; Web Push disabled")

  yield


app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(push.router, prefix="/v1/push", tags=["push"])
