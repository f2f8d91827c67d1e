"""Command line entry point: key generation, one-off sends and the HTTP server.

Usage:
  pushwire keygen --subject mailto:you@example.com
  pushwire send --subscription path/to/subscription.json --title "Hello" --body "Preview text"
  pushwire serve --port 8002

subscription.json is the browser's ``PushSubscription.toJSON()`` output, either
bare or wrapped as ``{"subscription": {...}}``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pushwire.config import get_settings
from pushwire.core.logging import setup_logging
from pushwire.push.contracts import DeliveryMode, NotificationPayload, Subscription
from pushwire.push.factory import identity_from_settings
from pushwire.push.keys import generate_vapid_keypair
from pushwire.push.push_sender import send

logger = logging.getLogger("pushwire.cli")


def _cmd_keygen(args: argparse.Namespace) -> int:
  public_key, private_key = generate_vapid_keypair()
  print(f"PUSHWIRE_VAPID_PUBLIC_KEY={public_key}")
  print(f"PUSHWIRE_VAPID_PRIVATE_KEY={private_key}")
  print(f"PUSHWIRE_VAPID_SUBJECT={args.subject}")
  return 0


def _load_subscription(path: Path) -> Subscription:
  data = json.loads(path.read_text(encoding="utf-8"))
  if "subscription" in data:
    data = data["subscription"]
  return Subscription.from_dict(data)


def _cmd_send(args: argparse.Namespace) -> int:
  settings = get_settings()
  setup_logging(settings)

  identity = identity_from_settings(settings)
  if identity is None:
    logger.error("PUSHWIRE_VAPID_PUBLIC_KEY, PUSHWIRE_VAPID_PRIVATE_KEY and PUSHWIRE_VAPID_SUBJECT must be set to send.")
    return 2

  subscription = _load_subscription(Path(args.subscription))
  payload = NotificationPayload(title=args.title, body=args.body)
  mode = DeliveryMode(args.mode or settings.push_mode)
  ttl_seconds = settings.push_ttl_seconds if args.ttl is None else args.ttl

  result = asyncio.run(send(subscription, payload, identity, mode=mode, ttl_seconds=ttl_seconds, timeout_seconds=settings.push_timeout_seconds))
  print(json.dumps(result.to_dict(), indent=2))
  return 0 if result.ok else 1


def _cmd_serve(args: argparse.Namespace) -> int:
  import uvicorn

  uvicorn.run("pushwire.main:app", host=args.host, port=args.port, server_header=False)
  return 0


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(prog="pushwire", description="VAPID-authenticated Web Push delivery.")
  subparsers = parser.add_subparsers(dest="command", required=True)

  keygen = subparsers.add_parser("keygen", help="Generate a VAPID key pair as environment lines.")
  keygen.add_argument("--subject", default="mailto:you@example.com")
  keygen.set_defaults(handler=_cmd_keygen)

  send_parser = subparsers.add_parser("send", help="Send one push message to a subscription.")
  send_parser.add_argument("--subscription", required=True)
  send_parser.add_argument("--title", default="pushwire")
  send_parser.add_argument("--body", default="New message")
  send_parser.add_argument("--mode", choices=[mode.value for mode in DeliveryMode], default=None)
  send_parser.add_argument("--ttl", type=int, default=None)
  send_parser.set_defaults(handler=_cmd_send)

  serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn.")
  serve.add_argument("--host", default="0.0.0.0")
  serve.add_argument("--port", type=int, default=8002)
  serve.set_defaults(handler=_cmd_serve)

  return parser


def main(argv: list[str] | None = None) -> int:
  args = build_parser().parse_args(argv)
  return args.handler(args)


if __name__ == "__main__":
  sys.exit(main())
