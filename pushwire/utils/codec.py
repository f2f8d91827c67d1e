"""Binary codec helpers shared by the VAPID and message encryption layers."""

from __future__ import annotations

import base64
import binascii
import re
import struct

_B64URL_RE = re.compile(r"^[A-Za-z0-9_-]*$")
_UINT32 = struct.Struct(">I")


class CodecError(ValueError):
  """Raised when a value cannot be decoded from its wire representation."""


def b64url_encode(data: bytes) -> str:
  """Encode bytes as unpadded base64url text."""
  return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
  """Decode base64url text, accepting input with or without trailing padding."""
  stripped = value.strip().rstrip("=")

  # Reject standard-alphabet characters so '+' and '/' never decode by accident.
  if not _B64URL_RE.fullmatch(stripped):
    raise CodecError("base64url value contains characters outside the url-safe alphabet")

  # A single dangling character can never encode a whole byte.
  if len(stripped) % 4 == 1:
    raise CodecError(f"base64url value has an impossible length ({len(stripped)} characters)")

  padded = stripped + "=" * (-len(stripped) % 4)
  try:
    return base64.b64decode(padded.replace("-", "+").replace("_", "/"), validate=True)
  except binascii.Error as exc:
    raise CodecError(f"base64url value could not be decoded: {exc}") from exc


def pack_uint32(value: int) -> bytes:
  """Pack an unsigned integer into four big-endian bytes."""
  if not 0 <= value <= 0xFFFFFFFF:
    raise CodecError(f"value {value} does not fit in an unsigned 32-bit field")
  return _UINT32.pack(value)
