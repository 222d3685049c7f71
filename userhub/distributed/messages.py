"""
Messages exchanged between the coordinator and its workers.

Each message is a JSON object sent as one length-prefixed frame: the
payload size in bytes as ASCII digits and a newline, then the payload.

    request:  {"id", "method", "path", "body", "client"}
    response: {"id", "status", "body"}

``id`` is the correlation id that routes a response back to the
coordinator request waiting for it. Frames have no size cap, so a full
user listing always fits in one message.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass, asdict
from typing import Any, Optional


# Longest accepted header line (digits plus newline)
MAX_HEADER_LENGTH = 20


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def frame(payload: bytes) -> bytes:
    """Prefix ``payload`` with its length header."""
    return b"%d\n" % len(payload) + payload


async def read_frame(reader: asyncio.StreamReader) -> Optional[bytes]:
    """
    Read one frame payload.

    Returns:
        The payload, or None once the stream has ended

    Raises:
        ValueError: If the header is not a valid length
    """
    header = await reader.readline()
    if not header:
        return None
    if len(header) > MAX_HEADER_LENGTH or not header.rstrip(b"\n").isdigit():
        raise ValueError(f"Invalid frame header {header[:MAX_HEADER_LENGTH]!r}")
    try:
        return await reader.readexactly(int(header))
    except asyncio.IncompleteReadError:
        return None


@dataclass
class RequestEnvelope:
    """A client request forwarded to a worker."""
    id: str
    method: str
    path: str
    body: Optional[str] = None
    client: Optional[str] = None

    def encode(self) -> bytes:
        return json.dumps(asdict(self)).encode("utf-8")

    @classmethod
    def decode(cls, payload: bytes) -> "RequestEnvelope":
        """
        Parse one request payload.

        Raises:
            ValueError: If the payload is not a valid request envelope
        """
        data = _load_object(payload)
        try:
            return cls(
                id=str(data["id"]),
                method=str(data["method"]),
                path=str(data["path"]),
                body=data.get("body"),
                client=data.get("client"),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Request envelope invalid: {e}")


@dataclass
class ResponseEnvelope:
    """A worker's answer to one RequestEnvelope."""
    id: str
    status: int
    body: Any = None

    def encode(self) -> bytes:
        return json.dumps(asdict(self)).encode("utf-8")

    @classmethod
    def decode(cls, payload: bytes) -> "ResponseEnvelope":
        """
        Parse one response payload.

        Raises:
            ValueError: If the payload is not a valid response envelope
        """
        data = _load_object(payload)
        try:
            return cls(id=str(data["id"]), status=int(data["status"]), body=data.get("body"))
        except (KeyError, TypeError) as e:
            raise ValueError(f"Response envelope invalid: {e}")


def _load_object(payload: bytes) -> dict:
    data = json.loads(payload.decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Envelope must be a JSON object")
    return data
