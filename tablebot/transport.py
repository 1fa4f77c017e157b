"""Chat transports.

RestTransport talks to a chat REST API: messages are sent with
``POST /v2/send`` and received over the ``/v1/receive/<account>``
WebSocket. MemoryTransport keeps sent messages in a list and is used
for local runs and tests.
"""

import asyncio
import hashlib
import json
import time as _time
from collections import OrderedDict
from typing import AsyncIterator, List, Optional, Tuple, Union

import aiohttp
import structlog
from pydantic import ValidationError

from .embed import Embed
from .exceptions import TransportError
from .models import IncomingMessage, ReceivedPayload

logger = structlog.get_logger("tablebot.transport")

MAX_RECONNECT_DELAY = 300
DEDUP_WINDOW_SECONDS = 60


def _as_text(content: Union[str, Embed]) -> str:
    return content.as_text() if isinstance(content, Embed) else content


class MemoryTransport:
    """Transport that records messages instead of delivering them.

    Attributes:
        sent: (target, content) pairs in send order.
        fail_sends: When set, every send raises TransportError.
    """

    def __init__(self, fail_sends: bool = False):
        self.sent: List[Tuple[str, Union[str, Embed]]] = []
        self.fail_sends = fail_sends

    async def send_message(self, target: str, content: Union[str, Embed]) -> None:
        if self.fail_sends:
            raise TransportError("memory transport is set to fail", target=target)
        self.sent.append((target, content))

    @property
    def sent_texts(self) -> List[str]:
        return [_as_text(content) for _, content in self.sent]


class RestTransport:
    """Transport for a chat REST API with a WebSocket receive feed.

    Args:
        api_url: Base URL of the chat API.
        account: The bot's own account identifier.
        session: Shared aiohttp session (owned by the caller).
    """

    def __init__(self, api_url: str, account: str, session: aiohttp.ClientSession):
        self.api_url = api_url.rstrip("/")
        self.account = account
        self.session = session
        self.running = True
        self._processed_messages: "OrderedDict[str, float]" = OrderedDict()

    async def send_message(self, target: str, content: Union[str, Embed]) -> None:
        """Send a message.

        Raises:
            TransportError: The API rejected the message or was unreachable.
        """
        payload = {
            "message": _as_text(content),
            "number": self.account,
            "recipients": [target],
        }
        url = f"{self.api_url}/v2/send"
        try:
            async with self.session.post(url, json=payload) as resp:
                if resp.status != 201:
                    body = await resp.text()
                    raise TransportError(
                        "chat API rejected message",
                        status=resp.status,
                        body=body[:200],
                    )
        except aiohttp.ClientError as e:
            raise TransportError(f"chat API unreachable: {e}") from e

    def _is_duplicate(self, message: IncomingMessage) -> bool:
        msg_hash = hashlib.sha256(
            f"{message.timestamp}:{message.author_id}:{message.content.strip()}".encode()
        ).hexdigest()
        if msg_hash in self._processed_messages:
            return True
        now = _time.time()
        self._processed_messages[msg_hash] = now

        cutoff = now - DEDUP_WINDOW_SECONDS
        while self._processed_messages:
            oldest_key, oldest_time = next(iter(self._processed_messages.items()))
            if oldest_time >= cutoff:
                break
            self._processed_messages.pop(oldest_key)
        return False

    def parse(self, raw: str) -> Optional[IncomingMessage]:
        """Turn one receive-feed frame into a message, or None to skip it."""
        try:
            payload = ReceivedPayload.model_validate(json.loads(raw))
        except json.JSONDecodeError:
            logger.warning("invalid_json", data=raw[:100])
            return None
        except ValidationError as e:
            logger.debug("unrecognised_payload", errors=e.error_count())
            return None
        message = payload.envelope.to_message()
        if message is None:
            return None
        if message.author_id == self.account:
            return None
        if self._is_duplicate(message):
            logger.debug("duplicate_message_skipped", timestamp=message.timestamp)
            return None
        return message

    async def receive(self) -> AsyncIterator[IncomingMessage]:
        """Yield incoming messages, reconnecting with backoff on errors."""
        ws_base = self.api_url.replace("http://", "ws://").replace("https://", "wss://")
        ws_url = f"{ws_base}/v1/receive/{self.account}"
        reconnect_delay = 5

        while self.running:
            try:
                logger.info("websocket_connecting", url=ws_url)
                async with self.session.ws_connect(ws_url, heartbeat=30) as ws:
                    logger.info("websocket_connected")
                    reconnect_delay = 5
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            message = self.parse(msg.data)
                            if message is not None:
                                yield message
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            logger.error("websocket_error", error=str(ws.exception()))
                            break
                        elif msg.type == aiohttp.WSMsgType.CLOSED:
                            logger.info("websocket_closed")
                            break
            except aiohttp.ClientError as e:
                logger.error("websocket_exception", error=str(e))
                await asyncio.sleep(reconnect_delay)
                reconnect_delay = min(reconnect_delay * 2, MAX_RECONNECT_DELAY)
