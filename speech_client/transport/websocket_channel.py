"""
Persistent bidirectional channel to the streaming recognize endpoint.
"""
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Optional, Union

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    InvalidStatus,
    WebSocketException,
)

from speech_client.utils.exceptions import DisconnectionError, ServiceError
from speech_client.utils.logger import logger


Message = Union[str, bytes]


class BaseChannel(ABC):
    """Message channel consumed by the streaming recognizer."""

    @abstractmethod
    async def send(self, message: Message) -> None:
        """Send a text or binary message."""
        pass

    @abstractmethod
    async def receive(self) -> Optional[Message]:
        """
        Receive the next message.
        Returns None once the peer closed the channel normally and raises
        DisconnectionError when it was lost.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""
        pass


ChannelFactory = Callable[[str, Dict[str, str]], Awaitable[BaseChannel]]


class WebSocketChannel(BaseChannel):
    """BaseChannel over a websockets client connection."""

    event_name = "WebSocketChannel"

    def __init__(self, ws: ClientConnection):
        self.ws = ws

    async def send(self, message: Message) -> None:
        try:
            await self.ws.send(message)
        except ConnectionClosed as e:
            raise DisconnectionError(f"Channel closed while sending: {self._describe(e)}") from e
        except WebSocketException as e:
            raise ServiceError(f"Error sending on channel: {e}") from e

    async def receive(self) -> Optional[Message]:
        try:
            return await self.ws.recv()
        except ConnectionClosedOK as e:
            logger.debug(f"Channel closed normally: {self._describe(e)}", self.event_name)
            return None
        except ConnectionClosed as e:
            raise DisconnectionError(f"Channel lost: {self._describe(e)}") from e
        except WebSocketException as e:
            raise ServiceError(f"Error receiving on channel: {e}") from e

    async def close(self) -> None:
        try:
            await self.ws.close()
        except Exception as e:
            logger.debug(f"Error closing channel: {e}", self.event_name)

    @staticmethod
    def _describe(error: ConnectionClosed) -> str:
        close = error.rcvd or error.sent
        if close is None:
            return "no close frame"
        return f"code {close.code} {close.reason}".strip()


async def open_channel(endpoint: str, headers: Optional[Dict[str, str]] = None, open_timeout: float = 10.0) -> WebSocketChannel:
    """Open a websocket channel to endpoint, raising ServiceError when the handshake fails."""
    logger.debug(f"Opening channel to {endpoint}", WebSocketChannel.event_name)
    try:
        ws = await ws_connect(
            endpoint,
            additional_headers=headers or {},
            open_timeout=open_timeout,
            max_size=None,
        )
    except InvalidStatus as e:
        status = e.response.status_code
        raise ServiceError(f"Channel handshake rejected by {endpoint}", status_code=status) from e
    except (WebSocketException, OSError, TimeoutError) as e:
        raise ServiceError(f"Could not open channel to {endpoint}: {e}") from e
    return WebSocketChannel(ws)
