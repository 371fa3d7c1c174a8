"""
Speech to text client.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Union
from urllib.parse import urlencode

import httpx

from speech_client.data_layer.data_classes.domain_models.recognition_options import RecognitionOptions
from speech_client.data_layer.data_classes.domain_models.speech_model import SpeechModel
from speech_client.data_layer.data_classes.domain_models.speech_results import SpeechResults
from speech_client.data_layer.data_classes.domain_models.speech_session import SessionStatus, SpeechSession
from speech_client.services.session_manager import SessionManager
from speech_client.services.streaming.recognize_delegate import RecognizeDelegate
from speech_client.services.streaming.streaming_recognizer import StreamingRecognizer
from speech_client.services.synchronous_recognizer import SynchronousRecognizer
from speech_client.transport.speech_http_client import SpeechHttpClient
from speech_client.transport.websocket_channel import ChannelFactory, open_channel
from speech_client.utils.exceptions import InvalidArgumentError
from speech_client.utils.logger import logger
from speech_client.utils.static_memory_cache import StaticMemoryCache


def websocket_url_for(url: str) -> str:
    """Websocket base url matching an http(s) service url."""
    if url.startswith("https://"):
        return "wss://" + url[len("https://"):]
    if url.startswith("http://"):
        return "ws://" + url[len("http://"):]
    return url


class SpeechToText:
    """
    Client for the speech to text service.

    Wraps session management, the model catalog, one-shot recognition and
    streaming recognition behind one object configured with the service url
    and credentials:

        async with SpeechToText(url, username, password) as service:
            async with service.session(SpeechModel.EN_BROADBAND16K) as session:
                status = await service.get_recognize_status(session)
            results = await service.recognize("sample1.wav")
    """

    event_name = "SpeechToText"

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        websocket_url: Optional[str] = None,
        timeout: float = 30.0,
        chunk_size: int = 4096,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        channel_factory: ChannelFactory = open_channel,
    ):
        self.http_client = SpeechHttpClient(url, username, password, timeout=timeout, transport=transport)
        self._websocket_url = websocket_url.rstrip("/") if websocket_url else None
        self.chunk_size = chunk_size
        self.channel_factory = channel_factory
        self.sessions = SessionManager(self.http_client)
        self.recognizer = SynchronousRecognizer(self.http_client)

    @classmethod
    def from_config(cls, config_file: Optional[str] = None, **kwargs) -> "SpeechToText":
        """Build a client from the speech_to_text and streaming config sections."""
        if config_file:
            StaticMemoryCache.initialize(config_file)
        service_config = StaticMemoryCache.get_service_config()
        if not service_config.get("url"):
            raise InvalidArgumentError("speech_to_text.url is not configured")
        streaming_config = StaticMemoryCache.get_streaming_config()
        return cls(
            url=service_config["url"],
            username=service_config.get("username"),
            password=service_config.get("password"),
            websocket_url=service_config.get("websocket_url"),
            timeout=float(service_config.get("timeout_seconds") or 30),
            chunk_size=int(streaming_config.get("chunk_size") or 4096),
            **kwargs,
        )

    @property
    def end_point(self) -> str:
        return self.http_client.base_url

    @property
    def websocket_url(self) -> str:
        return self._websocket_url or websocket_url_for(self.http_client.base_url)

    def set_end_point(self, url: str, websocket_url: Optional[str] = None):
        """
        Change the service url. The websocket url is reset to websocket_url, or derived
        from url when none is given.
        """
        self.http_client.set_base_url(url)
        self._websocket_url = websocket_url.rstrip("/") if websocket_url else None

    def set_username_and_password(self, username: str, password: str):
        self.http_client.set_credentials(username, password)

    async def close(self):
        await self.http_client.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # Sessions

    async def create_session(self, model: Union[SpeechModel, str, None] = None) -> SpeechSession:
        return await self.sessions.create_session(model)

    async def delete_session(self, session: SpeechSession):
        await self.sessions.delete_session(session)

    def session(self, model: Union[SpeechModel, str, None] = None):
        """Async context manager yielding a session that is deleted on exit."""
        return self.sessions.session(model)

    async def get_recognize_status(self, session: SpeechSession) -> SessionStatus:
        return await self.sessions.get_recognition_status(session)

    # Models

    async def get_models(self) -> List[SpeechModel]:
        return await self.sessions.list_models()

    async def get_model(self, name: Union[SpeechModel, str]) -> SpeechModel:
        return await self.sessions.get_model(name)

    # Recognition

    async def recognize(
        self,
        audio,
        content_type: Optional[str] = None,
        options: Optional[RecognitionOptions] = None,
        session: Optional[SpeechSession] = None,
    ) -> SpeechResults:
        """Recognize a complete audio payload in one request."""
        return await self.recognizer.recognize(audio, content_type, options, session)

    async def recognize_ws(
        self,
        audio,
        options: Optional[RecognitionOptions] = None,
        delegate: Optional[RecognizeDelegate] = None,
        session: Optional[SpeechSession] = None,
    ) -> StreamingRecognizer:
        """
        Start a streaming recognition and return its recognizer.

        Results arrive on the delegate (or through recognizer.events() when no
        delegate is given); recognizer.result() resolves with the final results.
        Bound the wait with asyncio.wait_for; there is no built-in deadline.
        """
        recognizer = StreamingRecognizer(
            endpoint=self._recognize_ws_endpoint(options, session),
            options=options,
            delegate=delegate,
            headers=self.http_client.auth_headers,
            channel_factory=self.channel_factory,
            session=session,
            chunk_size=self.chunk_size,
        )
        await recognizer.start(audio)
        return recognizer

    @asynccontextmanager
    async def streaming(
        self,
        audio,
        options: Optional[RecognitionOptions] = None,
        delegate: Optional[RecognizeDelegate] = None,
        session: Optional[SpeechSession] = None,
    ) -> AsyncIterator[StreamingRecognizer]:
        """recognize_ws() whose channel is released when the block exits."""
        recognizer = await self.recognize_ws(audio, options, delegate, session)
        try:
            yield recognizer
        finally:
            await recognizer.close()

    def _recognize_ws_endpoint(self, options: Optional[RecognitionOptions], session: Optional[SpeechSession]) -> str:
        model = None
        if session is not None:
            session.ensure_usable()
            if session.recognize_ws_url:
                # The session endpoint is already bound to the session's model
                logger.debug(f"Streaming endpoint: {session.recognize_ws_url}", self.event_name)
                return session.recognize_ws_url
            model = session.model
        if model is None and options is not None:
            model = options.model
        endpoint = f"{self.websocket_url}/v1/recognize"
        if model:
            endpoint += "?" + urlencode({"model": model})
        logger.debug(f"Streaming endpoint: {endpoint}", self.event_name)
        return endpoint
