"""
Streaming recognition over a persistent channel.
One StreamingRecognizer owns one exchange: start message, audio chunks, stop marker,
and the results the service sends back while audio is still flowing.
"""
import asyncio
import inspect
import json
from enum import Enum
from typing import AsyncIterator, Dict, Optional

import numpy as np

from speech_client.data_layer.data_classes.domain_models.http_media_type import HttpMediaType
from speech_client.data_layer.data_classes.domain_models.recognition_event import (
    Connected,
    Disconnected,
    Error,
    Final,
    Interim,
    RecognitionEvent,
    is_terminal,
)
from speech_client.data_layer.data_classes.domain_models.recognition_options import RecognitionOptions
from speech_client.data_layer.data_classes.domain_models.speech_results import SpeechResults
from speech_client.data_layer.data_classes.domain_models.speech_session import SessionState, SpeechSession
from speech_client.services.streaming.audio_source import iter_audio_chunks, source_name, validate_audio_source
from speech_client.services.streaming.recognize_delegate import RecognizeDelegate
from speech_client.transport.websocket_channel import BaseChannel, ChannelFactory, open_channel
from speech_client.utils.exceptions import (
    DisconnectionError,
    InvalidArgumentError,
    ServiceError,
    SpeechClientError,
)
from speech_client.utils.logger import logger


class StreamState(Enum):
    """Lifecycle of one streaming exchange."""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    STREAMING = "streaming"
    FINISHING = "finishing"
    CLOSED = "closed"
    ERRORED = "errored"


STOP_MESSAGE = json.dumps({"action": "stop"})


class StreamingRecognizer:
    """Async streaming recognizer delivering ordered events to an observer or an event iterator."""

    event_name = "StreamingRecognizer"

    def __init__(
        self,
        endpoint: str,
        options: Optional[RecognitionOptions] = None,
        delegate: Optional[RecognizeDelegate] = None,
        headers: Optional[Dict[str, str]] = None,
        channel_factory: ChannelFactory = open_channel,
        session: Optional[SpeechSession] = None,
        chunk_size: int = 4096,
    ):
        if options is not None and not isinstance(options, RecognitionOptions):
            raise InvalidArgumentError(f"options must be RecognitionOptions, got {type(options).__name__}")
        if chunk_size <= 0:
            raise InvalidArgumentError(f"chunk_size must be positive, got {chunk_size}")

        self.endpoint = endpoint
        self.options = options or RecognitionOptions()
        self.delegate = delegate
        self.headers = headers or {}
        self.channel_factory = channel_factory
        self.session = session
        self.chunk_size = chunk_size

        self.state = StreamState.CONNECTING
        self.channel: Optional[BaseChannel] = None
        self.content_type: Optional[str] = None

        # Accumulated results across server messages
        self._results = SpeechResults()
        self._listening_count = 0
        self._stop_sent = False

        # Ordered event channel; the terminal event is always the last one
        self._events: asyncio.Queue = asyncio.Queue()
        self._terminal_event: Optional[RecognitionEvent] = None
        self._consumer_attached = False
        self._final_future: Optional[asyncio.Future] = None

        # Async background tasks
        self._run_task: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._audio_send_task: Optional[asyncio.Task] = None
        self._dispatch_task: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self._final_future is not None

    @property
    def done(self) -> bool:
        return self._terminal_event is not None

    @property
    def terminal_event(self) -> Optional[RecognitionEvent]:
        return self._terminal_event

    async def start(self, audio) -> "StreamingRecognizer":
        """
        Validate the audio source and begin the exchange in the background.

        Returns as soon as the connection attempt is scheduled. Failures after
        this point are reported through the delegate, events() and result(),
        never raised here.
        """
        if self.started:
            raise InvalidArgumentError("A StreamingRecognizer runs a single exchange; create a new one")
        validate_audio_source(audio)
        self.content_type = self._resolve_content_type(audio)
        if self.session is not None:
            self.session.acquire()

        loop = asyncio.get_running_loop()
        self._final_future = loop.create_future()
        # Mark the outcome as retrieved so unobserved failures are not reported at shutdown
        self._final_future.add_done_callback(lambda f: f.cancelled() or f.exception())

        if self.delegate is not None:
            self._consumer_attached = True
            self._dispatch_task = asyncio.create_task(self._dispatch())
        self._run_task = asyncio.create_task(self._run(audio))
        return self

    async def result(self) -> SpeechResults:
        """Wait for the final results; raises the terminal error instead when the stream failed."""
        if self._final_future is None:
            raise InvalidArgumentError("Recognition has not been started")
        return await asyncio.shield(self._final_future)

    async def events(self) -> AsyncIterator[RecognitionEvent]:
        """Iterate the events in arrival order, ending after the terminal one."""
        if self._consumer_attached:
            raise InvalidArgumentError("Events are already being consumed")
        self._consumer_attached = True
        async for event in self._drain():
            yield event

    async def close(self):
        """Cancel the exchange: release the channel and report a disconnection if nothing terminal arrived yet."""
        if not self.started:
            self.state = StreamState.CLOSED
            return
        await self._finish(Disconnected(DisconnectionError("Recognition closed by caller")))
        for task in [self._run_task, self._audio_send_task, self._receive_task]:
            if task and not task.done() and task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, Exception):
                    pass
        if self._dispatch_task and self._dispatch_task is not asyncio.current_task():
            await self._dispatch_task

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _run(self, audio):
        """Connect, send the start message and spawn the sender and receiver."""
        try:
            logger.info(f"Connecting to {self.endpoint}", self.event_name)
            self.channel = await self.channel_factory(self.endpoint, self.headers)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Connection failed: {e}", self.event_name)
            await self._finish(Error(self._as_client_error(e)))
            return

        if self.done:
            # Closed by the caller while connecting
            await self._close_channel()
            return

        self.state = StreamState.CONNECTED
        self._emit(Connected())
        logger.info("Connected", self.event_name)

        try:
            start_message = self.options.to_start_message(self.content_type)
            await self.channel.send(json.dumps(start_message))
            logger.debug(f"Start message sent: {start_message}", self.event_name)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._finish(self._event_for_failure(e))
            return

        self.state = StreamState.STREAMING
        self._receive_task = asyncio.create_task(self._receive_results())
        self._audio_send_task = asyncio.create_task(self._audio_sender(audio))

    async def _audio_sender(self, audio):
        """Send audio chunks followed by the stop marker."""
        sent_bytes = 0
        try:
            async for chunk in iter_audio_chunks(audio, self.chunk_size):
                if self.done:
                    return
                await self.channel.send(chunk)
                sent_bytes += len(chunk)

            if self.done:
                return
            self._stop_sent = True
            self.state = StreamState.FINISHING
            await self.channel.send(STOP_MESSAGE)
            logger.debug(f"Audio exhausted after {sent_bytes} bytes, stop sent", self.event_name)
        except asyncio.CancelledError:
            logger.debug("Audio sender cancelled", self.event_name)
            raise
        except Exception as e:
            logger.error(f"Error sending audio: {e}", self.event_name)
            await self._finish(self._event_for_failure(e))

    async def _receive_results(self):
        """Receive and process server messages until the stream ends."""
        try:
            while not self.done:
                message = await self.channel.receive()
                if message is None:
                    await self._on_channel_closed()
                    return
                await self._handle_message(message)
        except asyncio.CancelledError:
            logger.debug("Receive task cancelled", self.event_name)
            raise
        except Exception as e:
            logger.error(f"Receive loop error: {e}", self.event_name)
            await self._finish(self._event_for_failure(e))

    async def _handle_message(self, message):
        if isinstance(message, (bytes, bytearray)):
            raise ServiceError("Unexpected binary message from the service")
        try:
            payload = json.loads(message)
        except ValueError as e:
            raise ServiceError(f"Malformed message from the service: {message[:200]!r}") from e
        if not isinstance(payload, dict):
            raise ServiceError(f"Malformed message from the service: {message[:200]!r}")

        if payload.get("error"):
            raise ServiceError(f"Service error: {payload['error']}")

        if "results" in payload:
            update = SpeechResults.from_dict(payload)
            self._results = self._results.merge(update)
            logger.debug(f"Results at index {update.result_index}: {self._results.transcript}", self.event_name)
            self._emit(Interim(self._results))
            return

        state = payload.get("state")
        if state == SessionState.LISTENING:
            self._listening_count += 1
            # The first one acknowledges the start message; a later one ends the utterance
            if self._listening_count > 1 and (self._stop_sent or self._results.is_final()):
                logger.info("Recognition finished", self.event_name)
                await self._finish(Final(self._results))
            return

        logger.debug(f"Ignoring message: {payload}", self.event_name)

    async def _on_channel_closed(self):
        """The service closed the channel without a protocol error."""
        if self._stop_sent:
            # Remaining interim segments are surfaced as the best-effort final result
            logger.info("Channel closed by the service after end of stream", self.event_name)
            await self._finish(Final(self._results))
        else:
            logger.warning("Channel closed before the audio was fully sent", self.event_name)
            await self._finish(Disconnected(DisconnectionError("Channel closed before end of stream")))

    def _emit(self, event: RecognitionEvent):
        self._events.put_nowait(event)

    async def _finish(self, event: RecognitionEvent):
        """Record the terminal event once, resolve result() and release the channel."""
        if self._terminal_event is not None:
            return
        self._terminal_event = event
        self.state = StreamState.CLOSED if isinstance(event, Final) else StreamState.ERRORED
        self._emit(event)

        if isinstance(event, Final):
            self._final_future.set_result(event.results)
        elif isinstance(event, Error):
            self._final_future.set_exception(event.error)
        else:
            self._final_future.set_exception(event.error or DisconnectionError("Channel disconnected"))

        if self.session is not None:
            self.session.release()

        current = asyncio.current_task()
        for task in [self._audio_send_task, self._receive_task]:
            if task and not task.done() and task is not current:
                task.cancel()
        await self._close_channel()
        logger.debug(f"Exchange ended in state {self.state.value}", self.event_name)

    async def _close_channel(self):
        if self.channel is not None:
            try:
                await self.channel.close()
            except Exception as e:
                logger.debug(f"Error closing channel: {e}", self.event_name)

    async def _drain(self) -> AsyncIterator[RecognitionEvent]:
        while True:
            event = await self._events.get()
            yield event
            if is_terminal(event):
                return

    async def _dispatch(self):
        """Deliver events to the delegate one at a time."""
        async for event in self._drain():
            try:
                if isinstance(event, Connected):
                    outcome = self.delegate.on_connected()
                elif isinstance(event, Interim):
                    outcome = self.delegate.on_message(event.results, False)
                elif isinstance(event, Final):
                    outcome = self.delegate.on_message(event.results, True)
                elif isinstance(event, Error):
                    outcome = self.delegate.on_error(event.error)
                else:
                    outcome = self.delegate.on_disconnected()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Delegate raised while handling {type(event).__name__}: {e}", self.event_name, exc_info=True)

    def _resolve_content_type(self, audio) -> str:
        content_type = (
            self.options.content_type
            or HttpMediaType.content_type_for(source_name(audio))
        )
        if content_type is None and isinstance(audio, np.ndarray):
            content_type = HttpMediaType.AUDIO_PCM
        if content_type is None:
            raise InvalidArgumentError("content_type is required when it cannot be inferred from a file name")
        return content_type

    @staticmethod
    def _as_client_error(error: Exception) -> SpeechClientError:
        if isinstance(error, SpeechClientError):
            return error
        return ServiceError(f"Streaming recognition failed: {error}")

    def _event_for_failure(self, error: Exception) -> RecognitionEvent:
        if isinstance(error, DisconnectionError):
            return Disconnected(error)
        return Error(self._as_client_error(error))
