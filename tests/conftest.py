"""
Shared fixtures: an in-process fake speech service and a scripted streaming channel.
"""
import asyncio
import base64
import io
import json
import wave
from typing import Callable, List, Optional

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from speech_client.services.streaming.recognize_delegate import RecognizeDelegate
from speech_client.speech_to_text import SpeechToText
from speech_client.transport.websocket_channel import BaseChannel
from speech_client.utils.exceptions import DisconnectionError
from speech_client.utils.static_memory_cache import StaticMemoryCache


USERNAME = "user"
PASSWORD = "secret"
BASE_URL = "http://testserver"

MODELS = [
    {
        "name": "en-US_BroadbandModel",
        "rate": 16000,
        "language": "en-US",
        "description": "US English broadband model.",
        "url": f"{BASE_URL}/v1/models/en-US_BroadbandModel",
    },
    {
        "name": "en-US_NarrowbandModel",
        "rate": 8000,
        "language": "en-US",
        "description": "US English narrowband model.",
        "url": f"{BASE_URL}/v1/models/en-US_NarrowbandModel",
    },
]

TRANSCRIPT = "thunderstorms could produce large hail "


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message, "code": status}, status_code=status)


def recognition_body(params, transcript: str = TRANSCRIPT) -> dict:
    """Results payload shaped like the service's, honouring the word-level flags."""
    words = transcript.split()
    alternative = {"transcript": transcript, "confidence": 0.92}
    if params.get("timestamps") == "true":
        alternative["timestamps"] = [[word, i * 0.5, i * 0.5 + 0.4] for i, word in enumerate(words)]
    if params.get("word_confidence") == "true":
        alternative["word_confidence"] = [[word, 0.9] for word in words]
    return {"results": [{"alternatives": [alternative], "final": True}], "result_index": 0}


def create_fake_service() -> FastAPI:
    """FastAPI app mimicking the speech service REST API."""
    app = FastAPI()
    app.state.sessions = {}
    app.state.counter = 0
    app.state.requests = []
    # Number of upcoming DELETE calls that fail with 503
    app.state.failing_deletes = 0

    expected_auth = "Basic " + base64.b64encode(f"{USERNAME}:{PASSWORD}".encode()).decode()

    @app.middleware("http")
    async def check_auth(request: Request, call_next):
        app.state.requests.append(request)
        if request.headers.get("authorization") != expected_auth:
            return _error(401, "Not Authorized")
        return await call_next(request)

    @app.get("/v1/models")
    async def list_models():
        return {"models": MODELS}

    @app.get("/v1/models/{name}")
    async def get_model(name: str):
        for model in MODELS:
            if model["name"] == name:
                return model
        return _error(404, f"Model {name} not found")

    @app.post("/v1/sessions")
    async def create_session(request: Request):
        model = request.query_params.get("model", MODELS[0]["name"])
        if model not in {m["name"] for m in MODELS}:
            return _error(404, f"Model {model} not found")
        app.state.counter += 1
        session_id = f"session-{app.state.counter}"
        app.state.sessions[session_id] = {"model": model, "state": "initialized"}
        base = f"{BASE_URL}/v1/sessions/{session_id}"
        response = JSONResponse(
            {
                "session_id": session_id,
                "new_session_uri": base,
                "recognize": f"{base}/recognize",
                "observe_result": f"{base}/observe_result",
                "recognizeWS": f"ws://testserver/v1/sessions/{session_id}/recognize",
            },
            status_code=201,
        )
        response.set_cookie("SESSIONID", session_id)
        return response

    @app.delete("/v1/sessions/{session_id}")
    async def delete_session(session_id: str):
        if app.state.failing_deletes > 0:
            app.state.failing_deletes -= 1
            return _error(503, "Service temporarily unavailable")
        if app.state.sessions.pop(session_id, None) is None:
            return _error(404, f"Session {session_id} not found")
        return Response(status_code=204)

    @app.get("/v1/sessions/{session_id}/recognize")
    async def recognize_status(session_id: str):
        session = app.state.sessions.get(session_id)
        if session is None:
            return _error(404, f"Session {session_id} not found")
        base = f"{BASE_URL}/v1/sessions/{session_id}"
        return {
            "session": {
                "state": session["state"],
                "model": f"{BASE_URL}/v1/models/{session['model']}",
                "recognize": f"{base}/recognize",
                "observe_result": f"{base}/observe_result",
            }
        }

    async def _recognize(request: Request):
        content_type = request.headers.get("content-type", "")
        if not content_type.startswith("audio/"):
            return _error(415, f"Unsupported content type: {content_type}")
        body = await request.body()
        if not body:
            return _error(400, "No audio")
        return recognition_body(request.query_params)

    @app.post("/v1/recognize")
    async def recognize(request: Request):
        model = request.query_params.get("model")
        if model and model not in {m["name"] for m in MODELS}:
            return _error(404, f"Model {model} not found")
        return await _recognize(request)

    @app.post("/v1/sessions/{session_id}/recognize")
    async def recognize_in_session(session_id: str, request: Request):
        if session_id not in app.state.sessions:
            return _error(404, f"Session {session_id} not found")
        return await _recognize(request)

    return app


@pytest.fixture
def fake_service() -> FastAPI:
    return create_fake_service()


@pytest_asyncio.fixture
async def service(fake_service):
    """SpeechToText client wired to the fake service."""
    client = SpeechToText(
        BASE_URL,
        USERNAME,
        PASSWORD,
        transport=httpx.ASGITransport(app=fake_service),
    )
    yield client
    await client.close()


@pytest.fixture(autouse=True)
def reset_config():
    StaticMemoryCache.reset()
    yield
    StaticMemoryCache.reset()


def make_wav(frames: int = 8000, rate: int = 16000) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x01\x00" * frames)
    return buffer.getvalue()


@pytest.fixture
def sample_wav(tmp_path):
    path = tmp_path / "sample1.wav"
    path.write_bytes(make_wav())
    return path


def results_message(transcript: str, final: bool, result_index: int = 0) -> str:
    return json.dumps({
        "results": [{"alternatives": [{"transcript": transcript}], "final": final}],
        "result_index": result_index,
    })


LISTENING = json.dumps({"state": "listening"})


class ScriptedChannel(BaseChannel):
    """
    In-memory channel. Every sent message is recorded and handed to on_send, which
    may push replies; receive() returns pushed messages in order, None for a clean
    close and raises pushed exceptions.
    """

    def __init__(self, on_send: Optional[Callable] = None):
        self.on_send = on_send
        self.sent: List = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, item):
        self.incoming.put_nowait(item)

    async def send(self, message):
        if self.closed:
            raise DisconnectionError("send on closed channel")
        self.sent.append(message)
        if self.on_send is not None:
            self.on_send(self, message)

    async def receive(self):
        item = await self.incoming.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        if not self.closed:
            self.closed = True
            self.push(None)

    @property
    def audio(self) -> bytes:
        return b"".join(m for m in self.sent if isinstance(m, bytes))

    @property
    def text_messages(self) -> List[dict]:
        return [json.loads(m) for m in self.sent if isinstance(m, str)]


def healthy_server(channel: ScriptedChannel, message):
    """Acknowledges start, sends an interim hypothesis on the first chunk and the final one after stop."""
    if isinstance(message, bytes):
        if len(channel.audio) == len(message):
            channel.push(results_message("thunderstorms could", False))
        return
    action = json.loads(message).get("action")
    if action == "start":
        channel.push(LISTENING)
    elif action == "stop":
        channel.push(results_message("thunderstorms could produce", False))
        channel.push(results_message(TRANSCRIPT, True))
        channel.push(LISTENING)


class ChannelFactory:
    """Channel factory recording what the recognizer asked for."""

    def __init__(self, on_send=healthy_server, error: Optional[Exception] = None):
        self.on_send = on_send
        self.error = error
        self.channels: List[ScriptedChannel] = []
        self.endpoints: List[str] = []
        self.headers: List[dict] = []

    async def __call__(self, endpoint, headers):
        self.endpoints.append(endpoint)
        self.headers.append(headers)
        if self.error is not None:
            raise self.error
        channel = ScriptedChannel(self.on_send)
        self.channels.append(channel)
        return channel

    @property
    def channel(self) -> ScriptedChannel:
        return self.channels[-1]


@pytest.fixture
def channel_factory():
    return ChannelFactory()


class RecordingDelegate(RecognizeDelegate):
    """Observer that records every notification."""

    def __init__(self):
        self.calls = []
        self.finished = asyncio.Event()

    def on_connected(self):
        self.calls.append(("connected",))

    def on_message(self, speech_results, is_final):
        self.calls.append(("message", speech_results, is_final))
        if is_final:
            self.finished.set()

    def on_error(self, error):
        self.calls.append(("error", error))
        self.finished.set()

    def on_disconnected(self):
        self.calls.append(("disconnected",))
        self.finished.set()

    def kinds(self):
        return [call[0] for call in self.calls]

    def finals(self):
        return [call for call in self.calls if call[0] == "message" and call[2]]
