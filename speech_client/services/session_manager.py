"""
Session lifecycle and model catalog operations.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Union
from urllib.parse import quote

from speech_client.data_layer.data_classes.domain_models.speech_model import SpeechModel, model_name
from speech_client.data_layer.data_classes.domain_models.speech_session import SessionStatus, SpeechSession
from speech_client.transport.speech_http_client import SpeechHttpClient
from speech_client.utils.exceptions import InvalidArgumentError, NotFoundError, ServiceError
from speech_client.utils.logger import logger


class SessionManager:
    """Creates, inspects and deletes recognition sessions and reads the model catalog."""

    event_name = "SessionManager"

    def __init__(self, http_client: SpeechHttpClient):
        self.http_client = http_client

    async def create_session(self, model: Union[SpeechModel, str, None] = None) -> SpeechSession:
        """Create a session, optionally pinned to a model."""
        name = model_name(model)
        params = {"model": name} if name else None
        body = await self.http_client.request_json(
            "POST", "/v1/sessions", params=params, expected_status=(200, 201)
        )
        session = SpeechSession.from_dict(body, model=name)
        logger.info(f"Session {session.session_id} created (model={name or 'default'})", self.event_name)
        return session

    async def delete_session(self, session: SpeechSession):
        """
        Delete a session. Deleting an already deleted session is a no-op, and a session the
        service no longer knows about is treated as deleted.

        A failed delete raises and leaves the session pending deletion: it can no longer be
        used for recognition, but calling delete_session again retries the request.
        """
        if session is None:
            raise InvalidArgumentError("session is required")
        if session.is_deleted:
            logger.debug(f"Session {session.session_id} already deleted", self.event_name)
            return

        session.mark_delete_pending()
        try:
            await self.http_client.request(
                "DELETE", f"/v1/sessions/{quote(session.session_id, safe='')}", expected_status=(200, 204)
            )
        except NotFoundError:
            logger.debug(f"Session {session.session_id} was already gone on the service", self.event_name)
            session.mark_deleted()
            return
        session.mark_deleted()
        logger.info(f"Session {session.session_id} deleted", self.event_name)

    async def get_recognition_status(self, session: SpeechSession) -> SessionStatus:
        """Current model binding and recognition state of a session."""
        if session is None:
            raise InvalidArgumentError("session is required")
        session.ensure_usable()
        url = session.recognize_url or f"/v1/sessions/{quote(session.session_id, safe='')}/recognize"
        body = await self.http_client.request_json("GET", url, expected_status=(200,))
        status = SessionStatus.from_dict(body, session_id=session.session_id)
        logger.debug(f"Session {session.session_id} is {status.state} on {status.model}", self.event_name)
        return status

    async def list_models(self) -> List[SpeechModel]:
        """Full catalog of models available on the service."""
        body = await self.http_client.request_json("GET", "/v1/models", expected_status=(200,))
        models = body.get("models")
        if not isinstance(models, list):
            raise ServiceError(f"Malformed model list: {body!r}")
        return [SpeechModel.from_dict(item) for item in models]

    async def get_model(self, name: Union[SpeechModel, str]) -> SpeechModel:
        """One model by exact name; raises NotFoundError when the service has no such model."""
        name = model_name(name)
        if not name:
            raise InvalidArgumentError("model name is required")
        try:
            body = await self.http_client.request_json(
                "GET", f"/v1/models/{quote(name, safe='')}", expected_status=(200,)
            )
        except NotFoundError as e:
            raise NotFoundError(f"Model not found: {name}", status_code=e.status_code, response_body=e.response_body) from e
        return SpeechModel.from_dict(body)

    @asynccontextmanager
    async def session(self, model: Union[SpeechModel, str, None] = None) -> AsyncIterator[SpeechSession]:
        """Create a session for the duration of the block and delete it on every exit path."""
        speech_session = await self.create_session(model)
        body_failed = False
        try:
            yield speech_session
        except BaseException:
            body_failed = True
            raise
        finally:
            try:
                await self.delete_session(speech_session)
            except Exception as e:
                if not body_failed:
                    raise
                # The block's own error is the one worth surfacing
                logger.error(f"Failed to delete session {speech_session.session_id}: {e}", self.event_name)
