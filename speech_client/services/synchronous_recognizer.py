"""
One-shot recognition of a complete audio payload.
"""
from typing import Optional
from urllib.parse import quote

from speech_client.data_layer.data_classes.domain_models.http_media_type import HttpMediaType
from speech_client.data_layer.data_classes.domain_models.recognition_options import RecognitionOptions
from speech_client.data_layer.data_classes.domain_models.speech_results import SpeechResults
from speech_client.data_layer.data_classes.domain_models.speech_session import SpeechSession
from speech_client.services.streaming.audio_source import read_audio_payload
from speech_client.transport.speech_http_client import SpeechHttpClient
from speech_client.utils.exceptions import InvalidArgumentError
from speech_client.utils.logger import logger


class SynchronousRecognizer:
    """Sends the whole payload in one request and returns the aggregated results."""

    event_name = "SynchronousRecognizer"

    def __init__(self, http_client: SpeechHttpClient):
        self.http_client = http_client

    async def recognize(
        self,
        audio,
        content_type: Optional[str] = None,
        options: Optional[RecognitionOptions] = None,
        session: Optional[SpeechSession] = None,
    ) -> SpeechResults:
        """
        Recognize audio from a path, bytes, a binary file object or an iterable of chunks.

        The content type is taken from content_type, then options.content_type, then the
        file extension. When a session is given the request goes to that session's
        recognize endpoint and the model is the one the session was created with.
        """
        if options is not None and not isinstance(options, RecognitionOptions):
            raise InvalidArgumentError(f"options must be RecognitionOptions, got {type(options).__name__}")
        options = options or RecognitionOptions()

        payload, name = await read_audio_payload(audio)
        content_type = content_type or options.content_type or HttpMediaType.content_type_for(name)
        if not content_type:
            raise InvalidArgumentError("content_type is required when it cannot be inferred from a file name")

        params = options.to_query_params()
        if session is not None:
            session.ensure_usable()
            url = session.recognize_url or f"/v1/sessions/{quote(session.session_id, safe='')}/recognize"
            # The session already fixes the model
            params.pop("model", None)
        else:
            url = "/v1/recognize"

        logger.info(f"Recognizing {len(payload)} bytes of {content_type}", self.event_name)
        body = await self.http_client.request_json(
            "POST",
            url,
            params=params,
            content=payload,
            headers={"Content-Type": content_type},
            expected_status=(200,),
        )
        results = SpeechResults.from_dict(body)
        logger.debug(f"Recognized: {results.transcript}", self.event_name)
        return results
