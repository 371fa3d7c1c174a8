"""
Audio content types understood by the speech service.
"""
import os
from typing import Optional


class HttpMediaType:
    """Content type constants for audio payloads."""
    AUDIO_WAV = "audio/wav"
    AUDIO_FLAC = "audio/flac"
    AUDIO_OGG = "audio/ogg; codecs=opus"
    AUDIO_RAW = "audio/l16"
    AUDIO_PCM = "audio/l16; rate=16000"
    AUDIO_BASIC = "audio/basic"
    AUDIO_MPEG = "audio/mpeg"
    AUDIO_WEBM = "audio/webm"
    APPLICATION_JSON = "application/json"

    _BY_EXTENSION = {
        ".wav": AUDIO_WAV,
        ".wave": AUDIO_WAV,
        ".flac": AUDIO_FLAC,
        ".ogg": AUDIO_OGG,
        ".opus": AUDIO_OGG,
        ".raw": AUDIO_RAW,
        ".pcm": AUDIO_RAW,
        ".l16": AUDIO_RAW,
        ".au": AUDIO_BASIC,
        ".mp3": AUDIO_MPEG,
        ".mpeg": AUDIO_MPEG,
        ".webm": AUDIO_WEBM,
    }

    @classmethod
    def content_type_for(cls, path) -> Optional[str]:
        """Guess the content type from a file name's extension."""
        if path is None:
            return None
        _, extension = os.path.splitext(str(path))
        return cls._BY_EXTENSION.get(extension.lower())
