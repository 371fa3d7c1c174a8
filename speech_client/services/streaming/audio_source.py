"""
Audio source helpers: validate caller input and read it lazily in chunks.
"""
import asyncio
import os
from pathlib import Path
from typing import AsyncIterator, Optional, Tuple

import numpy as np

from speech_client.utils.exceptions import InvalidArgumentError


def pcm16_bytes(samples: np.ndarray) -> bytes:
    """Convert a sample array to 16-bit little-endian PCM bytes."""
    if samples.ndim > 1:
        samples = samples.reshape(-1)
    if samples.dtype == np.int16:
        pass
    elif np.issubdtype(samples.dtype, np.integer):
        samples = _rescale_integer_pcm(samples)
    elif np.issubdtype(samples.dtype, np.floating):
        # Float audio is expected in [-1.0, 1.0]
        samples = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
    else:
        raise InvalidArgumentError(f"Unsupported audio sample type: {samples.dtype}")
    return samples.astype("<i2", copy=False).tobytes()


def _rescale_integer_pcm(samples: np.ndarray) -> np.ndarray:
    """Full-scale integer PCM of any width to int16 by keeping the top 16 bits."""
    info = np.iinfo(samples.dtype)
    shift = info.bits - 16
    unsigned = info.min == 0
    if shift >= 0:
        scaled = (samples >> samples.dtype.type(shift)).astype(np.int32)
    else:
        scaled = samples.astype(np.int32) << -shift
    if unsigned:
        # Unsigned PCM is centred on the middle of its range
        scaled -= 32768
    return scaled.astype(np.int16)


def _is_path(source) -> bool:
    return isinstance(source, (str, os.PathLike))


def validate_audio_source(source):
    """Raise InvalidArgumentError for sources that can never yield audio."""
    if source is None:
        raise InvalidArgumentError("Audio source is required")
    if isinstance(source, (bytes, bytearray, memoryview)):
        if len(source) == 0:
            raise InvalidArgumentError("Audio payload is empty")
        return
    if isinstance(source, np.ndarray):
        if source.size == 0:
            raise InvalidArgumentError("Audio payload is empty")
        return
    if _is_path(source):
        path = Path(source)
        if not path.is_file():
            raise InvalidArgumentError(f"Audio file not found: {path}")
        if path.stat().st_size == 0:
            raise InvalidArgumentError(f"Audio file is empty: {path}")
        return
    if hasattr(source, "read"):
        if getattr(source, "closed", False):
            raise InvalidArgumentError("Audio stream is closed")
        return
    if hasattr(source, "__aiter__") or hasattr(source, "__iter__"):
        return
    raise InvalidArgumentError(f"Unsupported audio source type: {type(source).__name__}")


def source_name(source) -> Optional[str]:
    """File name behind a source, if there is one."""
    if _is_path(source):
        return os.fspath(source)
    name = getattr(source, "name", None)
    return name if isinstance(name, str) else None


async def iter_audio_chunks(source, chunk_size: int = 4096) -> AsyncIterator[bytes]:
    """Yield the source as byte chunks, reading lazily."""
    if chunk_size <= 0:
        raise InvalidArgumentError(f"chunk_size must be positive, got {chunk_size}")

    if isinstance(source, np.ndarray):
        source = pcm16_bytes(source)

    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        for offset in range(0, len(data), chunk_size):
            yield data[offset:offset + chunk_size]
        return

    if _is_path(source):
        with open(source, "rb") as f:
            async for chunk in _read_file(f, chunk_size):
                yield chunk
        return

    if hasattr(source, "read"):
        async for chunk in _read_file(source, chunk_size):
            yield chunk
        return

    if hasattr(source, "__aiter__"):
        async for chunk in source:
            if chunk:
                yield _as_bytes(chunk)
        return

    for chunk in source:
        if chunk:
            yield _as_bytes(chunk)


async def _read_file(f, chunk_size: int) -> AsyncIterator[bytes]:
    while True:
        try:
            chunk = await asyncio.to_thread(f.read, chunk_size)
        except ValueError as e:
            # Reading a file object that was closed under us
            raise InvalidArgumentError(f"Audio stream closed before it was exhausted: {e}") from e
        if not chunk:
            break
        yield _as_bytes(chunk)


def _as_bytes(chunk) -> bytes:
    if isinstance(chunk, np.ndarray):
        return pcm16_bytes(chunk)
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    raise InvalidArgumentError(f"Audio chunks must be bytes, got {type(chunk).__name__}")


async def read_audio_payload(source) -> Tuple[bytes, Optional[str]]:
    """Read a whole source into memory for a one-shot request; returns (payload, file name)."""
    validate_audio_source(source)
    name = source_name(source)
    try:
        if _is_path(source):
            payload = await asyncio.to_thread(Path(source).read_bytes)
        else:
            payload = b"".join([chunk async for chunk in iter_audio_chunks(source)])
    except OSError as e:
        raise InvalidArgumentError(f"Could not read audio: {e}") from e
    if not payload:
        raise InvalidArgumentError("Audio payload is empty")
    return payload, name
