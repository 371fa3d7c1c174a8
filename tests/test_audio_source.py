import io

import numpy as np
import pytest

from conftest import make_wav
from speech_client.services.streaming.audio_source import (
    iter_audio_chunks,
    pcm16_bytes,
    read_audio_payload,
    source_name,
    validate_audio_source,
)
from speech_client.utils.exceptions import InvalidArgumentError


async def collect(source, chunk_size=4096):
    return [chunk async for chunk in iter_audio_chunks(source, chunk_size)]


def test_pcm16_bytes_scales_floats():
    samples = np.array([0.0, 1.0, -1.0, 2.0], dtype=np.float32)
    pcm = np.frombuffer(pcm16_bytes(samples), dtype="<i2")
    assert pcm.tolist() == [0, 32767, -32767, 32767]


def test_pcm16_bytes_keeps_int16():
    samples = np.array([[1, -2], [3, -4]], dtype=np.int16)
    assert np.frombuffer(pcm16_bytes(samples), dtype="<i2").tolist() == [1, -2, 3, -4]


@pytest.mark.parametrize("samples,expected", [
    (np.array([1 << 16, -(1 << 16), 2 ** 31 - 1, -(2 ** 31)], dtype=np.int32), [1, -1, 32767, -32768]),
    (np.array([1 << 48, -(1 << 48)], dtype=np.int64), [1, -1]),
    (np.array([-128, 1, 127], dtype=np.int8), [-32768, 256, 32512]),
    (np.array([0, 128, 255], dtype=np.uint8), [-32768, 0, 32512]),
    (np.array([0, 32768, 65535], dtype=np.uint16), [-32768, 0, 32767]),
])
def test_pcm16_bytes_rescales_integer_pcm(samples, expected):
    assert np.frombuffer(pcm16_bytes(samples), dtype="<i2").tolist() == expected


def test_pcm16_bytes_rejects_non_numeric():
    with pytest.raises(InvalidArgumentError):
        pcm16_bytes(np.array([1 + 1j], dtype=np.complex64))
    with pytest.raises(InvalidArgumentError):
        pcm16_bytes(np.array([True, False]))


@pytest.mark.parametrize("source", [None, b"", np.array([], dtype=np.int16), 42])
def test_validate_rejects(source):
    with pytest.raises(InvalidArgumentError):
        validate_audio_source(source)


def test_validate_files(tmp_path):
    with pytest.raises(InvalidArgumentError):
        validate_audio_source(tmp_path / "missing.wav")
    empty = tmp_path / "empty.wav"
    empty.write_bytes(b"")
    with pytest.raises(InvalidArgumentError):
        validate_audio_source(str(empty))

    stream = io.BytesIO(b"abc")
    stream.close()
    with pytest.raises(InvalidArgumentError):
        validate_audio_source(stream)


def test_source_name(tmp_path):
    path = tmp_path / "a.flac"
    assert source_name(path) == str(path)
    assert source_name(b"abc") is None
    with open(tmp_path / "b.wav", "wb") as f:
        assert source_name(f).endswith("b.wav")


@pytest.mark.asyncio
async def test_chunks_bytes():
    chunks = await collect(b"abcdefghij", 4)
    assert chunks == [b"abcd", b"efgh", b"ij"]


@pytest.mark.asyncio
async def test_chunks_file_path(sample_wav):
    chunks = await collect(sample_wav, 1000)
    assert b"".join(chunks) == sample_wav.read_bytes()
    assert max(len(c) for c in chunks) == 1000


@pytest.mark.asyncio
async def test_chunks_iterables():
    async def agen():
        yield b"ab"
        yield b""
        yield np.array([1], dtype=np.int16)

    assert await collect(agen()) == [b"ab", b"\x01\x00"]
    assert await collect([b"x", bytearray(b"y")]) == [b"x", b"y"]
    with pytest.raises(InvalidArgumentError):
        await collect(["text"])


@pytest.mark.asyncio
async def test_chunk_size_must_be_positive():
    with pytest.raises(InvalidArgumentError):
        await collect(b"abc", 0)


@pytest.mark.asyncio
async def test_read_audio_payload(sample_wav):
    payload, name = await read_audio_payload(sample_wav)
    assert payload == sample_wav.read_bytes()
    assert name == str(sample_wav)

    payload, name = await read_audio_payload(io.BytesIO(make_wav()))
    assert payload == make_wav()
    assert name is None

    with pytest.raises(InvalidArgumentError):
        await read_audio_payload(io.BytesIO(b""))
