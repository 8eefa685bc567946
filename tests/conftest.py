"""Shared pytest fixtures for SILK Voice Converter tests.

Every test gets its own staging area under tmp_path; no test touches the
repository data/ directory, runs ffmpeg, or reaches the network unless it
says so explicitly.
"""

from __future__ import annotations

import wave

import pytest
from fastapi.testclient import TestClient

import app.utils.paths as paths_module
from services.convert_api.main import app, get_codec, get_http_client
from tests.helpers import (
    FAKE_MP3_BYTES,
    BlockingCodec,
    FakeCodec,
    StagingArea,
    audio_handler,
    make_mock_http_client,
)


@pytest.fixture
def staging(tmp_path, monkeypatch):
    """Point the staging area at a temporary directory.

    Directories are created, mirroring application startup.
    """
    area = StagingArea(
        uploads=tmp_path / "data" / "uploads",
        download=tmp_path / "data" / "download",
        output=tmp_path / "data" / "output",
    )
    monkeypatch.setattr(paths_module, "UPLOADS_DIR", area.uploads)
    monkeypatch.setattr(paths_module, "DOWNLOAD_DIR", area.download)
    monkeypatch.setattr(paths_module, "OUTPUT_DIR", area.output)
    paths_module.ensure_staging_dirs()
    return area


@pytest.fixture
def fake_codec():
    return FakeCodec()


@pytest.fixture
def blocking_codec():
    codec = BlockingCodec()
    yield codec
    # Never leave a worker thread parked past the test
    codec.release()


@pytest.fixture
def client(staging, fake_codec):
    """FastAPI test client with fake codec and mock remote fetches.

    Yields:
        tuple: (test_client, codec, staging_area)
    """
    http_client = make_mock_http_client(audio_handler)
    app.dependency_overrides[get_codec] = lambda: fake_codec
    app.dependency_overrides[get_http_client] = lambda: http_client

    with TestClient(app) as test_client:
        yield test_client, fake_codec, staging

    app.dependency_overrides.clear()


@pytest.fixture
def sample_mp3_file(tmp_path):
    """Small file with MP3-like bytes (not decodable audio)."""
    path = tmp_path / "sample.mp3"
    path.write_bytes(FAKE_MP3_BYTES)
    return path


@pytest.fixture
def sample_audio_file(tmp_path):
    """Create a minimal valid WAV file (1 second of silence, mono, 24000 Hz)."""
    path = tmp_path / "sample.wav"
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(24000)
        wf.writeframes(b"\x00" * 24000 * 2)
    return path
