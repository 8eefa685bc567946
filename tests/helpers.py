"""Test doubles shared across test modules."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path

import httpx

from app.codec import CodecError

FAKE_SILK_HEADER = b"\x02#!SILK_V3"
FAKE_MP3_BYTES = b"ID3\x03\x00\x00\x00\x00\x00\x0f" + b"\xff\xfb\x90\x64" + b"fake mp3 frame " * 64


@dataclass
class StagingArea:
    uploads: Path
    download: Path
    output: Path

    def files(self) -> list[Path]:
        """All files currently in any staging directory."""
        found = []
        for directory in (self.uploads, self.download, self.output):
            if directory.exists():
                found.extend(p for p in directory.iterdir() if p.is_file())
        return sorted(found)


# --- Codec doubles ---


class FakeCodec:
    """Writes a SILK-looking file derived from the input; counts calls."""

    def __init__(self):
        self.calls: list[tuple[Path, Path]] = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def encode(self, input_path: Path, output_path: Path) -> Path:
        with self._lock:
            self.calls.append((Path(input_path), Path(output_path)))
        data = Path(input_path).read_bytes()
        Path(output_path).write_bytes(FAKE_SILK_HEADER + data[:64])
        return Path(output_path)


class BlockingCodec(FakeCodec):
    """Does not complete until release() is called."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.finished = threading.Event()
        self._release = threading.Event()

    def release(self) -> None:
        self._release.set()

    def encode(self, input_path: Path, output_path: Path) -> Path:
        self.started.set()
        self._release.wait(timeout=30)
        try:
            return super().encode(input_path, output_path)
        finally:
            self.finished.set()


class FailingCodec(FakeCodec):
    """Leaves a partial file behind, then raises CodecError."""

    def encode(self, input_path: Path, output_path: Path) -> Path:
        with self._lock:
            self.calls.append((Path(input_path), Path(output_path)))
        Path(output_path).write_bytes(b"partial")
        raise CodecError("ffmpeg could not decode input: invalid data")


# --- Remote fetch doubles ---


def make_mock_http_client(handler) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler(request)."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def audio_handler(request: httpx.Request) -> httpx.Response:
    """Serve fake MP3 bytes for *.mp3 paths, 404 otherwise; bad.invalid is unreachable."""
    if request.url.host == "bad.invalid":
        raise httpx.ConnectError("Name or service not known", request=request)
    if request.url.path.endswith(".mp3"):
        return httpx.Response(200, content=FAKE_MP3_BYTES, headers={"Content-Type": "audio/mpeg"})
    return httpx.Response(404, content=b"not found")
