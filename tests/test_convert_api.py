"""Tests for the Convert API endpoints (services/convert_api/main.py)."""

from __future__ import annotations

import base64

import pytest

import services.convert_api.main as main_module
from services.convert_api.main import app, error_code_to_status, get_codec
from tests.helpers import FAKE_MP3_BYTES, FAKE_SILK_HEADER, FailingCodec


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        """Health check should return ok."""
        test_client, _, _ = client
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestStartup:
    """Lifespan prepares the staging area."""

    def test_staging_dirs_created(self, client):
        _, _, staging = client
        assert staging.uploads.is_dir()
        assert staging.download.is_dir()
        assert staging.output.is_dir()


class TestConvertUpload:
    """Tests for POST /convert with a multipart file."""

    def test_upload_returns_silk(self, client, sample_mp3_file):
        """Valid upload should return 200 with a non-empty SILK body."""
        test_client, codec, staging = client

        with open(sample_mp3_file, "rb") as f:
            response = test_client.post(
                "/convert",
                files={"audio": ("sample.mp3", f, "audio/mpeg")},
            )

        assert response.status_code == 200
        assert response.content.startswith(FAKE_SILK_HEADER)
        assert response.headers["content-type"] == "audio/silk"
        assert 'filename="sample.silk"' in response.headers["content-disposition"]
        assert response.headers["x-silk-cache"] == "MISS"
        assert codec.call_count == 1

    def test_input_removed_after_response(self, client, sample_mp3_file):
        """The input artifact is deleted once the response is sent."""
        test_client, _, staging = client

        with open(sample_mp3_file, "rb") as f:
            response = test_client.post("/convert", files={"audio": ("sample.mp3", f)})

        assert response.status_code == 200
        assert list(staging.uploads.iterdir()) == []
        # Output is retained as cache by default
        assert len(list(staging.output.glob("*.silk"))) == 1

    def test_output_removed_when_retention_disabled(self, client, sample_mp3_file, monkeypatch):
        test_client, _, staging = client
        monkeypatch.setattr(main_module, "KEEP_OUTPUT", False)

        with open(sample_mp3_file, "rb") as f:
            response = test_client.post("/convert", files={"audio": ("sample.mp3", f)})

        assert response.status_code == 200
        assert response.content.startswith(FAKE_SILK_HEADER)
        assert staging.files() == []

    def test_upload_takes_precedence_over_url(self, client, sample_mp3_file):
        """With both a file and a URL, the file is converted."""
        test_client, codec, staging = client

        with open(sample_mp3_file, "rb") as f:
            response = test_client.post(
                "/convert",
                files={"audio": ("sample.mp3", f)},
                data={"audioUrl": "http://bad.invalid/x.mp3"},
            )

        assert response.status_code == 200
        input_path, _ = codec.calls[0]
        assert input_path.parent == staging.uploads

    def test_empty_upload_rejected(self, client):
        test_client, codec, staging = client

        response = test_client.post("/convert", files={"audio": ("empty.mp3", b"")})

        assert response.status_code == 400
        assert response.json()["error_code"] == "EMPTY_INPUT"
        assert codec.call_count == 0
        assert staging.files() == []

    def test_form_without_file_uses_text_fields(self, client):
        """A multipart form with only text fields falls through to URL/Base64."""
        test_client, codec, _ = client

        response = test_client.post(
            "/convert",
            data={"base64Audio": _b64(FAKE_MP3_BYTES), "fileName": "from-form"},
            files={"unused": ("x.txt", b"ignored")},
        )

        assert response.status_code == 200
        assert 'filename="from-form.silk"' in response.headers["content-disposition"]

    def test_unlisted_extension_stripped_from_download_name(self, client):
        """Any extension of the uploaded file name is dropped, not only audio ones."""
        test_client, _, _ = client

        response = test_client.post("/convert", files={"audio": ("voice.3gp", FAKE_MP3_BYTES)})

        assert response.status_code == 200
        assert 'filename="voice.silk"' in response.headers["content-disposition"]

    def test_large_base64_form_field_accepted(self, client):
        """Form text parts above the multipart default of 1 MiB are accepted."""
        test_client, codec, _ = client
        big_audio = FAKE_MP3_BYTES * (1024 * 1024 // len(FAKE_MP3_BYTES) + 1)
        encoded = _b64(big_audio)
        assert len(encoded) > 1024 * 1024

        response = test_client.post(
            "/convert",
            data={"base64Audio": encoded, "fileName": "big"},
            files={"unused": ("x.txt", b"ignored")},
        )

        assert response.status_code == 200
        assert codec.call_count == 1

    def test_malformed_multipart_is_400(self, client):
        """A multipart body that cannot be parsed is a client error."""
        test_client, codec, staging = client

        response = test_client.post(
            "/convert",
            content=b"garbage",
            headers={"Content-Type": "multipart/form-data"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REQUEST"
        assert codec.call_count == 0
        assert staging.files() == []

    def test_form_part_over_base64_limit_is_400(self, client, monkeypatch):
        test_client, codec, _ = client
        monkeypatch.setattr(main_module, "MAX_BASE64_CHARS", 16)

        response = test_client.post(
            "/convert",
            data={"base64Audio": _b64(FAKE_MP3_BYTES)},
            files={"unused": ("x.txt", b"ignored")},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REQUEST"
        assert codec.call_count == 0


class TestConvertUrl:
    """Tests for POST /convert with audioUrl."""

    def test_url_returns_silk(self, client):
        test_client, codec, staging = client

        response = test_client.post(
            "/convert",
            json={"audioUrl": "http://example.com/song.mp3", "fileName": "song"},
        )

        assert response.status_code == 200
        assert response.content.startswith(FAKE_SILK_HEADER)
        assert 'filename="song.silk"' in response.headers["content-disposition"]
        assert list(staging.download.iterdir()) == []

    def test_unreachable_url_is_400(self, client):
        """Unreachable host should return 400 with an error message."""
        test_client, codec, staging = client

        response = test_client.post("/convert", json={"audioUrl": "http://bad.invalid/x.mp3"})

        assert response.status_code == 400
        data = response.json()
        assert data["error"]
        assert data["error_code"] == "DOWNLOAD_FAILED"
        assert codec.call_count == 0
        assert staging.files() == []

    def test_url_takes_precedence_over_base64(self, client):
        test_client, codec, staging = client

        response = test_client.post(
            "/convert",
            json={"audioUrl": "http://example.com/a.mp3", "base64Audio": "not-valid-base64!!"},
        )

        assert response.status_code == 200

    def test_urlencoded_form_body(self, client):
        test_client, _, _ = client

        response = test_client.post(
            "/convert",
            data={"audioUrl": "http://example.com/a.mp3"},
        )

        assert response.status_code == 200


class TestConvertBase64:
    """Tests for POST /convert with base64Audio."""

    def test_base64_returns_silk(self, client):
        test_client, codec, _ = client

        response = test_client.post(
            "/convert",
            json={"base64Audio": f"data:audio/mpeg;base64,{_b64(FAKE_MP3_BYTES)}"},
        )

        assert response.status_code == 200
        assert response.content.startswith(FAKE_SILK_HEADER)
        assert codec.call_count == 1

    def test_invalid_base64_is_400(self, client):
        """Malformed Base64 should return 400 and leave no file behind."""
        test_client, codec, staging = client

        response = test_client.post("/convert", json={"base64Audio": "not-valid-base64!!"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "DECODE_FAILED"
        assert codec.call_count == 0
        assert staging.files() == []

    def test_oversized_base64_is_413(self, client, monkeypatch):
        import app.resolver as resolver_module

        test_client, _, _ = client
        monkeypatch.setattr(resolver_module, "MAX_BASE64_CHARS", 8)

        response = test_client.post("/convert", json={"base64Audio": _b64(FAKE_MP3_BYTES)})

        assert response.status_code == 413
        assert response.json()["error_code"] == "PAYLOAD_TOO_LARGE"


class TestCacheReuse:
    """Repeated conversions of the same audio reuse the first output."""

    def test_same_file_name_twice_skips_codec(self, client):
        test_client, codec, _ = client
        body = {"base64Audio": _b64(FAKE_MP3_BYTES), "fileName": "repeat"}

        first = test_client.post("/convert", json=body)
        second = test_client.post("/convert", json=body)

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.headers["x-silk-cache"] == "MISS"
        assert second.headers["x-silk-cache"] == "HIT"
        assert second.content == first.content
        assert codec.call_count == 1

    def test_same_file_name_different_audio_is_not_stale(self, client):
        """Reusing a fileName for new audio must not return the old output."""
        test_client, codec, _ = client

        first = test_client.post(
            "/convert", json={"base64Audio": _b64(b"first audio"), "fileName": "same"}
        )
        second = test_client.post(
            "/convert", json={"base64Audio": _b64(b"second audio"), "fileName": "same"}
        )

        assert second.headers["x-silk-cache"] == "MISS"
        assert second.content != first.content
        assert codec.call_count == 2

    def test_without_retention_each_request_owns_its_output(self, client, monkeypatch):
        """With retention off, identical requests never share an output file."""
        test_client, codec, staging = client
        monkeypatch.setattr(main_module, "KEEP_OUTPUT", False)
        body = {"base64Audio": _b64(FAKE_MP3_BYTES), "fileName": "repeat"}

        first = test_client.post("/convert", json=body)
        second = test_client.post("/convert", json=body)

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.headers["x-silk-cache"] == "MISS"
        assert second.headers["x-silk-cache"] == "MISS"
        assert codec.call_count == 2
        first_output, second_output = (out for _, out in codec.calls)
        assert first_output.parent == second_output.parent == staging.output
        assert first_output.name.split(".")[:2] != second_output.name.split(".")[:2]
        assert staging.files() == []


class TestMissingInput:
    """Requests without any audio source."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"json": {}},
            {"json": {"fileName": "only-a-name"}},
            {"json": {"audioUrl": "", "base64Audio": ""}},
            {"content": b""},
        ],
        ids=["empty-object", "name-only", "empty-strings", "no-body"],
    )
    def test_missing_input_is_400(self, client, kwargs):
        test_client, codec, staging = client

        response = test_client.post("/convert", **kwargs)

        assert response.status_code == 400
        assert response.json()["error_code"] == "MISSING_INPUT"
        assert codec.call_count == 0
        assert staging.files() == []

    def test_malformed_json_is_400(self, client):
        test_client, _, _ = client

        response = test_client.post(
            "/convert",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REQUEST"

    def test_non_object_json_is_400(self, client):
        test_client, _, _ = client

        response = test_client.post("/convert", json=["audioUrl"])

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REQUEST"


class TestConversionErrors:
    """Codec failures and timeouts map to 500 and clean up the input."""

    def test_codec_failure_is_500(self, client):
        test_client, _, staging = client
        app.dependency_overrides[get_codec] = lambda: FailingCodec()

        response = test_client.post("/convert", json={"base64Audio": _b64(FAKE_MP3_BYTES)})

        assert response.status_code == 500
        assert response.json()["error_code"] == "CONVERSION_FAILED"
        assert staging.files() == []

    def test_timeout_is_500(self, client, blocking_codec, monkeypatch):
        test_client, _, staging = client
        app.dependency_overrides[get_codec] = lambda: blocking_codec
        monkeypatch.setattr(main_module, "CONVERSION_TIMEOUT_SECONDS", 0.2)

        try:
            response = test_client.post(
                "/convert", json={"base64Audio": _b64(FAKE_MP3_BYTES)}
            )
        finally:
            blocking_codec.release()

        assert response.status_code == 500
        data = response.json()
        assert data["error_code"] == "CONVERSION_TIMEOUT"
        assert "0.2" in data["error"]
        assert list(staging.download.iterdir()) == []
        assert list(staging.output.glob("*.silk")) == []

    def test_unexpected_error_is_generic_500(self, client, monkeypatch):
        test_client, _, staging = client

        async def explode(*args, **kwargs):
            raise RuntimeError("internal detail")

        monkeypatch.setattr(main_module, "convert", explode)

        response = test_client.post("/convert", json={"base64Audio": _b64(FAKE_MP3_BYTES)})

        assert response.status_code == 500
        data = response.json()
        assert data["error_code"] == "CONVERSION_FAILED"
        assert "internal detail" not in data["error"]
        assert list(staging.download.iterdir()) == []


class TestErrorCodeToStatus:
    """Tests for error_code_to_status mapping."""

    @pytest.mark.parametrize(
        "code,status",
        [
            ("INVALID_REQUEST", 400),
            ("MISSING_INPUT", 400),
            ("DOWNLOAD_FAILED", 400),
            ("DECODE_FAILED", 400),
            ("EMPTY_INPUT", 400),
            ("PAYLOAD_TOO_LARGE", 413),
            ("INPUT_NOT_FOUND", 404),
            ("CONVERSION_TIMEOUT", 500),
            ("CONVERSION_FAILED", 500),
        ],
    )
    def test_mapping(self, code, status):
        assert error_code_to_status(code) == status
