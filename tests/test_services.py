"""Tests for the HTTP provider clients."""

import base64
import json

import httpx
import jwt
import pytest

from ritz.errors import ProviderError, ProviderFailedError, ProviderSubmitError
from ritz.services import (
    FreepikKlingAnimator,
    FreepikUpscaler,
    GeminiImageGenerator,
    ImageAsset,
    JobStatus,
    KlingAnimator,
    ReferenceImage,
    SunoMusicGenerator,
    download_bytes,
)


def _transport(handler, requests=None):
    def wrapped(request):
        if requests is not None:
            requests.append(request)
        return handler(request)

    return httpx.MockTransport(wrapped)


def _tool_response(payload):
    return httpx.Response(
        200, json={"jsonrpc": "2.0", "result": {"content": [{"type": "text", "text": json.dumps(payload)}]}}
    )


class TestGemini:
    async def test_returns_inline_image(self):
        requests = []
        image = base64.b64encode(b"png-bytes").decode()

        def handler(request):
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [
                    {"text": "here you go"},
                    {"inlineData": {"mimeType": "image/png", "data": image}},
                ]}}]
            })

        client = GeminiImageGenerator(api_key="k", model="m", transport=_transport(handler, requests))
        data = await client.generate("a lighthouse", [ReferenceImage(data=b"ref")], "9:16")

        assert data == b"png-bytes"
        body = json.loads(requests[0].content)
        parts = body["contents"][0]["parts"]
        assert "inlineData" in parts[0]
        assert parts[1]["text"].endswith("create: a lighthouse")
        assert body["generationConfig"]["imageConfig"]["aspectRatio"] == "9:16"
        assert requests[0].url.params["key"] == "k"

    async def test_text_only_response(self):
        def handler(request):
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "no"}]}}]})

        client = GeminiImageGenerator(api_key="k", transport=_transport(handler))
        with pytest.raises(ProviderFailedError, match="no image returned"):
            await client.generate("x", [], "1:1")

    async def test_http_error_keeps_body(self):
        def handler(request):
            return httpx.Response(429, text="quota exhausted")

        client = GeminiImageGenerator(api_key="k", transport=_transport(handler))
        with pytest.raises(ProviderSubmitError, match="HTTP 429: quota exhausted"):
            await client.generate("x", [], "1:1")


class TestFreepikUpscaler:
    async def test_submit_and_poll(self):
        def handler(request):
            if request.method == "POST":
                body = json.loads(request.content)
                assert body["image"].startswith("data:image/png;base64,")
                assert body["scale"] == 4
                return httpx.Response(200, json={"data": {"task_id": "t1", "status": "CREATED"}})
            assert request.url.path.endswith("/t1")
            return httpx.Response(200, json={"data": {"status": "COMPLETED", "generated": ["https://cdn/up.png"]}})

        client = FreepikUpscaler(api_key="k", transport=_transport(handler))

        assert await client.submit(b"img") == "t1"
        poll = await client.poll("t1")
        assert poll.status is JobStatus.DONE
        assert poll.result_url == "https://cdn/up.png"

    async def test_in_progress(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"status": "IN_PROGRESS"}})

        poll = await FreepikUpscaler(api_key="k", transport=_transport(handler)).poll("t1")
        assert poll.status is JobStatus.RUNNING


class TestFreepikKling:
    async def test_submit_uses_tier_tool(self):
        requests = []

        def handler(request):
            return _tool_response({"data": {"task_id": "fk1"}})

        animator = FreepikKlingAnimator("std", api_key="k", transport=_transport(handler, requests))
        job = await animator.submit(ImageAsset(url="https://cdn/up.png", data=b""), "push in", 5)

        assert job == "fk1"
        assert animator.name == "freepik-kling-std"
        params = json.loads(requests[0].content)["params"]
        assert params["name"] == "create_video_kling_2_1_std"
        assert params["arguments"]["image"] == "https://cdn/up.png"
        assert params["arguments"]["duration"] == "5"

    async def test_rpc_error_is_submit_error(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "error": {"code": -32000, "message": "no credits"}})

        animator = FreepikKlingAnimator("pro", api_key="k", transport=_transport(handler))
        with pytest.raises(ProviderSubmitError, match="no credits"):
            await animator.submit(ImageAsset(url="u", data=b""), "p", 5)

    async def test_poll_statuses(self):
        responses = iter([
            {"data": {"status": "IN_PROGRESS"}},
            {"data": {"status": "COMPLETED", "generated": ["https://cdn/clip.mp4"]}},
            {"data": {"status": "FAILED"}},
        ])

        def handler(request):
            return _tool_response(next(responses))

        animator = FreepikKlingAnimator(api_key="k", transport=_transport(handler))

        assert (await animator.poll("a")).status is JobStatus.RUNNING
        done = await animator.poll("a")
        assert done.result_url == "https://cdn/clip.mp4"
        assert (await animator.poll("a")).status is JobStatus.FAILED

    def test_unknown_tier(self):
        with pytest.raises(ValueError):
            FreepikKlingAnimator("ultra", api_key="k")


class TestKling:
    async def test_submit_signs_token_and_sends_raw_base64(self):
        requests = []

        def handler(request):
            return httpx.Response(200, json={"code": 0, "data": {"task_id": "k1"}})

        animator = KlingAnimator("ak", "sk", transport=_transport(handler, requests))
        job = await animator.submit(ImageAsset(url="u", data=b"upscaled"), "orbit", 5)

        assert job == "k1"
        token = requests[0].headers["Authorization"].split(" ", 1)[1]
        claims = jwt.decode(token, "sk", algorithms=["HS256"])
        assert claims["iss"] == "ak"
        body = json.loads(requests[0].content)
        assert body["image"] == base64.b64encode(b"upscaled").decode()
        assert body["duration"] == "5"

    async def test_api_error_code(self):
        def handler(request):
            return httpx.Response(200, json={"code": 1102, "message": "balance not enough"})

        animator = KlingAnimator("ak", "sk", transport=_transport(handler))
        with pytest.raises(ProviderSubmitError, match="balance not enough"):
            await animator.submit(ImageAsset(url="u", data=b"x"), "p", 5)

    async def test_poll(self):
        responses = iter([
            {"data": {"task_status": "submitted"}},
            {"data": {"task_status": "succeed", "task_result": {"videos": [{"url": "https://k/v.mp4"}]}}},
            {"data": {"task_status": "failed", "task_status_msg": "risk control"}},
        ])

        def handler(request):
            return httpx.Response(200, json=next(responses))

        animator = KlingAnimator("ak", "sk", transport=_transport(handler))

        assert (await animator.poll("k1")).status is JobStatus.QUEUED
        assert (await animator.poll("k1")).result_url == "https://k/v.mp4"
        failed = await animator.poll("k1")
        assert failed.status is JobStatus.FAILED
        assert failed.error_message == "risk control"


class TestSuno:
    async def test_submit_instrumental(self):
        requests = []

        def handler(request):
            return httpx.Response(200, json={"code": 200, "data": {"taskId": "s1"}})

        music = SunoMusicGenerator(api_key="k", transport=_transport(handler, requests))
        job = await music.submit("[Intro] piano", "Cinematic", "Harbor")

        assert job == "s1"
        body = json.loads(requests[0].content)
        assert body["instrumental"] is True
        assert body["customMode"] is True
        assert body["title"] == "Harbor"

    async def test_poll_success(self):
        def handler(request):
            assert request.url.params["taskId"] == "s1"
            return httpx.Response(200, json={"data": {
                "status": "SUCCESS",
                "response": {"sunoData": [{"audioUrl": "https://s/t.mp3", "duration": 182.4}]},
            }})

        poll = await SunoMusicGenerator(api_key="k", transport=_transport(handler)).poll("s1")

        assert poll.status is JobStatus.DONE
        assert poll.result_url == "https://s/t.mp3"
        assert poll.duration == 182.4

    @pytest.mark.parametrize("status", ["CREATE_TASK_FAILED", "GENERATE_AUDIO_FAILED", "FAILED"])
    async def test_poll_failure_statuses(self, status):
        def handler(request):
            return httpx.Response(200, json={"data": {"status": status, "errorMessage": "bad prompt"}})

        poll = await SunoMusicGenerator(api_key="k", transport=_transport(handler)).poll("s1")

        assert poll.status is JobStatus.FAILED
        assert poll.error_message == "bad prompt"

    async def test_missing_task_id(self):
        def handler(request):
            return httpx.Response(200, json={"code": 400, "msg": "bad"})

        music = SunoMusicGenerator(api_key="k", transport=_transport(handler))
        with pytest.raises(ProviderSubmitError, match="no taskId"):
            await music.submit("p", "s", "t")


class TestDownload:
    async def test_http_download(self):
        def handler(request):
            return httpx.Response(200, content=b"video")

        assert await download_bytes("https://cdn/v.mp4", transport=_transport(handler)) == b"video"

    async def test_http_error(self):
        def handler(request):
            return httpx.Response(404, text="gone")

        with pytest.raises(ProviderError, match="HTTP 404"):
            await download_bytes("https://cdn/v.mp4", transport=_transport(handler))

    async def test_file_url(self, tmp_path):
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"local")

        assert await download_bytes(path.as_uri()) == b"local"
