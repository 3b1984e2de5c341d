"""Freepik clients: precision upscaler and hosted Kling animation."""

import base64
import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..config import config
from ..errors import ProviderError, ProviderSubmitError
from .base import Animator, ImageAsset, JobPoll, JobStatus, Upscaler
from .http import HttpProvider

logger = logging.getLogger(__name__)

UPSCALE_URL = "https://api.freepik.com/v1/ai/image-upscaler-precision-v2"
MCP_URL = "https://api.freepik.com/mcp"

NEGATIVE_PROMPT = (
    "fast movement, camera shake, morphing, distortion, blurry hands, "
    "watermark, text overlay"
)

_UPSCALE_STATUS = {
    "QUEUED": JobStatus.QUEUED,
    "IN_PROGRESS": JobStatus.RUNNING,
    "COMPLETED": JobStatus.DONE,
    "FAILED": JobStatus.FAILED,
}


def _api_key(api_key: Optional[str]) -> str:
    key = api_key or config.freepik_api_key
    if not key:
        raise ValueError("Freepik API key not provided. Set FREEPIK_API_KEY env var.")
    return key


class FreepikUpscaler(HttpProvider, Upscaler):
    """4x precision upscaler."""

    name = "freepik-upscaler"

    def __init__(
        self,
        api_key: Optional[str] = None,
        scale: int = 4,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(transport)
        self._headers = {"x-freepik-api-key": _api_key(api_key)}
        self.scale = scale

    async def submit(self, image: bytes) -> str:
        payload = {
            "image": "data:image/png;base64," + base64.b64encode(image).decode("ascii"),
            "scale": self.scale,
        }
        data = await self._request_json(
            "POST",
            UPSCALE_URL,
            error_cls=ProviderSubmitError,
            headers=self._headers,
            json=payload,
        )
        task_id = (data.get("data") or {}).get("task_id")
        if not task_id:
            raise ProviderSubmitError(f"no task_id in response: {data}", provider=self.name)
        return task_id

    async def poll(self, job_id: str) -> JobPoll:
        data = await self._request_json(
            "GET", f"{UPSCALE_URL}/{job_id}", headers=self._headers
        )
        record = data.get("data") or {}
        status = _UPSCALE_STATUS.get(record.get("status", ""), JobStatus.RUNNING)

        if status is JobStatus.DONE:
            generated = record.get("generated") or []
            if not generated:
                return JobPoll(JobStatus.FAILED, error_message="completed without output")
            first = generated[0]
            url = first.get("url") if isinstance(first, dict) else first
            return JobPoll(JobStatus.DONE, result_url=url)

        return JobPoll(status)


class FreepikKlingAnimator(HttpProvider, Animator):
    """Kling 2.1 hosted by Freepik, driven through JSON-RPC tool calls."""

    TIERS = {
        "pro": "create_video_kling_2_1_pro",
        "std": "create_video_kling_2_1_std",
    }
    STATUS_TOOL = "get_kling_2_1_task_status"

    def __init__(
        self,
        tier: str = "pro",
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(transport)
        if tier not in self.TIERS:
            raise ValueError(f"Unknown Freepik Kling tier: {tier}")
        self.tier = tier
        self.name = f"freepik-kling-{tier}"
        self._headers = {"x-freepik-api-key": _api_key(api_key)}

    async def _call_tool(
        self, tool: str, arguments: Dict[str, str], error_cls=ProviderError
    ) -> Any:
        body = {
            "jsonrpc": "2.0",
            "method": "tools/call",
            "id": int(time.time() * 1000),
            "params": {"name": tool, "arguments": arguments},
        }
        data = await self._request_json(
            "POST", MCP_URL, error_cls=error_cls, headers=self._headers, json=body
        )

        if data.get("error"):
            err = data["error"]
            raise error_cls(f"error {err.get('code')}: {err.get('message')}", provider=self.name)

        content = (data.get("result") or {}).get("content") or []
        text = content[0].get("text") if content else None
        if not text:
            raise error_cls("no response text", provider=self.name)

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise error_cls(f"invalid tool response: {text[:500]}", provider=self.name) from e

    async def submit(self, image: ImageAsset, prompt: str, duration: int) -> str:
        result = await self._call_tool(
            self.TIERS[self.tier],
            {
                "image": image.url,
                "prompt": prompt,
                "duration": "10" if duration >= 10 else "5",
                "negative_prompt": NEGATIVE_PROMPT,
            },
            error_cls=ProviderSubmitError,
        )
        task_id = (result.get("data") or {}).get("task_id")
        if not task_id:
            raise ProviderSubmitError(f"no task_id in response: {result}", provider=self.name)
        return task_id

    async def poll(self, job_id: str) -> JobPoll:
        result = await self._call_tool(self.STATUS_TOOL, {"task-id": job_id})
        record = result.get("data") or {}
        status = record.get("status", "")
        generated = record.get("generated") or []

        if status == "COMPLETED" and generated:
            return JobPoll(JobStatus.DONE, result_url=generated[0])
        if status in ("FAILED", "CANCELLED"):
            return JobPoll(JobStatus.FAILED, error_message=f"task {status.lower()}")
        return JobPoll(JobStatus.RUNNING)
