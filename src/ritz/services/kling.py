"""Kling direct image-to-video client."""

import base64
import logging
import time
from typing import Optional

import httpx
import jwt

from ..config import config
from ..errors import ProviderSubmitError
from .base import Animator, ImageAsset, JobPoll, JobStatus
from .http import HttpProvider

logger = logging.getLogger(__name__)

API_BASE = "https://api-singapore.klingai.com"
TOKEN_TTL = 1800


class KlingAnimator(HttpProvider, Animator):
    """Primary animator, talking to the Kling API with signed tokens."""

    name = "kling"
    timeout = 60.0

    def __init__(
        self,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        model: str = "kling-v2-5-turbo",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(transport)
        self._access_key = access_key or config.kling_access_key
        self._secret_key = secret_key or config.kling_secret_key
        if not self._access_key or not self._secret_key:
            raise ValueError(
                "Kling credentials not provided. Set KLING_ACCESS_KEY and KLING_SECRET_KEY."
            )
        self.model = model

    def _token(self) -> str:
        now = int(time.time())
        return jwt.encode(
            {"iss": self._access_key, "exp": now + TOKEN_TTL, "nbf": now - 5},
            self._secret_key,
            algorithm="HS256",
            headers={"typ": "JWT"},
        )

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self._token()}"}

    async def submit(self, image: ImageAsset, prompt: str, duration: int) -> str:
        # Kling takes raw base64 without a data: prefix
        payload = {
            "model_name": self.model,
            "image": base64.b64encode(image.data).decode("ascii"),
            "prompt": prompt,
            "duration": str(duration),
            "cfg_scale": 0.5,
            "mode": "pro",
        }
        data = await self._request_json(
            "POST",
            f"{API_BASE}/v1/videos/image2video",
            error_cls=ProviderSubmitError,
            headers=self._headers(),
            json=payload,
        )
        if data.get("code") != 0:
            raise ProviderSubmitError(
                f"error {data.get('code')}: {data.get('message')}", provider=self.name
            )
        task_id = (data.get("data") or {}).get("task_id")
        if not task_id:
            raise ProviderSubmitError(f"no task_id in response: {data}", provider=self.name)
        return task_id

    async def poll(self, job_id: str) -> JobPoll:
        data = await self._request_json(
            "GET",
            f"{API_BASE}/v1/videos/image2video/{job_id}",
            headers=self._headers(),
        )
        record = data.get("data") or {}
        videos = (record.get("task_result") or {}).get("videos") or []

        if videos and videos[0].get("url"):
            return JobPoll(JobStatus.DONE, result_url=videos[0]["url"])

        status = record.get("task_status", "processing")
        if status == "failed":
            return JobPoll(
                JobStatus.FAILED,
                error_message=record.get("task_status_msg") or "task failed",
            )
        if status == "submitted":
            return JobPoll(JobStatus.QUEUED)
        return JobPoll(JobStatus.RUNNING)
