"""Suno music generation client."""

import logging
from typing import Optional

import httpx

from ..config import config
from ..errors import ProviderSubmitError
from .base import JobPoll, JobStatus, MusicGenerator
from .http import HttpProvider

logger = logging.getLogger(__name__)

API_BASE = "https://api.sunoapi.org/api/v1"

_STATUS = {
    "PENDING": JobStatus.QUEUED,
    "PROCESSING": JobStatus.RUNNING,
    "SUCCESS": JobStatus.DONE,
    "FAILED": JobStatus.FAILED,
}


class SunoMusicGenerator(HttpProvider, MusicGenerator):
    """Instrumental track generation."""

    name = "suno"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "V4_5ALL",
        callback_url: str = "https://example.com/callback",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(transport)
        key = api_key or config.suno_api_key
        if not key:
            raise ValueError("Suno API key not provided. Set SUNO_API_KEY env var.")
        self._headers = {"Authorization": f"Bearer {key}"}
        self.model = model
        self.callback_url = callback_url

    async def submit(self, prompt: str, style: str, title: str) -> str:
        payload = {
            "prompt": prompt,
            "customMode": True,
            "style": style,
            "title": title,
            "instrumental": True,
            "model": self.model,
            "callBackUrl": self.callback_url,
        }
        data = await self._request_json(
            "POST",
            f"{API_BASE}/generate",
            error_cls=ProviderSubmitError,
            headers=self._headers,
            json=payload,
        )
        task_id = (data.get("data") or {}).get("taskId")
        if not task_id:
            raise ProviderSubmitError(f"no taskId in response: {data}", provider=self.name)
        return task_id

    async def poll(self, job_id: str) -> JobPoll:
        data = await self._request_json(
            "GET",
            f"{API_BASE}/generate/record-info",
            headers=self._headers,
            params={"taskId": job_id},
        )
        record = data.get("data") or {}
        raw_status = record.get("status", "")
        status = _STATUS.get(raw_status, JobStatus.RUNNING)
        if raw_status.endswith("FAILED"):
            status = JobStatus.FAILED

        if status is JobStatus.DONE:
            songs = (record.get("response") or {}).get("sunoData") or []
            if not songs or not songs[0].get("audioUrl"):
                return JobPoll(JobStatus.FAILED, error_message="no audio in response")
            song = songs[0]
            return JobPoll(
                JobStatus.DONE,
                result_url=song["audioUrl"],
                duration=song.get("duration"),
            )
        if status is JobStatus.FAILED:
            return JobPoll(
                JobStatus.FAILED, error_message=record.get("errorMessage") or "generation failed"
            )
        return JobPoll(status)
