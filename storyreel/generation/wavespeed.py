from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import requests

from storyreel.errors import GenerationError

from .base import ImageGenerator, ImageRequest, ImageResult, VideoGenerator, VideoJob, VideoRequest

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.wavespeed.ai/api/v3"


class WaveSpeedClient:
    """Blocking submit/poll client for the WaveSpeed prediction API."""

    def __init__(self, api_key: str, base_url: str = DEFAULT_BASE_URL, request_timeout_sec: int = 60):
        if not api_key:
            raise GenerationError("Missing WAVESPEED_API_KEY (set it in .env or environment).")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.request_timeout_sec = request_timeout_sec

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}

    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            resp = requests.request(method, url, headers=self._headers(), timeout=self.request_timeout_sec, **kwargs)
        except requests.RequestException as exc:
            raise GenerationError(f"WaveSpeed request failed: {exc}") from exc
        if resp.status_code != 200:
            raise GenerationError(f"WaveSpeed {method} {url} failed: {resp.status_code} {resp.text}")
        return resp.json().get("data", {})

    def run_model(self, model_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", f"{self.base_url}/{model_id}", json=payload)
        if isinstance(data.get("urls"), dict):
            data["result_url"] = data["urls"].get("get")
        return data

    def get_result(self, task_id: str, result_url_hint: Optional[str] = None) -> Dict[str, Any]:
        url = result_url_hint or f"{self.base_url}/predictions/{task_id}/result"
        return self._request("GET", url)

    def poll_result(
        self,
        task_id: str,
        result_url_hint: Optional[str] = None,
        timeout_sec: int = 300,
        poll_interval_sec: float = 2,
    ) -> Dict[str, Any]:
        deadline = time.time() + timeout_sec
        while time.time() < deadline:
            data = self.get_result(task_id, result_url_hint=result_url_hint)
            status = data.get("status")
            if status == "completed":
                return data
            if status == "failed":
                raise GenerationError(f"Task failed: {data.get('error')}")
            time.sleep(poll_interval_sec)
        raise GenerationError(f"Timed out waiting for task {task_id}")


def _job_status(status: Optional[str]) -> str:
    if status in ("completed", "failed"):
        return status
    return "in_progress"


def _first_output(data: Dict[str, Any]) -> Optional[str]:
    outputs = data.get("outputs") or []
    return outputs[0] if outputs else None


class WaveSpeedImageGenerator(ImageGenerator):
    def __init__(
        self,
        client: WaveSpeedClient,
        text_to_image: str,
        image_to_image: Optional[str] = None,
        timeout_sec: int = 300,
        poll_interval_sec: float = 2,
    ) -> None:
        self.client = client
        self.text_to_image = text_to_image
        self.image_to_image = image_to_image
        self.timeout_sec = timeout_sec
        self.poll_interval_sec = poll_interval_sec

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "WaveSpeedImageGenerator":
        section = (config.get("generation") or {}).get("image_gen") or {}
        client = WaveSpeedClient(section.get("wavespeed_api_key", ""), base_url=section.get("base_url", DEFAULT_BASE_URL))
        return cls(
            client,
            text_to_image=section.get("text_to_image", "wavespeed-ai/flux-dev"),
            image_to_image=section.get("image_to_image"),
            timeout_sec=int(section.get("timeout_sec", 300)),
        )

    def _generate(self, request: ImageRequest) -> ImageResult:
        prompt = f"{request.style_prompt}. {request.prompt}" if request.style_prompt else request.prompt
        payload: Dict[str, Any] = {"prompt": prompt}
        model_id = self.text_to_image
        if request.reference_image_urls and self.image_to_image:
            model_id = self.image_to_image
            payload["images"] = list(request.reference_image_urls)
        if request.size:
            payload["size"] = request.size

        task = self.client.run_model(model_id, payload)
        result = self.client.poll_result(
            task["id"],
            result_url_hint=task.get("result_url"),
            timeout_sec=self.timeout_sec,
            poll_interval_sec=self.poll_interval_sec,
        )
        image_url = _first_output(result)
        if not image_url:
            raise GenerationError(f"Task {task['id']} completed without an output image")
        logger.info(f"Image URL: {image_url}")
        return ImageResult(image_url=image_url, revised_prompt=prompt)

    async def generate_image(self, request: ImageRequest) -> ImageResult:
        return await asyncio.to_thread(self._generate, request)


class WaveSpeedVideoGenerator(VideoGenerator):
    def __init__(self, client: WaveSpeedClient, text_to_video: str, image_to_video: Optional[str] = None) -> None:
        self.client = client
        self.text_to_video = text_to_video
        self.image_to_video = image_to_video

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "WaveSpeedVideoGenerator":
        section = (config.get("generation") or {}).get("video_gen") or {}
        client = WaveSpeedClient(section.get("wavespeed_api_key", ""), base_url=section.get("base_url", DEFAULT_BASE_URL))
        return cls(
            client,
            text_to_video=section.get("text_to_video", "kwaivgi/kling-v2.1-t2v-master"),
            image_to_video=section.get("image_to_video"),
        )

    def _submit(self, request: VideoRequest) -> VideoJob:
        payload: Dict[str, Any] = {"prompt": request.prompt}
        model_id = self.text_to_video
        if request.image_urls and self.image_to_video:
            model_id = self.image_to_video
            payload["image"] = request.image_urls[0]
        if request.duration:
            payload["duration"] = request.duration

        task = self.client.run_model(model_id, payload)
        logger.info(f"Submitted video task {task['id']} to {model_id}")
        return VideoJob(job_id=task["id"], status=_job_status(task.get("status")))

    def _poll(self, job_id: str) -> VideoJob:
        data = self.client.get_result(job_id)
        status = _job_status(data.get("status"))
        return VideoJob(
            job_id=job_id,
            status=status,
            video_url=_first_output(data) if status == "completed" else None,
            error=data.get("error") or None,
        )

    async def submit(self, request: VideoRequest) -> VideoJob:
        return await asyncio.to_thread(self._submit, request)

    async def poll(self, job_id: str) -> VideoJob:
        return await asyncio.to_thread(self._poll, job_id)
