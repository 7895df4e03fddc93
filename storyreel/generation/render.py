"""
Boundary between the studio managers and the generation providers.

These helpers are the one place where a :class:`GenerationError` is turned into
record state (``status = failed`` plus ``error``) instead of propagating.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from storyreel.errors import GenerationError, NoVideoInitializedError, NotFoundError
from storyreel.studio.context import build_project_context, format_project_context, scene_prompt_text
from storyreel.studio.models import Scene, SceneImage, SceneStatus, Video, VideoStatus, VideoVersion
from storyreel.studio.scenes import SceneManager
from storyreel.studio.videos import VideoManager, preview_frames, total_preview_duration
from storyreel.studio.world import WorldElementManager
from storyreel.utils.logging_setup import log_context

from .base import ImageGenerator, ImageRequest, VideoGenerator, VideoJob, VideoRequest

logger = logging.getLogger(__name__)


def _reference_images(scene: Scene, elements: Optional[WorldElementManager]) -> List[str]:
    if elements is None:
        return []
    urls = []
    for element_id in scene.assigned_elements:
        element = elements.get_element(element_id)
        image = elements.get_active_image(element) if element else None
        if image is not None:
            urls.append(image.image_url)
    return urls


async def render_scene_image(
    scenes: SceneManager,
    scene_id: str,
    generator: ImageGenerator,
    style_prompt: str = "",
    elements: Optional[WorldElementManager] = None,
) -> Scene:
    scene = scenes.get_scene(scene_id)
    if scene is None:
        raise NotFoundError(f"Scene {scene_id} not found")

    with log_context(operation="render_scene_image"):
        await scenes.set_status(scene_id, SceneStatus.GENERATING)
        request = ImageRequest(
            prompt=scene_prompt_text(scene),
            style_prompt=style_prompt,
            reference_image_urls=_reference_images(scene, elements),
        )
        try:
            result = await generator.generate_image(request)
        except GenerationError as exc:
            logger.warning(f"Image generation failed for scene {scene_id}: {exc}")
            return await scenes.set_status(scene_id, SceneStatus.FAILED, str(exc))

        logger.info(f"Rendered image for scene {scene_id}")
        return await scenes.add_image(
            scene_id, SceneImage(image_url=result.image_url, revised_prompt=result.revised_prompt)
        )


def _default_video_prompt(videos: VideoManager, active_scenes: List[Scene]) -> str:
    if videos.project is not None:
        return format_project_context(build_project_context(videos.project))
    return "\n".join(f"{i}. {scene_prompt_text(s)}" for i, s in enumerate(active_scenes, start=1))


async def _wait_for_job(
    generator: VideoGenerator,
    job: VideoJob,
    poll_interval_sec: float,
    timeout_sec: float,
) -> VideoJob:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_sec
    while job.status == "in_progress":
        if loop.time() >= deadline:
            raise GenerationError(f"Timed out waiting for video job {job.job_id}")
        await asyncio.sleep(poll_interval_sec)
        job = await generator.poll(job.job_id)
    return job


async def render_video(
    videos: VideoManager,
    scenes: SceneManager,
    generator: VideoGenerator,
    prompt: Optional[str] = None,
    poll_interval_sec: float = 2.0,
    timeout_sec: float = 600.0,
) -> Video:
    if videos.get_video() is None:
        raise NoVideoInitializedError("No video initialized")

    active_scenes = scenes.list_scenes()
    request = VideoRequest(
        prompt=prompt or _default_video_prompt(videos, active_scenes),
        image_urls=[frame.image_url for frame in preview_frames(active_scenes)],
        duration=total_preview_duration(active_scenes),
    )

    with log_context(operation="render_video"):
        await videos.set_status(VideoStatus.GENERATING)
        try:
            job = await generator.submit(request)
            await videos.set_status(VideoStatus.POLLING)
            job = await _wait_for_job(generator, job, poll_interval_sec, timeout_sec)
            if job.status == "failed":
                raise GenerationError(job.error or f"Video job {job.job_id} failed")
            if not job.video_url:
                raise GenerationError(f"Video job {job.job_id} completed without a video URL")
        except GenerationError as exc:
            logger.warning(f"Video generation failed: {exc}")
            return await videos.set_status(VideoStatus.FAILED, str(exc))

        logger.info(f"Video job {job.job_id} completed: {job.video_url}")
        return await videos.add_version(
            VideoVersion(video_url=job.video_url, thumbnail_url=job.thumbnail_url, duration=request.duration)
        )
