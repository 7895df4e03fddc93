from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

from storyreel.errors import (
    CannotDeleteActiveError,
    CannotDeleteLastError,
    NoVideoInitializedError,
    NotFoundError,
)

from .models import PreviewFrame, Project, Scene, Video, VideoStatus, VideoVersion
from .versions import activate_only, append_active, find_active, find_by_id

if TYPE_CHECKING:
    from .projects import ProjectManager

logger = logging.getLogger(__name__)


def preview_frames(scenes: Sequence[Scene]) -> List[PreviewFrame]:
    """Active image of every non-archived scene that has one, in storyboard order."""
    frames = []
    for scene in scenes:
        if scene.is_archived:
            continue
        image = find_active(scene.images)
        if image is not None:
            frames.append(PreviewFrame(scene_id=scene.id, image_url=image.image_url, duration=scene.duration))
    return frames


def total_preview_duration(scenes: Sequence[Scene]) -> int:
    return sum(s.duration for s in scenes if not s.is_archived)


class VideoManager:
    """One :class:`Video` per project, holding a registry of rendered versions."""

    def __init__(self, project: Optional[Project] = None, projects: Optional["ProjectManager"] = None) -> None:
        self.project = project
        self.projects = projects
        self._video: Optional[Video] = None

    preview_frames = staticmethod(preview_frames)
    total_preview_duration = staticmethod(total_preview_duration)

    @property
    def video(self) -> Optional[Video]:
        if self.project is not None:
            return self.project.video
        return self._video

    @video.setter
    def video(self, value: Optional[Video]) -> None:
        if self.project is not None:
            self.project.video = value
        else:
            self._video = value

    async def _persist(self) -> None:
        if self.project is not None and self.projects is not None:
            await self.projects.update_project(self.project)

    def _require_video(self) -> Video:
        if self.video is None:
            raise NoVideoInitializedError("No video initialized")
        return self.video

    def _require_version(self, video: Video, version_id: str) -> VideoVersion:
        version = find_by_id(video.versions, version_id)
        if version is None:
            raise NotFoundError(f"Version {version_id} not found")
        return version

    async def init_video(self, project_id: str) -> Video:
        self.video = Video(project_id=project_id)
        await self._persist()
        logger.info(f"Initialized video {self.video.id} for project {project_id}")
        return self.video

    def get_video(self) -> Optional[Video]:
        return self.video

    async def set_status(self, status: VideoStatus, error: Optional[str] = None) -> Video:
        video = self._require_video()
        video.status = VideoStatus(status)
        video.error = error
        await self._persist()
        return video

    async def add_version(self, version: VideoVersion) -> Video:
        video = self._require_video()
        append_active(video.versions, version)
        video.status = VideoStatus.COMPLETED
        video.error = None
        await self._persist()
        logger.info(f"Added video version {version.id} ({len(video.versions)} total)")
        return video

    async def set_active_version(self, version_id: str) -> Video:
        video = self._require_video()
        self._require_version(video, version_id)
        activate_only(video.versions, version_id)
        await self._persist()
        return video

    async def delete_version(self, version_id: str) -> Video:
        video = self._require_video()
        version = self._require_version(video, version_id)
        if version.is_active:
            raise CannotDeleteActiveError("Cannot delete active version")
        if len(video.versions) == 1:
            raise CannotDeleteLastError("Cannot delete last version")
        video.versions = [v for v in video.versions if v.id != version_id]
        await self._persist()
        return video

    def get_active_version(self) -> Optional[VideoVersion]:
        if self.video is None:
            return None
        return find_active(self.video.versions)

    def get_version_count(self) -> int:
        return len(self.video.versions) if self.video is not None else 0
