import asyncio

import pytest

from storyreel.errors import (
    CannotDeleteActiveError,
    CannotDeleteLastError,
    NoVideoInitializedError,
    NotFoundError,
)
from storyreel.storage import MemoryStore
from storyreel.studio.models import Scene, SceneImage, VideoStatus, VideoVersion
from storyreel.studio.projects import ProjectManager
from storyreel.studio.videos import VideoManager, preview_frames, total_preview_duration


def _version(url="https://cdn.example.com/v.mp4", duration=10):
    return VideoVersion(video_url=url, duration=duration)


def _scene(title, image_url=None, archived=False):
    images = [SceneImage(image_url=image_url, is_active=True)] if image_url else []
    return Scene(title=title, images=images, is_archived=archived)


def test_init_video():
    manager = VideoManager()
    video = asyncio.run(manager.init_video("proj-1"))
    assert video.project_id == "proj-1"
    assert video.status == VideoStatus.NOT_STARTED
    assert video.versions == []
    assert manager.get_video() is video


def test_init_video_replaces_previous():
    manager = VideoManager()
    first = asyncio.run(manager.init_video("proj-1"))
    asyncio.run(manager.add_version(_version()))
    second = asyncio.run(manager.init_video("proj-1"))
    assert second.id != first.id
    assert manager.get_version_count() == 0


def test_operations_without_video_raise():
    manager = VideoManager()
    assert manager.get_video() is None
    assert manager.get_active_version() is None
    assert manager.get_version_count() == 0
    with pytest.raises(NoVideoInitializedError):
        asyncio.run(manager.set_status(VideoStatus.GENERATING))
    with pytest.raises(NoVideoInitializedError):
        asyncio.run(manager.add_version(_version()))
    with pytest.raises(NoVideoInitializedError):
        asyncio.run(manager.set_active_version("ver-1"))
    with pytest.raises(NoVideoInitializedError):
        asyncio.run(manager.delete_version("ver-1"))


def test_set_status_and_error():
    manager = VideoManager()
    asyncio.run(manager.init_video("proj-1"))
    video = asyncio.run(manager.set_status(VideoStatus.FAILED, "quota exceeded"))
    assert (video.status, video.error) == (VideoStatus.FAILED, "quota exceeded")
    video = asyncio.run(manager.set_status(VideoStatus.GENERATING))
    assert (video.status, video.error) == (VideoStatus.GENERATING, None)


def test_add_version_keeps_exactly_one_active():
    manager = VideoManager()

    async def scenario():
        await manager.init_video("proj-1")
        await manager.set_status(VideoStatus.FAILED, "earlier failure")
        first, second = _version("1"), _version("2")
        await manager.add_version(first)
        video = await manager.add_version(second)
        return video, first, second

    video, first, second = asyncio.run(scenario())
    assert video.status == VideoStatus.COMPLETED
    assert video.error is None
    assert [v.is_active for v in video.versions] == [False, True]
    assert manager.get_active_version() is second
    assert manager.get_version_count() == 2


def test_set_active_version():
    manager = VideoManager()

    async def scenario():
        await manager.init_video("proj-1")
        first = _version("1")
        await manager.add_version(first)
        await manager.add_version(_version("2"))
        await manager.set_active_version(first.id)
        return first

    first = asyncio.run(scenario())
    assert manager.get_active_version() is first
    assert sum(v.is_active for v in manager.get_video().versions) == 1
    with pytest.raises(NotFoundError):
        asyncio.run(manager.set_active_version("ver-missing"))


def test_delete_version_rules():
    manager = VideoManager()

    async def scenario():
        await manager.init_video("proj-1")
        first = _version("1")
        second = _version("2")
        await manager.add_version(first)
        await manager.add_version(second)
        return first, second

    first, second = asyncio.run(scenario())
    with pytest.raises(CannotDeleteActiveError):
        asyncio.run(manager.delete_version(second.id))
    with pytest.raises(NotFoundError):
        asyncio.run(manager.delete_version("ver-missing"))

    video = asyncio.run(manager.delete_version(first.id))
    assert video.versions == [second]


def test_delete_middle_version_after_reactivating_first():
    manager = VideoManager()

    async def scenario():
        await manager.init_video("proj-1")
        versions = [_version(str(i)) for i in range(1, 4)]
        for version in versions:
            await manager.add_version(version)
        await manager.set_active_version(versions[0].id)
        await manager.delete_version(versions[1].id)
        return versions

    first, second, third = asyncio.run(scenario())
    assert manager.get_version_count() == 2
    assert manager.get_active_version() is first
    assert manager.get_video().versions == [first, third]


def test_deleting_only_version_reports_active_first():
    manager = VideoManager()

    async def scenario():
        await manager.init_video("proj-1")
        only = _version()
        await manager.add_version(only)
        return only

    only = asyncio.run(scenario())
    with pytest.raises(CannotDeleteActiveError):
        asyncio.run(manager.delete_version(only.id))


def test_cannot_delete_last_inactive_version():
    manager = VideoManager()

    async def scenario():
        await manager.init_video("proj-1")
        only = _version()
        await manager.add_version(only)
        only.is_active = False
        return only

    only = asyncio.run(scenario())
    with pytest.raises(CannotDeleteLastError):
        asyncio.run(manager.delete_version(only.id))


def test_preview_frames_and_duration():
    a = _scene("A", "https://cdn.example.com/a.png")
    b = _scene("B")
    c = _scene("C", "https://cdn.example.com/c.png", archived=True)
    d = _scene("D", "https://cdn.example.com/d.png")
    scenes = [a, b, c, d]

    frames = preview_frames(scenes)
    assert [(f.scene_id, f.image_url, f.duration) for f in frames] == [
        (a.id, "https://cdn.example.com/a.png", 5),
        (d.id, "https://cdn.example.com/d.png", 5),
    ]
    assert total_preview_duration(scenes) == 15
    assert VideoManager.total_preview_duration([]) == 0


def test_bound_manager_uses_project_video():
    store = MemoryStore()
    projects = ProjectManager(store)

    async def scenario():
        project = await projects.create_project()
        manager = VideoManager(project, projects)
        await manager.init_video(project.id)
        await manager.add_version(_version())
        return project, await store.load(f"projects/{project.id}")

    project, data = asyncio.run(scenario())
    assert project.video is not None
    assert data["video"]["status"] == "completed"
    assert len(data["video"]["versions"]) == 1
