import asyncio
from datetime import timedelta

import pytest

from storyreel.errors import NameConflictError, NotFoundError
from storyreel.storage import FileStore, MemoryStore
from storyreel.studio.models import DEFAULT_PROJECT_NAME, Project
from storyreel.studio.projects import ProjectManager, project_key


def _manager(store=None):
    return ProjectManager(store or MemoryStore())


def test_create_project_defaults_and_current_pointer():
    manager = _manager()
    project = asyncio.run(manager.create_project())

    assert project.name == DEFAULT_PROJECT_NAME
    assert project.story_history == []
    assert project.story_history_index == -1
    assert project.current_story is None
    assert project.scenes == []
    assert project.world_elements == {}
    assert project.video is None
    assert manager.get_current_project_id() == project.id
    assert asyncio.run(manager.get_current_project()) is project


def test_create_project_persists_under_projects_key():
    store = MemoryStore()
    manager = _manager(store)
    project = asyncio.run(manager.create_project("Demo"))

    data = asyncio.run(store.load(project_key(project.id)))
    assert data["name"] == "Demo"
    assert Project.model_validate(data).id == project.id


def test_unique_names_reuse_freed_numbers():
    manager = _manager()

    async def scenario():
        first = await manager.create_project("Demo")
        second = await manager.create_project("Demo")
        third = await manager.create_project("Demo")
        await manager.delete_project(second.id)
        fourth = await manager.create_project("Demo")
        return first, second, third, fourth

    first, second, third, fourth = asyncio.run(scenario())
    assert first.name == "Demo"
    assert second.name == "Demo (1)"
    assert third.name == "Demo (2)"
    assert fourth.name == "Demo (1)"


def test_get_project_miss_returns_none():
    assert asyncio.run(_manager().get_project("proj-missing")) is None


def test_get_project_reads_through_to_store(tmp_path):
    store = FileStore(tmp_path)
    created = asyncio.run(ProjectManager(store).create_project("Saved"))

    fresh = ProjectManager(store)
    loaded = asyncio.run(fresh.get_project(created.id))
    assert loaded is not None
    assert loaded.name == "Saved"
    assert fresh.get_current_project_id() is None


def test_list_projects_most_recently_opened_first():
    manager = _manager()

    async def scenario():
        a = await manager.create_project("A")
        b = await manager.create_project("B")
        c = await manager.create_project("C")
        base = a.last_opened_at
        a.last_opened_at = base + timedelta(seconds=30)
        b.last_opened_at = base + timedelta(seconds=10)
        c.last_opened_at = base + timedelta(seconds=20)
        return await manager.list_projects()

    summaries = asyncio.run(scenario())
    assert [s.name for s in summaries] == ["A", "C", "B"]
    assert set(summaries[0].model_dump()) == {
        "id", "name", "description", "thumbnail", "updated_at", "last_opened_at",
    }


def test_list_projects_skips_unreadable_records():
    store = MemoryStore()

    async def scenario():
        good = await ProjectManager(store).create_project("Good")
        await store.save("projects/broken", {"not": "a project"})
        await store.save("projects/p1/assets", {"nested": True})
        return good, await ProjectManager(store).list_projects()

    good, summaries = asyncio.run(scenario())
    assert [s.id for s in summaries] == [good.id]


def test_update_project_bumps_updated_at_monotonically():
    manager = _manager()

    async def scenario():
        project = await manager.create_project()
        future = project.updated_at + timedelta(hours=1)
        project.updated_at = future
        project.description = "changed"
        await manager.update_project(project)
        return project, future

    project, future = asyncio.run(scenario())
    assert project.updated_at == future
    assert project.description == "changed"


def test_update_unknown_project_raises_not_found():
    with pytest.raises(NotFoundError):
        asyncio.run(_manager().update_project(Project(name="Ghost")))


def test_delete_project_clears_current_pointer():
    store = MemoryStore()
    manager = _manager(store)

    async def scenario():
        project = await manager.create_project()
        await manager.delete_project(project.id)
        return project, await store.list("projects/")

    project, keys = asyncio.run(scenario())
    assert keys == []
    assert manager.get_current_project_id() is None
    assert asyncio.run(manager.get_project(project.id)) is None
    with pytest.raises(NotFoundError):
        asyncio.run(manager.delete_project(project.id))


def test_delete_other_project_keeps_current_pointer():
    manager = _manager()

    async def scenario():
        a = await manager.create_project("A")
        b = await manager.create_project("B")
        await manager.delete_project(a.id)
        return b

    b = asyncio.run(scenario())
    assert manager.get_current_project_id() == b.id


def test_rename_project():
    manager = _manager()

    async def scenario():
        a = await manager.create_project("A")
        await manager.create_project("B")
        renamed = await manager.rename_project(a.id, "Alpha")
        same = await manager.rename_project(a.id, "Alpha")
        return renamed, same

    renamed, same = asyncio.run(scenario())
    assert renamed.name == "Alpha"
    assert same is renamed


def test_rename_to_taken_name_conflicts():
    manager = _manager()

    async def scenario():
        a = await manager.create_project("A")
        await manager.create_project("B")
        await manager.rename_project(a.id, "B")

    with pytest.raises(NameConflictError):
        asyncio.run(scenario())


def test_rename_unknown_project_raises_not_found():
    with pytest.raises(NotFoundError):
        asyncio.run(_manager().rename_project("proj-missing", "X"))


def test_switch_project_updates_last_opened_and_current():
    manager = _manager()

    async def scenario():
        a = await manager.create_project("A")
        opened_before = a.last_opened_at
        await manager.create_project("B")
        switched = await manager.switch_project(a.id)
        return switched, opened_before

    switched, opened_before = asyncio.run(scenario())
    assert manager.get_current_project_id() == switched.id
    assert switched.last_opened_at >= opened_before
    with pytest.raises(NotFoundError):
        asyncio.run(manager.switch_project("proj-missing"))
