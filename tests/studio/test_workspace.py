import asyncio

import pytest

from storyreel.errors import IndexOutOfRangeError, NotFoundError
from storyreel.generation.template import TemplateTextGenerator
from storyreel.storage import FileStore, MemoryStore
from storyreel.studio.models import ElementType, Style, StylePreset
from storyreel.studio.stories import STYLE_PROMPTS
from storyreel.studio.workspace import Studio


def _studio(store=None, **config):
    return Studio.open(config=config, store=store or MemoryStore(), text_generator=TemplateTextGenerator())


def test_open_project_creates_default_project():
    studio = _studio(default_project_name="First Film")
    session = asyncio.run(studio.open_project())
    assert session.project.name == "First Film"
    assert studio.projects.get_current_project_id() == session.project_id


def test_open_project_unknown_id_raises():
    with pytest.raises(NotFoundError):
        asyncio.run(_studio().open_project("proj-missing"))


def test_story_flow_generate_commit_expand_branch():
    studio = _studio()

    async def scenario():
        session = await studio.open_project()
        generated = await session.stories.generate_story("A robot paints", 15, Style(preset=StylePreset.WATERCOLOR))
        first = await session.commit_story(generated.story)
        expanded = await session.commit_story(await session.stories.smart_expand(first.id))
        edited = await session.commit_story(await session.stories.edit_story_with_prompt(expanded.id, "add rain"))
        branched = await session.branch_story(0)
        return session, first, expanded, edited, branched

    session, first, expanded, edited, branched = asyncio.run(scenario())
    project = session.project
    assert branched is first
    assert project.story_history == [first]
    assert project.story_history_index == 0
    assert project.current_story is first
    assert session.style_prompt() == STYLE_PROMPTS[StylePreset.WATERCOLOR]
    assert edited.pre_expansion_narrative == first.narrative
    with pytest.raises(IndexOutOfRangeError):
        asyncio.run(session.branch_story(5))


def test_session_persists_through_store(tmp_path):
    store = FileStore(tmp_path)

    async def build():
        session = await _studio(store).open_project()
        story = (await session.stories.generate_story("Space diner", 10)).story
        await session.commit_story(story)
        hero = await session.world.create_element(ElementType.CHARACTER, "Cook")
        scene = await session.scenes.create_scene()
        await session.scenes.assign_element(scene.id, hero.id)
        await session.videos.init_video(session.project_id)
        return session.project_id, story

    project_id, story = asyncio.run(build())

    async def reopen():
        return await _studio(store).open_project(project_id)

    session = asyncio.run(reopen())
    project = session.project
    assert project.current_story.id == story.id
    assert project.story_history_index == 0
    assert [s.title for s in project.scenes] == ["Scene 1"]
    assert len(project.world_elements) == 1
    assert project.video is not None
    assert session.stories.get_story(story.id) is not None
    assert session.history.get_current_version().id == story.id


def test_delete_element_cascades_to_scenes():
    studio = _studio()

    async def scenario():
        session = await studio.open_project()
        hero = await session.world.create_element(ElementType.CHARACTER, "Hero")
        castle = await session.world.create_element(ElementType.LOCATION, "Castle")
        a = await session.scenes.create_scene()
        b = await session.scenes.create_scene()
        await session.scenes.assign_element(a.id, hero.id)
        await session.scenes.assign_element(a.id, castle.id)
        await session.scenes.assign_element(b.id, hero.id)
        affected = await session.delete_element(hero.id)
        return session, a, b, hero, castle, affected

    session, a, b, hero, castle, affected = asyncio.run(scenario())
    assert affected == [a, b]
    assert a.assigned_elements == [castle.id]
    assert b.assigned_elements == []
    assert session.world.get_element(hero.id) is None
    with pytest.raises(NotFoundError):
        asyncio.run(session.delete_element(hero.id))


def test_new_story_elements_become_world_elements():
    studio = _studio()

    async def scenario():
        session = await studio.open_project()
        result = await session.stories.generate_story(
            "A lighthouse keeper", 5, existing_elements=session.world.existing_elements()
        )
        created = await session.world.add_new_elements(result.new_elements_introduced)
        return session, result, created

    session, result, created = asyncio.run(scenario())
    assert [e.name for e in created] == [e.name for e in result.new_elements_introduced]
    assert len(session.world.list_elements()) == len(created)
    assert session.format_context().startswith("PROJECT_CONTEXT")


def test_open_uses_configured_sqlite_backend(tmp_path):
    studio = Studio.open(
        config={"storage_backend": "sqlite", "storage_path": str(tmp_path / "data")},
        text_generator=TemplateTextGenerator(),
    )
    try:
        asyncio.run(studio.open_project())
        assert (tmp_path / "data" / "storyreel.db").exists()
    finally:
        studio.close()
