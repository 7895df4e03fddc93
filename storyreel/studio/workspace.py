from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from storyreel.config.config import get_config
from storyreel.errors import NotFoundError
from storyreel.generation.base import TextGenerator
from storyreel.generation.chat import create_text_generator
from storyreel.storage import KeyValueStore, open_store
from storyreel.utils.logging_setup import configure_logging, log_context

from .context import build_project_context, format_project_context
from .history import StoryHistoryManager
from .models import Project, Scene, Story
from .projects import ProjectManager
from .scenes import SceneManager
from .stories import StoryManager, get_style_prompt
from .videos import VideoManager
from .world import WorldElementManager

logger = logging.getLogger(__name__)


@dataclass
class ProjectSession:
    """
    All managers bound to one project record.

    The managers share the same :class:`Project` instance, so a change made
    through any of them is visible to the others and is persisted as part of
    the whole record.
    """

    project: Project
    projects: ProjectManager
    stories: StoryManager
    history: StoryHistoryManager
    scenes: SceneManager
    world: WorldElementManager
    videos: VideoManager

    @property
    def project_id(self) -> str:
        return self.project.id

    def style_prompt(self) -> str:
        story = self.project.current_story
        return get_style_prompt(story.style) if story else ""

    async def save(self) -> Project:
        return await self.projects.update_project(self.project)

    async def commit_story(self, story: Story) -> Story:
        with log_context(project_id=self.project.id, operation="commit_story"):
            self.stories.remember(story)
            self.history.add_version(story)
            await self.save()
            logger.info(f"Story {story.id} is version {self.history.get_history_index() + 1}")
        return story

    async def branch_story(self, index: int) -> Story:
        with log_context(project_id=self.project.id, operation="branch_story"):
            story = self.history.branch_from_version(index)
            await self.save()
            logger.info(f"Branched story history at version {index + 1}")
        return story

    async def delete_element(self, element_id: str) -> List[Scene]:
        """Delete a world element and unassign it from every scene that uses it."""
        if self.world.get_element(element_id) is None:
            raise NotFoundError(f"Element {element_id} not found")
        with log_context(project_id=self.project.id, operation="delete_element"):
            affected = await self.scenes.remove_element_from_scenes(element_id)
            await self.world.delete_element(element_id)
            logger.info(f"Deleted element {element_id}, unassigned from {len(affected)} scenes")
        return affected

    def context(self) -> Dict[str, Any]:
        return build_project_context(self.project)

    def format_context(self) -> str:
        return format_project_context(self.context())


@dataclass
class Studio:
    config: Dict[str, Any]
    store: KeyValueStore
    projects: ProjectManager
    stories: StoryManager

    @classmethod
    def open(
        cls,
        config: Optional[Dict[str, Any]] = None,
        store: Optional[KeyValueStore] = None,
        text_generator: Optional[TextGenerator] = None,
    ) -> "Studio":
        config = config if config is not None else get_config()
        if config.get("log_file"):
            configure_logging(
                log_file=config["log_file"],
                level=config.get("log_level", "INFO"),
                enable_console=bool(config.get("log_to_console", False)),
            )
        store = store if store is not None else open_store(config)
        text_generator = text_generator or create_text_generator(config)
        return cls(
            config=config,
            store=store,
            projects=ProjectManager(store),
            stories=StoryManager(text_generator),
        )

    def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            close()

    async def open_project(self, project_id: Optional[str] = None) -> ProjectSession:
        if project_id is None:
            project_id = self.projects.get_current_project_id()
        if project_id is None:
            summaries = await self.projects.list_projects()
            if summaries:
                project_id = summaries[0].id
            else:
                name = self.config.get("default_project_name") or "My New Project"
                project_id = (await self.projects.create_project(name)).id

        project = await self.projects.switch_project(project_id)
        for story in project.story_history:
            self.stories.remember(story)

        text_generator = self.stories.text_generator
        with log_context(project_id=project.id, operation="open_project"):
            logger.info(f"Opened project {project.id} ({project.name})")
        return ProjectSession(
            project=project,
            projects=self.projects,
            stories=self.stories,
            history=StoryHistoryManager.for_project(project),
            scenes=SceneManager(project, self.projects, text_generator),
            world=WorldElementManager(project, self.projects, text_generator),
            videos=VideoManager(project, self.projects),
        )
