from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from storyreel.errors import CannotDeleteActiveError, NotFoundError
from storyreel.generation.base import TextGenerator
from storyreel.generation.template import TemplateTextGenerator

from .models import Project, Scene, SceneImage, SceneStatus, new_id, touch, utcnow
from .naming import clone_title
from .versions import activate_only, append_active, find_active, find_by_id

if TYPE_CHECKING:
    from .projects import ProjectManager

logger = logging.getLogger(__name__)


class SceneManager:
    """
    Ordered storyboard scenes of one project.

    Bound to a project, the manager works directly on ``project.scenes`` and
    persists the whole project record after every mutation. Unbound, it keeps
    its own list (useful for tests and scratch storyboards).
    """

    def __init__(
        self,
        project: Optional[Project] = None,
        projects: Optional["ProjectManager"] = None,
        text_generator: Optional[TextGenerator] = None,
    ) -> None:
        self.project = project
        self.projects = projects
        self.text_generator = text_generator or TemplateTextGenerator()
        self._scenes: List[Scene] = project.scenes if project is not None else []

    async def _persist(self) -> None:
        if self.project is not None and self.projects is not None:
            await self.projects.update_project(self.project)

    def _index_of(self, scene_id: str) -> int:
        for i, scene in enumerate(self._scenes):
            if scene.id == scene_id:
                return i
        raise NotFoundError(f"Scene {scene_id} not found")

    def _require(self, scene_id: str) -> Scene:
        return self._scenes[self._index_of(scene_id)]

    def _bump(self, scene: Scene) -> None:
        scene.updated_at = touch(scene.updated_at)

    # --- CRUD ---
    async def create_scene(self, title: Optional[str] = None) -> Scene:
        if not title:
            title = f"Scene {len(self.list_scenes()) + 1}"
        scene = Scene(title=title)
        self._scenes.append(scene)
        await self._persist()
        logger.debug(f"Created scene {scene.id} ({title})")
        return scene

    def get_scene(self, scene_id: str) -> Optional[Scene]:
        return find_by_id(self._scenes, scene_id)

    def list_scenes(self, include_archived: bool = False) -> List[Scene]:
        if include_archived:
            return list(self._scenes)
        return [s for s in self._scenes if not s.is_archived]

    async def update_scene(self, scene: Scene) -> Scene:
        index = self._index_of(scene.id)
        self._bump(scene)
        self._scenes[index] = scene
        await self._persist()
        return scene

    async def delete_scene(self, scene_id: str) -> None:
        del self._scenes[self._index_of(scene_id)]
        await self._persist()
        logger.debug(f"Deleted scene {scene_id}")

    async def clone_scene(self, scene_id: str) -> Scene:
        index = self._index_of(scene_id)
        original = self._scenes[index]
        now = utcnow()
        clone = original.model_copy(
            update={
                "id": new_id("scene"),
                "title": clone_title(original.title, (s.title for s in self._scenes)),
                "is_archived": False,
                "created_at": now,
                "updated_at": now,
            },
            deep=True,
        )
        self._scenes.insert(index + 1, clone)
        await self._persist()
        logger.debug(f"Cloned scene {scene_id} -> {clone.id} ({clone.title})")
        return clone

    # --- archive / order ---
    async def archive_scene(self, scene_id: str) -> Scene:
        scene = self._require(scene_id)
        scene.is_archived = True
        return await self.update_scene(scene)

    async def unarchive_scene(self, scene_id: str, insert_at_index: Optional[int] = None) -> Scene:
        scene = self._require(scene_id)
        scene.is_archived = False
        if insert_at_index is not None:
            self._scenes.pop(self._index_of(scene_id))
            self._scenes.insert(insert_at_index, scene)
        return await self.update_scene(scene)

    async def move_scene(self, scene_id: str, to_index: int) -> None:
        scene = self._scenes.pop(self._index_of(scene_id))
        self._scenes.insert(to_index, scene)
        await self._persist()

    def get_scene_number(self, scene: Scene) -> int:
        """1-based position among non-archived scenes, or -1."""
        for i, active in enumerate(self.list_scenes()):
            if active.id == scene.id:
                return i + 1
        return -1

    # --- images ---
    async def add_image(self, scene_id: str, image: SceneImage) -> Scene:
        scene = self._require(scene_id)
        append_active(scene.images, image)
        scene.status = SceneStatus.COMPLETED
        scene.error = None
        return await self.update_scene(scene)

    async def set_active_image(self, scene_id: str, image_id: str) -> Scene:
        scene = self._require(scene_id)
        if find_by_id(scene.images, image_id) is None:
            raise NotFoundError(f"Image {image_id} not found in scene {scene_id}")
        activate_only(scene.images, image_id)
        return await self.update_scene(scene)

    async def delete_image(self, scene_id: str, image_id: str) -> Scene:
        scene = self._require(scene_id)
        image = find_by_id(scene.images, image_id)
        if image is None:
            raise NotFoundError(f"Image {image_id} not found in scene {scene_id}")
        if image.is_active:
            raise CannotDeleteActiveError("Cannot delete the active image; activate another one first")
        scene.images.remove(image)
        return await self.update_scene(scene)

    @staticmethod
    def get_active_image(scene: Scene) -> Optional[SceneImage]:
        return find_active(scene.images)

    async def set_status(self, scene_id: str, status: SceneStatus, error: Optional[str] = None) -> Scene:
        scene = self._require(scene_id)
        scene.status = SceneStatus(status)
        scene.error = error
        return await self.update_scene(scene)

    # --- smart expand ---
    async def smart_expand(self, scene_id: str, style_prompt: str = "") -> Scene:
        scene = self._require(scene_id)
        if scene.pre_expansion_description is None:
            scene.pre_expansion_description = scene.custom_description or scene.description
        baseline = scene.pre_expansion_description
        scene.enhanced_description = await self.text_generator.expand_description(baseline, style_prompt)
        scene.is_smart_expanded = True
        return await self.update_scene(scene)

    # --- world element assignment ---
    async def assign_element(self, scene_id: str, element_id: str) -> Scene:
        scene = self._require(scene_id)
        if element_id not in scene.assigned_elements:
            scene.assigned_elements.append(element_id)
        return await self.update_scene(scene)

    async def unassign_element(self, scene_id: str, element_id: str) -> Scene:
        scene = self._require(scene_id)
        scene.assigned_elements = [e for e in scene.assigned_elements if e != element_id]
        return await self.update_scene(scene)

    def scenes_using_element(self, element_id: str) -> List[Scene]:
        return [s for s in self._scenes if element_id in s.assigned_elements]

    async def remove_element_from_scenes(self, element_id: str) -> List[Scene]:
        affected = self.scenes_using_element(element_id)
        for scene in affected:
            scene.assigned_elements = [e for e in scene.assigned_elements if e != element_id]
            self._bump(scene)
        if affected:
            await self._persist()
        return affected
