from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from storyreel.errors import CannotDeleteActiveError, IndexOutOfRangeError, NotFoundError
from storyreel.generation.base import TextGenerator
from storyreel.generation.template import TemplateTextGenerator

from .models import (
    ElementImage,
    ElementType,
    ExistingElement,
    NewElement,
    Project,
    WorldElement,
    WorldElementVersion,
    touch,
)
from .versions import activate_only, append_active, find_active, find_by_id

if TYPE_CHECKING:
    from .projects import ProjectManager

logger = logging.getLogger(__name__)


class WorldElementManager:
    """Characters, locations, objects and concepts shared by a project's stories and scenes."""

    def __init__(
        self,
        project: Optional[Project] = None,
        projects: Optional["ProjectManager"] = None,
        text_generator: Optional[TextGenerator] = None,
    ) -> None:
        self.project = project
        self.projects = projects
        self.text_generator = text_generator or TemplateTextGenerator()
        self._elements: Dict[str, WorldElement] = project.world_elements if project is not None else {}

    async def _persist(self) -> None:
        if self.project is not None and self.projects is not None:
            await self.projects.update_project(self.project)

    def _require(self, element_id: str) -> WorldElement:
        element = self._elements.get(element_id)
        if element is None:
            raise NotFoundError(f"Element {element_id} not found")
        return element

    def _require_image(self, element: WorldElement, image_id: str) -> ElementImage:
        image = find_by_id(element.images, image_id)
        if image is None:
            raise NotFoundError(f"Image {image_id} not found on element {element.id}")
        return image

    async def create_element(self, type: ElementType, name: str, description: str = "") -> WorldElement:
        element = WorldElement(type=ElementType(type), name=name, description=description)
        self._elements[element.id] = element
        await self._persist()
        logger.debug(f"Created {element.type.value} element {element.id} ({name})")
        return element

    def get_element(self, element_id: str) -> Optional[WorldElement]:
        return self._elements.get(element_id)

    def list_elements(self, type: Optional[ElementType] = None) -> List[WorldElement]:
        elements = list(self._elements.values())
        if type is None:
            return elements
        return [e for e in elements if e.type == ElementType(type)]

    def existing_elements(self) -> List[ExistingElement]:
        """Elements in the shape story generation expects."""
        return [ExistingElement(id=e.id, name=e.name, type=e.type) for e in self._elements.values()]

    async def update_element(self, element: WorldElement) -> WorldElement:
        self._require(element.id)
        element.updated_at = touch(element.updated_at)
        self._elements[element.id] = element
        await self._persist()
        return element

    async def delete_element(self, element_id: str) -> None:
        self._require(element_id)
        del self._elements[element_id]
        await self._persist()
        logger.debug(f"Deleted element {element_id}")

    async def enhance_description(self, element_id: str, style_prompt: str = "") -> WorldElement:
        element = self._require(element_id)
        if not element.is_enhanced:
            element.pre_enhancement_description = element.description
        baseline = element.pre_enhancement_description or ""
        element.enhanced_description = await self.text_generator.expand_description(baseline, style_prompt)
        element.is_enhanced = True
        return await self.update_element(element)

    # --- images ---
    async def add_image(self, element_id: str, image: ElementImage) -> WorldElement:
        element = self._require(element_id)
        append_active(element.images, image)
        return await self.update_element(element)

    async def set_active_image(self, element_id: str, image_id: str) -> WorldElement:
        element = self._require(element_id)
        self._require_image(element, image_id)
        activate_only(element.images, image_id)
        return await self.update_element(element)

    async def delete_image(self, element_id: str, image_id: str) -> WorldElement:
        element = self._require(element_id)
        image = self._require_image(element, image_id)
        if image.is_active:
            raise CannotDeleteActiveError("Cannot delete active image")
        element.images = [img for img in element.images if img.id != image_id]
        return await self.update_element(element)

    @staticmethod
    def get_active_image(element: WorldElement) -> Optional[ElementImage]:
        return find_active(element.images)

    # --- history ---
    async def save_version(self, element_id: str) -> WorldElement:
        element = self._require(element_id)
        snapshot = WorldElementVersion(
            description=element.description,
            enhanced_description=element.enhanced_description,
            is_enhanced=element.is_enhanced,
            pre_enhancement_description=element.pre_enhancement_description,
            images=[img.model_copy(deep=True) for img in element.images],
        )
        element.history.append(snapshot)
        element.history_index = len(element.history) - 1
        return await self.update_element(element)

    async def restore_version(self, element_id: str, index: int) -> WorldElement:
        element = self._require(element_id)
        if index < 0 or index >= len(element.history):
            raise IndexOutOfRangeError(f"Version index {index} out of range for element {element_id}")
        snapshot = element.history[index]
        element.description = snapshot.description
        element.enhanced_description = snapshot.enhanced_description
        element.is_enhanced = snapshot.is_enhanced
        element.pre_enhancement_description = snapshot.pre_enhancement_description
        element.images = [img.model_copy(deep=True) for img in snapshot.images]
        element.history_index = index
        return await self.update_element(element)

    async def add_new_elements(self, new_elements: Iterable[NewElement]) -> List[WorldElement]:
        """Create world elements for names a generated story introduced.

        Names already present for the same type are skipped.
        """
        taken = {(e.type, e.name.strip().lower()) for e in self._elements.values()}
        created = []
        for item in new_elements:
            key = (item.type, item.name.strip().lower())
            if key in taken:
                continue
            taken.add(key)
            element = WorldElement(type=item.type, name=item.name, description=item.description)
            self._elements[element.id] = element
            created.append(element)
        if created:
            await self._persist()
            logger.info(f"Added {len(created)} world elements from story")
        return created
