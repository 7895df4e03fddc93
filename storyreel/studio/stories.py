from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from storyreel.errors import InvalidDurationError, NotFoundError
from storyreel.generation.base import StoryDraft, StoryRequest, TextGenerator
from storyreel.generation.template import TemplateTextGenerator

from .models import (
    SCENE_DURATION_SEC,
    ElementType,
    ExistingElement,
    NewElement,
    Story,
    StoryCharacter,
    StoryElement,
    StoryGenerationResult,
    StoryScene,
    Style,
    StylePreset,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)

# Prepended to every image and video generation prompt.
STYLE_PROMPTS: Dict[StylePreset, str] = {
    StylePreset.ANIME: "anime style, cel-shaded, 2D animation, vibrant colors, NOT photorealistic, NOT 3D",
    StylePreset.PHOTOREALISTIC: "photorealistic, cinematic lighting, 8K, hyperrealistic, film grain",
    StylePreset.ANIMATED_3D: "3D animated, Pixar style, stylized characters, soft lighting, NOT photorealistic",
    StylePreset.WATERCOLOR: "watercolor painting, soft edges, painterly, artistic, muted colors",
    StylePreset.COMIC: "comic book style, bold outlines, halftone dots, dynamic poses, vibrant colors",
}


def validate_duration(duration: int) -> bool:
    return isinstance(duration, int) and not isinstance(duration, bool) and duration > 0 and duration % SCENE_DURATION_SEC == 0


def calculate_scene_count(duration: int) -> int:
    if not validate_duration(duration):
        raise InvalidDurationError(
            f"Duration must be a positive multiple of {SCENE_DURATION_SEC} seconds, got {duration!r}"
        )
    return duration // SCENE_DURATION_SEC


def get_style_prompt(style: Style) -> str:
    if style.preset == StylePreset.CUSTOM:
        return style.custom_prompt or ""
    return STYLE_PROMPTS[style.preset]


def _draft_elements(draft: StoryDraft) -> Iterable[Tuple[str, ElementType, str]]:
    for c in draft.characters:
        yield c.name, ElementType.CHARACTER, c.description
    for e in draft.locations:
        yield e.name, ElementType.LOCATION, e.description
    for e in draft.objects:
        yield e.name, ElementType.OBJECT, e.description
    for e in draft.concepts:
        yield e.name, ElementType.CONCEPT, e.description


class StoryManager:
    """
    Produces story snapshots.

    Every operation returns a brand new :class:`Story`; snapshots are never
    edited in place. Stories this manager produced (or was told about through
    :meth:`remember`) can be referred to by id.
    """

    def __init__(self, text_generator: Optional[TextGenerator] = None) -> None:
        self.text_generator = text_generator or TemplateTextGenerator()
        self._stories: Dict[str, Story] = {}

    validate_duration = staticmethod(validate_duration)
    calculate_scene_count = staticmethod(calculate_scene_count)
    get_style_prompt = staticmethod(get_style_prompt)

    def remember(self, story: Story) -> Story:
        self._stories[story.id] = story
        return story

    def get_story(self, story_id: str) -> Optional[Story]:
        return self._stories.get(story_id)

    def _require(self, story_id: str) -> Story:
        story = self._stories.get(story_id)
        if story is None:
            raise NotFoundError(f"Story {story_id} not found")
        return story

    async def generate_story(
        self,
        prompt: str,
        target_duration: int,
        style: Optional[Style] = None,
        existing_elements: Optional[List[ExistingElement]] = None,
    ) -> StoryGenerationResult:
        scene_count = calculate_scene_count(target_duration)
        style = style or Style()
        existing = list(existing_elements or [])

        draft = await self.text_generator.generate_story(
            StoryRequest(
                prompt=prompt,
                scene_count=scene_count,
                target_duration=target_duration,
                style_prompt=get_style_prompt(style),
                existing_elements=existing,
            )
        )

        ids_by_name = {e.name.strip().lower(): e.id for e in existing}
        scenes = self._normalize_scenes(draft, scene_count, ids_by_name)

        mentioned = {name.strip().lower() for name, _, _ in _draft_elements(draft)}
        for scene in draft.scenes[:scene_count]:
            mentioned.update(n.strip().lower() for n in scene.elements_present)
        used = [e.id for e in existing if e.name.strip().lower() in mentioned]

        introduced: List[NewElement] = []
        seen = set(ids_by_name)
        for name, element_type, description in _draft_elements(draft):
            key = name.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            introduced.append(NewElement(name=name.strip(), type=element_type, description=description))

        story = Story(
            title=draft.title.strip() or "Untitled Story",
            prompt=prompt,
            style=style,
            target_duration=target_duration,
            narrative=draft.narrative,
            scenes=scenes,
            characters=[StoryCharacter(**c.model_dump()) for c in draft.characters],
            locations=[StoryElement(**e.model_dump()) for e in draft.locations],
            objects=[StoryElement(**e.model_dump()) for e in draft.objects],
            concepts=[StoryElement(**e.model_dump()) for e in draft.concepts],
        )
        self.remember(story)
        logger.info(
            f"Generated story {story.id}: {scene_count} scenes, "
            f"{len(used)} existing elements, {len(introduced)} new"
        )
        return StoryGenerationResult(story=story, existing_elements_used=used, new_elements_introduced=introduced)

    @staticmethod
    def _normalize_scenes(draft: StoryDraft, scene_count: int, ids_by_name: Dict[str, str]) -> List[StoryScene]:
        # Exactly scene_count scenes whatever the model returned: extras dropped, gaps padded.
        scenes = []
        for i in range(scene_count):
            number = i + 1
            if i < len(draft.scenes):
                d = draft.scenes[i]
                present = [ids_by_name.get(n.strip().lower(), n) for n in d.elements_present]
                scenes.append(
                    StoryScene(
                        number=number,
                        title=d.title or f"Scene {number}",
                        description=d.description,
                        dialogue=d.dialogue,
                        action=d.action,
                        elements_present=present,
                    )
                )
            else:
                scenes.append(StoryScene(number=number, title=f"Scene {number}"))
        return scenes

    async def regenerate(
        self,
        story_id: str,
        existing_elements: Optional[List[ExistingElement]] = None,
    ) -> StoryGenerationResult:
        story = self._require(story_id)
        return await self.generate_story(
            prompt=story.prompt,
            target_duration=story.target_duration,
            style=story.style,
            existing_elements=existing_elements,
        )

    async def edit_story_with_prompt(self, story_id: str, instruction: str) -> Story:
        story = self._require(story_id)
        narrative = await self.text_generator.edit_narrative(
            story.narrative, instruction, get_style_prompt(story.style)
        )
        edited = story.model_copy(
            update={"id": new_id("story"), "narrative": narrative, "created_at": utcnow()},
            deep=True,
        )
        logger.info(f"Edited story {story_id} -> {edited.id}")
        return self.remember(edited)

    async def smart_expand(self, story_id: str) -> Story:
        story = self._require(story_id)
        # The first expansion fixes the baseline; re-expanding always starts from it.
        baseline = story.pre_expansion_narrative if story.pre_expansion_narrative is not None else story.narrative
        narrative = await self.text_generator.expand_narrative(baseline, get_style_prompt(story.style))
        expanded = story.model_copy(
            update={
                "id": new_id("story"),
                "narrative": narrative,
                "is_smart_expanded": True,
                "pre_expansion_narrative": baseline,
                "created_at": utcnow(),
            },
            deep=True,
        )
        logger.info(f"Smart-expanded story {story_id} -> {expanded.id}")
        return self.remember(expanded)
