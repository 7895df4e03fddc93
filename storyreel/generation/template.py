from __future__ import annotations

from typing import List

from storyreel.studio.models import ElementType

from .base import (
    CharacterDraft,
    ElementDraft,
    SceneDraft,
    StoryDraft,
    StoryRequest,
    TextGenerator,
)

_BEATS = ("opening", "rising action", "turning point", "climax", "resolution")


def _title_from_prompt(prompt: str, max_words: int = 6) -> str:
    words = prompt.strip().rstrip(".!?").split()
    if not words:
        return ""
    title = " ".join(words[:max_words])
    return title[:1].upper() + title[1:]


def _beat(index: int, count: int) -> str:
    if count <= 1:
        return _BEATS[0]
    # Spread the beats over the scene range so the last scene is always the resolution.
    pos = round(index * (len(_BEATS) - 1) / (count - 1))
    return _BEATS[pos]


class TemplateTextGenerator(TextGenerator):
    """
    Deterministic, offline text generator.

    Output depends only on the inputs, which keeps story generation usable
    without a model endpoint and makes expansion idempotent for a given
    baseline.
    """

    async def generate_story(self, request: StoryRequest) -> StoryDraft:
        premise = request.prompt.strip()
        style = f" Visual style: {request.style_prompt}." if request.style_prompt else ""

        by_type = {t: [e for e in request.existing_elements if e.type == t] for t in ElementType}
        cast = [e.name for e in request.existing_elements]

        characters = [CharacterDraft(name=e.name) for e in by_type[ElementType.CHARACTER]]
        if not characters:
            characters = [CharacterDraft(name="Protagonist", description=f"The central figure of: {premise}")]
        locations = [ElementDraft(name=e.name) for e in by_type[ElementType.LOCATION]]
        if not locations:
            locations = [ElementDraft(name="Main Setting", description=f"Where it happens: {premise}")]
        objects = [ElementDraft(name=e.name) for e in by_type[ElementType.OBJECT]]
        concepts = [ElementDraft(name=e.name) for e in by_type[ElementType.CONCEPT]]

        present: List[str] = cast or [characters[0].name, locations[0].name]
        scenes = [
            SceneDraft(
                title=_beat(i, request.scene_count).capitalize(),
                description=f"{_beat(i, request.scene_count).capitalize()} of the story: {premise}.{style}",
                action=f"The story moves through its {_beat(i, request.scene_count)}.",
                elements_present=list(present),
            )
            for i in range(request.scene_count)
        ]

        narrative = (
            f"{premise}. Told in {request.scene_count} scenes over {request.target_duration} seconds."
            f"{style}"
        )
        return StoryDraft(
            title=_title_from_prompt(premise),
            narrative=narrative,
            scenes=scenes,
            characters=characters,
            locations=locations,
            objects=objects,
            concepts=concepts,
        )

    async def edit_narrative(self, narrative: str, instruction: str, style_prompt: str = "") -> str:
        return f"{narrative}\n\nRevision: {instruction.strip()}"

    async def expand_narrative(self, narrative: str, style_prompt: str = "") -> str:
        detail = f" Every moment is rendered as {style_prompt}." if style_prompt else ""
        return f"{narrative}\n\nIn detail: each scene lingers on its setting and motion.{detail}"

    async def expand_description(self, description: str, style_prompt: str = "") -> str:
        detail = f", {style_prompt}" if style_prompt else ""
        return f"{description}. Detailed composition, clear subject, consistent lighting{detail}"
