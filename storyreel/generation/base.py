from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field

from storyreel.studio.models import ExistingElement


class StoryRequest(BaseModel):
    prompt: str
    scene_count: int
    target_duration: int
    style_prompt: str = ""
    existing_elements: List[ExistingElement] = Field(default_factory=list)


class SceneDraft(BaseModel):
    title: str = ""
    description: str = ""
    dialogue: str = ""
    action: str = ""
    elements_present: List[str] = Field(default_factory=list)


class CharacterDraft(BaseModel):
    name: str
    description: str = ""
    physical: str = ""
    profile: str = ""


class ElementDraft(BaseModel):
    name: str
    description: str = ""


class StoryDraft(BaseModel):
    """Raw story as returned by a text model, before it is normalized."""

    title: str = ""
    narrative: str = ""
    scenes: List[SceneDraft] = Field(default_factory=list)
    characters: List[CharacterDraft] = Field(default_factory=list)
    locations: List[ElementDraft] = Field(default_factory=list)
    objects: List[ElementDraft] = Field(default_factory=list)
    concepts: List[ElementDraft] = Field(default_factory=list)


class ImageRequest(BaseModel):
    prompt: str
    style_prompt: str = ""
    reference_image_urls: List[str] = Field(default_factory=list)
    size: Optional[str] = None


class ImageResult(BaseModel):
    image_url: str
    revised_prompt: str = ""


class VideoRequest(BaseModel):
    prompt: str
    image_urls: List[str] = Field(default_factory=list)
    duration: int = 0


class VideoJob(BaseModel):
    job_id: str
    status: str = "in_progress"  # in_progress | completed | failed
    progress: Optional[float] = None
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    error: Optional[str] = None


class TextGenerator(ABC):
    @abstractmethod
    async def generate_story(self, request: StoryRequest) -> StoryDraft:
        ...

    @abstractmethod
    async def edit_narrative(self, narrative: str, instruction: str, style_prompt: str = "") -> str:
        ...

    @abstractmethod
    async def expand_narrative(self, narrative: str, style_prompt: str = "") -> str:
        ...

    @abstractmethod
    async def expand_description(self, description: str, style_prompt: str = "") -> str:
        ...


class ImageGenerator(ABC):
    @abstractmethod
    async def generate_image(self, request: ImageRequest) -> ImageResult:
        ...


class VideoGenerator(ABC):
    @abstractmethod
    async def submit(self, request: VideoRequest) -> VideoJob:
        ...

    @abstractmethod
    async def poll(self, job_id: str) -> VideoJob:
        ...
