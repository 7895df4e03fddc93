from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

SCENE_DURATION_SEC = 5
DEFAULT_PROJECT_NAME = "My New Project"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex}"


class StylePreset(str, Enum):
    ANIME = "anime"
    PHOTOREALISTIC = "photorealistic"
    ANIMATED_3D = "3d-animated"
    WATERCOLOR = "watercolor"
    COMIC = "comic"
    CUSTOM = "custom"


class ElementType(str, Enum):
    CHARACTER = "character"
    LOCATION = "location"
    OBJECT = "object"
    CONCEPT = "concept"


class SceneStatus(str, Enum):
    EMPTY = "empty"
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class VideoStatus(str, Enum):
    NOT_STARTED = "not_started"
    GENERATING = "generating"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"


# --- story snapshots (immutable) ---
class Style(BaseModel):
    model_config = ConfigDict(frozen=True)

    preset: StylePreset = StylePreset.ANIME
    custom_prompt: Optional[str] = None


class StoryScene(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    title: str = ""
    description: str = ""
    dialogue: str = ""
    action: str = ""
    elements_present: List[str] = Field(default_factory=list)
    duration: int = SCENE_DURATION_SEC


class StoryCharacter(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    physical: str = ""
    profile: str = ""


class StoryElement(BaseModel):
    """A location, object or concept extracted from a story."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""


class Story(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("story"))
    title: str = "Untitled Story"
    prompt: str
    style: Style = Field(default_factory=Style)
    target_duration: int
    narrative: str = ""
    scenes: List[StoryScene] = Field(default_factory=list)
    characters: List[StoryCharacter] = Field(default_factory=list)
    locations: List[StoryElement] = Field(default_factory=list)
    objects: List[StoryElement] = Field(default_factory=list)
    concepts: List[StoryElement] = Field(default_factory=list)
    is_smart_expanded: bool = False
    pre_expansion_narrative: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class ExistingElement(BaseModel):
    id: str
    name: str
    type: ElementType


class NewElement(BaseModel):
    name: str
    type: ElementType
    description: str = ""


class StoryGenerationResult(BaseModel):
    story: Story
    existing_elements_used: List[str] = Field(default_factory=list)
    new_elements_introduced: List[NewElement] = Field(default_factory=list)


# --- world elements ---
class ElementImage(BaseModel):
    id: str = Field(default_factory=lambda: new_id("img"))
    image_url: str
    revised_prompt: str = ""
    is_active: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class WorldElementVersion(BaseModel):
    description: str
    enhanced_description: Optional[str] = None
    is_enhanced: bool = False
    pre_enhancement_description: Optional[str] = None
    images: List[ElementImage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class WorldElement(BaseModel):
    id: str = Field(default_factory=lambda: new_id("elem"))
    name: str
    type: ElementType
    description: str = ""
    enhanced_description: Optional[str] = None
    is_enhanced: bool = False
    pre_enhancement_description: Optional[str] = None
    images: List[ElementImage] = Field(default_factory=list)
    history_index: int = 0
    history: List[WorldElementVersion] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# --- storyboard scenes ---
class SceneImage(BaseModel):
    id: str = Field(default_factory=lambda: new_id("img"))
    image_url: str
    revised_prompt: str = ""
    is_active: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Scene(BaseModel):
    id: str = Field(default_factory=lambda: new_id("scene"))
    title: str
    description: str = ""
    custom_description: Optional[str] = None
    enhanced_description: Optional[str] = None
    is_smart_expanded: bool = False
    pre_expansion_description: Optional[str] = None
    is_archived: bool = False
    dialog: Optional[str] = None
    action: Optional[str] = None
    assigned_elements: List[str] = Field(default_factory=list)
    images: List[SceneImage] = Field(default_factory=list)
    duration: int = SCENE_DURATION_SEC
    status: SceneStatus = SceneStatus.EMPTY
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# --- video ---
class VideoVersion(BaseModel):
    id: str = Field(default_factory=lambda: new_id("ver"))
    video_url: str
    thumbnail_url: Optional[str] = None
    duration: int = 0
    is_active: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Video(BaseModel):
    id: str = Field(default_factory=lambda: new_id("video"))
    project_id: str
    status: VideoStatus = VideoStatus.NOT_STARTED
    error: Optional[str] = None
    versions: List[VideoVersion] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class PreviewFrame(BaseModel):
    scene_id: str
    image_url: str
    duration: int


# --- project ---
class Project(BaseModel):
    id: str = Field(default_factory=lambda: new_id("proj"))
    name: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_opened_at: datetime = Field(default_factory=utcnow)
    story_history: List[Story] = Field(default_factory=list)
    story_history_index: int = -1
    current_story: Optional[Story] = None
    world_elements: Dict[str, WorldElement] = Field(default_factory=dict)
    scenes: List[Scene] = Field(default_factory=list)
    video: Optional[Video] = None

    def summary(self) -> "ProjectSummary":
        return ProjectSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            thumbnail=self.thumbnail,
            updated_at=self.updated_at,
            last_opened_at=self.last_opened_at,
        )


class ProjectSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    updated_at: datetime
    last_opened_at: datetime


def touch(previous: datetime) -> datetime:
    """Return a bump timestamp that never moves backwards."""
    now = utcnow()
    return now if now >= previous else previous
