from __future__ import annotations

from typing import Any, Dict, List

from .models import Project, Scene
from .versions import find_active


def scene_prompt_text(scene: Scene) -> str:
    """The description a generator should see for ``scene``."""
    if scene.is_smart_expanded and scene.enhanced_description:
        return scene.enhanced_description
    return scene.custom_description or scene.description


def build_project_context(project: Project) -> Dict[str, Any]:
    story = project.current_story
    elements = project.world_elements

    scenes: List[Dict[str, Any]] = []
    for number, scene in enumerate((s for s in project.scenes if not s.is_archived), start=1):
        image = find_active(scene.images)
        scenes.append(
            {
                "number": number,
                "scene_id": scene.id,
                "title": scene.title,
                "description": scene_prompt_text(scene),
                "status": scene.status.value,
                "active_image_url": image.image_url if image else None,
                "elements": [elements[e].name for e in scene.assigned_elements if e in elements],
            }
        )

    video = None
    if project.video is not None:
        active = find_active(project.video.versions)
        video = {
            "status": project.video.status.value,
            "version_count": len(project.video.versions),
            "active_video_url": active.video_url if active else None,
        }

    return {
        "project_id": project.id,
        "project_name": project.name,
        "story": {
            "story_id": story.id,
            "title": story.title,
            "style": story.style.preset.value,
            "target_duration": story.target_duration,
            "narrative": story.narrative,
        }
        if story
        else None,
        "scenes": scenes,
        "world_elements": [
            {
                "element_id": e.id,
                "name": e.name,
                "type": e.type.value,
                "description": e.enhanced_description if e.is_enhanced and e.enhanced_description else e.description,
            }
            for e in elements.values()
        ],
        "video": video,
    }


def format_project_context(ctx: Dict[str, Any]) -> str:
    story = ctx.get("story")
    scenes = ctx.get("scenes") or []
    elements = ctx.get("world_elements") or []
    video = ctx.get("video")

    lines: List[str] = []
    lines.append("PROJECT_CONTEXT")
    lines.append(f"project: {ctx.get('project_name', '')} ({ctx.get('project_id', '')})")

    if story:
        lines.append(
            f"story: title={story.get('title')} style={story.get('style')} duration={story.get('target_duration')}s"
        )
        if story.get("narrative"):
            lines.append(f"narrative: {story['narrative']}")
    else:
        lines.append("story: (none)")

    lines.append("scenes:")
    if not scenes:
        lines.append("(none)")
    for scene in scenes:
        lines.append(
            f"{scene.get('number')}. {scene.get('title')} status={scene.get('status')} image={scene.get('active_image_url')}"
        )
        if scene.get("description"):
            lines.append(f"   {scene['description']}")
        if scene.get("elements"):
            lines.append(f"   elements: {', '.join(scene['elements'])}")

    if elements:
        lines.append("world_elements:")
        for e in elements:
            lines.append(f"- [{e.get('type')}] {e.get('name')}: {e.get('description')}")

    if video:
        lines.append(
            f"video: status={video.get('status')} versions={video.get('version_count')} active={video.get('active_video_url')}"
        )

    return "\n".join(lines)
