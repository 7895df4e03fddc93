from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import ValidationError

from storyreel.config.config import parse_extra_params
from storyreel.errors import GenerationError

from .base import StoryDraft, StoryRequest, TextGenerator
from .template import TemplateTextGenerator

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def load_prompt(name: str) -> str:
    path = PROMPTS_DIR / f"{name}.txt"
    with open(path, "r", encoding="utf-8") as f:
        return f.read().strip()


def create_chat_model(
    provider: str,
    model_id: str,
    api_key: Optional[str],
    base_url: Optional[str],
    extra_params: Optional[Union[str, Dict[str, Any]]] = None,
) -> ChatOpenAI:
    p = (provider or "").lower()
    if p not in {"openai", "openai_compatible", "deepseek", "dashscope", "vllm", "sglang", "ollama"}:
        logger.warning(f"Provider '{provider}' not explicitly supported; using OpenAI-compatible ChatOpenAI.")

    extra = parse_extra_params(extra_params)
    # Pull known top-level args to avoid burying them in model_kwargs.
    temperature = extra.pop("temperature", None)
    top_p = extra.pop("top_p", None)
    max_completion_tokens = extra.pop("max_completion_tokens", None)

    return ChatOpenAI(
        model=model_id,
        api_key=api_key or None,
        base_url=base_url or None,
        temperature=temperature,
        top_p=top_p,
        max_completion_tokens=max_completion_tokens,
        model_kwargs=extra or {},
    )


def parse_json_object(text: str) -> Dict[str, Any]:
    cleaned = _FENCE.sub("", text.strip())
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end < start:
        raise GenerationError(f"Text model returned no JSON object: {text[:200]!r}")
    try:
        data = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as exc:
        raise GenerationError(f"Text model returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise GenerationError("Text model returned JSON that is not an object")
    return data


def _message_text(content: Any) -> str:
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict):
                parts.append(str(item.get("text", "")))
            else:
                parts.append(str(item))
        return "".join(parts).strip()
    return str(content or "").strip()


class ChatTextGenerator(TextGenerator):
    """Story text from an OpenAI-compatible chat model."""

    def __init__(self, model: BaseChatModel) -> None:
        self.model = model

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ChatTextGenerator":
        model = create_chat_model(
            provider=config.get("text_model_provider", ""),
            model_id=config.get("text_model_id", ""),
            api_key=config.get("text_model_api_key"),
            base_url=config.get("text_model_base_url"),
            extra_params=config.get("text_model_extra_params"),
        )
        return cls(model)

    async def _ask(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = await self.model.ainvoke([SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)])
        except Exception as exc:
            raise GenerationError(f"Text model call failed: {exc}") from exc
        text = _message_text(response.content)
        if not text:
            raise GenerationError("Text model returned an empty response")
        return text

    async def generate_story(self, request: StoryRequest) -> StoryDraft:
        lines = [
            f"Story idea: {request.prompt}",
            f"Total length: {request.target_duration} seconds",
            f"Number of scenes: {request.scene_count}",
        ]
        if request.style_prompt:
            lines.append(f"Visual style: {request.style_prompt}")
        if request.existing_elements:
            lines.append("Existing world elements (reuse these exact names where they fit):")
            lines.extend(f"- [{e.type.value}] {e.name}" for e in request.existing_elements)

        text = await self._ask(load_prompt("story_system"), "\n".join(lines))
        data = parse_json_object(text)
        try:
            return StoryDraft.model_validate(data)
        except ValidationError as exc:
            raise GenerationError(f"Story JSON did not match the expected shape: {exc}") from exc

    async def edit_narrative(self, narrative: str, instruction: str, style_prompt: str = "") -> str:
        user_prompt = f"Narrative:\n{narrative}\n\nInstruction:\n{instruction}"
        return await self._ask(load_prompt("edit_system"), user_prompt)

    async def expand_narrative(self, narrative: str, style_prompt: str = "") -> str:
        user_prompt = f"Visual style: {style_prompt or 'unspecified'}\n\nNarrative:\n{narrative}"
        return await self._ask(load_prompt("expand_narrative_system"), user_prompt)

    async def expand_description(self, description: str, style_prompt: str = "") -> str:
        user_prompt = f"Visual style: {style_prompt or 'unspecified'}\n\nDescription:\n{description}"
        return await self._ask(load_prompt("expand_description_system"), user_prompt)


def create_text_generator(config: Dict[str, Any]) -> TextGenerator:
    provider = (config.get("text_model_provider") or "template").lower()
    if provider == "template":
        return TemplateTextGenerator()
    logger.info(f"Using chat text model {config.get('text_model_id')} via {provider}")
    return ChatTextGenerator.from_config(config)
