import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import toml
import yaml
from dotenv import dotenv_values

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT = PACKAGE_ROOT.parent

ENV_KEYS = (
    "STORYREEL_STORAGE_BACKEND",
    "STORYREEL_STORAGE_PATH",
    "STORYREEL_LOG_LEVEL",
    "TEXT_MODEL_PROVIDER",
    "TEXT_MODEL_ID",
    "TEXT_MODEL_API_KEY",
    "TEXT_MODEL_BASE_URL",
    "TEXT_MODEL_EXTRA_PARAMS",
    "WAVESPEED_API_KEY",
)


def get_default_config() -> Dict[str, Any]:
    """Get default configuration"""
    return {
        # Storage
        "storage_backend": "file",  # memory | file | sqlite
        "storage_path": str(PROJECT_ROOT / ".storyreel"),

        # Logging
        "log_file": str(PROJECT_ROOT / "logs" / "storyreel.log"),
        "log_level": "INFO",
        "log_to_console": False,

        # Project defaults
        "default_project_name": "My New Project",
        "default_style_preset": "anime",

        # Text model used for story generation/editing/expansion
        "text_model_provider": "template",  # template | openai | deepseek | dashscope | ...
        "text_model_id": "gpt-4o",
        "text_model_api_key": "",
        "text_model_base_url": "",
        "text_model_extra_params": "",

        # Image/video providers (merged from yaml and env)
        "generation_config_file": str(PACKAGE_ROOT / "config" / "generation.yaml"),
        "generation": {},
    }


def get_default_base_url(provider: str) -> str:
    p = (provider or "").lower()
    if p == "openai":
        return "https://api.openai.com/v1"
    if p == "deepseek":
        return "https://api.deepseek.com"
    if p == "dashscope":
        return "https://dashscope.aliyuncs.com/compatible-mode/v1"
    return ""


def parse_extra_params(extra: Optional[Union[str, Dict[str, Any]]]) -> Dict[str, Any]:
    if isinstance(extra, dict):
        return dict(extra)
    if isinstance(extra, str) and extra.strip():
        try:
            parsed = json.loads(extra)
        except json.JSONDecodeError as exc:
            raise ValueError(f"text_model_extra_params is not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ValueError("text_model_extra_params must be a JSON object")
        return parsed
    return {}


def load_env_vars(env_file: Optional[Union[str, Path]] = None) -> Dict[str, str]:
    """Values from the ``.env`` file, overridden by the process environment."""
    candidates = [Path(env_file)] if env_file else [PACKAGE_ROOT / ".env", PROJECT_ROOT / ".env"]
    env_path = next((p for p in candidates if p.exists()), None)

    env_vars: Dict[str, str] = {}
    if env_path:
        env_vars.update({k: v for k, v in dotenv_values(env_path).items() if v is not None})
    for key in ENV_KEYS:
        if os.environ.get(key):
            env_vars[key] = os.environ[key]
    return env_vars


def load_generation_config(config_path: Union[str, Path], env_vars: Dict[str, str]) -> Dict[str, Any]:
    """
    Load image/video provider configuration from YAML and override with environment variables.
    """
    path = Path(config_path)
    if not path.exists():
        example = path.with_name("generation.example.yaml")
        path = example if example.exists() else path

    generation: Dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            generation = yaml.safe_load(f) or {}

    wavespeed_key = env_vars.get("WAVESPEED_API_KEY")
    if wavespeed_key:
        for section in ("image_gen", "video_gen"):
            generation.setdefault(section, {})["wavespeed_api_key"] = wavespeed_key
    return generation


def load_config(
    config_file: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = None,
) -> Tuple[str, Dict[str, Any]]:
    """Load configuration from TOML file or create with defaults if it doesn't exist"""
    path = Path(config_file) if config_file else PACKAGE_ROOT / "config" / "config.toml"
    path.parent.mkdir(parents=True, exist_ok=True)

    defaults = get_default_config()
    if not path.exists():
        config = defaults
        with open(path, "w", encoding="utf-8") as f:
            toml.dump({k: v for k, v in defaults.items() if k != "generation"}, f)
    else:
        with open(path, "r", encoding="utf-8") as f:
            config = toml.load(f)
        # Merge with defaults to ensure all required fields exist
        for key, value in defaults.items():
            config.setdefault(key, value)

    env_vars = load_env_vars(env_file)

    if "STORYREEL_STORAGE_BACKEND" in env_vars:
        config["storage_backend"] = env_vars["STORYREEL_STORAGE_BACKEND"]
    if "STORYREEL_STORAGE_PATH" in env_vars:
        config["storage_path"] = env_vars["STORYREEL_STORAGE_PATH"]
    if "STORYREEL_LOG_LEVEL" in env_vars:
        config["log_level"] = env_vars["STORYREEL_LOG_LEVEL"]

    config["text_model_provider"] = env_vars.get("TEXT_MODEL_PROVIDER", config["text_model_provider"])
    config["text_model_id"] = env_vars.get("TEXT_MODEL_ID", config["text_model_id"])
    config["text_model_api_key"] = env_vars.get("TEXT_MODEL_API_KEY", config["text_model_api_key"])
    config["text_model_extra_params"] = env_vars.get("TEXT_MODEL_EXTRA_PARAMS", config["text_model_extra_params"])

    base_url = env_vars.get("TEXT_MODEL_BASE_URL", config.get("text_model_base_url", "")).strip()
    if not base_url:
        base_url = get_default_base_url(config["text_model_provider"])
    config["text_model_base_url"] = base_url

    config["generation"] = load_generation_config(config["generation_config_file"], env_vars)
    return str(path), config


_config: Optional[Dict[str, Any]] = None


def get_config() -> Dict[str, Any]:
    global _config
    if _config is None:
        _, _config = load_config()
    return _config
