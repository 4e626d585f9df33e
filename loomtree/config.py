"""Runtime settings: generation defaults and model configs.

Read from an optional YAML file (``LOOMTREE_CONFIG``, default
``loomtree.yml`` beside the working directory), then overridden by
environment variables. Secrets (API keys) only ever come from the
environment; ``main`` loads ``.env`` before calling ``load_settings``.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from loomtree.models import GenerationParams

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("loomtree.yml")


class ModelConfig(BaseModel):
    name: str
    type: str  # provider name: "openai-chat", "openai", "anthropic"


def _default_models() -> dict[str, ModelConfig]:
    return {
        name: ModelConfig(name=name, type="openai-chat")
        for name in ("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo")
    }


class Settings(BaseModel):
    db_path: str = "loomtree.db"
    autosave: bool = True
    generation: GenerationParams = Field(default_factory=GenerationParams)
    models: dict[str, ModelConfig] = Field(default_factory=_default_models)
    default_provider: str = "openai-chat"

    def provider_for_model(self, model: str) -> str:
        """Provider name serving model; unknown models fall back to default_provider."""
        config = self.models.get(model)
        return config.type if config else self.default_provider


def load_settings(path: str | Path | None = None) -> Settings:
    """Build Settings from the YAML file (if present) plus environment overrides."""
    config_path = Path(path or os.environ.get("LOOMTREE_CONFIG") or DEFAULT_CONFIG_PATH)
    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded settings from %s", config_path)

    # YAML lists models as {name: type}; normalize to ModelConfig dicts.
    raw_models = data.get("models")
    if isinstance(raw_models, dict):
        data["models"] = {
            name: value if isinstance(value, dict) else {"name": name, "type": value}
            for name, value in raw_models.items()
        }
        for name, value in data["models"].items():
            value.setdefault("name", name)

    if os.environ.get("LOOMTREE_DB"):
        data["db_path"] = os.environ["LOOMTREE_DB"]
    if os.environ.get("LOOMTREE_AUTOSAVE"):
        data["autosave"] = os.environ["LOOMTREE_AUTOSAVE"].lower() in ("1", "true", "yes")

    return Settings.model_validate(data)
