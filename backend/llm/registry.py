"""
Model registry.

Builds the ordered list of usable ModelConfig entries from a Settings
snapshot and answers "what is the default" and "resolve id -> config".
Structured MODELS_JSON entries come first, then the legacy OpenAI binding,
then the legacy Gemini binding.
"""

import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional

from config import Settings, DEFAULT_GEMINI_MODEL
from errors import ConfigurationError
from models.settings import ModelConfig, PublicModelOption, ModelListResponse, PROVIDER_NAMES

logger = logging.getLogger(__name__)

_FAMILY_PREFIX = re.compile(r"^(gpt-|claude-|gemini-)", re.IGNORECASE)


def _read_json(value: Optional[str]) -> Any:
    """Parse JSON, returning None for empty or malformed input."""
    if not value or not value.strip():
        return None
    try:
        return json.loads(value)
    except (ValueError, TypeError):
        logger.warning("MODELS_JSON is not valid JSON, ignoring structured model list")
        return None


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def derive_display_label(entry: Dict[str, Any]) -> str:
    """
    Build a human display label for a raw model descriptor.

    Order: explicit label; an id that already looks human-authored
    (spaces or mixed case); a kebab/snake id title-cased; the model name
    with common family prefixes stripped; finally "provider:model".
    """
    label = _clean(entry.get("label"))
    if label:
        return label

    model_id = _clean(entry.get("id"))
    if model_id:
        if " " in model_id or (model_id != model_id.lower() and model_id != model_id.upper()):
            return model_id
        if "-" in model_id or "_" in model_id:
            return " ".join(word[:1].upper() + word[1:].lower() for word in re.split(r"[-_]", model_id))

    model = _clean(entry.get("model"))
    if model:
        cleaned = re.sub(r"[-_]", " ", _FAMILY_PREFIX.sub("", model))
        return cleaned[:1].upper() + cleaned[1:]

    return f"{_clean(entry.get('provider'))}:{model}"


def _parse_structured(raw: Any) -> List[ModelConfig]:
    """Convert the MODELS_JSON array, silently dropping unusable entries."""
    if not isinstance(raw, list):
        return []

    configs: List[ModelConfig] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            continue
        provider = _clean(entry.get("provider")).lower()
        model = _clean(entry.get("model"))
        if provider not in PROVIDER_NAMES or not model:
            logger.debug(f"Dropping model entry #{index + 1}: provider={provider!r} model={model!r}")
            continue

        temperature = entry.get("temperature")
        try:
            temperature = float(temperature) if temperature is not None else None
        except (TypeError, ValueError):
            temperature = None

        configs.append(ModelConfig(
            id=_clean(entry.get("id")) or f"model_{index + 1}",
            label=derive_display_label(entry),
            provider=provider,
            model=model,
            base_url=_clean(entry.get("baseUrl")) or None,
            api_key=_clean(entry.get("apiKey")) or None,
            temperature=temperature,
        ))
    return configs


def _legacy_entries(settings: Settings) -> List[ModelConfig]:
    """Single-provider bindings from the flat OPENAI_* / GEMINI_* keys."""
    entries: List[ModelConfig] = []

    openai_key = _clean(settings.openai_api_key)
    openai_model = _clean(settings.openai_model_name)
    if openai_key and openai_model:
        entries.append(ModelConfig(
            id="openai_env",
            label="OpenAI (ENV)",
            provider="openai",
            model=openai_model,
            base_url=_clean(settings.openai_base_url) or None,
            api_key=openai_key,
            temperature=settings.openai_temperature,
        ))

    gemini_key = _clean(settings.gemini_api_key)
    if gemini_key:
        entries.append(ModelConfig(
            id="gemini_env",
            label="Gemini (ENV)",
            provider="gemini",
            model=_clean(settings.gemini_model_name) or DEFAULT_GEMINI_MODEL,
            base_url=_clean(settings.gemini_base_url) or None,
            api_key=gemini_key,
        ))

    return entries


class ModelRegistry:
    """
    Immutable snapshot of the usable model configurations.

    Attributes:
        models: Ordered ModelConfig entries (append order).
        preferred_provider: Provider whose first entry wins the default.
        default_model_id: Explicit default id, used when present.
    """

    def __init__(
        self,
        models: List[ModelConfig],
        preferred_provider: Optional[str] = None,
        default_model_id: Optional[str] = None,
    ):
        self.models = tuple(models)
        self.preferred_provider = (preferred_provider or "").strip().lower() or None
        self.default_model_id = (default_model_id or "").strip() or None

    def __len__(self) -> int:
        return len(self.models)

    def __iter__(self) -> Iterator[ModelConfig]:
        return iter(self.models)

    def get(self, model_id: str) -> Optional[ModelConfig]:
        for config in self.models:
            if config.id == model_id:
                return config
        return None

    def pick_default_model_id(self) -> Optional[str]:
        """
        Choose the default model id.

        Preferred provider first, then the explicit default id, then the
        first entry. None only for an empty registry.
        """
        if not self.models:
            return None

        if self.preferred_provider in PROVIDER_NAMES:
            for config in self.models:
                if config.provider == self.preferred_provider:
                    return config.id

        if self.default_model_id and self.get(self.default_model_id):
            return self.default_model_id

        return self.models[0].id

    def resolve(self, model_id: Optional[str] = None) -> Optional[ModelConfig]:
        """
        Resolve an id to its config.

        Without an id the default is returned. An unknown id returns None;
        the caller must treat that as a client error.
        """
        if not self.models:
            return None
        if not model_id:
            default_id = self.pick_default_model_id()
            return self.get(default_id) or self.models[0]
        return self.get(model_id)

    def to_public(self) -> List[PublicModelOption]:
        """Listing with secrets (api key, base URL, temperature) stripped."""
        return [config.to_public() for config in self.models]

    def listing(self) -> ModelListResponse:
        return ModelListResponse(models=self.to_public(), default_model_id=self.pick_default_model_id())


def load_registry(settings: Settings, require_models: Optional[bool] = None) -> ModelRegistry:
    """
    Build a registry from a Settings snapshot.

    Args:
        settings: Configuration value object; never read from os.environ here.
        require_models: Raise ConfigurationError on an empty result.
            Defaults to settings.require_models.

    Returns:
        ModelRegistry in append order, duplicate ids resolved last-one-wins.
    """
    collected = _parse_structured(_read_json(settings.models_json))
    collected.extend(_legacy_entries(settings))

    # Last one wins, keeping the position of the first occurrence
    by_id: Dict[str, ModelConfig] = {}
    for config in collected:
        if config.id in by_id:
            logger.warning(f"Duplicate model id '{config.id}', later entry replaces earlier one")
        by_id[config.id] = config

    registry = ModelRegistry(
        list(by_id.values()),
        preferred_provider=settings.ai_provider,
        default_model_id=settings.default_model_id,
    )

    if require_models is None:
        require_models = settings.require_models
    if not registry and require_models:
        raise ConfigurationError(
            "No usable model configured. Set MODELS_JSON, OPENAI_API_KEY + OPENAI_MODEL_NAME, or GEMINI_API_KEY."
        )

    logger.info(f"Loaded {len(registry)} model(s): {[c.id for c in registry]}")
    return registry
