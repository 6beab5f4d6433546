"""
Edit buffer for per-model configuration.

Holds a copy of the snapshot's models that the user patches field by field
until a save commits them. Dirtiness is tracked per model and is set by any
patch, even one that writes the value already present.
"""

from collections.abc import Iterable, Iterator
from typing import Any

import pydantic
import structlog
from pydantic.alias_generators import to_camel

from swapstudio.api.schemas.control_plane import ModelConfig
from swapstudio.core.errors import ModelNotFoundError, ValidationError

logger = structlog.get_logger()

# Fields the control plane owns; the editor only displays them
READ_ONLY_FIELDS = frozenset({"name", "is_embedding", "native_context_size", "status"})

# Accept wire aliases, Python field names and their camelCase spelling (ttlSeconds)
_FIELD_NAMES: dict[str, str] = {}
for _attr, _info in ModelConfig.model_fields.items():
    _FIELD_NAMES[_attr] = _attr
    _FIELD_NAMES[to_camel(_attr)] = _attr
    if _info.alias:
        _FIELD_NAMES[_info.alias] = _attr


class ModelConfigRegistry:
    """
    Keyed collection of ModelConfig edits.

    Usage:
        registry = ModelConfigRegistry(snapshot.models)
        registry.patch("llama-3-8b", "gpuLayers", 20)
        await client.save_model_configuration("llama-3-8b", registry.record("llama-3-8b"))
        registry.mark_saved("llama-3-8b")
    """

    def __init__(self, models: Iterable[ModelConfig] = ()) -> None:
        self._models: dict[str, ModelConfig] = {}
        self._touched: set[str] = set()
        for model in models:
            self._models.setdefault(model.name, model)

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[ModelConfig]:
        return iter(list(self._models.values()))

    def names(self) -> list[str]:
        return list(self._models)

    def get(self, name: str) -> ModelConfig:
        """
        Get the buffered configuration of one model.

        Raises:
            ModelNotFoundError: If no model has this name
        """
        try:
            return self._models[name]
        except KeyError:
            raise ModelNotFoundError(
                f"Model configuration not found: {name}",
                details={"model": name},
            ) from None

    def record(self, name: str) -> dict[str, Any]:
        """Wire record for saving a single model."""
        return self.get(name).to_record()

    def records(self) -> list[dict[str, Any]]:
        """Wire records for every model, in order."""
        return [model.to_record() for model in self._models.values()]

    # =========================================================================
    # Dirty tracking
    # =========================================================================

    @property
    def dirty(self) -> bool:
        return bool(self._touched)

    @property
    def dirty_names(self) -> list[str]:
        return [name for name in self._models if name in self._touched]

    def is_dirty(self, name: str) -> bool:
        return name in self._touched

    def mark_saved(self, name: str) -> None:
        self._touched.discard(name)

    def mark_all_saved(self) -> None:
        self._touched.clear()

    # =========================================================================
    # Edits
    # =========================================================================

    def patch(self, name: str, field: str, value: Any) -> ModelConfig:
        """
        Replace one field of one model in the edit buffer.

        Args:
            name: Model name
            field: Field name, wire (``gpuLayers``) or Python (``gpu_layers``)
            value: New value, validated against the ModelConfig schema

        Returns:
            The updated model configuration

        Raises:
            ModelNotFoundError: If no model has this name (registry unchanged)
            ValidationError: If the field is unknown, read-only, or the value invalid
        """
        current = self.get(name)

        attr = _FIELD_NAMES.get(field)
        if attr is None:
            raise ValidationError(
                f"Unknown model setting: {field}",
                details={"model": name, "field": field},
            )
        if attr in READ_ONLY_FIELDS:
            raise ValidationError(
                f"Model setting is read-only: {field}",
                details={"model": name, "field": field},
            )

        if attr == "configured_context_size" and current.is_embedding:
            logger.info("embedding_context_edit_ignored", model=name)
            return current

        data = current.model_dump()
        data[attr] = value
        try:
            updated = ModelConfig.model_validate(data)
        except pydantic.ValidationError as e:
            first = e.errors(include_url=False)[0]
            raise ValidationError(
                f"Invalid value for {field}: {first['msg']}",
                details={"model": name, "field": field},
            ) from e

        ceiling = updated.native_context_size
        if (
            attr == "configured_context_size"
            and ceiling is not None
            and updated.configured_context_size is not None
            and updated.configured_context_size > ceiling
        ):
            raise ValidationError(
                f"Context size {updated.configured_context_size} exceeds the model's "
                f"native context size {ceiling}",
                details={"model": name, "field": field, "native_context_size": ceiling},
            )

        self._models[name] = updated
        self._touched.add(name)
        return updated

    def rebase(self, models: Iterable[ModelConfig]) -> None:
        """
        Take fresh models from a new snapshot.

        Models with unsaved edits keep their buffered values; models that
        disappeared from the snapshot are dropped along with their edits.
        """
        fresh: dict[str, ModelConfig] = {}
        for model in models:
            if model.name in fresh:
                continue
            if model.name in self._touched and model.name in self._models:
                fresh[model.name] = self._models[model.name]
            else:
                fresh[model.name] = model

        lost = self._touched - fresh.keys()
        if lost:
            logger.warning("unsaved_model_edits_dropped", models=sorted(lost))
        self._touched &= fresh.keys()
        self._models = fresh
