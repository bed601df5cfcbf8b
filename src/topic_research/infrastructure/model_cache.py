"""Cached provider model selections.

Picking a model means listing the provider's models, which costs a request per run.
The choice is kept in `<cache_dir>/model_selection.json` for a week.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from ..types import JsonValue
from .cache import DiskCache

MODEL_CACHE_KEY = "model_selection"
MODEL_CACHE_TTL_HOURS = 7 * 24.0


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ModelSelectionCache:
    """Provider -> model id mapping stored through the disk cache."""

    cache: DiskCache
    ttl_hours: float = MODEL_CACHE_TTL_HOURS

    def load(self) -> dict[str, str]:
        hit = self.cache.read(MODEL_CACHE_KEY, self.ttl_hours)
        if hit is None or not isinstance(hit.payload, dict):
            return {}
        return {key: value for key, value in hit.payload.items() if isinstance(value, str)}

    def get(self, provider: str) -> str | None:
        return self.load().get(provider)

    def set(self, provider: str, model: str) -> bool:
        """Record a provider's model. Returns False if it could not be persisted."""
        selections: dict[str, JsonValue] = dict(self.load())
        selections[provider] = model
        selections["updated_at"] = _utc_now().isoformat()
        return self.cache.write(MODEL_CACHE_KEY, selections)
