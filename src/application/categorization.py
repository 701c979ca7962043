from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Literal, Protocol

from domain.catalog import FALLBACK_CATEGORY
from domain.schemas import CategoryOverride
from infrastructure.llm.llm_client import LLMClient
from llm.categorizer_llm import CategorizerLLM

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 4


class Categorizer(Protocol):
    def categorize(self, description: str) -> str: ...


@dataclass(frozen=True)
class CategorySuggestion:
    category: str
    source: Literal["override", "model", "default"]


def find_override(overrides: Iterable[CategoryOverride], description: str) -> CategoryOverride | None:
    key = description.strip().lower()
    for override in overrides:
        if override.description.strip().lower() == key:
            return override
    return None


def record_override(
    overrides: list[CategoryOverride],
    description: str,
    chosen: str,
    suggested: str | None,
    confirmed: bool,
) -> list[CategoryOverride]:
    """
    Return the override list after the user confirmed a category other than the
    suggested one. Entries are keyed by lower-cased description.
    """
    if not confirmed or not suggested or chosen == suggested:
        return overrides

    entry = CategoryOverride(description=description.strip(), category=chosen)
    key = entry.description.lower()
    updated = list(overrides)
    for idx, existing in enumerate(updated):
        if existing.description.strip().lower() == key:
            updated[idx] = entry
            break
    else:
        updated.append(entry)
    logger.info("Category override recorded category=%s overrides=%d", chosen, len(updated))
    return updated


class CategorizationService:
    """Local override map first; the categorizer is only called on a miss."""

    def __init__(self, categorizer: Categorizer | None = None):
        self._categorizer = categorizer or CategorizerLLM(LLMClient())

    def suggest(self, description: str, overrides: Iterable[CategoryOverride]) -> CategorySuggestion:
        text = description.strip()
        if len(text) < MIN_DESCRIPTION_LENGTH:
            return CategorySuggestion(category=FALLBACK_CATEGORY, source="default")

        override = find_override(overrides, text)
        if override is not None:
            logger.info("CategorizationService override hit category=%s", override.category)
            return CategorySuggestion(category=override.category, source="override")

        try:
            category = self._categorizer.categorize(text)
        except Exception:
            logger.exception("CategorizationService categorizer failed; using fallback category")
            return CategorySuggestion(category=FALLBACK_CATEGORY, source="default")
        return CategorySuggestion(category=category or FALLBACK_CATEGORY, source="model")
