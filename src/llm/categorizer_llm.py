from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Protocol

from pydantic import BaseModel, ValidationError

from domain.catalog import DEFAULT_CATEGORIES, FALLBACK_CATEGORY

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    def complete(self, prompt: str, json_mode: bool = False) -> str: ...


class CategoryReply(BaseModel):
    category: str = ""


class CategorizerLLM:
    """Builds categorization prompts and parses strict JSON `{"category": ...}` replies."""

    def __init__(
        self,
        llm_client: CompletionClient,
        categories: List[str] | None = None,
        fallback: str = FALLBACK_CATEGORY,
    ):
        self._llm = llm_client
        self._categories = list(categories or DEFAULT_CATEGORIES)
        self._fallback = fallback

    @property
    def categories(self) -> List[str]:
        return list(self._categories)

    def build_prompt(self, description: str) -> str:
        prompt_payload: Dict[str, Any] = {
            "task": "Categorize the transaction description into exactly one of the allowed categories.",
            "description": description,
            "allowed_categories": self._categories,
            "output_contract": CategoryReply.model_json_schema(),
            "rules": [
                "Return JSON only.",
                f"If none fit well, use '{self._fallback}'.",
                "Respond with the category name exactly as listed.",
            ],
        }
        return json.dumps(prompt_payload, indent=2)

    def categorize(self, description: str) -> str:
        logger.info("CategorizerLLM categorize start description_chars=%d", len(description))
        raw = self._llm.complete(self.build_prompt(description), json_mode=True).strip()
        if not raw:
            logger.info("CategorizerLLM empty response; using fallback category")
            return self._fallback

        try:
            reply = CategoryReply.model_validate_json(raw)
        except ValidationError:
            logger.info("CategorizerLLM invalid JSON; using fallback category")
            return self._fallback

        return self._match_category(reply.category)

    def _match_category(self, candidate: str) -> str:
        wanted = candidate.strip().lower()
        for category in self._categories:
            if category.lower() == wanted:
                logger.info("CategorizerLLM accepted category=%s", category)
                return category
        logger.info("CategorizerLLM category %r not allowed; using fallback category", candidate)
        return self._fallback
