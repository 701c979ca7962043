from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass
from typing import List, Protocol

from domain.models import SummaryData
from domain.schemas import Budget
from infrastructure.llm.llm_client import LLMClient
from llm.insights_llm import FALLBACK_INSIGHTS, InsightsLLM

logger = logging.getLogger(__name__)


class InsightGenerator(Protocol):
    def generate(self, summary: SummaryData, budgets: List[Budget], currency_code: str) -> str: ...


@dataclass(frozen=True)
class InsightResult:
    text: str
    sequence: int


class InsightService:
    """
    Wraps an InsightGenerator. Each request gets a sequence number; a reply
    whose sequence is older than the latest request is stale and can be
    dropped with `is_current`.
    """

    def __init__(self, generator: InsightGenerator | None = None):
        self._generator = generator or InsightsLLM(LLMClient())
        self._counter = itertools.count(1)
        self._latest = 0

    def request(self, summary: SummaryData, budgets: List[Budget], currency_code: str) -> InsightResult:
        sequence = next(self._counter)
        self._latest = sequence
        t = time.perf_counter()
        try:
            text = self._generator.generate(summary, budgets, currency_code)
        except Exception:
            logger.exception("InsightService generator failed sequence=%d; using fallback message", sequence)
            text = FALLBACK_INSIGHTS
        logger.info("InsightService reply sequence=%d in %.2fs", sequence, time.perf_counter() - t)
        return InsightResult(text=text or FALLBACK_INSIGHTS, sequence=sequence)

    def is_current(self, result: InsightResult) -> bool:
        return result.sequence == self._latest
