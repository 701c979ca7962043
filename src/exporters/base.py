from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from domain.schemas import Transaction

EXPORT_HEADERS = ["ID", "Date", "Description", "Category", "Type", "Amount", "Currency", "Notes"]


class ExportError(RuntimeError):
    pass


@dataclass(frozen=True)
class ExporterSpec:
    name: str
    description: str
    media_type: str
    filename: str


class Exporter(ABC):
    name: str
    description: str = ""
    media_type: str = "application/octet-stream"
    filename: str = "transactions"

    @abstractmethod
    def export(self, transactions: Sequence[Transaction]) -> bytes:
        raise NotImplementedError

    def spec(self) -> ExporterSpec:
        return ExporterSpec(
            name=self.name,
            description=self.description,
            media_type=self.media_type,
            filename=self.filename,
        )


def require_rows(transactions: Sequence[Transaction]) -> None:
    if not transactions:
        raise ExportError("No transactions to export.")
