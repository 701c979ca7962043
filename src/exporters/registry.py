from __future__ import annotations

from exporters.base import Exporter, ExporterSpec


class ExporterRegistry:
    def __init__(self):
        self._exporters: dict[str, Exporter] = {}

    def register(self, exporter: Exporter) -> None:
        self._exporters[exporter.name] = exporter

    def get(self, name: str) -> Exporter:
        if name not in self._exporters:
            raise KeyError(f"Exporter not registered: {name}")
        return self._exporters[name]

    def names(self) -> list[str]:
        return sorted(self._exporters)

    def list_specs(self) -> list[ExporterSpec]:
        return [exporter.spec() for exporter in self._exporters.values()]

    def clear(self) -> None:
        self._exporters.clear()


registry = ExporterRegistry()


def register_exporter(exporter_cls: type[Exporter]) -> type[Exporter]:
    registry.register(exporter_cls())
    return exporter_cls


def load_builtin_exporters() -> ExporterRegistry:
    """Import the bundled exporter modules so their decorators register them."""
    import exporters.csv_export  # noqa: F401
    import exporters.pdf_export  # noqa: F401

    return registry
