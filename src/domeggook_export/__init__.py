"""Domeggook export package namespace."""

from importlib import import_module
from typing import Any

__all__ = [
    "ExportConfig",
    "load_config",
    "OriginClassifier",
    "TemplateRenderer",
    "AssetAcquirer",
    "IngestionPipeline",
    "ExportComposer",
    "RunController",
    "RunStore",
    "PlaywrightExtractor",
]


def __getattr__(name: str) -> Any:
    if name in ("ExportConfig", "load_config"):
        module = import_module("src.domeggook_export.config")
        return getattr(module, name)
    elif name == "OriginClassifier":
        module = import_module("src.domeggook_export.origin")
        return getattr(module, name)
    elif name == "TemplateRenderer":
        module = import_module("src.domeggook_export.templating")
        return getattr(module, name)
    elif name == "AssetAcquirer":
        module = import_module("src.domeggook_export.assets")
        return getattr(module, name)
    elif name == "IngestionPipeline":
        module = import_module("src.domeggook_export.pipeline")
        return getattr(module, name)
    elif name == "ExportComposer":
        module = import_module("src.domeggook_export.export")
        return getattr(module, name)
    elif name == "RunController":
        module = import_module("src.domeggook_export.runner")
        return getattr(module, name)
    elif name == "RunStore":
        module = import_module("src.domeggook_export.run_store")
        return getattr(module, name)
    elif name == "PlaywrightExtractor":
        module = import_module("src.domeggook_export.extraction")
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(__all__)
