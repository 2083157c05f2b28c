"""Editor package containing the tab model, registry and engine contracts."""

from importlib import import_module
from typing import Any

from . import document_model, workspace

__all__ = ["document_model", "workspace"]


def __getattr__(name: str) -> Any:
	if name in {"engine", "tab_drag"}:
		module = import_module(f"{__name__}.{name}")
		globals()[name] = module
		return module
	raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
