"""
External collaborators used by the built-in nodes.

The engine itself never touches files, workers or 3D viewers. Nodes that
need them reach them through the Services bundle on their NodeContext:

- ModelLoader:     turns a file reference into a model dict
- GeometryViewer:  extracts real geometry and runs geometric clash checks
- QuantityWorker:  off-thread quantity takeoff with message correlation

An IFC element is a plain dict:

    {"id": "...", "expressId": 42, "type": "IFCWALL",
     "properties": {...}, "psets": {...}, "qtos": {...}, "geometry": {...}}
"""

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from ifcflow.config import RuntimeConfig

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str | None], None]


@runtime_checkable
class ModelLoader(Protocol):
    async def load(self, file: Any, on_progress: ProgressCallback | None = None) -> Any: ...


@runtime_checkable
class GeometryViewer(Protocol):
    def is_ready(self) -> bool: ...

    async def extract_geometry(
        self,
        model: dict[str, Any],
        filters: dict[str, Any],
        on_progress: ProgressCallback | None = None,
    ) -> list[dict[str, Any]]: ...

    def detect_clashes(
        self, ids_a: list[int], ids_b: list[int], tolerance: float
    ) -> dict[str, Any]: ...


@runtime_checkable
class QuantityWorker(Protocol):
    async def extract(
        self,
        model: Any,
        quantity_type: str,
        group_by: str,
        on_message_id: Callable[[str], None] | None = None,
    ) -> dict[str, Any]: ...


@dataclass
class Services:
    """Collaborators and settings shared by every node of a run."""

    loader: ModelLoader | None = None
    viewer: GeometryViewer | None = None
    quantity_worker: QuantityWorker | None = None
    config: RuntimeConfig = field(default_factory=RuntimeConfig)
    last_loaded_model: dict[str, Any] | None = None

    def remember_model(self, model: dict[str, Any]) -> None:
        self.last_loaded_model = model


class JsonModelLoader:
    """
    Load a model that was already extracted to JSON.

    The document is either a model object with an ``elements`` list or a
    bare list of elements. ``file`` may be a path or a dict with a
    ``path`` (and optional ``name``) key.
    """

    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir) if base_dir else None

    def _resolve(self, file: Any) -> Path:
        raw = file.get("path") if isinstance(file, dict) else file
        if not raw:
            raise ValueError(f"Unsupported file reference: {file!r}")
        path = Path(raw)
        if self.base_dir is not None and not path.is_absolute():
            path = self.base_dir / path
        return path

    async def load(self, file: Any, on_progress: ProgressCallback | None = None) -> Any:
        path = self._resolve(file)
        if on_progress:
            on_progress(10, f"Reading {path.name}")

        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        document = json.loads(text)

        if isinstance(document, list):
            model: dict[str, Any] = {
                "id": f"model-{path.stem}",
                "name": path.name,
                "elements": document,
            }
        else:
            model = dict(document)
            model.setdefault("id", f"model-{path.stem}")
            model.setdefault("name", path.name)
        model.setdefault("file", str(path))

        count = len(model.get("elements") or [])
        logger.info(f"✓ Loaded {count} elements from {path}")
        if on_progress:
            on_progress(100, f"Loaded {count} elements")
        return model
