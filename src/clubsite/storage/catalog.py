"""Whole-file JSON catalog storage.

Catalogs are small (tens to low hundreds of records), so each sync reads the
entire file, computes a replacement and overwrites it in one step.  Writes go
to a sibling temp file that is then ``os.replace``-d over the target, so a
reader never sees a half-written catalog.

Layout under ``data_dir``::

    data_dir/
      events.json       {"lastSyncedAt": "...", "events": [...]}
      resources.json    {"lastUpdated": "...", "resources": [...]}
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from clubsite.errors import CatalogError
from clubsite.models import EventCatalog, ResourceCatalog

logger = logging.getLogger(__name__)

EVENTS_FILENAME = "events.json"
RESOURCES_FILENAME = "resources.json"


class JsonCatalogStore:
    """Filesystem-backed store for the event and resource catalogs.

    Args:
        data_dir: Directory holding ``events.json`` and ``resources.json``
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    @property
    def events_path(self) -> Path:
        return self.data_dir / EVENTS_FILENAME

    @property
    def resources_path(self) -> Path:
        return self.data_dir / RESOURCES_FILENAME

    async def load_events(self) -> EventCatalog:
        """Read the event catalog.

        A missing file yields an empty catalog.  A bare JSON array (the
        original file format) is read as ``{"events": [...]}``.

        Raises:
            CatalogError: If the file exists but is not a valid catalog
        """
        raw = self._read_json(self.events_path)
        if raw is None:
            logger.info("No events catalog at %s; starting empty", self.events_path)
            return EventCatalog()
        if isinstance(raw, list):
            raw = {"events": raw}
        return self._validate(EventCatalog, raw, self.events_path)

    async def save_events(self, catalog: EventCatalog) -> None:
        self._write_json(self.events_path, catalog.to_json())

    async def load_resources(self) -> ResourceCatalog:
        """Read the resource catalog; a missing file yields an empty catalog.

        Raises:
            CatalogError: If the file exists but is not a valid catalog
        """
        raw = self._read_json(self.resources_path)
        if raw is None:
            logger.info("No resources catalog at %s; starting empty", self.resources_path)
            return ResourceCatalog()
        return self._validate(ResourceCatalog, raw, self.resources_path)

    async def save_resources(self, catalog: ResourceCatalog) -> None:
        self._write_json(self.resources_path, catalog.to_json())

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise CatalogError(f"Catalog {path.name} is not valid JSON: {exc.msg}") from exc
        except OSError as exc:
            raise CatalogError(f"Catalog {path.name} could not be read: {exc}") from exc

    def _validate[T: (EventCatalog, ResourceCatalog)](
        self, model: type[T], raw: Any, path: Path
    ) -> T:
        if not isinstance(raw, dict):
            raise CatalogError(f"Catalog {path.name} must contain a JSON object")
        try:
            return model.model_validate(raw)
        except ValidationError as exc:
            raise CatalogError(
                f"Catalog {path.name} failed validation ({exc.error_count()} error(s))"
            ) from exc

    def _write_json(self, path: Path, payload: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote catalog %s", path)
