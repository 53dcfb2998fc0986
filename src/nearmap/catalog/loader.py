"""
Provider catalog loader.

The catalog is owned by an external collaborator; locally it can be a JSON file
(default: `data/catalogs/providers.json`) holding a list of provider rows, or an
`{id: {...}}` mapping. Rows are validated one by one into `LocatableEntity`:
a row that cannot form an entity at all (not a mapping, no id) is skipped with a
warning, and messy coordinate fields are kept raw for the resolver to judge.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from nearmap.core.env import resolve_project_path
from nearmap.domain.models import LocatableEntity

logger = logging.getLogger(__name__)


def parse_entities(rows: Iterable[Any]) -> list[LocatableEntity]:
    """Validate catalog rows in order; existing entities pass through."""
    out: list[LocatableEntity] = []
    for i, row in enumerate(rows):
        if isinstance(row, LocatableEntity):
            out.append(row)
            continue
        if not isinstance(row, dict):
            logger.warning("Skipping catalog row %s: expected an object, got %s", i, type(row).__name__)
            continue
        try:
            out.append(LocatableEntity.model_validate(row))
        except ValidationError as exc:
            logger.warning("Skipping catalog row %s: %s", i, exc.errors()[0].get("msg", str(exc)))
    return out


def _rows_from_payload(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if isinstance(payload.get("entities"), list):
            return payload["entities"]
        # Allow {id: {...}} shape.
        return [{"id": k, **v} for k, v in payload.items() if isinstance(v, dict)]
    raise ValueError("Catalog JSON must be a list of rows or a mapping of id -> row.")


def load_entities(path: str | Path) -> list[LocatableEntity]:
    """Load a provider catalog JSON file."""
    resolved = resolve_project_path(path, must_exist=True)
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    return parse_entities(_rows_from_payload(payload))
