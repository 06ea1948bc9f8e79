"""Cached loaders for bundled seed catalogs."""

# purpose: expose the inspection records written when the shared collection is empty
# status: pilot
# depends_on: json, pathlib

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from ..schemas import InspectionRecord

_BASE_DIR = Path(__file__).resolve().parent


def _load_json(path: Path) -> Any:
    """Return parsed JSON payload from disk."""

    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


@lru_cache(maxsize=None)
def get_seed_inspections() -> tuple[InspectionRecord, ...]:
    """Return the cached seed inspection records."""

    payload = _load_json(_BASE_DIR / "seed_inspections.json")
    return tuple(InspectionRecord.model_validate(item) for item in payload)
