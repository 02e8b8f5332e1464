"""Catalog seeding: load scheme definitions from the bundled JSON file.

Loads ``schemes/catalog.json`` (or a custom path) into validated
:class:`SchemeDocument` instances.  Designed to run once at application
startup to populate the in-process scheme catalog.
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import ValidationError

from yojana.models.scheme import SchemeDocument

logger = structlog.get_logger(__name__)

_DATA_DIR: Path = Path(__file__).resolve().parent / "schemes"
_CATALOG_PATH: Path = _DATA_DIR / "catalog.json"


def load_schemes(path: Path | None = None) -> list[SchemeDocument]:
    """Load scheme definitions from a JSON file.

    Entries that fail validation are logged and skipped so that one bad
    record does not take the whole catalog down.

    Raises
    ------
    FileNotFoundError
        If the JSON file does not exist.
    json.JSONDecodeError
        If the JSON is malformed.
    """
    file_path = path or _CATALOG_PATH

    if not file_path.exists():
        raise FileNotFoundError(f"Scheme catalog not found: {file_path}")

    with file_path.open("r", encoding="utf-8") as f:
        raw_schemes: list[dict] = json.load(f)

    schemes: list[SchemeDocument] = []
    seen: set[str] = set()
    for raw in raw_schemes:
        try:
            scheme = SchemeDocument.model_validate(raw)
        except ValidationError:
            logger.warning(
                "seed.parse_error",
                scheme_id=raw.get("scheme_id", "unknown"),
                exc_info=True,
            )
            continue
        if scheme.scheme_id in seen:
            logger.warning("seed.duplicate_scheme", scheme_id=scheme.scheme_id)
            continue
        seen.add(scheme.scheme_id)
        schemes.append(scheme)

    logger.info("seed.loaded_schemes", count=len(schemes), source=str(file_path))
    return schemes
