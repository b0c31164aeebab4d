"""Inventory file I/O: load, reconcile, write ``<basename>-trimmed.json``.

Malformed input is fatal and raises ValueError before anything is
written; the output document is fully serialized first, so a failed run
never leaves a partial file behind.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from edgar_trim.checks import run_checks
from edgar_trim.config import Settings, get_config
from edgar_trim.models import FactsInventory, TrimmedInventory
from edgar_trim.reconcile import reconcile

log = logging.getLogger(__name__)

_REQUIRED_KEYS = ("ticker", "factsIndex")


def load_inventory(path: str | Path) -> FactsInventory:
    """Parse and validate one inventory JSON file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path}: not valid JSON ({exc})") from exc

    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object at the top level")
    missing = [k for k in _REQUIRED_KEYS if k not in data]
    if missing:
        raise ValueError(f"{path}: missing required key(s): {', '.join(missing)}")

    try:
        return FactsInventory.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"{path}: invalid inventory: {exc}") from exc


def output_path(path: str | Path, suffix: str = "-trimmed.json") -> Path:
    """``AAPL.json`` → ``AAPL-trimmed.json`` (suffix appended for other names)."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        return path.with_name(path.stem + suffix)
    return path.with_name(path.name + suffix)


def dump_inventory(result: TrimmedInventory) -> str:
    """Serialize deterministically (camelCase sections, ISO dates)."""
    payload = result.model_dump(mode="json", by_alias=True)
    return json.dumps(payload, indent=2) + "\n"


def trim_file(path: str | Path, settings: Settings | None = None) -> Path:
    """Reconcile one inventory file and write the trimmed output next to it.

    Returns the output path.
    """
    settings = settings or get_config()
    path = Path(path).resolve()

    inventory = load_inventory(path)
    result = reconcile(inventory, fiscal_year_end=settings.fiscal_year_end)
    run_checks(result)

    document = dump_inventory(result)
    out = output_path(path, settings.output_suffix)
    out.write_text(document, encoding="utf-8")
    log.info("Wrote %d frame(s) for %s to %s", len(result.frames), result.ticker, out)
    return out
