"""Run record persistence.

The record is written once per run, whether it succeeded or not, so the operator
can see how far provisioning got. It never contains the passphrase.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def _yaml():
    try:
        import yaml  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise RuntimeError("YAML run record requested but PyYAML is not available. Use a .json path.") from e
    return yaml


def save_record(path: str, record: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) in {"yaml", "yml"}:
        p.write_text(_yaml().safe_dump(record, sort_keys=False) + "\n", encoding="utf-8")
    else:
        p.write_text(json.dumps(record, indent=2, sort_keys=True) + "\n", encoding="utf-8")

    logger.info("Run record written to %s", p)
