from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Set

import yaml

from .models import InstallRecord, InstallStatus, ProvisioningReport, utc_timestamp

logger = logging.getLogger(__name__)

STATE_VERSION = 1


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"yaml", "yml"}:
        return "yaml"
    # Default to JSON for unknown extensions.
    return "json"


def load_state(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    text = p.read_text(encoding="utf-8")
    if _detect_format(p) == "yaml":
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text) if text.strip() else {}

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")

    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    """Write state via a sibling temp file so a crash never truncates it."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) == "yaml":
        text = yaml.safe_dump(state, sort_keys=False)
    else:
        text = json.dumps(state, indent=2, sort_keys=True) + "\n"

    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    os.replace(tmp, p)


def load_state_or_empty(path: str) -> Dict[str, Any]:
    """Like load_state(), but an unreadable or corrupt file starts a fresh state.

    The run state only lets a rerun skip work; losing it never stops a run.
    """
    try:
        return load_state(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable run state %s: %s", path, e)
        return {}


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    state.setdefault("version", STATE_VERSION)
    for key in ("artifacts", "last_run"):
        if not isinstance(state.get(key), dict):
            state[key] = {}
    return state


def begin_run(state: Dict[str, Any], *, manifest: str, artifact_count: int) -> None:
    state["last_run"] = {
        "manifest": manifest,
        "artifact_count": artifact_count,
        "started": utc_timestamp(),
        "finished": None,
        "report": None,
    }


def record_outcome(state: Dict[str, Any], record: InstallRecord) -> None:
    """Remember the latest outcome per artifact name across runs."""
    state.setdefault("artifacts", {})[record.name] = record.to_dict()


def finish_run(state: Dict[str, Any], report: ProvisioningReport) -> None:
    last = state.setdefault("last_run", {})
    last["finished"] = utc_timestamp()
    last["report"] = report.to_dict()


def completed_artifacts(state: Dict[str, Any]) -> Set[str]:
    """Names whose most recent outcome was a success."""
    done: Set[str] = set()
    artifacts = state.get("artifacts")
    if not isinstance(artifacts, dict):
        return done
    for name, rec in artifacts.items():
        try:
            status = InstallStatus(rec.get("status") if isinstance(rec, dict) else None)
        except ValueError:
            logger.warning("Ignoring unknown status in state for %s: %r", name, rec)
            continue
        if status.succeeded:
            done.add(name)
    return done
