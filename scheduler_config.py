"""Engine settings shared by the assigner, validator and swap advisor.

Callers start from ``DEFAULT_CONFIG`` and pass a (possibly nested) overrides
dict to :func:`build_config`; the scripts accept the same overrides as a JSON
file through ``--config``.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent

DEFAULT_CONFIG = {
    # Sweep order used by the engine: every program × every session.
    "PROGRAMS": ["Primary", "Secondary"],
    "SESSIONS": ["AM", "PM"],

    # Direct-service roles that may cover 2:1 / 1:2 groups but not a solo 1:1.
    "GROUP_ONLY_ROLES": [],

    # Validator: warn when max - min daily load across available
    # direct-service staff exceeds this many sessions.
    "LOAD_SPREAD_WARN": 1,

    # Swap advisor: free staff in SWAP_FROM_ROLES by handing their client to
    # an unassigned SWAP_TO_ROLES member with one of SWAP_STATUSES.
    "SWAP_FROM_ROLES": ["BS"],
    "SWAP_TO_ROLES": ["RBT"],
    "SWAP_STATUSES": ["solo", "trainer"],
}

_KNOWN_ROLES = {"RBT", "BS", "BCBA", "EA", "MHA", "CC", "Trainer", "Teacher", "Director"}
_KNOWN_SESSIONS = {"AM", "PM"}
_KNOWN_PROGRAMS = {"Primary", "Secondary"}
_KNOWN_STATUSES = {"trainer", "overlap-staff", "overlap-bcba", "certified", "solo"}


def deep_update(dst: dict, src: dict) -> dict:
    """Recursively merge ``src`` into ``dst`` (in-place)."""

    for key, value in (src or {}).items():
        if isinstance(value, dict) and isinstance(dst.get(key), dict):
            deep_update(dst[key], value)
        else:
            dst[key] = copy.deepcopy(value)
    return dst


def _check_members(cfg: dict, key: str, known: set) -> None:
    unknown = [v for v in cfg.get(key) or [] if v not in known]
    if unknown:
        raise ValueError(f"{key} has unknown entries: {', '.join(map(str, unknown))}")


def _validate(cfg: dict) -> None:
    _check_members(cfg, "PROGRAMS", _KNOWN_PROGRAMS)
    _check_members(cfg, "SESSIONS", _KNOWN_SESSIONS)
    _check_members(cfg, "GROUP_ONLY_ROLES", _KNOWN_ROLES)
    _check_members(cfg, "SWAP_FROM_ROLES", _KNOWN_ROLES)
    _check_members(cfg, "SWAP_TO_ROLES", _KNOWN_ROLES)
    _check_members(cfg, "SWAP_STATUSES", _KNOWN_STATUSES)
    if not cfg.get("PROGRAMS") or not cfg.get("SESSIONS"):
        raise ValueError("PROGRAMS and SESSIONS must not be empty")
    spread = cfg.get("LOAD_SPREAD_WARN")
    if not isinstance(spread, int) or spread < 0:
        raise ValueError("LOAD_SPREAD_WARN must be a non-negative integer")


def build_config(overrides: dict | None = None) -> dict:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if overrides:
        deep_update(cfg, overrides)
    _validate(cfg)
    return cfg


def resolve_data_path(path: Path) -> Path:
    """Locate a data file relative to CWD or the script directory."""

    if path.exists():
        return path
    if not path.is_absolute():
        alt = SCRIPT_DIR / path
        if alt.exists():
            return alt
    return path


def load_config_file(path: Path | None) -> dict:
    """Read a JSON overrides file (``--config``) and return the merged config."""
    if path is None:
        return build_config()
    cfg_path = resolve_data_path(Path(path))
    overrides = json.loads(cfg_path.read_text(encoding="utf-8"))
    return build_config(overrides)
