# File: backend/app/config/config_primers.py
# Version: v0.3.0
"""
Primer parameters configuration loader/saver.

- Reads defaults from: backend/app/config/primers_param_default.json
- Reads/writes current from: backend/app/config/primers_param.json
- Validates payloads with PrimerDesignParameters (Pydantic) from core/primer/parameters.py

The JSON schema uses camelCase keys, for example:

  {
    "primerLengthMin": 18,
    "primerLengthMax": 28,
    "primerTmMin": 55.0,
    "primerTmMax": 65.0,
    "targetTm": null,
    "tmTolerance": 5.0,
    "primerGCMin": 30.0,
    "primerGCMax": 70.0,
    "primerHomopolymerMax": 4,
    "primerTmDifferenceMax": 5.0,
    "templateExact": true,
    "preset": "amplification",
    "parameterSet": "santalucia2004"
  }

The directory can be redirected with OLIGOFORGE_CONFIG_DIR (tests use a temp dir).
Writes are atomic (tmp + replace) to avoid partial/dirty files.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Tuple

from backend.app.core.primer.parameters import PrimerDesignParameters

logger = logging.getLogger(__name__)

_THIS_DIR = Path(__file__).resolve().parent
DEFAULTS_DIR = _THIS_DIR
DEFAULT_FILE = DEFAULTS_DIR / "primers_param_default.json"
CURRENT_NAME = "primers_param.json"


def config_dir() -> Path:
    """Directory holding the editable (current) parameter files."""
    override = os.getenv("OLIGOFORGE_CONFIG_DIR")
    return Path(override) if override else _THIS_DIR


def read_json(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def atomic_write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    os.replace(tmp, path)


def load_default_params() -> PrimerDesignParameters:
    """Load default primer design parameters from primers_param_default.json."""
    return PrimerDesignParameters.model_validate(read_json(DEFAULT_FILE))


def load_current_params(fallback_to_default: bool = True) -> PrimerDesignParameters:
    """
    Load current (editable) primer design parameters.
    If the file is missing and fallback is True, return defaults.
    """
    payload = read_json(config_dir() / CURRENT_NAME)
    if not payload and fallback_to_default:
        return load_default_params()
    return PrimerDesignParameters.model_validate(payload)


def save_current_params(params: PrimerDesignParameters) -> None:
    """Persist current parameters to primers_param.json (atomic write)."""
    path = config_dir() / CURRENT_NAME
    atomic_write_json(path, params.model_dump())
    logger.info("Saved primer parameters to %s", path)


def ensure_current_exists() -> Tuple[bool, PrimerDesignParameters]:
    """
    Ensure primers_param.json exists; if not, initialize from defaults.
    Returns (created, params).
    """
    if (config_dir() / CURRENT_NAME).exists():
        return False, load_current_params()
    defaults = load_default_params()
    save_current_params(defaults)
    return True, defaults
