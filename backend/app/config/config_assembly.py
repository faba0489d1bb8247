# File: backend/app/config/config_assembly.py
# Version: v0.1.0
"""
Assembly (Golden Gate optimizer) parameters loader/saver.

- Defaults: backend/app/config/assembly_param_default.json
- Current:  assembly_param.json in config_dir() (same directory rules as primers)
- Validated with AssemblyParameters (camelCase keys, see OptimizerOptions)
"""

from __future__ import annotations

import logging
from typing import Tuple

from backend.app.config.config_primers import DEFAULTS_DIR, atomic_write_json, config_dir, read_json
from backend.app.core.assembly.optimizer import OptimizerOptions

logger = logging.getLogger(__name__)

DEFAULT_FILE = DEFAULTS_DIR / "assembly_param_default.json"
CURRENT_NAME = "assembly_param.json"


class AssemblyParameters(OptimizerOptions):
    """Stored optimizer defaults; a request may override any field."""

    def to_options(self, **overrides) -> OptimizerOptions:
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return OptimizerOptions.model_validate(data)


def load_default_assembly_params() -> AssemblyParameters:
    return AssemblyParameters.model_validate(read_json(DEFAULT_FILE))


def load_current_assembly_params(fallback_to_default: bool = True) -> AssemblyParameters:
    payload = read_json(config_dir() / CURRENT_NAME)
    if not payload and fallback_to_default:
        return load_default_assembly_params()
    return AssemblyParameters.model_validate(payload)


def save_current_assembly_params(params: AssemblyParameters) -> None:
    path = config_dir() / CURRENT_NAME
    atomic_write_json(path, params.model_dump(by_alias=True))
    logger.info("Saved assembly parameters to %s", path)


def ensure_current_assembly_exists() -> Tuple[bool, AssemblyParameters]:
    if (config_dir() / CURRENT_NAME).exists():
        return False, load_current_assembly_params()
    defaults = load_default_assembly_params()
    save_current_assembly_params(defaults)
    return True, defaults
