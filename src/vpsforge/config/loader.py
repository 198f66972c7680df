# src/vpsforge/config/loader.py

import os
from pathlib import Path
from typing import Any, Dict

import yaml


def load_answers(path: str | Path) -> Dict[str, Any]:
    """
    Read a YAML answers file. Values are left unvalidated: the caller merges
    them with prompted answers and validates the result as a whole.
    """
    raw = Path(path).read_text()

    # expand environment variables like ${DB_PASSWORD}
    expanded = os.path.expandvars(raw)

    data = yaml.safe_load(expanded) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of answers, got {type(data).__name__}")
    return {str(k): ("" if v is None else str(v)) for k, v in data.items()}
