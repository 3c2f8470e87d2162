from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def read_utf8_text(path: str | Path) -> str:
    resolved = Path(path)
    with resolved.open("r", encoding="utf-8") as handle:
        return handle.read()


def parse_yaml_document(raw: str) -> Any:
    payload = yaml.safe_load(raw)
    if payload is None:
        return {}
    return payload


def render_yaml(payload: Any) -> str:
    return yaml.safe_dump(payload, sort_keys=False).rstrip()
