"""Per-change sync metadata stored next to an OpenSpec checklist."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

SIDECAR_FILENAME = ".tasks-sync.json"


class SidecarMeta(BaseModel):
    """Contents of ``.tasks-sync.json``."""

    model_config = ConfigDict(extra="allow")

    github_issue: int | None = None
    created: str | None = None
    last_synced: str | None = None
    local_hash: str | None = None


def sidecar_path(change_dir: Path) -> Path:
    return change_dir / SIDECAR_FILENAME


def load_sidecar(change_dir: Path) -> SidecarMeta | None:
    """Load the sidecar, treating a missing or malformed file as absent."""
    path = sidecar_path(change_dir)
    if not path.exists():
        return None
    try:
        with path.open() as f:
            data = json.load(f)
        return SidecarMeta.model_validate(data)
    except (OSError, ValueError, ValidationError) as e:
        logger.warning("Ignoring malformed sidecar %s: %s", path, e)
        return None


def save_sidecar(change_dir: Path, meta: SidecarMeta) -> None:
    with sidecar_path(change_dir).open("w") as f:
        json.dump(meta.model_dump(exclude_none=True), f, indent=2)
        f.write("\n")


def update_sidecar(change_dir: Path, **updates: Any) -> SidecarMeta:
    """Shallow-merge ``updates`` into the sidecar; ``None`` removes a key."""
    existing = load_sidecar(change_dir)
    data = existing.model_dump(exclude_none=True) if existing else {}
    for key, value in updates.items():
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
    meta = SidecarMeta.model_validate(data)
    save_sidecar(change_dir, meta)
    return meta
