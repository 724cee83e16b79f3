from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .client import SpecsyncError
from .registry import TrackedEntry

SPEC_FILENAME = "openapi.yaml"
METADATA_FILENAME = ".metadata.json"


class LayoutError(SpecsyncError):
    pass


class MetadataWriteError(LayoutError):
    pass


@dataclass(frozen=True)
class LayoutPlan:
    directory: Path
    spec_file: Path
    metadata_file: Path


def is_safe_segment(value: str) -> bool:
    if not value or value in {".", ".."}:
        return False
    return "/" not in value and "\\" not in value and "\x00" not in value


def plan_layout(root: str | Path, entry: TrackedEntry, version: str) -> LayoutPlan:
    if not is_safe_segment(version):
        raise LayoutError(f"{entry.key}: version {version!r} cannot be used as a directory name")
    directory = Path(root).joinpath(*entry.key_segments, version)
    return LayoutPlan(
        directory=directory,
        spec_file=directory / SPEC_FILENAME,
        metadata_file=directory / METADATA_FILENAME,
    )


def build_metadata(entry: TrackedEntry, version: str) -> dict[str, Any] | None:
    presentation = entry.presentation
    if presentation is None:
        return None
    return {
        "name": entry.name,
        "baseUrl": presentation.base_url,
        "docsUrl": presentation.docs_url,
        "description": presentation.description,
        "tags": list(presentation.tags),
        "version": version,
    }


def save_artifact(plan: LayoutPlan, content: str, metadata: dict[str, Any] | None = None) -> None:
    """
    Writes the spec, then the sidecar. Re-running with the same plan overwrites
    both files. A sidecar failure leaves the spec file in place.
    """
    try:
        plan.directory.mkdir(parents=True, exist_ok=True)
        plan.spec_file.write_text(content, encoding="utf-8")
    except OSError as e:
        raise LayoutError(f"Cannot write {plan.spec_file}: {e}") from e

    if metadata is None:
        return
    try:
        plan.metadata_file.write_text(json.dumps(metadata, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    except OSError as e:
        raise MetadataWriteError(f"Cannot write {plan.metadata_file}: {e}") from e
