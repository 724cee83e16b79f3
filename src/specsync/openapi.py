from __future__ import annotations

import json
from typing import Any

from .client import SpecsyncError

_QUOTES = "'\""


class VersionNotFoundError(SpecsyncError):
    pass


def _scan_info_version(content: str) -> str | None:
    """
    Shallow, indentation-based scan for ``info.version`` in a YAML document.
    Not a YAML parser: it only understands a top-level ``info:`` block.
    """
    in_info = False
    for line in content.splitlines():
        stripped = line.strip()
        if not in_info:
            if stripped == "info:":
                in_info = True
            continue

        if stripped and not line.startswith((" ", "\t")) and not stripped.startswith("#"):
            # Next top-level key: the info block is over.
            return None

        if stripped.startswith("version:"):
            parts = stripped.split(":")
            if len(parts) >= 2:
                return parts[1].strip().strip(_QUOTES)
    return None


def _json_info_version(content: str) -> str | None:
    try:
        raw: Any = json.loads(content)
    except json.JSONDecodeError:
        return None
    info = raw.get("info") if isinstance(raw, dict) else None
    version = info.get("version") if isinstance(info, dict) else None
    if isinstance(version, (str, int, float)) and not isinstance(version, bool):
        return str(version).strip()
    return None


def extract_api_version(content: str) -> str:
    version = None
    if content.lstrip().startswith("{"):
        version = _json_info_version(content)
    if version is None:
        version = _scan_info_version(content)
    if not version:
        raise VersionNotFoundError("version not found in info section")
    return version


def version_from_tag(tag: str) -> str:
    return tag[1:] if tag.startswith("v") else tag


def resolve_api_version(content: str, tag: str) -> tuple[str, bool]:
    """Returns (version, from_content); falls back to the tag without its ``v`` prefix."""
    try:
        return extract_api_version(content), True
    except VersionNotFoundError:
        return version_from_tag(tag), False
