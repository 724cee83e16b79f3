from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .client import SpecsyncError

ENTRY_LIST_KEYS = ("entries", "apis", "repositories")


class RegistryError(SpecsyncError):
    pass


@dataclass(frozen=True)
class Presentation:
    base_url: str | None = None
    docs_url: str | None = None
    description: str | None = None
    tags: tuple[str, ...] = ()


# (canonical camelCase key, accepted snake_case alias)
_FIELD_ALIASES = {
    "last_version": ("lastVersion", "last_version"),
    "spec_path": ("specPath", "spec_path"),
    "asset_name": ("assetName", "asset_name"),
    "base_url": ("baseUrl", "base_url"),
    "docs_url": ("docsUrl", "docs_url"),
}


def _pick(raw: dict[str, Any], name: str) -> Any:
    for key in _FIELD_ALIASES.get(name, (name,)):
        if key in raw:
            return raw[key]
    return None


def _opt_str(raw: dict[str, Any], name: str) -> str | None:
    value = _pick(raw, name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise RegistryError(f"Field {name!r} must be a string, got {type(value).__name__}.")
    value = value.strip()
    return value or None


def _segment(raw: dict[str, Any], name: str, *, where: str) -> str:
    value = _opt_str(raw, name)
    if not value:
        raise RegistryError(f"{where}: missing required field {name!r}.")
    if value in {".", ".."} or "/" in value or "\\" in value:
        raise RegistryError(f"{where}: field {name!r} must be a single path segment, got {value!r}.")
    return value


@dataclass
class TrackedEntry:
    """
    One registry row. Only ``last_version`` changes during a pass; everything else,
    including keys this class does not know about, is written back untouched.
    """

    owner: str
    repo: str
    name: str
    last_version: str
    spec_path: str | None = None
    asset_name: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def key_segments(self) -> tuple[str, ...]:
        raise NotImplementedError

    @property
    def key(self) -> str:
        return "/".join(self.key_segments)

    @property
    def presentation(self) -> Presentation | None:
        return None

    def snapshot(self) -> "TrackedEntry":
        return copy.deepcopy(self)

    def to_record(self) -> dict[str, Any]:
        record = dict(self.raw)
        # An untouched entry keeps its stored spelling, including null or padded values.
        if self.last_version == (_opt_str(self.raw, "last_version") or ""):
            return record
        for key in _FIELD_ALIASES["last_version"]:
            if key in record:
                record[key] = self.last_version
                break
        else:
            if self.last_version:
                record["lastVersion"] = self.last_version
        return record


@dataclass
class RepoEntry(TrackedEntry):
    """Flat schema: keyed by the upstream ``owner`` + ``repo``."""

    @property
    def key_segments(self) -> tuple[str, ...]:
        return (self.owner, self.repo)


@dataclass
class ApiEntry(TrackedEntry):
    """Vendor/API schema with presentation metadata for the sidecar."""

    vendor: str = ""
    api: str = ""
    base_url: str | None = None
    docs_url: str | None = None
    description: str | None = None
    tags: tuple[str, ...] = ()

    @property
    def key_segments(self) -> tuple[str, ...]:
        return (self.vendor, self.api)

    @property
    def presentation(self) -> Presentation | None:
        return Presentation(
            base_url=self.base_url,
            docs_url=self.docs_url,
            description=self.description,
            tags=self.tags,
        )


def _parse_tags(raw: dict[str, Any], *, where: str) -> tuple[str, ...]:
    value = raw.get("tags")
    if value is None:
        return ()
    if not isinstance(value, list) or any(not isinstance(t, str) for t in value):
        raise RegistryError(f"{where}: 'tags' must be a list of strings.")
    return tuple(value)


def parse_entry(raw: Any, *, index: int = 0) -> TrackedEntry:
    where = f"registry entry #{index}"
    if not isinstance(raw, dict):
        raise RegistryError(f"{where}: expected an object, got {type(raw).__name__}.")

    common: dict[str, Any] = {
        "owner": _segment(raw, "owner", where=where),
        "repo": _segment(raw, "repo", where=where),
        "last_version": _opt_str(raw, "last_version") or "",
        "spec_path": _opt_str(raw, "spec_path"),
        "asset_name": _opt_str(raw, "asset_name"),
        "raw": dict(raw),
    }

    if "vendor" in raw or "api" in raw:
        vendor = _segment(raw, "vendor", where=where)
        api = _segment(raw, "api", where=where)
        return ApiEntry(
            name=_opt_str(raw, "name") or f"{vendor}/{api}",
            vendor=vendor,
            api=api,
            base_url=_opt_str(raw, "base_url"),
            docs_url=_opt_str(raw, "docs_url"),
            description=_opt_str(raw, "description"),
            tags=_parse_tags(raw, where=where),
            **common,
        )

    return RepoEntry(name=_opt_str(raw, "name") or f"{common['owner']}/{common['repo']}", **common)


@dataclass
class Registry:
    path: Path
    entries: list[TrackedEntry]
    # Top-level object minus the entry list; None when the file is a bare array.
    document: dict[str, Any] | None = None
    list_key: str | None = None

    def to_document(self) -> Any:
        records = [e.to_record() for e in self.entries]
        if self.document is None or self.list_key is None:
            return records
        doc = dict(self.document)
        doc[self.list_key] = records
        return doc

    def dumps(self) -> str:
        return json.dumps(self.to_document(), indent=2, ensure_ascii=False) + "\n"


def _split_document(data: Any, path: Path) -> tuple[list[Any], dict[str, Any] | None, str | None]:
    if isinstance(data, list):
        return data, None, None
    if isinstance(data, dict):
        for key in ENTRY_LIST_KEYS:
            if isinstance(data.get(key), list):
                return data[key], data, key
    raise RegistryError(
        f"{path}: expected a JSON array or an object with one of {', '.join(ENTRY_LIST_KEYS)}."
    )


def load_registry(path: str | Path) -> Registry:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise RegistryError(f"Registry file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise RegistryError(f"Cannot read registry {path}: {e}") from e

    records, document, list_key = _split_document(data, path)
    entries = [parse_entry(r, index=i) for i, r in enumerate(records)]

    seen: set[str] = set()
    for entry in entries:
        if entry.key in seen:
            raise RegistryError(f"{path}: duplicate registry entry {entry.key!r}.")
        seen.add(entry.key)

    return Registry(path=path, entries=entries, document=document, list_key=list_key)


def save_registry(registry: Registry, path: str | Path | None = None) -> Path:
    """Rewrites the whole registry file atomically."""
    target = Path(path) if path is not None else registry.path
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + ".tmp")
    tmp.write_text(registry.dumps(), encoding="utf-8")
    tmp.replace(target)
    return target
