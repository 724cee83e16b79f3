from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

from .client import SpecsyncError
from .config import DEFAULT_WEB_URL
from .fetcher import ArtifactFetcher, FetchError
from .layout import LayoutError, MetadataWriteError, build_metadata, is_safe_segment, plan_layout, save_artifact
from .openapi import resolve_api_version, version_from_tag
from .registry import TrackedEntry
from .releases import ReleaseInfo, ReleaseLookupError, ReleaseSource, has_version_changed

UPDATED = "updated"
UNCHANGED = "unchanged"
INELIGIBLE = "ineligible"
RESOLVE_FAILED = "resolve-failed"
FETCH_FAILED = "fetch-failed"
SAVE_FAILED = "save-failed"
ERROR = "error"

FAILED_STATUSES = {RESOLVE_FAILED, FETCH_FAILED, SAVE_FAILED, ERROR}


@dataclass(frozen=True)
class UpdateResult:
    entry: TrackedEntry  # snapshot taken before last_version was bumped
    old_version: str
    new_version: str
    api_version: str
    source_url: str
    spec_path: Path

    @property
    def summary_line(self) -> str:
        return f"{self.entry.key}: {self.old_version or '(none)'} → {self.new_version} ({self.api_version})"


@dataclass
class EntryOutcome:
    key: str
    status: str
    message: str = ""
    result: UpdateResult | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.status in FAILED_STATUSES


@dataclass
class Changeset:
    entries: list[TrackedEntry]
    results: list[UpdateResult] = field(default_factory=list)
    outcomes: list[EntryOutcome] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.results)

    @property
    def failures(self) -> list[EntryOutcome]:
        return [o for o in self.outcomes if o.failed]

    def summary_lines(self) -> list[str]:
        return [r.summary_line for r in self.results]

    def summary_text(self) -> str:
        if not self.results:
            return ""
        return "\n".join(self.summary_lines()) + "\n"

    def proposal_title(self) -> str:
        if len(self.results) == 1:
            r = self.results[0]
            return f"Update {r.entry.key} OpenAPI spec to {r.api_version}"
        return f"Update OpenAPI specs ({len(self.results)} changed)"

    def proposal_body(self) -> str:
        lines = [
            "## OpenAPI spec updates",
            "",
            "New upstream releases were detected for the following APIs:",
            "",
        ]
        for r in self.results:
            lines.append(
                f"- `{r.spec_path.as_posix()}`: version `{r.api_version}` "
                f"(release [{r.new_version}]({r.source_url}), previously {r.old_version or 'untracked'})"
            )
        lines += ["", "### Summary", "", "```"]
        lines += self.summary_lines()
        lines += ["```", ""]
        return "\n".join(lines)


def release_url(entry: TrackedEntry, release: ReleaseInfo, *, web_url: str = DEFAULT_WEB_URL) -> str:
    if release.html_url:
        return release.html_url
    return f"{web_url.rstrip('/')}/{entry.owner}/{entry.repo}/releases/tag/{release.tag}"


class SyncEngine:
    """
    Runs one synchronization pass. Entries are processed strictly in order and
    a failure in one entry never stops the next one.
    """

    def __init__(
        self,
        *,
        resolver: ReleaseSource,
        fetcher: ArtifactFetcher,
        output_root: str | Path,
        web_url: str = DEFAULT_WEB_URL,
        on_outcome: Callable[[EntryOutcome], None] | None = None,
    ) -> None:
        self._resolver = resolver
        self._fetcher = fetcher
        self.output_root = Path(output_root)
        self._web_url = web_url
        self._on_outcome = on_outcome

    def process_entry(self, entry: TrackedEntry) -> EntryOutcome:
        try:
            release = self._resolver.latest_release(entry.owner, entry.repo)
        except ReleaseLookupError as e:
            return EntryOutcome(entry.key, RESOLVE_FAILED, f"{e.kind}: {e}")

        if not release.eligible:
            flag = "draft" if release.draft else "prerelease"
            return EntryOutcome(entry.key, INELIGIBLE, f"latest release {release.tag} is a {flag}; skipped")

        if not has_version_changed(entry.last_version, release.tag):
            return EntryOutcome(entry.key, UNCHANGED, f"up to date ({entry.last_version})")

        try:
            artifact = self._fetcher.fetch(entry, release)
        except FetchError as e:
            return EntryOutcome(entry.key, FETCH_FAILED, f"{e.kind}: {e}")

        warnings: list[str] = []
        api_version, from_content = resolve_api_version(artifact.content, release.tag)
        if not from_content:
            warnings.append(f"no info.version in document; using {api_version!r} from tag {release.tag}")
        elif not is_safe_segment(api_version):
            fallback = version_from_tag(release.tag)
            warnings.append(f"document version {api_version!r} is not usable as a path; using {fallback!r}")
            api_version = fallback

        metadata = build_metadata(entry, api_version)
        try:
            plan = plan_layout(self.output_root, entry, api_version)
            save_artifact(plan, artifact.content, metadata)
        except MetadataWriteError as e:
            warnings.append(f"spec saved without metadata: {e}")
        except LayoutError as e:
            return EntryOutcome(entry.key, SAVE_FAILED, str(e), warnings=warnings)

        result = UpdateResult(
            entry=entry.snapshot(),
            old_version=entry.last_version,
            new_version=release.tag,
            api_version=api_version,
            source_url=release_url(entry, release, web_url=self._web_url),
            spec_path=plan.spec_file,
        )
        entry.last_version = release.tag
        source = "release asset" if artifact.from_asset else "raw content"
        return EntryOutcome(
            entry.key,
            UPDATED,
            f"{result.old_version or '(none)'} → {result.new_version} ({api_version}) from {source}",
            result=result,
            warnings=warnings,
        )

    def run(self, entries: Iterable[TrackedEntry]) -> Changeset:
        entries = list(entries)
        changeset = Changeset(entries=entries)
        for entry in entries:
            try:
                outcome = self.process_entry(entry)
            except (SpecsyncError, OSError) as e:
                outcome = EntryOutcome(entry.key, ERROR, str(e))
            changeset.outcomes.append(outcome)
            if outcome.result is not None:
                changeset.results.append(outcome.result)
            if self._on_outcome is not None:
                self._on_outcome(outcome)
        return changeset
