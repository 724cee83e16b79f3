from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable
from urllib.parse import quote

from .client import HostingClient, HostingHTTPError, SpecsyncError
from .config import DEFAULT_RAW_URL
from .registry import TrackedEntry
from .releases import ReleaseAsset, ReleaseInfo, ReleaseLookupError, ReleaseSource


class FetchError(SpecsyncError):
    """``kind``: no-location, transport, status, empty or undecodable."""

    def __init__(self, message: str, *, kind: str, url: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.url = url


@dataclass(frozen=True)
class Artifact:
    url: str
    content: str
    from_asset: bool


def raw_content_url(owner: str, repo: str, tag: str, path: str, *, raw_url: str = DEFAULT_RAW_URL) -> str:
    parts = [quote(owner, safe=""), quote(repo, safe=""), quote(tag, safe="/+"), quote(path.lstrip("/"), safe="/")]
    return raw_url.rstrip("/") + "/" + "/".join(parts)


def find_asset_url(assets: Iterable[ReleaseAsset] | None, asset_name: str | None) -> str | None:
    if not asset_name or not assets:
        return None
    for asset in assets:
        if asset.name == asset_name:
            return asset.url
    return None


class ArtifactFetcher:
    def __init__(
        self,
        client: HostingClient,
        releases: ReleaseSource,
        *,
        raw_url: str = DEFAULT_RAW_URL,
        warn: Callable[[str], None] | None = None,
    ) -> None:
        self._client = client
        self._releases = releases
        self._raw_url = raw_url
        self._warn = warn

    def _assets_for(self, entry: TrackedEntry, release: ReleaseInfo) -> tuple[ReleaseAsset, ...] | None:
        if release.assets is not None or not entry.asset_name:
            return release.assets
        try:
            return self._releases.release_by_tag(entry.owner, entry.repo, release.tag).assets
        except ReleaseLookupError as e:
            if self._warn is not None:
                self._warn(f"{entry.key}: could not list assets ({e}); using raw content URL")
            return None

    def resolve_download_url(self, entry: TrackedEntry, release: ReleaseInfo) -> tuple[str, bool]:
        """
        Returns (url, from_asset). A matching release asset always wins over the
        raw-content URL; exactly one candidate is produced.
        """
        asset_url = find_asset_url(self._assets_for(entry, release), entry.asset_name)
        if asset_url:
            return asset_url, True
        if not entry.spec_path:
            raise FetchError(
                f"{entry.key}: no asset named {entry.asset_name!r} in {release.tag} and no specPath configured",
                kind="no-location",
            )
        return raw_content_url(entry.owner, entry.repo, release.tag, entry.spec_path, raw_url=self._raw_url), False

    def fetch(self, entry: TrackedEntry, release: ReleaseInfo) -> Artifact:
        url, from_asset = self.resolve_download_url(entry, release)
        try:
            resp = self._client.request(method="GET", path=url, headers={"Accept": "application/octet-stream"})
        except HostingHTTPError as e:
            raise FetchError(f"GET {url} returned HTTP {e.status_code}", kind="status", url=url) from e
        except SpecsyncError as e:
            raise FetchError(f"GET {url} failed: {e}", kind="transport", url=url) from e

        try:
            content = resp.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FetchError(f"GET {url} returned a body that is not UTF-8", kind="undecodable", url=url) from e
        if not content.strip():
            raise FetchError(f"GET {url} returned an empty body", kind="empty", url=url)
        return Artifact(url=url, content=content, from_asset=from_asset)
