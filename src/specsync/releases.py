from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import quote

from .client import HostingClient, HostingHTTPError, SpecsyncError, repo_path


class ReleaseLookupError(SpecsyncError):
    """Raised when a release cannot be resolved. ``kind`` is not-found, auth-failed or other."""

    def __init__(self, message: str, *, kind: str = "other", status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


@dataclass(frozen=True)
class ReleaseAsset:
    name: str
    url: str


@dataclass(frozen=True)
class ReleaseInfo:
    tag: str
    published_at: str | None = None
    draft: bool = False
    prerelease: bool = False
    assets: tuple[ReleaseAsset, ...] | None = None  # None: asset list not known
    html_url: str | None = None

    @property
    def eligible(self) -> bool:
        return not (self.draft or self.prerelease)


class ReleaseSource(Protocol):
    def latest_release(self, owner: str, repo: str) -> ReleaseInfo:
        ...

    def release_by_tag(self, owner: str, repo: str, tag: str) -> ReleaseInfo:
        ...


def has_version_changed(stored: str, latest: str) -> bool:
    # Any difference counts, including a tag that sorts "older".
    return stored != latest


def _parse_assets(raw: Any) -> tuple[ReleaseAsset, ...]:
    if not isinstance(raw, list):
        return ()
    assets: list[ReleaseAsset] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        url = item.get("browser_download_url")
        if isinstance(name, str) and name and isinstance(url, str) and url:
            assets.append(ReleaseAsset(name=name, url=url))
    return tuple(assets)


def parse_release(obj: Any) -> ReleaseInfo:
    if not isinstance(obj, dict):
        raise ReleaseLookupError("Unexpected release payload (not an object).")
    tag = obj.get("tag_name")
    if not isinstance(tag, str) or not tag.strip():
        raise ReleaseLookupError("Release payload has no tag_name.")
    published_at = obj.get("published_at")
    html_url = obj.get("html_url")
    return ReleaseInfo(
        tag=tag.strip(),
        published_at=published_at if isinstance(published_at, str) else None,
        draft=bool(obj.get("draft", False)),
        prerelease=bool(obj.get("prerelease", False)),
        assets=_parse_assets(obj.get("assets")),
        html_url=html_url if isinstance(html_url, str) else None,
    )


def _classify(e: HostingHTTPError, what: str) -> ReleaseLookupError:
    if e.status_code == 404:
        return ReleaseLookupError(f"{what}: not found", kind="not-found", status_code=e.status_code)
    if e.status_code in (401, 403):
        return ReleaseLookupError(
            f"{what}: authentication failed (HTTP {e.status_code})",
            kind="auth-failed",
            status_code=e.status_code,
        )
    return ReleaseLookupError(f"{what}: HTTP {e.status_code}", kind="other", status_code=e.status_code)


class ReleaseResolver:
    def __init__(self, client: HostingClient) -> None:
        self._client = client

    def _get_release(self, path: str, what: str) -> ReleaseInfo:
        try:
            data = self._client.get_json(path)
        except HostingHTTPError as e:
            raise _classify(e, what) from e
        except SpecsyncError as e:
            raise ReleaseLookupError(f"{what}: {e}", kind="other") from e
        try:
            return parse_release(data)
        except ReleaseLookupError as e:
            raise ReleaseLookupError(f"{what}: {e}", kind="other") from e

    def latest_release(self, owner: str, repo: str) -> ReleaseInfo:
        return self._get_release(
            f"{repo_path(owner, repo)}/releases/latest",
            f"latest release of {owner}/{repo}",
        )

    def release_by_tag(self, owner: str, repo: str, tag: str) -> ReleaseInfo:
        return self._get_release(
            f"{repo_path(owner, repo)}/releases/tags/{quote(tag, safe='')}",
            f"release {tag} of {owner}/{repo}",
        )
