from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from ._version import __version__
from .config import DEFAULT_API_URL, DEFAULT_TIMEOUT_S


class SpecsyncError(RuntimeError):
    pass


@dataclass(frozen=True)
class HostingHTTPError(SpecsyncError):
    status_code: int
    body: str

    def __str__(self) -> str:  # pragma: no cover
        return f"HTTP {self.status_code}: {self.body}"


def _origin(url: str) -> str | None:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return None
    return urlunsplit((parts.scheme, parts.netloc, "", "", "")).rstrip("/")


def repo_path(owner: str, repo: str) -> str:
    return f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"


class HostingClient:
    """
    Thin GitHub REST client. Relative paths are resolved against the API base URL;
    absolute URLs are requested as-is (release assets, raw content).
    """

    def __init__(
        self,
        *,
        token: str | None = None,
        api_url: str = DEFAULT_API_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout_s = timeout_s
        self._default_headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"specsync/{__version__}",
        }
        self._default_headers.update(default_headers or {})

        self._http = httpx.Client(timeout=timeout_s, follow_redirects=True)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "HostingClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.api_url}{path}"

    def auth_for_url(self, url: str) -> bool:
        # The token only goes to the API host; asset and raw-content hosts never see it.
        if not self.token:
            return False
        if url.startswith("/"):
            return True
        url_origin = _origin(url)
        api_origin = _origin(self.api_url)
        return bool(url_origin and api_origin and url_origin == api_origin)

    def request(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
        headers: dict[str, str] | None = None,
        auth: bool | None = None,
    ) -> httpx.Response:
        url = self._url(path)

        req_headers = dict(self._default_headers)
        if headers:
            req_headers.update(headers)

        try:
            if auth is None:
                auth = self.auth_for_url(url)
            if auth and self.token:
                req_headers["Authorization"] = f"Bearer {self.token}"
            resp = self._http.request(
                method.upper(),
                url,
                params=params,
                json=json_body,
                headers=req_headers,
            )
        except httpx.HTTPError as e:
            raise SpecsyncError(f"Request failed: {e}") from e
        except (httpx.InvalidURL, ValueError) as e:
            # Upstream release data can carry malformed download URLs.
            raise SpecsyncError(f"Invalid URL {url!r}: {e}") from e

        if resp.status_code >= 400 or resp.status_code < 200:
            raise HostingHTTPError(resp.status_code, resp.text)
        return resp

    def get_json(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        resp = self.request(method="GET", path=path, params=params)
        try:
            return resp.json()
        except ValueError as e:
            raise SpecsyncError(f"Invalid JSON from {self._url(path)}: {e}") from e

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        *,
        title: str,
        head: str,
        base: str,
        body: str,
    ) -> dict[str, Any]:
        resp = self.request(
            method="POST",
            path=f"{repo_path(owner, repo)}/pulls",
            json_body={"title": title, "head": head, "base": base, "body": body},
        )
        try:
            data = resp.json()
        except ValueError as e:
            raise SpecsyncError(f"Invalid JSON from pull request endpoint: {e}") from e
        if not isinstance(data, dict):
            raise SpecsyncError("Unexpected pull request response.")
        return data

    def add_labels(self, owner: str, repo: str, number: int, labels: list[str]) -> None:
        # Pull requests share the issues API for labels.
        self.request(
            method="POST",
            path=f"{repo_path(owner, repo)}/issues/{int(number)}/labels",
            json_body={"labels": list(labels)},
        )
