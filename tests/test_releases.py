import unittest

import httpx

from specsync.client import HostingClient
from specsync.releases import ReleaseAsset, ReleaseLookupError, ReleaseResolver, has_version_changed, parse_release


def _resolver(handler) -> tuple[ReleaseResolver, HostingClient]:
    client = HostingClient(token="tok_123", api_url="https://api.github.test")
    client._http = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)  # type: ignore[attr-defined]
    return ReleaseResolver(client), client


RELEASE = {
    "tag_name": "v1.1.0",
    "published_at": "2026-10-01T10:00:00Z",
    "draft": False,
    "prerelease": False,
    "html_url": "https://github.test/acme/pets-api/releases/tag/v1.1.0",
    "assets": [
        {"name": "openapi.yaml", "browser_download_url": "https://github.test/acme/pets-api/releases/download/v1.1.0/openapi.yaml"},
        {"name": "broken"},
    ],
}


class TestVersionChange(unittest.TestCase):
    def test_plain_inequality(self) -> None:
        self.assertFalse(has_version_changed("v1.0.0", "v1.0.0"))
        self.assertTrue(has_version_changed("v1.0.0", "v1.0.1"))
        self.assertTrue(has_version_changed("v1.0.0", "V1.0.0"))
        self.assertTrue(has_version_changed("1.0.0", "v1.0.0"))
        # A rollback is still a change.
        self.assertTrue(has_version_changed("v2.0.0", "v1.9.0"))
        self.assertTrue(has_version_changed("", "v1.0.0"))


class TestParseRelease(unittest.TestCase):
    def test_parses_fields_and_skips_incomplete_assets(self) -> None:
        rel = parse_release(RELEASE)
        self.assertEqual(rel.tag, "v1.1.0")
        self.assertEqual(rel.published_at, "2026-10-01T10:00:00Z")
        self.assertTrue(rel.eligible)
        self.assertEqual(
            rel.assets,
            (ReleaseAsset("openapi.yaml", "https://github.test/acme/pets-api/releases/download/v1.1.0/openapi.yaml"),),
        )

    def test_draft_and_prerelease_not_eligible(self) -> None:
        self.assertFalse(parse_release(dict(RELEASE, draft=True)).eligible)
        self.assertFalse(parse_release(dict(RELEASE, prerelease=True)).eligible)

    def test_missing_tag(self) -> None:
        with self.assertRaises(ReleaseLookupError):
            parse_release({"draft": False})


class TestResolver(unittest.TestCase):
    def test_latest_release(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=RELEASE)

        resolver, client = _resolver(handler)
        try:
            rel = resolver.latest_release("acme", "pets-api")
        finally:
            client.close()

        self.assertEqual(seen, ["/repos/acme/pets-api/releases/latest"])
        self.assertEqual(rel.tag, "v1.1.0")

    def test_release_by_tag(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=RELEASE)

        resolver, client = _resolver(handler)
        try:
            resolver.release_by_tag("acme", "pets-api", "v1.1.0")
        finally:
            client.close()

        self.assertEqual(seen, ["/repos/acme/pets-api/releases/tags/v1.1.0"])

    def test_failures_are_classified(self) -> None:
        cases = {404: "not-found", 401: "auth-failed", 403: "auth-failed", 500: "other"}
        for status, kind in cases.items():
            with self.subTest(status=status):
                resolver, client = _resolver(lambda request, s=status: httpx.Response(s, json={"message": "x"}))
                try:
                    with self.assertRaises(ReleaseLookupError) as ctx:
                        resolver.latest_release("acme", "pets-api")
                finally:
                    client.close()
                self.assertEqual(ctx.exception.kind, kind)
                self.assertEqual(ctx.exception.status_code, status)

    def test_transport_and_payload_errors_are_other(self) -> None:
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        for handler in (boom, lambda request: httpx.Response(200, json=["not", "a", "release"])):
            resolver, client = _resolver(handler)
            try:
                with self.assertRaises(ReleaseLookupError) as ctx:
                    resolver.latest_release("acme", "pets-api")
            finally:
                client.close()
            self.assertEqual(ctx.exception.kind, "other")
