import unittest

from specsync.openapi import VersionNotFoundError, extract_api_version, resolve_api_version, version_from_tag


class TestExtractApiVersion(unittest.TestCase):
    def test_quoted_version_is_unquoted(self) -> None:
        doc = 'openapi: 3.0.0\ninfo:\n  title: X\n  version: "2.3.1"\npaths: {}\n'
        self.assertEqual(extract_api_version(doc), "2.3.1")

    def test_single_quotes_and_tabs(self) -> None:
        doc = "info:\n\ttitle: X\n\tversion: '4.0.0'\n"
        self.assertEqual(extract_api_version(doc), "4.0.0")

    def test_blank_lines_and_comments_stay_in_section(self) -> None:
        doc = "info:\n  title: X\n\n# comment at column zero\n  version: 1.2.3\n"
        self.assertEqual(extract_api_version(doc), "1.2.3")

    def test_version_outside_info_is_ignored(self) -> None:
        doc = "info:\n  title: X\npaths:\n  version: 9.9.9\n"
        with self.assertRaises(VersionNotFoundError):
            extract_api_version(doc)

    def test_top_level_version_before_info_is_ignored(self) -> None:
        doc = "version: 0.0.1\ninfo:\n  version: 3.1.0\n"
        self.assertEqual(extract_api_version(doc), "3.1.0")

    def test_no_info_section(self) -> None:
        with self.assertRaises(VersionNotFoundError):
            extract_api_version("openapi: 3.0.0\npaths: {}\n")

    def test_empty_version_value(self) -> None:
        with self.assertRaises(VersionNotFoundError):
            extract_api_version("info:\n  version:\n")

    def test_json_document(self) -> None:
        self.assertEqual(extract_api_version('{"openapi": "3.1.0", "info": {"title": "X", "version": "5.0.0"}}'), "5.0.0")
        with self.assertRaises(VersionNotFoundError):
            extract_api_version('{"openapi": "3.1.0", "info": {"title": "X"}}')

    def test_brace_document_that_is_not_json_is_scanned(self) -> None:
        content = "{x-generator: hand}\ninfo:\n  title: X\n  version: 1.0.0\n"
        self.assertEqual(extract_api_version(content), "1.0.0")


class TestFallback(unittest.TestCase):
    def test_version_from_tag(self) -> None:
        self.assertEqual(version_from_tag("v2.4.0"), "2.4.0")
        self.assertEqual(version_from_tag("2.4.0"), "2.4.0")
        self.assertEqual(version_from_tag("vv1"), "v1")
        self.assertEqual(version_from_tag("release-1"), "release-1")

    def test_resolve_prefers_content(self) -> None:
        self.assertEqual(resolve_api_version("info:\n  version: 1.1.0\n", "v9.0.0"), ("1.1.0", True))

    def test_resolve_falls_back_to_tag(self) -> None:
        self.assertEqual(resolve_api_version("info:\n  title: X\n", "v2.4.0"), ("2.4.0", False))
        self.assertEqual(resolve_api_version("info:\n  title: X\n", "2.4.0"), ("2.4.0", False))
