from __future__ import annotations

import argparse
import sys
import textwrap

from .client import HostingClient, SpecsyncError
from .config import ConfigError, SyncConfig, load_config, redact_token
from .fetcher import ArtifactFetcher
from .publish import GitRunner, Publisher
from .registry import load_registry
from .releases import ReleaseResolver
from .sync import INELIGIBLE, UNCHANGED, UPDATED, EntryOutcome, SyncEngine


def build_parser() -> argparse.ArgumentParser:
    return argparse.ArgumentParser(
        prog="specsync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="Sync OpenAPI specs from upstream GitHub releases and open a pull request with the changes.",
        epilog=textwrap.dedent(
            """\
            Environment variables:
              GITHUB_TOKEN (required), GITHUB_REPOSITORY,
              SPECSYNC_CONFIG_PATH, SPECSYNC_REGISTRY, SPECSYNC_OUTPUT_DIR, SPECSYNC_API_URL, SPECSYNC_TIMEOUT_S
            """
        ),
    )


def _warn(msg: str) -> None:
    print(f"warning: {msg}", file=sys.stderr)


def _print_outcome(outcome: EntryOutcome) -> None:
    if outcome.status == UPDATED:
        print(f"updated    {outcome.key}: {outcome.message}")
    elif outcome.status == UNCHANGED:
        print(f"unchanged  {outcome.key}: {outcome.message}")
    elif outcome.status == INELIGIBLE:
        print(f"skipped    {outcome.key}: {outcome.message}")
    else:
        print(f"error: {outcome.key}: [{outcome.status}] {outcome.message}", file=sys.stderr)
    for w in outcome.warnings:
        _warn(f"{outcome.key}: {w}")


def run_sync(
    cfg: SyncConfig,
    *,
    client: HostingClient | None = None,
    git: GitRunner | None = None,
) -> int:
    registry = load_registry(cfg.registry_path)
    print(f"Checking {len(registry.entries)} registry entries from {cfg.registry_path}")
    print(f"Using {cfg.api_url} with token {redact_token(cfg.token)}")

    own_client = client is None
    if client is None:
        client = HostingClient(token=cfg.token, api_url=cfg.api_url, timeout_s=cfg.timeout_s)
    try:
        resolver = ReleaseResolver(client)
        fetcher = ArtifactFetcher(client, resolver, raw_url=cfg.raw_url, warn=_warn)
        engine = SyncEngine(
            resolver=resolver,
            fetcher=fetcher,
            output_root=cfg.output_root,
            web_url=cfg.web_url,
            on_outcome=_print_outcome,
        )
        changeset = engine.run(registry.entries)

        failures = changeset.failures
        if failures:
            print(f"{len(failures)} of {len(changeset.outcomes)} entries failed; see errors above.", file=sys.stderr)

        if not changeset.has_changes:
            print("Everything is up to date.")
            return 0

        publisher = Publisher(cfg, client, git=git)
        publisher.write_registry(registry)
        summary_path = publisher.write_summary(changeset)
        print(f"{len(changeset.results)} spec(s) updated; summary written to {summary_path}")
        print(changeset.summary_text(), end="")

        result = publisher.open_proposal(changeset)
        return 0 if result.ok else 1
    finally:
        if own_client:
            client.close()


def main(argv: list[str] | None = None) -> int:
    build_parser().parse_args(argv)
    try:
        cfg = load_config()
        return run_sync(cfg)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except (SpecsyncError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
