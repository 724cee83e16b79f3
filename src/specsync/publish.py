from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .client import HostingClient, SpecsyncError
from .config import SyncConfig
from .registry import Registry, save_registry
from .sync import Changeset


class PublishError(SpecsyncError):
    pass


@dataclass(frozen=True)
class PublishResult:
    ok: bool
    branch: str | None = None
    pr_number: int | None = None
    pr_url: str | None = None
    message: str = ""


class GitRunner:
    """Shells out to the ``git`` CLI in ``cwd``."""

    def __init__(self, cwd: str | Path = ".") -> None:
        self.cwd = Path(cwd)

    def run(self, *args: str) -> str:
        try:
            proc = subprocess.run(
                ["git", *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise PublishError("git executable not found") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "").strip()
            raise PublishError(f"git {' '.join(args)} failed: {detail}") from e
        return proc.stdout

    def create_branch(self, branch: str) -> None:
        self.run("checkout", "-b", branch)

    def commit(self, paths: list[str], message: str) -> None:
        self.run("add", "--", *paths)
        self.run("commit", "-m", message)

    def push(self, branch: str) -> None:
        self.run("push", "--set-upstream", "origin", branch)


def _stderr(msg: str) -> None:
    print(msg, file=sys.stderr)


class Publisher:
    def __init__(
        self,
        config: SyncConfig,
        client: HostingClient,
        *,
        git: GitRunner | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._git = git or GitRunner()
        self._now = now or (lambda: datetime.now(timezone.utc))

    def write_registry(self, registry: Registry) -> Path:
        return save_registry(registry, self._config.registry_path)

    def write_summary(self, changeset: Changeset) -> Path:
        path = self._config.summary_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(changeset.summary_text(), encoding="utf-8")
        return path

    def branch_name(self) -> str:
        return f"{self._config.branch_prefix}-{self._now().strftime('%Y%m%d-%H%M%S')}"

    def manual_instructions(self, changeset: Changeset) -> str:
        return "\n".join(
            [
                "To finish manually:",
                f"  git checkout -b {self.branch_name()}",
                f"  git add {self._config.output_root.as_posix()} {self._config.registry_path.as_posix()}",
                f'  git commit -m "{changeset.proposal_title()}"',
                "  git push --set-upstream origin HEAD",
                f"  then open a pull request against {self._config.base_branch} "
                f"using {self._config.summary_path.as_posix()} as the description.",
            ]
        )

    def open_proposal(self, changeset: Changeset) -> PublishResult:
        if not changeset.has_changes:
            return PublishResult(ok=True, message="nothing to publish")

        coords = self._config.repository_coords
        if coords is None:
            if self._config.repository:
                _stderr(f"warning: GITHUB_REPOSITORY={self._config.repository!r} is not in owner/name form.")
            else:
                _stderr("warning: GITHUB_REPOSITORY is not set; not opening a pull request.")
            print(self.manual_instructions(changeset))
            return PublishResult(ok=True, message="manual")

        owner, name = coords
        branch = self.branch_name()
        title = changeset.proposal_title()
        try:
            self._git.create_branch(branch)
            self._git.commit(
                [self._config.output_root.as_posix(), self._config.registry_path.as_posix()],
                title,
            )
            self._git.push(branch)
            pr = self._client.create_pull_request(
                owner,
                name,
                title=title,
                head=branch,
                base=self._config.base_branch,
                body=changeset.proposal_body(),
            )
        except SpecsyncError as e:
            _stderr(f"error: could not open pull request: {e}")
            print(self.manual_instructions(changeset))
            return PublishResult(ok=False, branch=branch, message=str(e))

        number = pr.get("number")
        pr_url = pr.get("html_url")
        if isinstance(number, int) and self._config.labels:
            try:
                self._client.add_labels(owner, name, number, list(self._config.labels))
            except SpecsyncError as e:
                _stderr(f"warning: could not add labels to pull request #{number}: {e}")

        print(f"Opened pull request #{number}: {pr_url}")
        return PublishResult(
            ok=True,
            branch=branch,
            pr_number=number if isinstance(number, int) else None,
            pr_url=pr_url if isinstance(pr_url, str) else None,
        )
