"""Blocking GitHub client built on the ``gh`` CLI.

Every call shells out to ``gh`` with a timeout.  Bodies are passed through
temporary files (``--body-file``) so markdown never needs shell quoting.
Methods are synchronous; the adapter runs them on worker threads.

``get_issue`` returns ``None`` only when ``gh`` reports that the issue does
not exist.  Any other failure (network, auth, timeout) raises
``GitHubCLIError`` so callers never mistake an outage for a missing record
and create a duplicate.
"""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from spec_sync.core import identity
from spec_sync.errors import AdapterError, redact

logger = logging.getLogger(__name__)

ISSUE_FIELDS = "number,title,body,state,labels,assignees,milestone,url"

DEFAULT_LABEL_COLORS: dict[str, str] = {
    "spec": "0052CC",
    "plan": "5319E7",
    "research": "006B75",
    "task": "FBCA04",
    "tasks": "FBCA04",
    "quickstart": "0E8A16",
    "datamodel": "D93F0B",
    "contracts": "B60205",
    "subtask": "7B68EE",
    "common": "CCCCCC",
}

_NOT_FOUND_HINTS = (
    "could not resolve to an issue",
    "could not resolve to an issueorpullrequest",
    "not found",
    "no issue",
)
_ISSUE_URL_NUMBER = re.compile(r"/issues/(\d+)\s*$")


class GitHubCLIError(AdapterError):
    """A ``gh`` invocation failed.

    Attributes:
        returncode: Process exit status (``None`` when it never ran).
        stderr: Redacted standard error output.
    """

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.returncode = returncode
        self.stderr = redact(stderr.strip())
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"GitHub CLI error: {message}{detail}")


class GitHubClient:
    """Thin wrapper over ``gh`` issue, label and sub-issue commands.

    Args:
        owner: Repository owner; empty to auto-detect from the checkout.
        repo: Repository name; empty to auto-detect.
        token: Passed to ``gh`` as ``GH_TOKEN`` when set.
        timeout: Seconds before a single ``gh`` call is abandoned.
        gh_path: ``gh`` executable.
    """

    MAX_LABEL_CACHE = 1000

    def __init__(
        self,
        owner: str = "",
        repo: str = "",
        token: str | None = None,
        timeout: float = 60,
        gh_path: str = "gh",
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.token = token
        self.timeout = timeout
        self.gh_path = gh_path
        self._checked_labels: set[str] = set()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Process plumbing
    # ------------------------------------------------------------------

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        if self.token:
            env["GH_TOKEN"] = self.token
        return env

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        cmd = [self.gh_path, *args]
        logger.debug("Running: %s", " ".join(cmd[:4]))
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
                env=self._env(),
            )
        except subprocess.TimeoutExpired as exc:
            raise GitHubCLIError(
                f"'gh {' '.join(args[:2])}' timed out after {self.timeout}s"
            ) from exc
        except FileNotFoundError as exc:
            raise GitHubCLIError(
                "gh CLI not found. Install it from https://cli.github.com"
            ) from exc

    def _execute(self, args: list[str]) -> str:
        result = self._run(args)
        if result.returncode != 0:
            raise GitHubCLIError(
                f"'gh {' '.join(args[:2])}' exited with {result.returncode}",
                returncode=result.returncode,
                stderr=result.stderr or "",
            )
        return (result.stdout or "").strip()

    def repo_slug(self) -> str:
        """``owner/repo``, detected through ``gh repo view`` when unset."""
        with self._lock:
            if self.owner and self.repo:
                return f"{self.owner}/{self.repo}"
            output = self._execute(["repo", "view", "--json", "owner,name"])
            try:
                parsed = json.loads(output)
                owner = parsed["owner"]["login"]
                name = parsed["name"]
            except (ValueError, KeyError, TypeError) as exc:
                raise GitHubCLIError(
                    f"Failed to auto-detect repository from {output!r}"
                ) from exc
            self.owner, self.repo = owner, name
            return f"{owner}/{name}"

    def _gh(self, args: list[str]) -> str:
        return self._execute([*args, "--repo", self.repo_slug()])

    @contextmanager
    def _body_file(self, body: str) -> Iterator[str]:
        fd, path = tempfile.mkstemp(prefix="spec-sync-", suffix=".md")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(body)
            yield path
        finally:
            try:
                os.unlink(path)
            except OSError:
                logger.debug("Could not remove temp file %s", path)

    @staticmethod
    def _parse_issue(data: dict[str, Any]) -> dict[str, Any]:
        milestone = data.get("milestone") or {}
        return {
            "number": data["number"],
            "title": data.get("title") or "",
            "body": data.get("body") or "",
            "state": data.get("state"),
            "labels": [lb["name"] for lb in data.get("labels") or []],
            "assignees": [
                a["login"] for a in data.get("assignees") or []
            ],
            "milestone": milestone.get("number"),
            "url": data.get("url"),
        }

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def check_auth(self) -> bool:
        """True when ``gh auth status`` succeeds."""
        try:
            result = self._run(["auth", "status"])
        except GitHubCLIError as exc:
            logger.warning("GitHub auth check failed: %s", exc)
            return False
        return result.returncode == 0

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def get_issue(self, number: int) -> dict[str, Any] | None:
        """Fetch one issue, or None when it does not exist.

        Raises:
            GitHubCLIError: On any failure other than "not found".
        """
        args = ["issue", "view", str(number), "--json", ISSUE_FIELDS]
        result = self._run([*args, "--repo", self.repo_slug()])
        if result.returncode != 0:
            stderr = (result.stderr or "").lower()
            if any(hint in stderr for hint in _NOT_FOUND_HINTS):
                logger.debug("Issue #%s not found", number)
                return None
            raise GitHubCLIError(
                f"'gh issue view {number}' exited with {result.returncode}",
                returncode=result.returncode,
                stderr=result.stderr or "",
            )
        try:
            return self._parse_issue(json.loads(result.stdout))
        except (ValueError, KeyError) as exc:
            raise GitHubCLIError(
                f"Unexpected output from 'gh issue view {number}'"
            ) from exc

    def search_issue_by_spec_id(
        self, spec_id: str
    ) -> dict[str, Any] | None:
        """Find the issue whose body embeds the marker for *spec_id*.

        GitHub search is fuzzy, so candidates are confirmed by extracting
        the marker from each body.
        """
        output = self._gh(
            [
                "issue",
                "list",
                "--state",
                "all",
                "--search",
                f'"spec_id: {spec_id}" in:body',
                "--json",
                ISSUE_FIELDS,
                "--limit",
                "10",
            ]
        )
        candidates = json.loads(output) if output else []
        wanted = spec_id.lower()
        for candidate in candidates:
            if identity.extract(candidate.get("body")) == wanted:
                return self._parse_issue(candidate)
        return None

    def list_issues(self, labels: list[str] | None = None) -> list[dict]:
        args = [
            "issue",
            "list",
            "--json",
            ISSUE_FIELDS,
            "--limit",
            "100",
        ]
        if labels:
            args.extend(["--label", ",".join(labels)])
        output = self._gh(args)
        issues = json.loads(output) if output else []
        return [self._parse_issue(i) for i in issues]

    def create_issue(
        self, title: str, body: str, labels: list[str] | None = None
    ) -> int:
        """Create an issue and return its number."""
        with self._body_file(body) as path:
            args = [
                "issue",
                "create",
                "--title",
                title,
                "--body-file",
                path,
            ]
            if labels:
                args.extend(["--label", ",".join(labels)])
            output = self._gh(args)
        match = _ISSUE_URL_NUMBER.search(output)
        if match is None:
            raise GitHubCLIError(
                f"Failed to parse issue number from: {output}"
            )
        return int(match.group(1))

    def update_issue(
        self,
        number: int,
        title: str | None = None,
        body: str | None = None,
        labels: list[str] | None = None,
    ) -> None:
        args = ["issue", "edit", str(number)]
        if title:
            args.extend(["--title", title])
        if labels:
            args.extend(["--add-label", ",".join(labels)])
        if body is None:
            if len(args) > 3:
                self._gh(args)
            return
        with self._body_file(body) as path:
            self._gh([*args, "--body-file", path])

    def batch_update_issues(
        self,
        numbers: list[int],
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
        milestone: str | None = None,
    ) -> None:
        """Apply the same label/assignee/milestone edit to many issues."""
        if not numbers:
            return
        args = ["issue", "edit", *(str(n) for n in numbers)]
        base_len = len(args)
        if labels:
            args.extend(["--add-label", ",".join(labels)])
        if assignees:
            args.extend(["--add-assignee", ",".join(assignees)])
        if milestone:
            args.extend(["--milestone", milestone])
        if len(args) > base_len:
            self._gh(args)

    def add_comment(self, number: int, body: str) -> None:
        with self._body_file(body) as path:
            self._gh(["issue", "comment", str(number), "--body-file", path])

    def close_issue(self, number: int) -> None:
        self._gh(["issue", "close", str(number)])

    def reopen_issue(self, number: int) -> None:
        self._gh(["issue", "reopen", str(number)])

    # ------------------------------------------------------------------
    # Sub-issues (gh-sub-issue extension)
    # ------------------------------------------------------------------

    def create_subtask(
        self,
        parent: int,
        title: str,
        body: str,
        labels: list[str] | None = None,
    ) -> int:
        """Create an issue and link it under *parent*.

        Linking needs the ``gh-sub-issue`` extension; without it the issue
        is still created and a warning is logged.
        """
        number = self.create_issue(title, body, labels or ["subtask"])
        try:
            self._gh(["sub-issue", "add", str(parent), str(number)])
        except GitHubCLIError as exc:
            logger.warning(
                "Created #%s but could not link it under #%s "
                "(is gh-sub-issue installed?): %s",
                number,
                parent,
                exc,
            )
        return number

    def get_subtasks(self, parent: int) -> list[int]:
        try:
            output = self._gh(
                ["sub-issue", "list", str(parent), "--json", "number"]
            )
        except GitHubCLIError as exc:
            logger.debug("Sub-issue listing unavailable: %s", exc)
            return []
        items = json.loads(output) if output else []
        return [item["number"] for item in items]

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def ensure_labels_exist(self, labels: list[str]) -> None:
        """Create any missing labels, caching the names already checked."""
        with self._lock:
            unchecked = [
                lb for lb in labels if lb not in self._checked_labels
            ]
        if not unchecked:
            return

        output = self._gh(
            ["label", "list", "--json", "name", "--limit", "500"]
        )
        items = json.loads(output) if output else []
        existing = {item["name"].lower() for item in items}
        for label in unchecked:
            if label.lower() in existing:
                continue
            color = DEFAULT_LABEL_COLORS.get(
                label, DEFAULT_LABEL_COLORS["common"]
            )
            try:
                self._gh(
                    ["label", "create", label, "--color", color, "--force"]
                )
                logger.info("Created label: %s", label)
            except GitHubCLIError as exc:
                if "already exists" not in str(exc):
                    raise

        with self._lock:
            self._checked_labels.update(unchecked)
            if len(self._checked_labels) > self.MAX_LABEL_CACHE:
                logger.debug(
                    "Label cache cleared (over %d)", self.MAX_LABEL_CACHE
                )
                self._checked_labels.clear()
