"""Beads store: .beads/issues.jsonl for reads, the bd CLI for reads and writes."""

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any

from taskbridge.adapters.base import SourceBAdapter
from taskbridge.errors import StoreMalformedError
from taskbridge.models import TaskStatus, UnifiedTask
from taskbridge.normalize import b_to_unified, denormalize_b_status

logger = logging.getLogger(__name__)


class BeadsAdapter(SourceBAdapter):
    def __init__(
        self,
        path: Path,
        *,
        command: str = "bd",
        cwd: Path | None = None,
        timeout: float = 30,
        issue_type: str = "task",
        close_reason: str = "Synced from Task Master",
    ) -> None:
        self.path = path
        self._command = command
        self._cwd = cwd
        self._timeout = timeout
        self._issue_type = issue_type
        self._close_reason = close_reason

    def exists(self) -> bool:
        return self.path.exists()

    def has_cli(self) -> bool:
        return shutil.which(self._command) is not None

    def _run(self, *args: str) -> subprocess.CompletedProcess[str] | None:
        """Run bd with args. None if it couldn't be started or timed out."""
        cmd = [self._command, *args]
        try:
            return subprocess.run(cmd, cwd=self._cwd, capture_output=True, text=True, timeout=self._timeout)
        except (OSError, subprocess.TimeoutExpired, UnicodeDecodeError) as exc:
            logger.error("%s failed: %s", " ".join(cmd[:2]), exc)
            return None

    def read_issues(self) -> list[dict[str, Any]]:
        """Issues from the JSONL file. Empty when the file doesn't exist."""
        if not self.exists():
            return []
        try:
            text = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise StoreMalformedError(self.path, f"not UTF-8 ({exc})") from exc
        issues = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                node = json.loads(line)
            except json.JSONDecodeError as exc:
                raise StoreMalformedError(self.path, f"line {lineno}: {exc}") from exc
            if not isinstance(node, dict) or "id" not in node:
                raise StoreMalformedError(self.path, f"line {lineno}: not an issue object")
            issues.append(node)
        return issues

    def read_issues_cli(self) -> list[dict[str, Any]]:
        """Issues via `bd list --json`, falling back to the JSONL file on any CLI trouble."""
        if not self.has_cli():
            return self.read_issues()
        result = self._run("list", "--json")
        if result is None or result.returncode != 0:
            logger.warning("bd list failed, reading %s instead", self.path)
            return self.read_issues()
        try:
            nodes = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            logger.warning("bd list returned invalid JSON, reading %s instead", self.path)
            return self.read_issues()
        if not isinstance(nodes, list):
            return self.read_issues()
        return [n for n in nodes if isinstance(n, dict) and "id" in n]

    def list_unified(self) -> list[UnifiedTask]:
        tasks = [b_to_unified(node) for node in self.read_issues_cli()]
        logger.debug("Read %d Beads issue(s)", len(tasks))
        return tasks

    def create_task(
        self,
        title: str,
        *,
        priority: int | None = None,
        meta: dict[str, str] | None = None,
    ) -> str | None:
        if not self.has_cli():
            logger.error("%s CLI not available, cannot create issue %r", self._command, title)
            return None

        args = ["create", title, "-t", self._issue_type]
        if priority is not None:
            args += ["-p", str(priority)]
        for key, value in (meta or {}).items():
            args += ["--meta", f"{key}:{value}"]
        args.append("--json")

        result = self._run(*args)
        if result is None:
            return None
        if result.returncode != 0:
            logger.error("Failed to create issue %r: %s", title, result.stderr.strip())
            return None
        try:
            node = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.error("bd create returned invalid JSON for %r", title)
            return None
        new_id = node.get("id") if isinstance(node, dict) else None
        if new_id:
            logger.info("Created issue %s: %s", new_id, title)
        return str(new_id) if new_id else None

    def apply_status(self, native_id: str, status: TaskStatus) -> bool:
        if not self.has_cli():
            logger.error("%s CLI not available, cannot update %s", self._command, native_id)
            return False

        native_status = denormalize_b_status(status)
        if native_status == "closed":
            result = self._run("close", native_id, "--reason", self._close_reason, "--json")
        else:
            result = self._run("update", native_id, "--status", native_status, "--json")

        if result is None:
            return False
        if result.returncode != 0:
            logger.error("Failed to update issue %s: %s", native_id, result.stderr.strip())
            return False
        logger.info("Issue %s → %s", native_id, native_status)
        return True
