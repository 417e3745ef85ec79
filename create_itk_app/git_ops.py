"""Git commit of the scaffolded changes.

Stages an explicit list of paths in the generated project and records them
in a single commit.  The step is best-effort: every git failure is turned
into a failed ``CommitResult`` for the caller to report, and the files
already written stay on disk.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from create_itk_app.errors import VersionControlError
from create_itk_app.models import CommitResult


async def _run_git(
    *args: str,
    cwd: str | Path | None = None,
    timeout: float = 60.0,
) -> tuple[str, str]:
    """Run a git command asynchronously and return (stdout, stderr).

    Raises VersionControlError if git is missing, times out or exits non-zero.
    """
    cmd = ["git"] + list(args)
    cmd_str = " ".join(cmd)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError as exc:
        raise VersionControlError("git executable not found", command=cmd_str) from exc
    except NotADirectoryError as exc:
        raise VersionControlError(f"Not a directory: {cwd}", command=cmd_str) from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise VersionControlError(
            f"Git command timed out after {timeout}s: {cmd_str}",
            command=cmd_str,
        )

    stdout = stdout_bytes.decode("utf-8", errors="replace").strip()
    stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

    if process.returncode != 0:
        detail = stderr or stdout
        raise VersionControlError(
            f"Git command failed (exit {process.returncode}): {cmd_str}\n{detail}",
            command=cmd_str,
            stderr=stderr,
        )

    return stdout, stderr


class GitCommitter:
    """Commits a fixed set of paths in the generated project's repository."""

    def __init__(self, repo_path: str | Path, timeout: float = 60.0) -> None:
        self.repo_path = Path(repo_path).resolve()
        self.timeout = timeout

    async def is_repository(self) -> bool:
        """Return ``True`` if :attr:`repo_path` is inside a git work tree."""
        if not self.repo_path.is_dir():
            return False
        try:
            stdout, _ = await _run_git(
                "rev-parse", "--is-inside-work-tree", cwd=self.repo_path, timeout=self.timeout
            )
        except VersionControlError:
            return False
        return stdout == "true"

    async def commit(self, paths: list[str], message: str) -> CommitResult:
        """Stage *paths* and create one commit with *message*.

        Never raises; a failure is reported in the returned result.  If the
        commit itself fails, *paths* are unstaged again so the index is left
        as it was; the files on disk are kept.
        """
        try:
            sha = await self._commit(paths, message)
        except VersionControlError as exc:
            return CommitResult(success=False, paths=list(paths), message=message, error=str(exc))
        return CommitResult(success=True, paths=list(paths), message=message, commit_sha=sha)

    async def _commit(self, paths: list[str], message: str) -> str:
        if not await self.is_repository():
            raise VersionControlError(f"Not a git repository: {self.repo_path}")

        await _run_git("add", "--", *paths, cwd=self.repo_path, timeout=self.timeout)
        try:
            await _run_git(
                "commit", "-m", message, "--", *paths, cwd=self.repo_path, timeout=self.timeout
            )
        except VersionControlError as exc:
            await self._unstage(paths, exc)
            raise
        sha, _ = await _run_git("rev-parse", "HEAD", cwd=self.repo_path, timeout=self.timeout)
        return sha

    async def _unstage(self, paths: list[str], cause: VersionControlError) -> None:
        """Reset *paths* in the index to ``HEAD`` after a failed commit."""
        try:
            await _run_git("reset", "-q", "--", *paths, cwd=self.repo_path, timeout=self.timeout)
        except VersionControlError as exc:
            raise VersionControlError(
                f"{cause}\nCould not unstage {' '.join(paths)}: {exc}",
                command=cause.command,
                stderr=cause.stderr,
            ) from exc
