"""Shared pytest fixtures for the create-itk-app test suite.

Provides reusable fixtures for:
- Temporary project directories and git repositories
- A resolved configuration and default settings
- A manifest as written by create-react-app
- Scripted prompters for the resolver
- Mock subprocess helpers
- Fake bootstrapper / installer executables for end-to-end runs
"""

from __future__ import annotations

import json
import subprocess
import sys
import textwrap
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from create_itk_app.config import Settings
from create_itk_app.models import Author, ResolvedConfig


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary directory standing in for the destination (auto-cleanup)."""
    project_dir = tmp_path / "demo"
    project_dir.mkdir()
    yield project_dir


def init_git_repo(repo_dir: Path) -> None:
    """Initialise *repo_dir* as a git repo with a local identity."""
    subprocess.run(["git", "init"], cwd=repo_dir, check=True, capture_output=True)
    subprocess.run(
        ["git", "config", "user.email", "test@create-itk-app.local"],
        cwd=repo_dir, check=True, capture_output=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "Create ITK App Test"],
        cwd=repo_dir, check=True, capture_output=True,
    )
    subprocess.run(
        ["git", "config", "commit.gpgsign", "false"],
        cwd=repo_dir, check=True, capture_output=True,
    )


@pytest.fixture
def tmp_git_repo(tmp_path: Path, cra_manifest_text: str) -> Path:
    """Temporary git repository laid out like a fresh create-react-app project.

    Holds ``package.json``, ``package-lock.json`` and ``src/App.js`` in an
    initial commit, the way create-react-app leaves the destination.
    """
    repo_dir = tmp_path / "demo-repo"
    repo_dir.mkdir()
    init_git_repo(repo_dir)
    (repo_dir / "package.json").write_text(cra_manifest_text, encoding="utf-8")
    (repo_dir / "package-lock.json").write_text('{\n  "lockfileVersion": 1\n}\n', encoding="utf-8")
    (repo_dir / "src").mkdir()
    (repo_dir / "src" / "App.js").write_text("// create-react-app\n", encoding="utf-8")
    subprocess.run(["git", "add", "."], cwd=repo_dir, check=True, capture_output=True)
    subprocess.run(
        ["git", "commit", "-m", "Initialize project using Create React App"],
        cwd=repo_dir, check=True, capture_output=True,
    )
    yield repo_dir


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    """Default tool settings."""
    return Settings()


@pytest.fixture
def resolved_config(tmp_project_dir: Path) -> ResolvedConfig:
    """A fully resolved configuration rooted at ``tmp_project_dir``."""
    return ResolvedConfig(
        destination=tmp_project_dir,
        app_name="demo",
        description="A demo app",
        author=Author(name="Jane Doe", email="jane@example.com"),
        homepage="https://github.com/alice/demo",
        github_user="alice",
        repo="demo",
    )


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

CRA_MANIFEST: dict[str, Any] = {
    "name": "demo",
    "version": "0.1.0",
    "private": True,
    "dependencies": {
        "react": "^16.8.6",
        "react-dom": "^16.8.6",
        "react-scripts": "3.0.1",
    },
    "scripts": {
        "start": "react-scripts start",
        "build": "react-scripts build",
        "test": "react-scripts test",
        "eject": "react-scripts eject",
    },
    "eslintConfig": {"extends": "react-app"},
    "browserslist": {
        "production": [">0.2%", "not dead", "not op_mini all"],
        "development": ["last 1 chrome version", "last 1 firefox version"],
    },
}


@pytest.fixture
def cra_manifest_text() -> str:
    """``package.json`` text exactly as create-react-app writes it."""
    return json.dumps(CRA_MANIFEST, indent=2) + "\n"


@pytest.fixture
def manifest_path(tmp_project_dir: Path, cra_manifest_text: str) -> Path:
    """A create-react-app ``package.json`` inside the destination."""
    path = tmp_project_dir / "package.json"
    path.write_text(cra_manifest_text, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Prompting
# ---------------------------------------------------------------------------

class ScriptedPrompter:
    """Prompter that answers from a ``{message: [answers...]}`` script.

    Questions without a scripted answer get their default.  Every question
    and every invalid-answer report is recorded for assertions.
    """

    interactive = True

    def __init__(self, answers: dict[str, list[str] | str] | None = None) -> None:
        self.answers = {
            message: list(value) if isinstance(value, list) else [value]
            for message, value in (answers or {}).items()
        }
        self.asked: list[tuple[str, str]] = []
        self.invalid: list[str] = []

    def ask(self, message: str, default: str) -> str:
        self.asked.append((message, default))
        queue = self.answers.get(message)
        if queue:
            return queue.pop(0)
        return default

    def report_invalid(self, message: str) -> None:
        self.invalid.append(message)

    @property
    def messages(self) -> list[str]:
        return [message for message, _ in self.asked]


@pytest.fixture
def scripted_prompter():
    """Factory for ``ScriptedPrompter`` instances."""
    return ScriptedPrompter


@pytest.fixture(autouse=True)
def fake_identity():
    """Keep the resolver away from git config and the GitHub API.

    Patches the identity guesses the resolver's defaults call and yields
    the mocks so tests can change their return values.
    """
    with patch(
        "create_itk_app.resolver.resolver.guess_author",
        AsyncMock(return_value="Guessed Author"),
    ) as author, patch(
        "create_itk_app.resolver.resolver.guess_email",
        AsyncMock(return_value="guessed@example.com"),
    ) as email, patch(
        "create_itk_app.resolver.resolver.guess_github_username",
        AsyncMock(return_value="guessed-user"),
    ) as github_user:
        yield {"author": author, "email": email, "github_user": github_user}


# ---------------------------------------------------------------------------
# Mock subprocess
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory


# ---------------------------------------------------------------------------
# Fake external tools
# ---------------------------------------------------------------------------

_FAKE_BOOTSTRAPPER = '''
import json, os, subprocess, sys
from pathlib import Path

exit_code = int(os.environ.get("FAKE_BOOTSTRAP_EXIT", "0"))
destination = Path(sys.argv[-1])
destination.mkdir(parents=True, exist_ok=True)
if exit_code:
    (destination / "partial.txt").write_text("half done\\n")
    sys.exit(exit_code)

manifest = {manifest!r}
manifest["name"] = destination.name
(destination / "package.json").write_text(json.dumps(manifest, indent=2) + "\\n")
(destination / "package-lock.json").write_text('{{\\n  "lockfileVersion": 1\\n}}\\n')
(destination / "src").mkdir(exist_ok=True)
(destination / "src" / "App.js").write_text("// create-react-app\\n")
(destination / "src" / "App.css").write_text(".App {{}}\\n")

def git(*args):
    subprocess.run(["git", *args], cwd=destination, check=True, capture_output=True)

git("init")
git("config", "user.email", "test@create-itk-app.local")
git("config", "user.name", "Create ITK App Test")
git("config", "commit.gpgsign", "false")
git("add", ".")
git("commit", "-m", "Initialize project using Create React App")
'''

_FAKE_INSTALLER = '''
import json, os, sys
from pathlib import Path

Path("installer-ran.txt").write_text(" ".join(sys.argv[1:]) + "\\n")
exit_code = int(os.environ.get("FAKE_INSTALL_EXIT", "0"))
if exit_code:
    sys.exit(exit_code)

packages = [arg for arg in sys.argv[2:] if not arg.startswith("--")]
lock = json.loads(Path("package-lock.json").read_text())
lock["dependencies"] = {{name: {{"version": "1.0.0"}} for name in packages}}
Path("package-lock.json").write_text(json.dumps(lock, indent=2) + "\\n")
'''


def _write_executable(path: Path, body: str) -> Path:
    path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8")
    path.chmod(0o755)
    return path


@pytest.fixture
def fake_tools(tmp_path: Path) -> dict[str, Path]:
    """Executable stand-ins for create-react-app and npm.

    The bootstrapper writes a create-react-app style project and commits it;
    ``FAKE_BOOTSTRAP_EXIT`` makes it fail after a partial write.  The
    installer records its argv in ``installer-ran.txt`` and fills
    ``package-lock.json``; ``FAKE_INSTALL_EXIT`` makes it fail.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    return {
        "bootstrapper": _write_executable(
            bin_dir / "fake-create-react-app", _FAKE_BOOTSTRAPPER.format(manifest=CRA_MANIFEST)
        ),
        "installer": _write_executable(bin_dir / "fake-npm", _FAKE_INSTALLER.format()),
    }


@pytest.fixture
def fake_settings(fake_tools: dict[str, Path]) -> Settings:
    """Settings that run the fake tools instead of npx / npm."""
    return Settings(
        bootstrapper=[str(fake_tools["bootstrapper"])],
        installer=str(fake_tools["installer"]),
        step_timeout=120,
    )
