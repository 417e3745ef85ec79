"""Error taxonomy for the create-itk-app scaffolding pipeline.

Every error carries a one-line, human-readable message that the pipeline
prints verbatim when it aborts.  Only ``VersionControlError`` is non-fatal:
the commit step converts it into a failed ``CommitResult`` instead of
letting it escape.
"""

from __future__ import annotations

from pathlib import Path


class ScaffoldError(Exception):
    """Base class for every error raised by the scaffolding pipeline."""


class InvalidConfiguration(ScaffoldError):
    """Raised when user input cannot be turned into a ``ResolvedConfig``."""

    def __init__(self, message: str, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class ExternalProcessFailed(ScaffoldError):
    """Raised when an external generator or installer step does not exit 0."""

    def __init__(self, step_name: str, exit_code: int | None, detail: str = "") -> None:
        self.step_name = step_name
        self.exit_code = exit_code
        self.detail = detail
        if exit_code is None:
            message = f"Could not run {step_name}"
        else:
            message = f"Could not run {step_name} (exit code {exit_code})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ConfigFileError(ScaffoldError):
    """Base class for manifest (``package.json``) errors."""

    def __init__(self, message: str, path: str | Path = "") -> None:
        self.path = Path(path) if path else None
        super().__init__(message)


class ConfigFileNotFound(ConfigFileError):
    """The manifest the bootstrapper should have written does not exist."""


class ConfigFileParseError(ConfigFileError):
    """The manifest exists but is not a JSON object."""


class ConfigFileWriteError(ConfigFileError):
    """The manifest could not be written back to disk."""


class TemplateWriteError(ScaffoldError):
    """A rendered template could not be written to the destination."""

    def __init__(self, message: str, path: str | Path = "") -> None:
        self.path = Path(path) if path else None
        super().__init__(message)


class VersionControlError(ScaffoldError):
    """A git operation failed.  Never aborts the pipeline."""

    def __init__(self, message: str, command: str = "", stderr: str = "") -> None:
        self.command = command
        self.stderr = stderr
        super().__init__(message)
