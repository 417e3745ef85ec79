"""Data model shared by every stage of the scaffolding pipeline.

``ResolvedConfig`` is the immutable record produced once per run by the
resolver and passed explicitly to every downstream component.  The
remaining types describe what each stage did: step results from the
process driver, write outcomes from the materializer, the commit result
and the overall ``PipelineResult``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from create_itk_app.errors import ExternalProcessFailed
from create_itk_app.naming import validate_package_name


# ---------------------------------------------------------------------------
# Resolved configuration
# ---------------------------------------------------------------------------


class Author(BaseModel):
    """Package author, rendered the way npm displays it."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="")
    email: str | None = Field(default=None)
    url: str | None = Field(default=None)

    def __str__(self) -> str:
        parts = [self.name] if self.name else []
        if self.email:
            parts.append(f"<{self.email}>")
        if self.url:
            parts.append(f"({self.url})")
        return " ".join(parts)


class ResolvedConfig(BaseModel):
    """Fully resolved answers for one scaffolding run.

    Every field is set; nothing is asked later.  ``app_name`` is checked
    against the npm package-name rules at construction time.
    """

    model_config = ConfigDict(frozen=True)

    destination: Path
    app_name: str
    description: str = Field(default="")
    author: Author = Field(default_factory=Author)
    homepage: str = Field(default="")
    github_user: str = Field(default="")
    repo: str = Field(default="")

    @field_validator("destination")
    @classmethod
    def _absolute_destination(cls, value: Path) -> Path:
        if not value.is_absolute():
            raise ValueError(f"destination must be an absolute path: {value}")
        return value

    @field_validator("app_name")
    @classmethod
    def _valid_app_name(cls, value: str) -> str:
        problems = validate_package_name(value)
        if problems:
            raise ValueError(", ".join(problems))
        return value

    @property
    def repository_url(self) -> str:
        """Git URL written to ``repository.url`` in the manifest."""
        return f"git+https://github.com/{self.github_user}/{self.repo}.git"


def default_homepage(github_user: str, repo: str) -> str:
    """Homepage used when none is given: the project's GitHub page."""
    return f"https://github.com/{github_user}/{repo}"


# ---------------------------------------------------------------------------
# Process driver
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PipelineStep:
    """One external command run by the process driver."""

    name: str
    argv: tuple[str, ...]
    cwd: Path | None = None
    inherit_stdin: bool = False

    @property
    def command_line(self) -> str:
        return " ".join(self.argv)


@dataclass
class StepResult:
    """Outcome of running a ``PipelineStep``.  Success means exit code 0."""

    step: PipelineStep
    exit_code: int | None
    duration_seconds: float = 0.0
    timed_out: bool = False
    error: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    def raise_for_status(self) -> None:
        """Raise ``ExternalProcessFailed`` unless the step succeeded."""
        if not self.success:
            raise ExternalProcessFailed(self.step.name, self.exit_code, self.error)


# ---------------------------------------------------------------------------
# Template materializer
# ---------------------------------------------------------------------------


class OverwritePolicy(str, Enum):
    """What to do when a template's target file already exists."""

    OVERWRITE = "overwrite"
    SKIP_IF_EXISTS = "skip-if-exists"


class WriteAction(str, Enum):
    CREATED = "created"
    OVERWRITTEN = "overwritten"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class WriteOutcome:
    """What the materializer did for one template."""

    template: str
    path: Path
    action: WriteAction
    policy: OverwritePolicy


# ---------------------------------------------------------------------------
# Commit finalizer
# ---------------------------------------------------------------------------


@dataclass
class CommitResult:
    """Outcome of the best-effort commit step."""

    success: bool
    paths: list[str] = field(default_factory=list)
    message: str = ""
    commit_sha: str = ""
    error: str = ""


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class PipelineStage(str, Enum):
    RESOLVING_CONFIG = "resolving-config"
    RUNNING_GENERATOR = "running-generator"
    INSTALLING_DEPENDENCIES = "installing-dependencies"
    MUTATING_CONFIG = "mutating-config"
    WRITING_TEMPLATES = "writing-templates"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


# Forward order of the non-terminal stages followed by DONE.
STAGE_ORDER: tuple[PipelineStage, ...] = (
    PipelineStage.RESOLVING_CONFIG,
    PipelineStage.RUNNING_GENERATOR,
    PipelineStage.INSTALLING_DEPENDENCIES,
    PipelineStage.MUTATING_CONFIG,
    PipelineStage.WRITING_TEMPLATES,
    PipelineStage.COMMITTING,
    PipelineStage.DONE,
)


@dataclass
class PipelineResult:
    """Everything a scaffolding run did, successful or not."""

    stage: PipelineStage
    config: ResolvedConfig | None = None
    failed_stage: PipelineStage | None = None
    reason: str = ""
    stages_completed: list[PipelineStage] = field(default_factory=list)
    steps: list[StepResult] = field(default_factory=list)
    writes: list[WriteOutcome] = field(default_factory=list)
    commit: CommitResult | None = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.stage is PipelineStage.DONE

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1
