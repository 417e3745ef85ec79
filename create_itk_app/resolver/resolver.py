"""Configuration resolver: CLI flags + prompts + defaults -> ``ResolvedConfig``.

Each field is resolved independently with the precedence

    explicit flag  >  interactive answer  >  computed default

Defaults are computed lazily and may read fields resolved before them
(``repo`` defaults to ``app_name``, ``homepage`` to the GitHub URL built
from ``github_user`` and ``repo``).  The order fields are visited in is a
topological order of those dependencies, with ties broken by declaration
order, so prompts always appear in the same sequence.
"""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from graphlib import CycleError, TopologicalSorter
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError
from rich.console import Console
from rich.prompt import Prompt

from create_itk_app.errors import InvalidConfiguration
from create_itk_app.models import Author, ResolvedConfig, default_homepage
from create_itk_app.naming import kebab_case, validate_package_name
from create_itk_app.resolver.identity import (
    guess_author,
    guess_email,
    guess_github_username,
)
from create_itk_app.utils import console as default_console

DEFAULT_DESCRIPTION = "An Insight Toolkit (ITK) app"


class CliOptions(BaseModel):
    """Raw command-line input.  ``None`` means the flag was not given."""

    destination: str | None = Field(default=None)
    app_name: str | None = Field(default=None)
    description: str | None = Field(default=None)
    author: str | None = Field(default=None)
    email: str | None = Field(default=None)
    homepage: str | None = Field(default=None)
    github_user: str | None = Field(default=None)
    repo: str | None = Field(default=None)
    assume_defaults: bool = Field(default=False, description="Accept defaults, never prompt")


# ---------------------------------------------------------------------------
# Prompters
# ---------------------------------------------------------------------------


class Prompter(Protocol):
    interactive: bool

    def ask(self, message: str, default: str) -> str: ...

    def report_invalid(self, message: str) -> None: ...


class RichPrompter:
    """Asks each question on the terminal with ``rich.prompt.Prompt``."""

    interactive = True

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or default_console

    def ask(self, message: str, default: str) -> str:
        if default:
            return Prompt.ask(message, default=default, console=self.console)
        return Prompt.ask(message, console=self.console)

    def report_invalid(self, message: str) -> None:
        self.console.print(f"[prompt.invalid]>> {message}")


class DefaultsPrompter:
    """Answers every question with its computed default (``--yes``)."""

    interactive = False

    def ask(self, message: str, default: str) -> str:
        return default

    def report_invalid(self, message: str) -> None:
        pass


# ---------------------------------------------------------------------------
# Field specifications
# ---------------------------------------------------------------------------

DefaultFn = Callable[[dict[str, str], Path], Awaitable[str]]


@dataclass(frozen=True)
class FieldSpec:
    """How one ``ResolvedConfig`` field is obtained."""

    name: str
    flag: str
    message: str
    default: DefaultFn
    depends_on: tuple[str, ...] = ()
    validate: Callable[[str], list[str]] | None = None


async def _default_app_name(answers: dict[str, str], destination: Path) -> str:
    return kebab_case(destination.name)


async def _default_description(answers: dict[str, str], destination: Path) -> str:
    return DEFAULT_DESCRIPTION


async def _default_author(answers: dict[str, str], destination: Path) -> str:
    return await guess_author()


async def _default_email(answers: dict[str, str], destination: Path) -> str:
    return await guess_email()


async def _default_github_user(answers: dict[str, str], destination: Path) -> str:
    return await guess_github_username(answers.get("email", ""))


async def _default_repo(answers: dict[str, str], destination: Path) -> str:
    return answers.get("app_name") or kebab_case(destination.name)


async def _default_homepage(answers: dict[str, str], destination: Path) -> str:
    return default_homepage(answers["github_user"], answers["repo"])


FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("app_name", "--appName", "App name:", _default_app_name,
              validate=validate_package_name),
    FieldSpec("description", "--desc", "Description of app:", _default_description),
    FieldSpec("author", "--author", "Author's full name:", _default_author),
    FieldSpec("email", "--email", "Author's email address:", _default_email),
    FieldSpec("github_user", "--user", "GitHub user or org name:", _default_github_user,
              depends_on=("email",)),
    FieldSpec("repo", "--repo", "Repository name:", _default_repo,
              depends_on=("app_name",)),
    FieldSpec("homepage", "--homepage", "Homepage:", _default_homepage,
              depends_on=("github_user", "repo")),
)


def resolution_order(fields: tuple[FieldSpec, ...] | list[FieldSpec]) -> list[str]:
    """Return field names in dependency order.

    Fields whose dependencies are all resolved are released together and
    emitted in declaration order, so the result is deterministic.

    Raises:
        InvalidConfiguration: On an unknown dependency or a dependency cycle.
    """
    index = {spec.name: position for position, spec in enumerate(fields)}
    for spec in fields:
        unknown = [dep for dep in spec.depends_on if dep not in index]
        if unknown:
            raise InvalidConfiguration(
                f"Field '{spec.name}' depends on unknown field(s): {', '.join(unknown)}",
                field=spec.name,
            )

    sorter = TopologicalSorter({spec.name: spec.depends_on for spec in fields})
    try:
        sorter.prepare()
    except CycleError as exc:
        cycle = " -> ".join(exc.args[1]) if len(exc.args) > 1 else "?"
        raise InvalidConfiguration(f"Field defaults form a cycle: {cycle}") from exc

    order: list[str] = []
    while sorter.is_active():
        ready = sorted(sorter.get_ready(), key=index.__getitem__)
        order.extend(ready)
        sorter.done(*ready)
    return order


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ConfigResolver:
    """Builds the single ``ResolvedConfig`` for a run.

    Args:
        prompter: Source of interactive answers.  Defaults to terminal
            prompts, or to accepting defaults when ``assume_defaults`` is set
            on the options.
        fields: Field specifications; exposed for tests.
        cwd: Base directory for a relative or missing destination.
    """

    def __init__(
        self,
        prompter: Prompter | None = None,
        fields: tuple[FieldSpec, ...] = FIELDS,
        cwd: str | Path | None = None,
    ) -> None:
        self.prompter = prompter
        self.fields = fields
        self.cwd = Path(cwd) if cwd else None

    async def resolve(self, options: CliOptions) -> ResolvedConfig:
        """Resolve every field and return the immutable configuration.

        Raises:
            InvalidConfiguration: When a flag value is invalid, the
                destination is unusable, or no valid answer can be obtained.
        """
        destination = self.resolve_destination(options.destination)
        prompter = self.prompter or (
            DefaultsPrompter() if options.assume_defaults else RichPrompter()
        )
        specs = {spec.name: spec for spec in self.fields}

        answers: dict[str, str] = {}
        for name in resolution_order(self.fields):
            spec = specs[name]
            flag_value = getattr(options, name, None)
            if flag_value is not None:
                problems = spec.validate(flag_value) if spec.validate else []
                if problems:
                    raise InvalidConfiguration(
                        f"Invalid {spec.flag} '{flag_value}': {', '.join(problems)}",
                        field=name,
                    )
                answers[name] = flag_value
                continue

            default = await spec.default(answers, destination)
            answers[name] = self._ask(prompter, spec, default)

        return self._build(destination, answers)

    def resolve_destination(self, raw: str | None) -> Path:
        """Return the absolute destination, checking it exists or can be created."""
        base = self.cwd or Path.cwd()
        destination = (base / raw).resolve() if raw else base.resolve()

        if destination.exists() and not destination.is_dir():
            raise InvalidConfiguration(
                f"Destination exists and is not a directory: {destination}",
                field="destination",
            )

        ancestor = destination
        while not ancestor.exists():
            ancestor = ancestor.parent
        if not ancestor.is_dir() or not os.access(ancestor, os.W_OK):
            raise InvalidConfiguration(
                f"Destination cannot be created under {ancestor}",
                field="destination",
            )
        return destination

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _ask(prompter: Prompter, spec: FieldSpec, default: str) -> str:
        while True:
            try:
                value = prompter.ask(spec.message, default)
            except EOFError as exc:
                raise InvalidConfiguration(
                    f"No answer for '{spec.message}' (stdin closed); "
                    f"pass {spec.flag} or use --yes",
                    field=spec.name,
                ) from exc

            problems = spec.validate(value) if spec.validate else []
            if not problems:
                return value
            if not prompter.interactive:
                raise InvalidConfiguration(
                    f"Default for {spec.flag} '{value}' is invalid: {', '.join(problems)}",
                    field=spec.name,
                )
            prompter.report_invalid(", ".join(problems))

    @staticmethod
    def _build(destination: Path, answers: dict[str, str]) -> ResolvedConfig:
        try:
            return ResolvedConfig(
                destination=destination,
                app_name=answers["app_name"],
                description=answers["description"],
                author=Author(name=answers["author"], email=answers["email"] or None),
                homepage=answers["homepage"],
                github_user=answers["github_user"],
                repo=answers["repo"],
            )
        except ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            raise InvalidConfiguration(
                f"Invalid {location or 'configuration'}: {first.get('msg', exc)}",
                field=location,
            ) from exc
