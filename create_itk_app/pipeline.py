"""create-itk-app pipeline orchestrator.

Drives one scaffolding run through its stages:

Stage 1: resolving-config         -- flags + prompts + defaults -> ResolvedConfig.
Stage 2: running-generator        -- ``npx create-react-app <destination>``.
Stage 3: installing-dependencies  -- ``npm install`` craco and the itk/vtk plugins.
Stage 4: mutating-config          -- rewrite identity fields and scripts in package.json.
Stage 5: writing-templates        -- craco.config.js and src/App.js.
Stage 6: committing               -- one git commit of the touched files (best effort).

Any fatal error moves the run to the terminal ``failed`` stage; nothing
that already happened is undone.

Usage::

    python -m create_itk_app my-app --appName my-app --yes
    create-itk-app ./viewer -n viewer -d "Volume viewer" -u kitware
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
import traceback

from rich.panel import Panel

from create_itk_app.config import Settings
from create_itk_app.errors import ScaffoldError
from create_itk_app.git_ops import GitCommitter
from create_itk_app.models import (
    STAGE_ORDER,
    OverwritePolicy,
    PipelineResult,
    PipelineStage,
    ResolvedConfig,
)
from create_itk_app.process import ProcessDriver, bootstrap_step, install_step
from create_itk_app.resolver import CliOptions, ConfigResolver
from create_itk_app.scaffolder import (
    ManifestFile,
    TemplateMaterializer,
    apply_mutations,
    manifest_mutations,
)
from create_itk_app.utils import (
    STAGE_TITLES,
    console,
    format_duration,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class StageTransitionError(RuntimeError):
    """Raised when the orchestrator is asked to move backwards."""


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """create-itk-app pipeline orchestrator.

    Collaborators are injectable so tests can replace the external
    processes; by default they are built from ``settings``.

    Attributes:
        settings: Tool settings shared by every stage.
        stage: Current stage; only ever moves forward or to ``failed``.
        result: Accumulates what each stage did.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        resolver: ConfigResolver | None = None,
        driver: ProcessDriver | None = None,
        materializer: TemplateMaterializer | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.resolver = resolver or ConfigResolver()
        self.driver = driver or ProcessDriver(timeout=self.settings.step_timeout)
        self.materializer = materializer or TemplateMaterializer(self.settings)
        self.stage = PipelineStage.RESOLVING_CONFIG
        self.result = PipelineResult(stage=self.stage)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _advance(self, stage: PipelineStage) -> None:
        """Complete the current stage and enter *stage*."""
        if self.stage is PipelineStage.FAILED or self.stage is PipelineStage.DONE:
            raise StageTransitionError(f"Pipeline already finished in stage {self.stage.value}")
        if STAGE_ORDER.index(stage) <= STAGE_ORDER.index(self.stage):
            raise StageTransitionError(
                f"Cannot move from {self.stage.value} back to {stage.value}"
            )
        self.result.stages_completed.append(self.stage)
        self.stage = stage
        self.result.stage = stage
        if stage is not PipelineStage.DONE:
            print_stage_header(stage)

    def _fail(self, reason: str) -> None:
        self.result.failed_stage = self.stage
        self.result.reason = reason
        self.stage = PipelineStage.FAILED
        self.result.stage = PipelineStage.FAILED

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, options: CliOptions) -> PipelineResult:
        """Execute every stage in order.

        Returns:
            The ``PipelineResult``; ``exit_code`` is 0 only if the run
            reached ``done``.
        """
        pipeline_start = time.monotonic()
        console.print(
            Panel(
                "[bold bright_cyan]Let's create an itk.js app![/bold bright_cyan]\n\n"
                "Hit enter to accept the suggestion.",
                border_style="bright_cyan",
            )
        )
        print_stage_header(PipelineStage.RESOLVING_CONFIG)

        try:
            config = await self.resolver.resolve(options)
            self.result.config = config

            self._advance(PipelineStage.RUNNING_GENERATOR)
            await self._run_generator(config)

            self._advance(PipelineStage.INSTALLING_DEPENDENCIES)
            await self._install_dependencies(config)

            self._advance(PipelineStage.MUTATING_CONFIG)
            self._mutate_manifest(config)

            self._advance(PipelineStage.WRITING_TEMPLATES)
            await self._write_templates(config)

            self._advance(PipelineStage.COMMITTING)
            await self._commit(config)

            self._advance(PipelineStage.DONE)

        except ScaffoldError as exc:
            self._fail(str(exc))
            print_error(f"{STAGE_TITLES.get(self.result.failed_stage, '?')} failed: {exc}")

        except Exception as exc:
            self._fail(f"{type(exc).__name__}: {exc}")
            print_error(
                f"{STAGE_TITLES.get(self.result.failed_stage, '?')} failed unexpectedly: {exc}"
            )
            console.print(f"[dim]{traceback.format_exc()}[/dim]", highlight=False)

        self.result.duration_seconds = time.monotonic() - pipeline_start
        self._print_final_summary()
        return self.result

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run_generator(self, config: ResolvedConfig) -> None:
        console.print("Creating React app!")
        result = await self.driver.run_step(bootstrap_step(config, self.settings))
        self.result.steps.append(result)
        result.raise_for_status()

    async def _install_dependencies(self, config: ResolvedConfig) -> None:
        console.print("Setting up craco...")
        result = await self.driver.run_step(install_step(config, self.settings))
        self.result.steps.append(result)
        result.raise_for_status()

    def _mutate_manifest(self, config: ResolvedConfig) -> None:
        manifest = ManifestFile.load(config.destination / self.settings.manifest_name)
        mutations = manifest_mutations(config, self.settings)
        apply_mutations(manifest, mutations)
        manifest.save()
        console.print(
            f"  [green]+[/green] {len(mutations)} key(s) set in {self.settings.manifest_name}"
        )

    async def _write_templates(self, config: ResolvedConfig) -> None:
        policy = self.settings.overwrite_policy
        outcomes = await self.materializer.materialize_all(config, policy)
        self.result.writes.extend(outcomes)
        for outcome in outcomes:
            relative = outcome.path.relative_to(config.destination).as_posix()
            console.print(
                f"  [green]+[/green] {relative}: {outcome.action.value} "
                f"[dim](policy: {outcome.policy.value})[/dim]"
            )

    async def _commit(self, config: ResolvedConfig) -> None:
        committer = GitCommitter(config.destination, timeout=self.settings.git_timeout)
        paths = [
            self.settings.manifest_name,
            self.settings.lock_file_name,
            *self.materializer.output_paths,
        ]
        commit = await committer.commit(paths, self.settings.commit_message)
        self.result.commit = commit
        if commit.success:
            console.print(f"  [green]+[/green] Committed {commit.commit_sha[:10]}")
        else:
            print_warning(f"  Could not commit the scaffold (files are kept): {commit.error}")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _print_final_summary(self) -> None:
        """Print the final pipeline summary panel."""
        result = self.result
        if result.config is not None:
            print_summary_table(
                {
                    "App name": result.config.app_name,
                    "Destination": str(result.config.destination),
                    "Author": str(result.config.author),
                    "Homepage": result.config.homepage,
                    "Repository": result.config.repository_url,
                },
                title="Configuration",
            )

        if result.success:
            border_style = "bold green"
            status_text = "[bold green]Enjoy building your itk.js app![/bold green]"
        else:
            border_style = "bold red"
            status_text = "[bold red]SCAFFOLDING FAILED[/bold red]"

        detail_lines = [
            status_text,
            "",
            f"Duration  : {format_duration(result.duration_seconds)}",
            f"Completed : {', '.join(s.value for s in result.stages_completed) or 'none'}",
        ]
        if result.failed_stage is not None:
            detail_lines.append(f"Failed    : {result.failed_stage.value}")
            detail_lines.append(f"Cause     : {result.reason}")
        if result.commit is not None:
            detail_lines.append(
                f"Commit    : {result.commit.commit_sha[:10] if result.commit.success else 'skipped'}"
            )

        console.print()
        console.print(
            Panel(
                "\n".join(detail_lines),
                title="[bold]create-itk-app[/bold]",
                border_style=border_style,
            ),
            highlight=False,
        )
        if result.success:
            print_success("Done.")


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="create-itk-app",
        usage="%(prog)s [options] [destination]",
        description="Create a React app wired up with itk.js and vtk.js",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  create-itk-app my-app\n"
            '  create-itk-app ./viewer -n viewer -d "Volume viewer" -u kitware --yes\n'
        ),
    )
    parser.add_argument(
        "destination",
        nargs="?",
        default=None,
        help="Directory to create the app in (default: current directory)",
    )
    parser.add_argument("-n", "--appName", dest="app_name", metavar="APP_NAME", help="App name")
    parser.add_argument(
        "-d", "--desc", dest="description", metavar='"DESCRIPTION"',
        help="Description (contain in quotes)",
    )
    parser.add_argument(
        "-a", "--author", dest="author", metavar='"FULL NAME"',
        help="Author name (contain in quotes)",
    )
    parser.add_argument("-e", "--email", dest="email", help="Author email address")
    parser.add_argument("--homepage", dest="homepage", help="Project's homepage")
    parser.add_argument(
        "-u", "--user", dest="github_user", metavar="USERNAME",
        help="GitHub username or org (repo owner)",
    )
    parser.add_argument("-r", "--repo", dest="repo", metavar="REPO_NAME", help="Repository name")
    parser.add_argument(
        "-y", "--yes", dest="assume_defaults", action="store_true",
        help="Accept the suggested value for every unanswered question",
    )
    parser.add_argument(
        "--on-existing",
        dest="overwrite_policy",
        choices=[policy.value for policy in OverwritePolicy],
        default=None,
        help="What to do when a template target already exists (default: overwrite)",
    )
    parser.add_argument(
        "--timeout",
        dest="step_timeout",
        type=int,
        default=None,
        help="Seconds each external step may run before it is killed",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``create-itk-app`` and ``python -m create_itk_app``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.step_timeout is not None and args.step_timeout < 1:
        console.print(f"[bold red]Error:[/bold red] --timeout must be at least 1 (got {args.step_timeout})")
        sys.exit(2)

    try:
        settings = Settings.from_env()
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] invalid CREATE_ITK_APP_* setting: {exc}")
        sys.exit(2)

    overrides: dict[str, object] = {}
    if args.overwrite_policy:
        overrides["overwrite_policy"] = OverwritePolicy(args.overwrite_policy)
    if args.step_timeout is not None:
        overrides["step_timeout"] = args.step_timeout
    if overrides:
        settings = settings.model_copy(update=overrides)

    options = CliOptions(
        destination=args.destination,
        app_name=args.app_name,
        description=args.description,
        author=args.author,
        email=args.email,
        homepage=args.homepage,
        github_user=args.github_user,
        repo=args.repo,
        assume_defaults=args.assume_defaults,
    )

    pipeline = Pipeline(settings)
    try:
        result = asyncio.run(pipeline.run(options))
    except KeyboardInterrupt:
        console.print("\n[bold red]Aborted.[/bold red]")
        sys.exit(130)

    sys.exit(result.exit_code)


if __name__ == "__main__":
    main()
