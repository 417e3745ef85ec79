"""Template materializer: render named templates and write them to disk.

Each named template maps one ``.j2`` file to a destination-relative path.
Rendering is pure (same config, same bytes); writing honours an explicit
``OverwritePolicy`` and reports what it did for every file.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from jinja2 import TemplateError

from create_itk_app.config import Settings
from create_itk_app.errors import TemplateWriteError
from create_itk_app.models import (
    OverwritePolicy,
    ResolvedConfig,
    WriteAction,
    WriteOutcome,
)
from create_itk_app.scaffolder.templates import TemplateRenderer, build_context


@dataclass(frozen=True)
class TemplateSpec:
    """A named template and where its output goes."""

    name: str
    template: str
    output: str


# Written in this order; ``output`` is relative to the destination.
TEMPLATES: tuple[TemplateSpec, ...] = (
    TemplateSpec("craco-config", "craco.config.js.j2", "craco.config.js"),
    TemplateSpec("app-source", "src/App.js.j2", "src/App.js"),
)


class TemplateMaterializer:
    """Renders the project templates for a ``ResolvedConfig`` and writes them."""

    def __init__(
        self,
        settings: Settings | None = None,
        renderer: TemplateRenderer | None = None,
        templates: tuple[TemplateSpec, ...] = TEMPLATES,
    ) -> None:
        self.settings = settings or Settings()
        self.renderer = renderer or TemplateRenderer()
        self.templates = {spec.name: spec for spec in templates}

    @property
    def output_paths(self) -> list[str]:
        """Destination-relative paths of every template, in write order."""
        return [spec.output for spec in self.templates.values()]

    def spec(self, name: str) -> TemplateSpec:
        try:
            return self.templates[name]
        except KeyError:
            raise KeyError(f"Unknown template: {name}") from None

    def render(self, name: str, config: ResolvedConfig) -> bytes:
        """Render template *name* for *config* as UTF-8 bytes."""
        spec = self.spec(name)
        context = build_context(config, self.settings)
        return self.renderer.render(spec.template, context).encode("utf-8")

    async def materialize(
        self,
        name: str,
        config: ResolvedConfig,
        policy: OverwritePolicy | None = None,
    ) -> WriteOutcome:
        """Render template *name* and write it below ``config.destination``.

        Raises:
            TemplateWriteError: If the template cannot be rendered or the
                file cannot be written.
        """
        policy = policy or self.settings.overwrite_policy
        spec = self.spec(name)
        target = config.destination / spec.output
        existed = target.exists()

        if existed and policy is OverwritePolicy.SKIP_IF_EXISTS:
            return WriteOutcome(name, target, WriteAction.SKIPPED, policy)

        try:
            content = self.render(name, config)
        except TemplateError as exc:
            raise TemplateWriteError(
                f"Could not render template {spec.template}: {exc}", path=target
            ) from exc

        try:
            await asyncio.to_thread(_write_file, target, content)
        except OSError as exc:
            raise TemplateWriteError(
                f"Could not write {target}: {exc.strerror or exc}", path=target
            ) from exc

        action = WriteAction.OVERWRITTEN if existed else WriteAction.CREATED
        return WriteOutcome(name, target, action, policy)

    async def materialize_all(
        self,
        config: ResolvedConfig,
        policy: OverwritePolicy | None = None,
    ) -> list[WriteOutcome]:
        """Materialize every registered template in order."""
        outcomes: list[WriteOutcome] = []
        for name in self.templates:
            outcomes.append(await self.materialize(name, config, policy))
        return outcomes


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _write_file(path: Path, content: bytes) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
