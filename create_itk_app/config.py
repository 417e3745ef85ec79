"""create-itk-app tool settings.

Centralised, typed settings for the scaffolding pipeline: which external
commands to run, which plugins to install and wire into the build, what to
write into the manifest and how to commit.  All settings use Pydantic v2
models so they are validated at construction time.  These are settings of
the *tool*; the per-run identity answers live in ``ResolvedConfig``.
"""

from __future__ import annotations

import os
import shlex
from typing import Any

from pydantic import BaseModel, Field

from create_itk_app.models import OverwritePolicy


class CracoPlugin(BaseModel):
    """A build-tool plugin registered in ``craco.config.js``."""

    name: str = Field(
        ..., pattern=r"^[A-Za-z_$][A-Za-z0-9_$]*$", description="Identifier bound by require() in the config"
    )
    package: str = Field(..., description="npm package exporting the plugin factory")


DEFAULT_PLUGIN_PACKAGES: list[str] = [
    "@craco/craco",
    "craco-itk",
    "itk",
    "craco-vtk",
    "vtk.js",
    "shader-loader",
    "worker-loader",
]

DEFAULT_CRACO_PLUGINS: list[CracoPlugin] = [
    CracoPlugin(name="CracoItkPlugin", package="craco-itk"),
    CracoPlugin(name="CracoVtkPlugin", package="craco-vtk"),
]


class Settings(BaseModel):
    """Global create-itk-app settings.

    Instances are created once by the CLI entry point (usually through
    :meth:`from_env`) and passed explicitly to every pipeline component.
    """

    bootstrapper: list[str] = Field(
        default_factory=lambda: ["npx", "create-react-app"],
        min_length=1,
        description="Command that creates the base project; the destination is appended",
    )
    installer: str = Field(default="npm", description="Package manager executable")
    install_flags: list[str] = Field(default_factory=lambda: ["--save", "--silent"])
    plugin_packages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PLUGIN_PACKAGES), min_length=1
    )
    craco_plugins: list[CracoPlugin] = Field(
        default_factory=lambda: [p.model_copy() for p in DEFAULT_CRACO_PLUGINS],
        description="Plugins in the order they wrap the build pipeline",
    )
    build_tool: str = Field(default="craco", description="Command the lifecycle scripts invoke")
    keywords: list[str] = Field(default_factory=lambda: ["itk.js"])
    license: str = Field(default="Apache-2.0")
    manifest_name: str = Field(default="package.json")
    lock_file_name: str = Field(default="package-lock.json")
    commit_message: str = Field(default="Updates from Create ITK App")
    step_timeout: int = Field(
        default=1800, ge=1, description="Per-step timeout for external processes in seconds"
    )
    git_timeout: int = Field(default=60, ge=1, description="Timeout for each git command in seconds")
    overwrite_policy: OverwritePolicy = Field(default=OverwritePolicy.OVERWRITE)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def lifecycle_scripts(self) -> dict[str, str]:
        """The ``scripts`` entries rebound to the replacement build tool."""
        return {name: f"{self.build_tool} {name}" for name in ("start", "build", "test")}

    def install_command(self) -> list[str]:
        """Return the full installer argv, e.g. ``npm install --save ...``."""
        return [self.installer, "install", *self.install_flags, *self.plugin_packages]

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "Settings":
        """Build ``Settings`` from environment variables.

        Recognised variables (all optional):
            CREATE_ITK_APP_BOOTSTRAPPER, CREATE_ITK_APP_INSTALLER,
            CREATE_ITK_APP_STEP_TIMEOUT, CREATE_ITK_APP_ON_EXISTING,
            CREATE_ITK_APP_COMMIT_MESSAGE.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("CREATE_ITK_APP_BOOTSTRAPPER"):
            kwargs["bootstrapper"] = shlex.split(os.environ["CREATE_ITK_APP_BOOTSTRAPPER"])
        if os.environ.get("CREATE_ITK_APP_INSTALLER"):
            kwargs["installer"] = os.environ["CREATE_ITK_APP_INSTALLER"]
        if os.environ.get("CREATE_ITK_APP_STEP_TIMEOUT"):
            kwargs["step_timeout"] = int(os.environ["CREATE_ITK_APP_STEP_TIMEOUT"])
        if os.environ.get("CREATE_ITK_APP_ON_EXISTING"):
            kwargs["overwrite_policy"] = OverwritePolicy(os.environ["CREATE_ITK_APP_ON_EXISTING"])
        if os.environ.get("CREATE_ITK_APP_COMMIT_MESSAGE"):
            kwargs["commit_message"] = os.environ["CREATE_ITK_APP_COMMIT_MESSAGE"]
        return cls(**kwargs)
