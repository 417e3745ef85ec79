"""Post-generation edits to the bootstrapped project.

Rewrites the generated ``package.json`` in place and materializes the
craco configuration and the starter ``src/App.js`` from templates.

Quick usage::

    from create_itk_app.scaffolder import ManifestFile, TemplateMaterializer

    manifest = ManifestFile.load(config.destination / "package.json")
    apply_mutations(manifest, manifest_mutations(config, settings))
    manifest.save()

    outcomes = await TemplateMaterializer(settings).materialize_all(config)
"""

from create_itk_app.scaffolder.manifest import (
    ManifestFile,
    apply_mutations,
    manifest_mutations,
)
from create_itk_app.scaffolder.materializer import (
    TEMPLATES,
    TemplateMaterializer,
    TemplateSpec,
)
from create_itk_app.scaffolder.templates import TemplateRenderer, build_context

__all__ = [
    "ManifestFile",
    "TEMPLATES",
    "TemplateMaterializer",
    "TemplateRenderer",
    "TemplateSpec",
    "apply_mutations",
    "build_context",
    "manifest_mutations",
]
