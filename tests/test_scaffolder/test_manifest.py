"""Unit tests for package.json editing (create_itk_app.scaffolder.manifest).

Tests cover:
- Loading: missing, malformed and non-object manifests
- Dotted-key get / has / set / set_default
- Serialisation that keeps key order, indentation and trailing newline
- Atomic save
- The fixed mutation set applied to a create-react-app manifest
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from create_itk_app.config import Settings
from create_itk_app.errors import (
    ConfigFileNotFound,
    ConfigFileParseError,
    ConfigFileWriteError,
)
from create_itk_app.models import ResolvedConfig
from create_itk_app.scaffolder import ManifestFile, apply_mutations, manifest_mutations


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoad:
    @pytest.mark.unit
    def test_load(self, manifest_path: Path):
        manifest = ManifestFile.load(manifest_path)
        assert manifest.get("name") == "demo"
        assert not manifest.changed

    @pytest.mark.unit
    def test_missing(self, tmp_path: Path):
        with pytest.raises(ConfigFileNotFound) as exc_info:
            ManifestFile.load(tmp_path / "package.json")
        assert exc_info.value.path == tmp_path / "package.json"

    @pytest.mark.unit
    def test_malformed(self, tmp_path: Path):
        path = tmp_path / "package.json"
        path.write_text('{"name": "demo",')
        with pytest.raises(ConfigFileParseError):
            ManifestFile.load(path)

    @pytest.mark.unit
    def test_not_an_object(self, tmp_path: Path):
        path = tmp_path / "package.json"
        path.write_text('["demo"]\n')
        with pytest.raises(ConfigFileParseError, match="not a JSON object"):
            ManifestFile.load(path)


# ---------------------------------------------------------------------------
# Dotted keys
# ---------------------------------------------------------------------------


class TestDottedKeys:
    @pytest.mark.unit
    def test_get_nested(self, manifest_path: Path):
        manifest = ManifestFile.load(manifest_path)
        assert manifest.get("scripts.start") == "react-scripts start"
        assert manifest.get("scripts.missing", "fallback") == "fallback"
        assert manifest.get("name.length") is None

    @pytest.mark.unit
    def test_has(self, manifest_path: Path):
        manifest = ManifestFile.load(manifest_path)
        assert manifest.has("eslintConfig.extends")
        assert not manifest.has("repository")

    @pytest.mark.unit
    def test_set_existing_keeps_position(self, manifest_path: Path):
        manifest = ManifestFile.load(manifest_path)
        before = list(manifest.data)
        manifest.set("version", "1.0.0")
        assert list(manifest.data) == before
        assert manifest.changed

    @pytest.mark.unit
    def test_set_creates_intermediate_objects(self, manifest_path: Path):
        manifest = ManifestFile.load(manifest_path)
        manifest.set("repository.url", "git+https://github.com/alice/demo.git")
        assert manifest.data["repository"] == {"url": "git+https://github.com/alice/demo.git"}
        assert list(manifest.data)[-1] == "repository"

    @pytest.mark.unit
    def test_set_replaces_non_object_intermediate(self, tmp_path: Path):
        path = tmp_path / "package.json"
        path.write_text('{"repository": "alice/demo"}\n')
        manifest = ManifestFile.load(path)
        manifest.set("repository.type", "git")
        assert manifest.data == {"repository": {"type": "git"}}

    @pytest.mark.unit
    def test_set_default(self, manifest_path: Path):
        manifest = ManifestFile.load(manifest_path)
        assert manifest.set_default("license", "MIT") is True
        assert manifest.set_default("license", "Apache-2.0") is False
        assert manifest.get("license") == "MIT"

    @pytest.mark.unit
    @pytest.mark.parametrize("key", ["", "scripts.", ".name", "a..b"])
    def test_invalid_key(self, manifest_path: Path, key: str):
        with pytest.raises(ValueError):
            ManifestFile.load(manifest_path).set(key, "x")

    @pytest.mark.unit
    def test_set_copies_value(self, manifest_path: Path):
        manifest = ManifestFile.load(manifest_path)
        keywords = ["itk.js"]
        manifest.set("keywords", keywords)
        keywords.append("mutated")
        assert manifest.get("keywords") == ["itk.js"]


# ---------------------------------------------------------------------------
# Serialisation & save
# ---------------------------------------------------------------------------


class TestSave:
    @pytest.mark.unit
    def test_unchanged_document_is_byte_identical(self, tmp_path: Path):
        raw = '{"name":"demo",   "version": "0.1.0"}'
        path = tmp_path / "package.json"
        path.write_text(raw)
        manifest = ManifestFile.load(path)
        manifest.save()
        assert path.read_text() == raw

    @pytest.mark.unit
    def test_keeps_order_indent_and_newline(self, manifest_path: Path, cra_manifest_text: str):
        manifest = ManifestFile.load(manifest_path)
        manifest.set("scripts.start", "craco start")
        manifest.save()

        text = manifest_path.read_text()
        expected = json.loads(cra_manifest_text)
        expected["scripts"]["start"] = "craco start"
        assert text == json.dumps(expected, indent=2) + "\n"

    @pytest.mark.unit
    def test_detects_four_space_indent(self, tmp_path: Path):
        path = tmp_path / "package.json"
        path.write_text('{\n    "name": "demo"\n}')
        manifest = ManifestFile.load(path)
        manifest.set("private", True)
        manifest.save()
        assert path.read_text() == '{\n    "name": "demo",\n    "private": true\n}'

    @pytest.mark.unit
    def test_non_ascii_is_kept_readable(self, manifest_path: Path):
        manifest = ManifestFile.load(manifest_path)
        manifest.set("author", "Zoë Ångström")
        manifest.save()
        assert "Zoë Ångström" in manifest_path.read_text(encoding="utf-8")

    @pytest.mark.unit
    def test_no_temporary_files_left(self, manifest_path: Path):
        manifest = ManifestFile.load(manifest_path)
        manifest.set("name", "renamed")
        manifest.save()
        assert sorted(p.name for p in manifest_path.parent.iterdir()) == ["package.json"]
        assert not manifest.changed

    @pytest.mark.unit
    def test_failed_write_keeps_original(self, manifest_path: Path, cra_manifest_text: str):
        manifest = ManifestFile.load(manifest_path)
        manifest.set("name", "renamed")
        with patch("create_itk_app.scaffolder.manifest.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(ConfigFileWriteError, match="disk full"):
                manifest.save()
        assert manifest_path.read_text() == cra_manifest_text
        assert sorted(p.name for p in manifest_path.parent.iterdir()) == ["package.json"]


# ---------------------------------------------------------------------------
# Mutation set
# ---------------------------------------------------------------------------


class TestMutations:
    @pytest.mark.unit
    def test_mutation_keys(self, resolved_config: ResolvedConfig, settings: Settings):
        keys = [key for key, _ in manifest_mutations(resolved_config, settings)]
        assert keys == [
            "name", "author", "description", "keywords", "license", "homepage",
            "scripts.start", "scripts.build", "scripts.test",
            "repository.type", "repository.url",
        ]

    @pytest.mark.unit
    def test_apply_to_create_react_app_manifest(
        self, manifest_path: Path, resolved_config: ResolvedConfig, settings: Settings
    ):
        manifest = ManifestFile.load(manifest_path)
        apply_mutations(manifest, manifest_mutations(resolved_config, settings))
        manifest.save()

        data = json.loads(manifest_path.read_text())
        assert data["name"] == "demo"
        assert data["author"] == "Jane Doe <jane@example.com>"
        assert data["description"] == "A demo app"
        assert data["keywords"] == ["itk.js"]
        assert data["license"] == "Apache-2.0"
        assert data["homepage"] == "https://github.com/alice/demo"
        assert data["scripts"] == {
            "start": "craco start",
            "build": "craco build",
            "test": "craco test",
            "eject": "react-scripts eject",
        }
        assert data["repository"] == {
            "type": "git",
            "url": "git+https://github.com/alice/demo.git",
        }
        # Untouched keys survive, in their original position.
        assert data["dependencies"]["react-scripts"] == "3.0.1"
        assert list(data)[:4] == ["name", "version", "private", "dependencies"]

    @pytest.mark.unit
    def test_applying_twice_is_idempotent(
        self, manifest_path: Path, resolved_config: ResolvedConfig, settings: Settings
    ):
        mutations = manifest_mutations(resolved_config, settings)
        manifest = ManifestFile.load(manifest_path)
        apply_mutations(manifest, mutations)
        manifest.save()
        first = manifest_path.read_text()

        again = ManifestFile.load(manifest_path)
        apply_mutations(again, mutations)
        assert not again.changed
        again.save()
        assert manifest_path.read_text() == first
