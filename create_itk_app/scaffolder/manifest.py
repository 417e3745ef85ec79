"""In-place editing of the generated project's ``package.json``.

``ManifestFile`` loads the manifest as an ordered key/value tree, applies
point mutations addressed by dotted keys (``scripts.start``) and writes the
whole document back atomically.  Keys nobody touched keep their position
and value, and the original indentation and trailing newline are reused.
"""

from __future__ import annotations

import copy
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from create_itk_app.config import Settings
from create_itk_app.errors import (
    ConfigFileNotFound,
    ConfigFileParseError,
    ConfigFileWriteError,
)
from create_itk_app.models import ResolvedConfig

_MISSING = object()


class ManifestFile:
    """A JSON manifest loaded for editing.

    Use :meth:`load` rather than the constructor.
    """

    def __init__(self, path: Path, data: dict[str, Any], raw: str) -> None:
        self.path = path
        self.data = data
        self._raw = raw
        self._original = copy.deepcopy(data)
        self._indent = _detect_indent(raw)
        self._trailing_newline = raw.endswith("\n")

    @classmethod
    def load(cls, path: str | Path) -> "ManifestFile":
        """Read and parse the manifest at *path*.

        Raises:
            ConfigFileNotFound: If *path* does not exist.
            ConfigFileParseError: If the file is unreadable or not a JSON object.
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise ConfigFileNotFound(f"Manifest not found: {file_path}", path=file_path)
        try:
            raw = file_path.read_text(encoding="utf-8")
            data = json.loads(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ConfigFileParseError(
                f"Could not parse manifest {file_path}: {exc}", path=file_path
            ) from exc
        if not isinstance(data, dict):
            raise ConfigFileParseError(
                f"Manifest {file_path} is not a JSON object", path=file_path
            )
        return cls(file_path, data, raw)

    # -- Access ------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value at dotted *key*, or *default* when absent."""
        node: Any = self.data
        for part in _split_key(key):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def has(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    # -- Mutation ----------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        """Set dotted *key* to *value*, overwriting whatever was there.

        Missing intermediate objects are created; an intermediate that is
        not an object (``"repository": "user/repo"``) is replaced by one.
        An existing key keeps its position; a new key is appended.
        """
        parts = _split_key(key)
        node = self.data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = copy.deepcopy(value)

    def set_default(self, key: str, value: Any) -> bool:
        """Set dotted *key* only if it is absent.  Returns ``True`` if set."""
        if self.has(key):
            return False
        self.set(key, value)
        return True

    @property
    def changed(self) -> bool:
        """Whether the in-memory document differs from what was loaded."""
        return self.data != self._original

    # -- Persistence -------------------------------------------------------

    def dumps(self) -> str:
        """Serialise the document the way it will be saved."""
        if not self.changed:
            return self._raw
        text = json.dumps(self.data, indent=self._indent, ensure_ascii=False)
        return text + "\n" if self._trailing_newline else text

    def save(self) -> Path:
        """Write the document back to :attr:`path` atomically.

        The content goes to a temporary file in the same directory which is
        then renamed over the manifest, so a failed write never leaves a
        truncated ``package.json`` behind.

        Raises:
            ConfigFileWriteError: On any I/O failure.
        """
        content = self.dumps()
        tmp_name: str | None = None
        try:
            mode = self.path.stat().st_mode & 0o777 if self.path.exists() else 0o644
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(content)
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise ConfigFileWriteError(
                f"Could not write manifest {self.path}: {exc}", path=self.path
            ) from exc

        self._raw = content
        self._original = copy.deepcopy(self.data)
        return self.path


# ---------------------------------------------------------------------------
# The fixed mutation set
# ---------------------------------------------------------------------------


def manifest_mutations(config: ResolvedConfig, settings: Settings) -> list[tuple[str, Any]]:
    """Return the ``(dotted key, value)`` pairs written into every manifest.

    Besides the identity fields this rebinds the ``start``, ``build`` and
    ``test`` scripts to the replacement build tool, which is what wires the
    craco plugins into the generated project's lifecycle.
    """
    mutations: list[tuple[str, Any]] = [
        ("name", config.app_name),
        ("author", str(config.author)),
        ("description", config.description),
        ("keywords", list(settings.keywords)),
        ("license", settings.license),
        ("homepage", config.homepage),
    ]
    mutations.extend(
        (f"scripts.{name}", command) for name, command in settings.lifecycle_scripts.items()
    )
    mutations.extend([
        ("repository.type", "git"),
        ("repository.url", config.repository_url),
    ])
    return mutations


def apply_mutations(manifest: ManifestFile, mutations: list[tuple[str, Any]]) -> None:
    """Apply every mutation as an unconditional overwrite."""
    for key, value in mutations:
        manifest.set(key, value)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _split_key(key: str) -> list[str]:
    parts = key.split(".")
    if not key or any(not part for part in parts):
        raise ValueError(f"Invalid manifest key: {key!r}")
    return parts


def _detect_indent(raw: str) -> int | str:
    """Return the indentation used by the first indented line of *raw*.

    Falls back to two spaces, npm's own default.
    """
    match = re.search(r"^([ \t]+)\S", raw, flags=re.MULTILINE)
    if not match:
        return 2
    indent = match.group(1)
    if set(indent) == {" "}:
        return len(indent)
    return indent
