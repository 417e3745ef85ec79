"""npm package-name validation and name helpers.

``validate_package_name`` applies the rules npm enforces for *new*
packages: an app name that passes can be published and installed as-is.
"""

from __future__ import annotations

import re
from urllib.parse import quote

MAX_PACKAGE_NAME_LENGTH = 214

BLACKLISTED_NAMES: frozenset[str] = frozenset({"node_modules", "favicon.ico"})

# Node.js core modules; npm refuses new packages that shadow them.
NODE_BUILTINS: frozenset[str] = frozenset({
    "assert", "async_hooks", "buffer", "child_process", "cluster", "console",
    "constants", "crypto", "dgram", "diagnostics_channel", "dns", "domain",
    "events", "fs", "http", "http2", "https", "inspector", "module", "net",
    "os", "path", "perf_hooks", "process", "punycode", "querystring",
    "readline", "repl", "stream", "string_decoder", "sys", "timers", "tls",
    "trace_events", "tty", "url", "util", "v8", "vm", "wasi",
    "worker_threads", "zlib",
})

_SCOPED_NAME = re.compile(r"^(?:@([^/]+?)/)?([^/]+?)$")
_SPECIAL_CHARS = re.compile(r"[~'!()*]")


def _url_safe(value: str) -> bool:
    """Return ``True`` if *value* survives JavaScript's ``encodeURIComponent``."""
    return quote(value, safe="-_.!~*'()") == value


def validate_package_name(name: str) -> list[str]:
    """Return every reason *name* is not a valid new npm package name.

    An empty list means the name is valid.

    Examples::

        validate_package_name("my-app")   -> []
        validate_package_name("My App")   -> ["name can no longer contain capital letters",
                                              "name can only contain URL-friendly characters"]
    """
    if not isinstance(name, str):
        return ["name must be a string"]
    if not name:
        return ["name length must be greater than zero"]

    errors: list[str] = []
    if name.startswith("."):
        errors.append("name cannot start with a period")
    if name.startswith("_"):
        errors.append("name cannot start with an underscore")
    if name.strip() != name:
        errors.append("name cannot contain leading or trailing spaces")

    lowered = name.lower()
    if lowered in BLACKLISTED_NAMES:
        errors.append(f"{name} is a blacklisted name")
    if lowered in NODE_BUILTINS:
        errors.append(f"{name} is a core module name")
    if len(name) > MAX_PACKAGE_NAME_LENGTH:
        errors.append(
            f"name can no longer contain more than {MAX_PACKAGE_NAME_LENGTH} characters"
        )
    if lowered != name:
        errors.append("name can no longer contain capital letters")
    if _SPECIAL_CHARS.search(name.split("/")[-1]):
        errors.append("name can no longer contain special characters (\"~'!()*\")")

    if not _url_safe(name):
        match = _SCOPED_NAME.match(name)
        scoped_ok = (
            match is not None
            and match.group(1) is not None
            and _url_safe(match.group(1))
            and _url_safe(match.group(2))
        )
        if not scoped_ok:
            errors.append("name can only contain URL-friendly characters")

    return errors


def is_valid_package_name(name: str) -> bool:
    """Shorthand for ``not validate_package_name(name)``."""
    return not validate_package_name(name)


def kebab_case(value: str) -> str:
    """Convert an arbitrary string to ``kebab-case``.

    Splits on anything that is not a letter or digit (Unicode letters are
    kept) and on ASCII lower-to-upper case boundaries.

    Examples::

        kebab_case("My ITK App")  -> "my-itk-app"
        kebab_case("fooBar_baz")  -> "foo-bar-baz"
        kebab_case("XMLParser")   -> "xml-parser"
        kebab_case("Café Viewer") -> "café-viewer"
    """
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", s1)
    words = re.findall(r"[^\W_]+", s2)
    return "-".join(word.lower() for word in words)
