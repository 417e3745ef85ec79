"""Configuration resolver.

Turns command-line flags, interactive answers and computed defaults into
the one immutable ``ResolvedConfig`` every later stage receives.

Key classes:
    ConfigResolver    - Resolves all fields in dependency order
    CliOptions        - Raw, optional command-line values
    RichPrompter      - Terminal prompts via rich
    DefaultsPrompter  - Non-interactive mode (``--yes``)
"""

from .resolver import (
    FIELDS,
    CliOptions,
    ConfigResolver,
    DefaultsPrompter,
    FieldSpec,
    RichPrompter,
    resolution_order,
)

__all__ = [
    "FIELDS",
    "CliOptions",
    "ConfigResolver",
    "DefaultsPrompter",
    "FieldSpec",
    "RichPrompter",
    "resolution_order",
]
