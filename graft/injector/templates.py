"""Jinja2 rendering of the lines injected into aggregation files.

Each anchor kind has two snippet templates, ``<kind>/import.j2`` and
``<kind>/entry.j2``.  Built-in snippets target the generated ES module
layout; a project can override any of them by pointing
``Config.templates_dir`` at a directory with the same relative names.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, StrictUndefined

# ---------------------------------------------------------------------------
# Built-in snippets
# ---------------------------------------------------------------------------

DEFAULT_SNIPPETS: dict[str, str] = {
    "reducer/import.j2": "import {{ identifier }} from '{{ import_path | js_path }}';",
    "reducer/entry.j2": "{{ symbol | js_key }}: {{ identifier }},",
    "saga/import.j2": "import {{ identifier }} from '{{ import_path | js_path }}';",
    "saga/entry.j2": "...{{ identifier }},",
    "component_index/import.j2": "import * as {{ identifier }} from '{{ import_path | js_path }}';",
    "component_index/entry.j2": "{{ symbol | js_key }}: {{ identifier }},",
}

_JS_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

# Reserved in ES modules (strict mode), so unusable as import bindings.
JS_RESERVED_WORDS: frozenset[str] = frozenset(
    {
        "arguments", "await", "break", "case", "catch", "class", "const",
        "continue", "debugger", "default", "delete", "do", "else", "enum",
        "eval", "export", "extends", "false", "finally", "for", "function",
        "if", "implements", "import", "in", "instanceof", "interface", "let",
        "new", "null", "package", "private", "protected", "public", "return",
        "static", "super", "switch", "this", "throw", "true", "try", "typeof",
        "var", "void", "while", "with", "yield",
    }
)


# ---------------------------------------------------------------------------
# SnippetRenderer
# ---------------------------------------------------------------------------


class SnippetRenderer:
    """Renders injection snippets for one anchor kind at a time.

    Templates in *template_dir* (if given) take precedence over the built-in
    ``DEFAULT_SNIPPETS``.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        loaders = []
        if template_dir is not None:
            self.template_dir: Path | None = Path(template_dir)
            loaders.append(FileSystemLoader(str(self.template_dir)))
        else:
            self.template_dir = None
        loaders.append(DictLoader(DEFAULT_SNIPPETS))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=False,
            keep_trailing_newline=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["camel_case"] = _camel_case_filter
        self.env.filters["js_key"] = _js_key_filter
        self.env.filters["js_path"] = _js_path_filter

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single snippet template with *context*."""
        template = self.env.get_template(template_path)
        return template.render(**context)

    def render_lines(self, kind: str, part: str, context: dict[str, Any]) -> list[str]:
        """Render ``<kind>/<part>.j2`` and return its non-blank lines."""
        rendered = self.render(f"{kind}/{part}.j2", context)
        return [line for line in rendered.splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s.]+", value)
    return "".join(word[:1].upper() + word[1:] for word in parts if word)


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def _js_key_filter(value: str) -> str:
    """Quote an object key unless it is a plain JS identifier."""
    if _JS_IDENTIFIER.match(value):
        return value
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _js_path_filter(value: str) -> str:
    """Render a relative module path as an ES import specifier (``./a/b.js``)."""
    posix = str(value).replace("\\", "/")
    if posix.startswith(("./", "../", "/")):
        return posix
    return f"./{posix}"


def to_identifier(value: str) -> str:
    """Camel-case *value* into a JS identifier (``my-forms`` -> ``myForms``)."""
    ident = _camel_case_filter(re.sub(r"[^A-Za-z0-9_$\-\s.]", "", value))
    if ident and ident[0].isdigit():
        ident = f"_{ident}"
    return ident
