"""Text injection into aggregation files.

The injector never parses the generated sources.  It looks for two marker
lines per aggregation file (an import anchor and a registration anchor, see
``AnchorConfig``) and inserts rendered snippet lines directly above them,
using the anchor's indentation.  Markers stay in place so later injections
land after earlier ones.

Injection is not deduplicated unless the caller asks for it: injecting the
same namespace twice yields two import lines and two entries.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from graft.config import AnchorConfig, Config, DuplicatePolicy
from graft.errors import ComponentIdentifierInvalid, InjectionAnchorMissing
from graft.injector.templates import JS_RESERVED_WORDS, SnippetRenderer, to_identifier
from graft.project.storage import AggregationFile, AnchorKind
from graft.staging import fs


@dataclass
class InjectionTarget:
    """One injection request against the current text of an aggregation file."""

    current_text: str
    anchor_kind: AnchorKind
    symbol_name: str | None
    import_path: str | PurePosixPath


class SourceInjector:
    """Pure text transforms producing updated aggregation-file content."""

    def __init__(
        self,
        anchors: AnchorConfig | None = None,
        renderer: SnippetRenderer | None = None,
        skip_existing: bool = False,
    ) -> None:
        self.anchors = anchors or AnchorConfig()
        self.renderer = renderer or SnippetRenderer()
        self.skip_existing = skip_existing

    @classmethod
    def from_config(cls, config: Config) -> "SourceInjector":
        return cls(
            anchors=config.anchors,
            renderer=SnippetRenderer(config.templates_dir),
            skip_existing=config.duplicate_policy is DuplicatePolicy.SKIP,
        )

    # -- Anchors ------------------------------------------------------------

    def anchor_pair(self, kind: AnchorKind) -> tuple[str, str]:
        """Return the ``(import_anchor, entry_anchor)`` markers for *kind*."""
        if kind is AnchorKind.REDUCER:
            return self.anchors.reducer_imports, self.anchors.reducer_entries
        if kind is AnchorKind.SAGA:
            return self.anchors.saga_imports, self.anchors.saga_entries
        return self.anchors.component_imports, self.anchors.component_entries

    # -- Core transform -----------------------------------------------------

    def inject(self, target: InjectionTarget, identifier: str) -> str:
        """Return ``target.current_text`` with one import and one entry added.

        Raises:
            InjectionAnchorMissing: If either anchor line is absent.
        """
        import_anchor, entry_anchor = self.anchor_pair(target.anchor_kind)
        context = {
            "identifier": identifier,
            "symbol": target.symbol_name or "",
            "import_path": str(target.import_path),
        }
        kind = target.anchor_kind.value
        import_lines = self.renderer.render_lines(kind, "import", context)
        entry_lines = self.renderer.render_lines(kind, "entry", context)

        text = target.current_text
        if self.skip_existing and _contains_lines(text, import_lines):
            return text

        text = _insert_before_anchor(text, import_anchor, import_lines, kind)
        return _insert_before_anchor(text, entry_anchor, entry_lines, kind)

    # -- Call shapes ----------------------------------------------------------

    def inject_reducer(
        self,
        text: str,
        reducer_prop_name: str,
        identifier: str,
        import_path: str | PurePosixPath,
    ) -> str:
        """Register ``reducer_prop_name: identifier`` in the reducer registry."""
        target = InjectionTarget(text, AnchorKind.REDUCER, reducer_prop_name, import_path)
        return self.inject(target, identifier)

    def inject_saga(self, text: str, identifier: str, import_path: str | PurePosixPath) -> str:
        """Register *identifier* in the saga registry.  No symbol name is used."""
        target = InjectionTarget(text, AnchorKind.SAGA, None, import_path)
        return self.inject(target, identifier)

    def inject_namespace_component(
        self, text: str, namespace: str, import_path: str | PurePosixPath
    ) -> str:
        """Register *namespace* in the component index."""
        target = InjectionTarget(text, AnchorKind.COMPONENT_INDEX, namespace, import_path)
        return self.inject(target, component_identifiers([namespace])[namespace])


def component_identifiers(
    namespaces: Iterable[str], installed: Iterable[str] = ()
) -> dict[str, str]:
    """Map each of *namespaces* to the identifier it is imported as in the component index.

    Namespaces in *installed* are already registered and keep their
    identifiers; a new namespace may only reuse one under the same name.

    Raises:
        ComponentIdentifierInvalid: If an identifier is empty or reserved, or
            two different namespaces map to the same identifier.
    """
    owners: dict[str, str] = {to_identifier(name): name for name in installed}
    mapping: dict[str, str] = {}
    for namespace in namespaces:
        identifier = to_identifier(namespace)
        if not identifier or identifier in JS_RESERVED_WORDS:
            raise ComponentIdentifierInvalid(
                identifier, [namespace], "not a usable JS identifier"
            )
        owner = owners.setdefault(identifier, namespace)
        if owner != namespace:
            raise ComponentIdentifierInvalid(
                identifier, [owner, namespace], "identifier is already taken"
            )
        mapping[namespace] = identifier
    return mapping


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------


@dataclass
class SourceBuffer:
    """Owned in-memory text of one aggregation file.

    All injections for a file are folded into ``text`` one at a time and the
    result is written back once (or once per step, for the component index).
    """

    file: AggregationFile
    injector: SourceInjector
    text: str = field(init=False)
    original: str = field(init=False)
    injections: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self.text = self.file.text
        self.original = self.file.text

    @property
    def dirty(self) -> bool:
        return self.text != self.original

    def apply(
        self,
        symbol_name: str | None,
        identifier: str,
        import_path: str | PurePosixPath,
    ) -> bool:
        """Fold one injection into the buffer.  Returns ``True`` if text changed."""
        target = InjectionTarget(self.text, self.file.kind, symbol_name, import_path)
        updated = self.injector.inject(target, identifier)
        changed = updated != self.text
        self.text = updated
        if changed:
            self.injections += 1
        return changed

    async def write_back(self) -> None:
        await fs.write_file(self.file.path, self.text)

    async def restore(self) -> None:
        """Write the text captured before any injection back to disk."""
        self.text = self.original
        await fs.write_file(self.file.path, self.original)


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


_default_injector: SourceInjector | None = None


def _get_default() -> SourceInjector:
    global _default_injector
    if _default_injector is None:
        _default_injector = SourceInjector()
    return _default_injector


def inject_reducer(
    text: str, reducer_prop_name: str, identifier: str, import_path: str | PurePosixPath
) -> str:
    return _get_default().inject_reducer(text, reducer_prop_name, identifier, import_path)


def inject_saga(text: str, identifier: str, import_path: str | PurePosixPath) -> str:
    return _get_default().inject_saga(text, identifier, import_path)


def inject_namespace_component(text: str, namespace: str, import_path: str | PurePosixPath) -> str:
    return _get_default().inject_namespace_component(text, namespace, import_path)


def _insert_before_anchor(text: str, anchor: str, new_lines: list[str], kind: str) -> str:
    lines = text.splitlines(keepends=True)
    for index, line in enumerate(lines):
        if anchor in line:
            indent = line[: len(line) - len(line.lstrip())]
            newline = _line_ending(line)
            insert = [f"{indent}{new_line}{newline}" for new_line in new_lines]
            return "".join(lines[:index] + insert + lines[index:])
    raise InjectionAnchorMissing(anchor, kind)


def _line_ending(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    return "\n"


def _contains_lines(text: str, lines: list[str]) -> bool:
    existing = {line.strip() for line in text.splitlines()}
    return all(line.strip() in existing for line in lines)
