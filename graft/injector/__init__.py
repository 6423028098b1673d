"""Graft source injector -- anchor-based rewriting of aggregation files.

Quick usage::

    from graft.injector import inject_reducer

    text = inject_reducer(text, "auth", "authReducer", "modules/auth/reducer.js")
"""

from graft.injector.injector import (
    InjectionTarget,
    SourceBuffer,
    SourceInjector,
    component_identifiers,
    inject_namespace_component,
    inject_reducer,
    inject_saga,
)
from graft.injector.templates import DEFAULT_SNIPPETS, SnippetRenderer

__all__ = [
    "DEFAULT_SNIPPETS",
    "InjectionTarget",
    "SnippetRenderer",
    "SourceBuffer",
    "SourceInjector",
    "component_identifiers",
    "inject_namespace_component",
    "inject_reducer",
    "inject_saga",
]
