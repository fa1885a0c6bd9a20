"""
Lexical scopes for variable lookup.

Stack of scopes, each scope is name -> Binding. define() refuses a second
binding of the same name in the same scope; an inner scope may shadow.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generator, List, Optional

from .errors import DuplicateDeclarationError
from .source_location import SourceLocation
from .types import Type


class ScopeKind(Enum):
    GLOBAL = "global"
    FUNCTION = "function"
    BLOCK = "block"


@dataclass
class Binding:
    """
    One name binding.

    `handle` is the ownership handle currently held by the variable (if it
    is handle-typed and was initialized); assignment may replace it.
    `depth` is the index of the defining scope, set by ScopeManager.define.
    """
    name: str
    type: Type
    location: Optional[SourceLocation] = None
    handle: Optional[Any] = None
    depth: int = 0


@dataclass
class Scope:
    parent: Optional[Scope]
    kind: ScopeKind
    _bindings: Dict[str, Binding] = field(default_factory=dict)

    def lookup(self, name: str) -> Optional[Binding]:
        """Innermost to outermost."""
        if name in self._bindings:
            return self._bindings[name]
        if self.parent is not None:
            return self.parent.lookup(name)
        return None

    def define(self, binding: Binding) -> None:
        if binding.name in self._bindings:
            raise DuplicateDeclarationError(
                f"redeclaration of '{binding.name}' in the same scope",
                binding.location,
            )
        self._bindings[binding.name] = binding


class ScopeManager:
    """Scope stack; enter_scope = push, exit_scope = pop."""

    def __init__(self) -> None:
        self._stack: List[Scope] = []

    def enter_scope(self, kind: ScopeKind) -> Scope:
        parent = self._stack[-1] if self._stack else None
        scope = Scope(parent=parent, kind=kind)
        self._stack.append(scope)
        return scope

    def exit_scope(self) -> None:
        if not self._stack:
            raise RuntimeError("Cannot exit scope: no active scope")
        self._stack.pop()

    @contextmanager
    def scope(self, kind: ScopeKind) -> Generator[Scope, None, None]:
        s = self.enter_scope(kind)
        try:
            yield s
        finally:
            self.exit_scope()

    def current_scope(self) -> Optional[Scope]:
        return self._stack[-1] if self._stack else None

    @property
    def depth(self) -> int:
        return len(self._stack)

    def lookup(self, name: str) -> Optional[Binding]:
        current = self.current_scope()
        if current is None:
            return None
        return current.lookup(name)

    def define(self, binding: Binding) -> None:
        current = self.current_scope()
        if current is None:
            raise RuntimeError("Cannot define a binding: no active scope")
        binding.depth = len(self._stack) - 1
        current.define(binding)
