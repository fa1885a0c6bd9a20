"""
Type registry.

Construct-then-freeze: every type is registered in one construction pass,
then freeze() validates the whole hierarchy and the registry becomes
read-only for the rest of the analysis.

The class hierarchy is an explicit directed graph (class -> ordered base
names). Cycles are detected eagerly: a register() call that closes a cycle
fails right there, so no later registration or hierarchy query ever sees a
cyclic graph.
"""

import logging
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from ..shared.errors import (
    CyclicHierarchyError,
    DuplicateTypeError,
    RegistryFrozenError,
    TemplateArgumentError,
    UnknownTypeError,
)
from ..shared.source_location import SourceLocation
from ..shared.types import (
    PRIMITIVES,
    ClassType,
    Member,
    PointerType,
    ReferenceType,
    Type,
    TypeRef,
    TypeSpec,
    primitive_named,
)
from ..utils.config import BUILTIN_CLASS_NAMES, STD_NAMESPACE, TEMPLATE_ALIASES

logger = logging.getLogger("castsema.analysis.type_registry")

Instantiate = Callable[[str, Tuple[Type, ...], Optional[SourceLocation]], Type]


class OperatorSignature:
    """Declared operator overload: `symbol(params...) -> result`."""

    def __init__(self, symbol: str, params: Sequence[TypeSpec], result: TypeSpec,
                 location: Optional[SourceLocation] = None):
        self.symbol = symbol
        self.params = tuple(params)
        self.result = result
        self.location = location

    def __repr__(self) -> str:
        params = ", ".join(str(p) for p in self.params)
        return f"operator{self.symbol}({params}) -> {self.result}"


def _strip_namespace(name: str) -> str:
    prefix = STD_NAMESPACE + "::"
    return name[len(prefix):] if name.startswith(prefix) else name


class TypeRegistry:
    """
    Declared types and their hierarchy.

    Lookups never mutate; register() and register_operator() fail once
    freeze() has run.
    """

    def __init__(self, include_builtins: bool = True):
        self._types: Dict[str, Type] = {}
        self._locations: Dict[str, Optional[SourceLocation]] = {}
        self._operators: Dict[str, List[OperatorSignature]] = {}
        self._frozen = False
        if include_builtins:
            for prim in PRIMITIVES:
                self._types[prim.name] = prim
            for name in BUILTIN_CLASS_NAMES:
                self._types[name] = ClassType(name)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, ty: Type, location: Optional[SourceLocation] = None) -> Type:
        """Add a named type; fails on duplicates and on closing a base cycle."""
        name = getattr(ty, "name", None)
        if name is None:
            raise TypeError(f"only named types can be registered, got {ty!r}")
        if self._frozen:
            raise RegistryFrozenError(name)
        if name in self._types:
            raise DuplicateTypeError(f"type '{name}' is already declared", location)
        self._types[name] = ty
        self._locations[name] = location
        if isinstance(ty, ClassType) and ty.bases:
            cycle = self._find_cycle_from(name)
            if cycle is not None:
                del self._types[name]
                del self._locations[name]
                raise CyclicHierarchyError(cycle, location)
        logger.debug("registered %s type '%s'", ty.kind.value, name)
        return ty

    def register_operator(self, signature: OperatorSignature) -> None:
        if self._frozen:
            raise RegistryFrozenError(f"operator{signature.symbol}")
        self._operators.setdefault(signature.symbol, []).append(signature)

    def freeze(self) -> None:
        """Validate every base edge and the whole graph, then forbid mutation."""
        if self._frozen:
            return
        for cls in self.classes():
            for base in cls.bases:
                target = self._types.get(base)
                if target is None:
                    raise UnknownTypeError(
                        f"base class '{base}' of '{cls.name}' is not declared",
                        self._locations.get(cls.name),
                    )
                if not isinstance(target, ClassType):
                    raise UnknownTypeError(
                        f"base '{base}' of '{cls.name}' is not a class type",
                        self._locations.get(cls.name),
                    )
            self._validate_specs(cls)
        for cls in self.classes():
            cycle = self._find_cycle_from(cls.name)
            if cycle is not None:
                raise CyclicHierarchyError(cycle, self._locations.get(cls.name))
        self._frozen = True
        logger.debug("type registry frozen with %d types", len(self._types))

    def _validate_specs(self, cls: ClassType) -> None:
        location = self._locations.get(cls.name)
        for member in cls.members:
            self._validate_spec(member.type, location)
            for param in member.params:
                self._validate_spec(param, location)
        for spec in cls.converts_from + cls.converts_to:
            if isinstance(spec, TypeRef) and spec.args:
                raise TemplateArgumentError(
                    f"conversions of '{cls.name}' must name a non-template type, got '{spec}'",
                    location,
                )
            self._validate_spec(spec, location)

    def _validate_spec(self, spec: TypeSpec, location: Optional[SourceLocation]) -> None:
        if not isinstance(spec, TypeRef):
            return
        name = _strip_namespace(spec.name)
        if name not in TEMPLATE_ALIASES and self.lookup(name) is None:
            raise UnknownTypeError(f"unknown type '{spec.name}'", location)
        for arg in spec.args:
            self._validate_spec(arg, location)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None

    def __iter__(self) -> Iterator[Type]:
        return iter(self._types.values())

    def lookup(self, name: str) -> Optional[Type]:
        name = _strip_namespace(name)
        found = self._types.get(name)
        if found is None:
            found = primitive_named(name)
        return found

    def resolve(self, name: str, location: Optional[SourceLocation] = None) -> Type:
        found = self.lookup(name)
        if found is None:
            raise UnknownTypeError(f"unknown type '{name}'", location)
        return found

    def resolve_ref(self, ref: TypeRef, instantiate: Optional[Instantiate] = None,
                    location: Optional[SourceLocation] = None) -> Type:
        """
        Resolve a syntactic type. Template spellings need `instantiate`;
        `const` is accepted and dropped.
        """
        name = _strip_namespace(ref.name)
        if name in TEMPLATE_ALIASES:
            if instantiate is None:
                raise TemplateArgumentError(f"template type '{ref}' cannot be resolved here", location)
            args = tuple(self.resolve_ref(a, instantiate, location) for a in ref.args)
            base = instantiate(name, args, location)
        else:
            if ref.args:
                raise TemplateArgumentError(f"'{name}' is not a template", location)
            base = self.resolve(name, location)
        for _ in range(ref.pointer_depth):
            base = PointerType(base)
        if ref.is_reference:
            base = ReferenceType(base)
        return base

    def resolve_spec(self, spec: TypeSpec, instantiate: Optional[Instantiate] = None,
                     location: Optional[SourceLocation] = None) -> Type:
        if isinstance(spec, TypeRef):
            return self.resolve_ref(spec, instantiate, location)
        return spec

    def location_of(self, name: str) -> Optional[SourceLocation]:
        return self._locations.get(name)

    def classes(self) -> List[ClassType]:
        return [t for t in self._types.values() if isinstance(t, ClassType)]

    def operators(self, symbol: str) -> List[OperatorSignature]:
        return list(self._operators.get(symbol, ()))

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def _class(self, ref) -> ClassType:
        if isinstance(ref, ClassType):
            return ref
        found = self.resolve(ref)
        if not isinstance(found, ClassType):
            raise UnknownTypeError(f"'{ref}' is not a class type")
        return found

    def bases_of(self, cls) -> Tuple[ClassType, ...]:
        """Direct bases in declaration order (unregistered bases are skipped)."""
        cls = self._class(cls)
        out = []
        for name in cls.bases:
            base = self._types.get(name)
            if isinstance(base, ClassType):
                out.append(base)
        return tuple(out)

    def _find_cycle_from(self, start: str) -> Optional[List[str]]:
        """Depth-first walk over base edges; returns the cycle path if one is reachable."""
        on_path: List[str] = []
        done = set()

        def walk(name: str) -> Optional[List[str]]:
            if name in on_path:
                return on_path[on_path.index(name):] + [name]
            if name in done:
                return None
            cls = self._types.get(name)
            if not isinstance(cls, ClassType):
                return None
            on_path.append(name)
            for base in cls.bases:
                cycle = walk(base)
                if cycle is not None:
                    return cycle
            on_path.pop()
            done.add(name)
            return None

        return walk(start)

    def is_base_of(self, a, b) -> bool:
        """True iff `a` appears in `b`'s transitive base chain (a class is not its own base)."""
        base = self._class(a)
        derived = self._class(b)
        on_path: List[str] = []
        seen = set()

        def reaches(cls: ClassType) -> bool:
            if cls.name in on_path:
                raise CyclicHierarchyError(on_path[on_path.index(cls.name):] + [cls.name])
            if cls.name in seen:
                return False
            on_path.append(cls.name)
            for parent in self.bases_of(cls):
                if parent.name == base.name or reaches(parent):
                    on_path.pop()
                    return True
            on_path.pop()
            seen.add(cls.name)
            return False

        return reaches(derived)

    def are_related(self, a, b) -> bool:
        return self._class(a) == self._class(b) or self.is_base_of(a, b) or self.is_base_of(b, a)

    def is_polymorphic(self, cls) -> bool:
        """A class is polymorphic if it or any of its bases declares a virtual member."""
        cls = self._class(cls)
        if cls.declares_virtual:
            return True
        return any(self.is_polymorphic(base) for base in self.bases_of(cls))

    def find_member(self, cls, name: str) -> Optional[Member]:
        """Own members first, then bases left to right, depth first."""
        cls = self._class(cls)
        own = cls.own_member(name)
        if own is not None:
            return own
        for base in self.bases_of(cls):
            inherited = self.find_member(base, name)
            if inherited is not None:
                return inherited
        return None

    # ------------------------------------------------------------------
    # User-defined conversions
    # ------------------------------------------------------------------

    def has_user_conversion(self, source: Type, target: Type) -> bool:
        """A converting constructor of `target` taking `source`, or a conversion operator of `source` to `target`."""
        if isinstance(target, ClassType):
            for spec in target.converts_from:
                if self.resolve_spec(spec) == source:
                    return True
        if isinstance(source, ClassType):
            for spec in source.converts_to:
                if self.resolve_spec(spec) == target:
                    return True
        return False
