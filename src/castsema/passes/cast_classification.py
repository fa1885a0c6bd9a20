"""
Cast Classification

Decides, for (source type, target type, requested mechanism), whether the
conversion is legal and under which mechanism it actually happens.
Classification is a pure function of its inputs and the frozen registry;
the classifier holds no state of its own.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..analysis.type_registry import TypeRegistry
from ..shared.errors import (
    CastError,
    NotPolymorphicError,
    NotReinterpretableError,
    UnrelatedTypesError,
)
from ..shared.nodes import CastSyntax
from ..shared.source_location import SourceLocation
from ..shared.types import (
    NULLPTR,
    VOID,
    ClassType,
    PointerType,
    PrimitiveType,
    ReferenceType,
    Type,
    TypeKind,
    is_arithmetic,
    is_handle,
    pointee_class,
)
from ..utils.config import POINTER_BITS, REGISTER_BITS


class CastMechanism(Enum):
    IMPLICIT_NUMERIC = "implicit-numeric"
    QUALIFIED_HIERARCHY = "qualified-hierarchy"
    RUNTIME_CHECKED_HIERARCHY = "runtime-checked-hierarchy"
    BIT_REINTERPRETATION = "bit-reinterpretation"
    LEGACY_AMBIGUOUS = "legacy-ambiguous"


MECHANISM_FOR_SYNTAX = {
    CastSyntax.IMPLICIT: CastMechanism.IMPLICIT_NUMERIC,
    CastSyntax.STATIC: CastMechanism.QUALIFIED_HIERARCHY,
    CastSyntax.DYNAMIC: CastMechanism.RUNTIME_CHECKED_HIERARCHY,
    CastSyntax.REINTERPRET: CastMechanism.BIT_REINTERPRETATION,
    CastSyntax.C_STYLE: CastMechanism.LEGACY_AMBIGUOUS,
}


class CastDirection(Enum):
    IDENTITY = "identity"
    UPCAST = "upcast"
    DOWNCAST = "downcast"


@dataclass(frozen=True)
class CastNote:
    code: str
    message: str


NARROWING = "W0101"
UNSAFE_REINTERPRETATION = "W0102"
AMBIGUOUS_LEGACY = "W0103"


@dataclass(frozen=True)
class CastClassification:
    """
    Outcome of classifying one conversion.

    `mechanism` is the mechanism that actually applies; for a legacy cast it
    is whichever stricter mechanism won. `reason` is None for legal casts.
    `runtime_checked` marks casts whose success can only be known at run time.
    """
    source: Type
    target: Type
    requested: CastMechanism
    mechanism: CastMechanism
    reason: Optional[CastError] = None
    notes: Tuple[CastNote, ...] = ()
    runtime_checked: bool = False
    direction: Optional[CastDirection] = None

    @property
    def legal(self) -> bool:
        return self.reason is None

    @property
    def note_codes(self) -> Tuple[str, ...]:
        return tuple(n.code for n in self.notes)


def _describe(ty: Type) -> str:
    return f"'{ty}'"


class CastClassifier:
    """Classifier over one frozen registry."""

    def __init__(self, registry: TypeRegistry):
        self.registry = registry

    def classify(self, source: Type, target: Type, mechanism: CastMechanism,
                 location: Optional[SourceLocation] = None) -> CastClassification:
        source = self._adjust_source(source, target)
        if source.kind is TypeKind.UNKNOWN or target.kind is TypeKind.UNKNOWN:
            return CastClassification(source, target, mechanism, mechanism)
        handler = {
            CastMechanism.IMPLICIT_NUMERIC: self._implicit,
            CastMechanism.QUALIFIED_HIERARCHY: self._qualified,
            CastMechanism.RUNTIME_CHECKED_HIERARCHY: self._runtime_checked,
            CastMechanism.BIT_REINTERPRETATION: self._reinterpret,
            CastMechanism.LEGACY_AMBIGUOUS: self._legacy,
        }[mechanism]
        return handler(source, target, location)

    @staticmethod
    def _adjust_source(source: Type, target: Type) -> Type:
        """Reference sources decay unless the target is a reference; lvalues bind to reference targets."""
        if isinstance(target, ReferenceType):
            if not isinstance(source, ReferenceType):
                return ReferenceType(source)
            return source
        if isinstance(source, ReferenceType):
            return source.referent
        return source

    def _fail(self, error_type, source: Type, target: Type, requested: CastMechanism,
              mechanism: CastMechanism, message: str, location: Optional[SourceLocation],
              notes: Tuple[CastNote, ...] = ()) -> CastClassification:
        return CastClassification(
            source, target, requested, mechanism,
            reason=error_type(message, location),
            notes=notes,
        )

    # -- implicit-numeric ------------------------------------------------------

    @staticmethod
    def narrowing_note(source: Type, target: Type) -> Optional[CastNote]:
        if not (isinstance(source, PrimitiveType) and isinstance(target, PrimitiveType)):
            return None
        if target.precision < source.precision or (source.is_floating and target.is_integer):
            return CastNote(NARROWING, f"narrowing conversion from {_describe(source)} to {_describe(target)}")
        return None

    def _implicit(self, source: Type, target: Type, location) -> CastClassification:
        requested = CastMechanism.IMPLICIT_NUMERIC
        if is_arithmetic(source) and is_arithmetic(target):
            note = self.narrowing_note(source, target)
            return CastClassification(source, target, requested, requested, notes=(note,) if note else ())
        if source == target:
            return CastClassification(source, target, requested, requested, direction=CastDirection.IDENTITY)
        if source == NULLPTR and (isinstance(target, PointerType) or is_handle(target)):
            return CastClassification(source, target, requested, requested)
        if isinstance(source, PointerType) and target == PointerType(VOID):
            return CastClassification(source, target, requested, requested)
        src_cls, tgt_cls = pointee_class(source), pointee_class(target)
        if src_cls is not None and tgt_cls is not None and source.kind is target.kind:
            if self.registry.is_base_of(tgt_cls, src_cls):
                return CastClassification(source, target, requested, requested, direction=CastDirection.UPCAST)
        if self.registry.has_user_conversion(source, target):
            return CastClassification(source, target, requested, requested)
        return self._fail(
            UnrelatedTypesError, source, target, requested, requested,
            f"no implicit conversion from {_describe(source)} to {_describe(target)}", location,
        )

    # -- qualified-hierarchy ---------------------------------------------------

    def _hierarchy_direction(self, src_cls: ClassType, tgt_cls: ClassType) -> Optional[CastDirection]:
        if src_cls == tgt_cls:
            return CastDirection.IDENTITY
        if self.registry.is_base_of(tgt_cls, src_cls):
            return CastDirection.UPCAST
        if self.registry.is_base_of(src_cls, tgt_cls):
            return CastDirection.DOWNCAST
        return None

    def _qualified(self, source: Type, target: Type, location) -> CastClassification:
        requested = CastMechanism.QUALIFIED_HIERARCHY
        ok = lambda direction=None: CastClassification(source, target, requested, requested, direction=direction)
        if is_arithmetic(source) and is_arithmetic(target):
            return ok()
        if source == target:
            return ok(CastDirection.IDENTITY)
        src_cls, tgt_cls = pointee_class(source), pointee_class(target)
        if src_cls is not None and tgt_cls is not None and source.kind is target.kind:
            direction = self._hierarchy_direction(src_cls, tgt_cls)
            if direction is not None:
                return ok(direction)
            return self._fail(
                UnrelatedTypesError, source, target, requested, requested,
                f"cannot cast {_describe(source)} to {_describe(target)}: "
                f"'{src_cls}' and '{tgt_cls}' are unrelated classes", location,
            )
        opaque = PointerType(VOID)
        if isinstance(source, PointerType) and target == opaque:
            return ok()
        if source == opaque and isinstance(target, PointerType):
            return ok()
        if source == NULLPTR and isinstance(target, PointerType):
            return ok()
        return self._fail(
            UnrelatedTypesError, source, target, requested, requested,
            f"cannot cast {_describe(source)} to {_describe(target)} without reinterpreting bits", location,
        )

    # -- runtime-checked-hierarchy -------------------------------------------

    def _runtime_checked(self, source: Type, target: Type, location) -> CastClassification:
        requested = CastMechanism.RUNTIME_CHECKED_HIERARCHY
        src_cls, tgt_cls = pointee_class(source), pointee_class(target)
        if src_cls is None or tgt_cls is None or source.kind is not target.kind:
            return self._fail(
                UnrelatedTypesError, source, target, requested, requested,
                f"runtime-checked cast needs pointers or references to classes, "
                f"got {_describe(source)} to {_describe(target)}", location,
            )
        direction = self._hierarchy_direction(src_cls, tgt_cls)
        if direction is None:
            return self._fail(
                UnrelatedTypesError, source, target, requested, requested,
                f"cannot cast {_describe(source)} to {_describe(target)}: "
                f"'{src_cls}' and '{tgt_cls}' are unrelated classes", location,
            )
        if direction is not CastDirection.DOWNCAST:
            return CastClassification(source, target, requested, requested, direction=direction)
        if not self.registry.is_polymorphic(src_cls):
            return self._fail(
                NotPolymorphicError, source, target, requested, requested,
                f"'{src_cls}' is not polymorphic: it has no virtual member to check at run time", location,
            )
        return CastClassification(
            source, target, requested, requested,
            runtime_checked=True, direction=direction,
        )

    # -- bit-reinterpretation --------------------------------------------------

    @staticmethod
    def storage_bits(ty: Type) -> Optional[int]:
        if isinstance(ty, (PointerType, ReferenceType)):
            return POINTER_BITS
        if isinstance(ty, PrimitiveType) and ty.storage_bits > 0:
            return ty.storage_bits
        return None

    def _reinterpret(self, source: Type, target: Type, location) -> CastClassification:
        requested = CastMechanism.BIT_REINTERPRETATION
        note = CastNote(
            UNSAFE_REINTERPRETATION,
            f"bits of {_describe(source)} are reused as {_describe(target)} without conversion",
        )
        for ty in (source, target):
            bits = self.storage_bits(ty)
            if bits is None or bits > REGISTER_BITS:
                return self._fail(
                    NotReinterpretableError, source, target, requested, requested,
                    f"cannot reinterpret {_describe(source)} as {_describe(target)}: "
                    f"{_describe(ty)} is not pointer- or register-sized", location,
                    notes=(note,),
                )
        return CastClassification(source, target, requested, requested, notes=(note,))

    # -- legacy-ambiguous ------------------------------------------------------

    def _legacy(self, source: Type, target: Type, location) -> CastClassification:
        strict = self._qualified(source, target, location)
        if strict.legal:
            return CastClassification(
                source, target, CastMechanism.LEGACY_AMBIGUOUS, strict.mechanism,
                notes=strict.notes, direction=strict.direction,
            )
        fallback = self._reinterpret(source, target, location)
        ambiguity = CastNote(
            AMBIGUOUS_LEGACY,
            f"c-style cast from {_describe(source)} to {_describe(target)} falls back to bit reinterpretation",
        )
        return CastClassification(
            source, target, CastMechanism.LEGACY_AMBIGUOUS, fallback.mechanism,
            reason=fallback.reason,
            notes=fallback.notes + (ambiguity,),
        )
