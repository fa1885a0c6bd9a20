"""
Type System

Convention: every Type is immutable. Class types are nominal (compared by
name); pointer, reference and template-instantiation types are structural,
but template instantiations are additionally memoized by the instantiator so
that identical argument lists yield the very same object.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from ..utils.config import (
    POINTER_BITS,
    INT_MAX,
    LONG_MAX,
    DEFAULT_INT_TYPE,
    DEFAULT_FLOAT_TYPE,
    CHAR_LITERAL_TYPE,
    BOOL_LITERAL_TYPE,
    NULL_LITERAL_TYPE,
)


class TypeKind(Enum):
    PRIMITIVE = "primitive"
    CLASS = "class"
    POINTER = "pointer"
    REFERENCE = "reference"
    TEMPLATE_INSTANCE = "template-instantiation"
    UNKNOWN = "unknown"


class TemplateName(Enum):
    SEQUENCE = "sequence"
    ORDERED_MAPPING = "ordered-mapping"
    FIXED_ARITY_TUPLE = "fixed-arity-tuple"
    UNIQUE_HANDLE = "unique-handle"
    SHARED_HANDLE = "shared-handle"


# Spelling used when a template instantiation is printed
_TEMPLATE_SPELLING = {
    TemplateName.SEQUENCE: "vector",
    TemplateName.ORDERED_MAPPING: "map",
    TemplateName.FIXED_ARITY_TUPLE: "tuple",
    TemplateName.UNIQUE_HANDLE: "unique_ptr",
    TemplateName.SHARED_HANDLE: "shared_ptr",
}

HANDLE_TEMPLATES = (TemplateName.UNIQUE_HANDLE, TemplateName.SHARED_HANDLE)


@dataclass(frozen=True)
class Type:
    """Base of all types; `kind` drives dispatch instead of isinstance chains."""
    kind: TypeKind


@dataclass(frozen=True)
class PrimitiveType(Type):
    """
    Builtin scalar type.

    `precision` is the number of significant bits: the width minus the
    sign bit for signed integers, the mantissa width for floating types.
    """
    name: str
    storage_bits: int
    precision: int
    is_floating: bool
    is_signed: bool
    is_arithmetic: bool

    def __init__(self, name: str, storage_bits: int, precision: int = 0,
                 is_floating: bool = False, is_signed: bool = False,
                 is_arithmetic: bool = True):
        super().__init__(kind=TypeKind.PRIMITIVE)
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'storage_bits', storage_bits)
        object.__setattr__(self, 'precision', precision)
        object.__setattr__(self, 'is_floating', is_floating)
        object.__setattr__(self, 'is_signed', is_signed)
        object.__setattr__(self, 'is_arithmetic', is_arithmetic)

    @property
    def is_integer(self) -> bool:
        return self.is_arithmetic and not self.is_floating

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return self.name

    def __eq__(self, other):
        if not isinstance(other, PrimitiveType):
            return False
        return self.name == other.name

    def __hash__(self):
        return hash(('PrimitiveType', self.name))


@dataclass(frozen=True)
class TypeRef:
    """
    Unresolved, syntactic spelling of a type: `const map<const char*, int>&`.

    Resolved against the registry (names) and the instantiator (template
    arguments) on demand.
    """
    name: str
    args: Tuple['TypeRef', ...] = ()
    pointer_depth: int = 0
    is_reference: bool = False
    is_const: bool = False

    def __str__(self) -> str:
        text = self.name
        if self.args:
            text += "<" + ", ".join(str(a) for a in self.args) + ">"
        text += "*" * self.pointer_depth
        if self.is_reference:
            text += "&"
        return ("const " + text) if self.is_const else text


TypeSpec = Union[Type, TypeRef]


@dataclass(frozen=True)
class Member:
    """Field or method of a class. For methods, `type` is the return type."""
    name: str
    type: TypeSpec
    is_method: bool = False
    is_virtual: bool = False
    params: Tuple[TypeSpec, ...] = ()


@dataclass(frozen=True)
class ClassType(Type):
    """
    User-declared class.

    Bases are kept by name; the registry owns the hierarchy graph and is
    the only place that follows base edges.
    """
    name: str
    bases: Tuple[str, ...]
    members: Tuple[Member, ...]
    converts_from: Tuple[TypeSpec, ...]
    converts_to: Tuple[TypeSpec, ...]

    def __init__(self, name: str, bases: Tuple[str, ...] = (),
                 members: Tuple[Member, ...] = (),
                 converts_from: Tuple[TypeSpec, ...] = (),
                 converts_to: Tuple[TypeSpec, ...] = ()):
        super().__init__(kind=TypeKind.CLASS)
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'bases', tuple(bases))
        object.__setattr__(self, 'members', tuple(members))
        object.__setattr__(self, 'converts_from', tuple(converts_from))
        object.__setattr__(self, 'converts_to', tuple(converts_to))

    def own_member(self, name: str) -> Optional[Member]:
        for member in self.members:
            if member.name == name:
                return member
        return None

    @property
    def declares_virtual(self) -> bool:
        return any(m.is_virtual for m in self.members)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"ClassType({self.name})"

    def __eq__(self, other):
        if not isinstance(other, ClassType):
            return False
        return self.name == other.name

    def __hash__(self):
        return hash(('ClassType', self.name))


@dataclass(frozen=True)
class PointerType(Type):
    pointee: Type

    def __init__(self, pointee: Type):
        super().__init__(kind=TypeKind.POINTER)
        object.__setattr__(self, 'pointee', pointee)

    def __str__(self) -> str:
        return f"{self.pointee}*"


@dataclass(frozen=True)
class ReferenceType(Type):
    referent: Type

    def __init__(self, referent: Type):
        super().__init__(kind=TypeKind.REFERENCE)
        object.__setattr__(self, 'referent', referent)

    def __str__(self) -> str:
        return f"{self.referent}&"


@dataclass(frozen=True)
class TemplateInstanceType(Type):
    """`vector<int>`, `map<K, V>`, `tuple<T1, ..., Tn>`, `unique_ptr<T>`, `shared_ptr<T>`."""
    template: TemplateName
    args: Tuple[Type, ...]

    def __init__(self, template: TemplateName, args: Tuple[Type, ...]):
        super().__init__(kind=TypeKind.TEMPLATE_INSTANCE)
        object.__setattr__(self, 'template', template)
        object.__setattr__(self, 'args', tuple(args))

    @property
    def arity(self) -> int:
        return len(self.args)

    @property
    def is_handle(self) -> bool:
        return self.template in HANDLE_TEMPLATES

    def __str__(self) -> str:
        inner = ", ".join(str(a) for a in self.args)
        return f"{_TEMPLATE_SPELLING[self.template]}<{inner}>"


@dataclass(frozen=True)
class UnknownType(Type):
    def __init__(self):
        super().__init__(kind=TypeKind.UNKNOWN)

    def __str__(self) -> str:
        return "<unknown>"


# ---------------------------------------------------------------------------
# Builtin primitives (LP64)
# ---------------------------------------------------------------------------

BOOL = PrimitiveType("bool", 8, 1)
CHAR = PrimitiveType("char", 8, 7, is_signed=True)
SCHAR = PrimitiveType("signed char", 8, 7, is_signed=True)
UCHAR = PrimitiveType("unsigned char", 8, 8)
SHORT = PrimitiveType("short", 16, 15, is_signed=True)
USHORT = PrimitiveType("unsigned short", 16, 16)
INT = PrimitiveType("int", 32, 31, is_signed=True)
UINT = PrimitiveType("unsigned int", 32, 32)
LONG = PrimitiveType("long", 64, 63, is_signed=True)
ULONG = PrimitiveType("unsigned long", 64, 64)
LLONG = PrimitiveType("long long", 64, 63, is_signed=True)
ULLONG = PrimitiveType("unsigned long long", 64, 64)
FLOAT = PrimitiveType("float", 32, 24, is_floating=True, is_signed=True)
DOUBLE = PrimitiveType("double", 64, 53, is_floating=True, is_signed=True)
LDOUBLE = PrimitiveType("long double", 128, 64, is_floating=True, is_signed=True)
VOID = PrimitiveType("void", 0, is_arithmetic=False)
NULLPTR = PrimitiveType("nullptr_t", POINTER_BITS, is_arithmetic=False)

OPAQUE_POINTER = PointerType(VOID)
STRING_LITERAL = PointerType(CHAR)
UNKNOWN = UnknownType()

PRIMITIVES: Tuple[PrimitiveType, ...] = (
    BOOL, CHAR, SCHAR, UCHAR, SHORT, USHORT, INT, UINT, LONG, ULONG,
    LLONG, ULLONG, FLOAT, DOUBLE, LDOUBLE, VOID, NULLPTR,
)

ARITHMETIC_TYPES: Tuple[PrimitiveType, ...] = tuple(p for p in PRIMITIVES if p.is_arithmetic)

_PRIMITIVES_BY_NAME: Dict[str, PrimitiveType] = {p.name: p for p in PRIMITIVES}

# Alternative spellings of the same primitive
_PRIMITIVE_SYNONYMS = {
    "signed": "int",
    "signed int": "int",
    "unsigned": "unsigned int",
    "short int": "short",
    "signed short": "short",
    "unsigned short int": "unsigned short",
    "long int": "long",
    "signed long": "long",
    "unsigned long int": "unsigned long",
    "long long int": "long long",
    "unsigned long long int": "unsigned long long",
    "size_t": "unsigned long",
}


def primitive_named(name: str) -> Optional[PrimitiveType]:
    canonical = _PRIMITIVE_SYNONYMS.get(name, name)
    return _PRIMITIVES_BY_NAME.get(canonical)


def is_arithmetic(ty: Type) -> bool:
    return isinstance(ty, PrimitiveType) and ty.is_arithmetic


def strip_reference(ty: Type) -> Type:
    return ty.referent if isinstance(ty, ReferenceType) else ty


def is_handle(ty: Type) -> bool:
    return isinstance(ty, TemplateInstanceType) and ty.is_handle


def pointee_class(ty: Type) -> Optional[ClassType]:
    """Class behind a pointer or reference, if any."""
    if isinstance(ty, PointerType) and isinstance(ty.pointee, ClassType):
        return ty.pointee
    if isinstance(ty, ReferenceType) and isinstance(ty.referent, ClassType):
        return ty.referent
    return None


# ---------------------------------------------------------------------------
# Literal typing
# ---------------------------------------------------------------------------

_INTEGER_SUFFIXES = {
    "": None,
    "u": UINT,
    "l": LONG,
    "ul": ULONG,
    "lu": ULONG,
    "ll": LLONG,
    "ull": ULLONG,
    "llu": ULLONG,
}

_FLOAT_SUFFIXES = {
    "": DOUBLE,
    "f": FLOAT,
    "l": LDOUBLE,
}


def _split_suffix(text: str, letters: str) -> Tuple[str, str]:
    end = len(text)
    while end > 0 and text[end - 1].lower() in letters:
        end -= 1
    return text[:end], text[end:].lower()


def integer_literal_type(text: str) -> PrimitiveType:
    """Type of an integer literal by its suffix, widening unsuffixed literals that do not fit."""
    digits, suffix = _split_suffix(text, "ul")
    if suffix not in _INTEGER_SUFFIXES:
        raise ValueError(f"invalid integer literal suffix '{suffix}' in {text!r}")
    explicit = _INTEGER_SUFFIXES[suffix]
    if explicit is not None:
        return explicit
    value = int(digits, 0) if not (len(digits) > 1 and digits[0] == "0" and digits[1].isdigit()) else int(digits, 8)
    if value <= INT_MAX:
        return primitive_named(DEFAULT_INT_TYPE)
    if value <= LONG_MAX:
        return LONG
    return ULLONG


def float_literal_type(text: str) -> PrimitiveType:
    _, suffix = _split_suffix(text, "fl")
    if suffix not in _FLOAT_SUFFIXES:
        raise ValueError(f"invalid floating literal suffix '{suffix}' in {text!r}")
    if suffix == "":
        return primitive_named(DEFAULT_FLOAT_TYPE)
    return _FLOAT_SUFFIXES[suffix]


def infer_literal_type(literal_kind: str, text: str) -> Type:
    """Fixed primitive type of a literal by its form."""
    if literal_kind == "int":
        return integer_literal_type(text)
    if literal_kind == "float":
        return float_literal_type(text)
    if literal_kind == "char":
        return primitive_named(CHAR_LITERAL_TYPE)
    if literal_kind == "string":
        return STRING_LITERAL
    if literal_kind == "bool":
        return primitive_named(BOOL_LITERAL_TYPE)
    if literal_kind == "null":
        return primitive_named(NULL_LITERAL_TYPE)
    raise ValueError(f"unknown literal kind: {literal_kind}")
