"""
castsema syntax tree

Expression nodes carry their resolved type once the resolver has visited
them; the type is assigned exactly once and never changes afterwards.
Declarations (classes, operators) form the type declaration set consumed
by the registry; statements and functions form the expression tree.

Visitor Pattern Support:
- Every expression and statement has accept() for polymorphic dispatch
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional, Tuple, TypeVar

from .errors import ResolutionError
from .source_location import SourceLocation
from .types import Type, TypeRef

if TYPE_CHECKING:
    from .ast_visitor import ASTVisitor

T = TypeVar('T')


class ExpressionKind(Enum):
    LITERAL = "literal"
    VARIABLE = "variable-reference"
    MEMBER_ACCESS = "member-access"
    BINARY_OP = "binary-op"
    UNARY_OP = "unary-op"
    CAST = "cast"
    TEMPLATE_CONSTRUCTION = "template-construction"
    TUPLE_ACCESS = "tuple-access"
    SUBSCRIPT = "subscript"
    CONSTRUCTION = "construction"
    NEW = "new"
    OWNERSHIP_CONSTRUCTION = "ownership-construction"
    MOVE = "move"
    RELEASE = "release"
    ASSIGNMENT = "assignment"


class CastSyntax(Enum):
    """How a cast was spelled; the classifier works on mechanisms, not spellings."""
    IMPLICIT = "implicit"
    STATIC = "static_cast"
    DYNAMIC = "dynamic_cast"
    REINTERPRET = "reinterpret_cast"
    C_STYLE = "c-style"


COMPARISON_OPERATORS = frozenset({"<", ">", "<=", ">=", "==", "!="})


# ============================================================================
# Expressions
# ============================================================================

@dataclass(eq=False)
class Expression:
    """Base expression. Hashes by identity so nodes can key side tables."""
    location: Optional[SourceLocation] = field(default=None, kw_only=True)
    resolved_type: Optional[Type] = field(default=None, init=False)
    is_lvalue: bool = field(default=False, init=False)

    kind: ExpressionKind = ExpressionKind.LITERAL

    def assign_type(self, ty: Type, is_lvalue: bool = False) -> None:
        if self.resolved_type is not None:
            raise ResolutionError(f"expression '{self}' was already resolved to {self.resolved_type}")
        self.resolved_type = ty
        self.is_lvalue = is_lvalue

    @property
    def is_resolved(self) -> bool:
        return self.resolved_type is not None

    def accept(self, visitor: 'ASTVisitor[T]') -> T:
        raise NotImplementedError


@dataclass(eq=False)
class Literal(Expression):
    """`literal_kind` is one of int, float, char, string, bool, null."""
    literal_kind: str = "int"
    text: str = "0"
    kind: ExpressionKind = field(default=ExpressionKind.LITERAL, init=False)

    def accept(self, visitor):
        return visitor.visit_literal(self)

    def __str__(self) -> str:
        return self.text


@dataclass(eq=False)
class VariableReference(Expression):
    name: str = ""
    kind: ExpressionKind = field(default=ExpressionKind.VARIABLE, init=False)

    def accept(self, visitor):
        return visitor.visit_variable(self)

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class MemberAccess(Expression):
    """`obj.name`, `ptr->name`; `call_args` is set for member calls."""
    base: Expression = None
    member: str = ""
    arrow: bool = False
    call_args: Optional[List[Expression]] = None
    kind: ExpressionKind = field(default=ExpressionKind.MEMBER_ACCESS, init=False)

    def accept(self, visitor):
        return visitor.visit_member_access(self)

    def __str__(self) -> str:
        text = f"{self.base}{'->' if self.arrow else '.'}{self.member}"
        if self.call_args is not None:
            text += "(" + ", ".join(str(a) for a in self.call_args) + ")"
        return text


@dataclass(eq=False)
class BinaryOp(Expression):
    operator: str = "+"
    left: Expression = None
    right: Expression = None
    kind: ExpressionKind = field(default=ExpressionKind.BINARY_OP, init=False)

    def accept(self, visitor):
        return visitor.visit_binary_op(self)

    def __str__(self) -> str:
        return f"{self.left} {self.operator} {self.right}"


@dataclass(eq=False)
class UnaryOp(Expression):
    operator: str = "-"
    operand: Expression = None
    kind: ExpressionKind = field(default=ExpressionKind.UNARY_OP, init=False)

    def accept(self, visitor):
        return visitor.visit_unary_op(self)

    def __str__(self) -> str:
        return f"{self.operator}{self.operand}"


@dataclass(eq=False)
class Cast(Expression):
    syntax: CastSyntax = CastSyntax.STATIC
    target: TypeRef = None
    operand: Expression = None
    kind: ExpressionKind = field(default=ExpressionKind.CAST, init=False)

    def accept(self, visitor):
        return visitor.visit_cast(self)

    def __str__(self) -> str:
        if self.syntax is CastSyntax.C_STYLE:
            return f"({self.target})({self.operand})"
        return f"{self.syntax.value}<{self.target}>({self.operand})"


@dataclass(eq=False)
class TemplateConstruction(Expression):
    """`vector<int>()`, `tuple<int, string>(1, s)`; `make_tuple(...)` has no type args."""
    template: str = "vector"
    type_args: Optional[List[TypeRef]] = None
    args: List[Expression] = field(default_factory=list)
    kind: ExpressionKind = field(default=ExpressionKind.TEMPLATE_CONSTRUCTION, init=False)

    def accept(self, visitor):
        return visitor.visit_template_construction(self)

    def __str__(self) -> str:
        values = ", ".join(str(a) for a in self.args)
        if self.type_args is None:
            return f"make_{self.template}({values})"
        params = ", ".join(str(t) for t in self.type_args)
        return f"{self.template}<{params}>({values})"


@dataclass(eq=False)
class TupleAccess(Expression):
    """Positional access `get<index>(operand)`."""
    index: int = 0
    operand: Expression = None
    kind: ExpressionKind = field(default=ExpressionKind.TUPLE_ACCESS, init=False)

    def accept(self, visitor):
        return visitor.visit_tuple_access(self)

    def __str__(self) -> str:
        return f"get<{self.index}>({self.operand})"


@dataclass(eq=False)
class Subscript(Expression):
    base: Expression = None
    index: Expression = None
    kind: ExpressionKind = field(default=ExpressionKind.SUBSCRIPT, init=False)

    def accept(self, visitor):
        return visitor.visit_subscript(self)

    def __str__(self) -> str:
        return f"{self.base}[{self.index}]"


@dataclass(eq=False)
class Construction(Expression):
    """`ClassName(args)` producing a class value."""
    class_name: str = ""
    args: List[Expression] = field(default_factory=list)
    kind: ExpressionKind = field(default=ExpressionKind.CONSTRUCTION, init=False)

    def accept(self, visitor):
        return visitor.visit_construction(self)

    def __str__(self) -> str:
        return f"{self.class_name}(" + ", ".join(str(a) for a in self.args) + ")"


@dataclass(eq=False)
class NewExpression(Expression):
    target: TypeRef = None
    args: List[Expression] = field(default_factory=list)
    kind: ExpressionKind = field(default=ExpressionKind.NEW, init=False)

    def accept(self, visitor):
        return visitor.visit_new(self)

    def __str__(self) -> str:
        return f"new {self.target}(" + ", ".join(str(a) for a in self.args) + ")"


@dataclass(eq=False)
class OwnershipConstruction(Expression):
    """`make_unique<T>(args)` / `make_shared<T>(args)`; `mode` is 'unique' or 'shared'."""
    mode: str = "unique"
    pointee: TypeRef = None
    args: List[Expression] = field(default_factory=list)
    kind: ExpressionKind = field(default=ExpressionKind.OWNERSHIP_CONSTRUCTION, init=False)

    def accept(self, visitor):
        return visitor.visit_ownership_construction(self)

    def __str__(self) -> str:
        return f"make_{self.mode}<{self.pointee}>(" + ", ".join(str(a) for a in self.args) + ")"


@dataclass(eq=False)
class Move(Expression):
    operand: Expression = None
    kind: ExpressionKind = field(default=ExpressionKind.MOVE, init=False)

    def accept(self, visitor):
        return visitor.visit_move(self)

    def __str__(self) -> str:
        return f"move({self.operand})"


@dataclass(eq=False)
class Release(Expression):
    operand: Expression = None
    kind: ExpressionKind = field(default=ExpressionKind.RELEASE, init=False)

    def accept(self, visitor):
        return visitor.visit_release(self)

    def __str__(self) -> str:
        return f"release({self.operand})"


@dataclass(eq=False)
class Assignment(Expression):
    target: Expression = None
    value: Expression = None
    kind: ExpressionKind = field(default=ExpressionKind.ASSIGNMENT, init=False)

    def accept(self, visitor):
        return visitor.visit_assignment(self)

    def __str__(self) -> str:
        return f"{self.target} = {self.value}"


# ============================================================================
# Statements
# ============================================================================

@dataclass(eq=False)
class Statement:
    location: Optional[SourceLocation] = field(default=None, kw_only=True)

    def accept(self, visitor: 'ASTVisitor[T]') -> T:
        raise NotImplementedError


@dataclass(eq=False)
class LetStatement(Statement):
    name: str = ""
    declared_type: Optional[TypeRef] = None
    value: Optional[Expression] = None

    def accept(self, visitor):
        return visitor.visit_let(self)


@dataclass(eq=False)
class ExpressionStatement(Statement):
    expr: Expression = None

    def accept(self, visitor):
        return visitor.visit_expression_statement(self)


@dataclass(eq=False)
class ReturnStatement(Statement):
    value: Optional[Expression] = None

    def accept(self, visitor):
        return visitor.visit_return(self)


@dataclass(eq=False)
class Block(Statement):
    statements: List[Statement] = field(default_factory=list)

    def accept(self, visitor):
        return visitor.visit_block(self)


@dataclass(eq=False)
class Parameter:
    name: Optional[str]
    type_ref: TypeRef
    location: Optional[SourceLocation] = None


@dataclass(eq=False)
class FunctionDefinition(Statement):
    name: str = ""
    return_type: Optional[TypeRef] = None
    params: List[Parameter] = field(default_factory=list)
    body: Block = None

    def accept(self, visitor):
        return visitor.visit_function(self)


# ============================================================================
# Declarations (the type declaration set)
# ============================================================================

@dataclass(eq=False)
class MemberDeclaration:
    name: str
    type_ref: TypeRef
    is_method: bool = False
    is_virtual: bool = False
    params: List[Parameter] = field(default_factory=list)
    location: Optional[SourceLocation] = None


@dataclass(eq=False)
class OperatorDeclaration:
    """Operator overload; a class-member operator lists the class as `owner`."""
    symbol: str
    params: List[Parameter]
    result: TypeRef
    owner: Optional[str] = None
    location: Optional[SourceLocation] = None


@dataclass(eq=False)
class ClassDeclaration:
    name: str
    bases: List[str] = field(default_factory=list)
    members: List[MemberDeclaration] = field(default_factory=list)
    converting_constructors: List[TypeRef] = field(default_factory=list)
    conversion_operators: List[TypeRef] = field(default_factory=list)
    operators: List[OperatorDeclaration] = field(default_factory=list)
    location: Optional[SourceLocation] = None


@dataclass(eq=False)
class Program:
    """Parsed input: declaration set + top-level statements + functions, in source order."""
    classes: List[ClassDeclaration] = field(default_factory=list)
    operators: List[OperatorDeclaration] = field(default_factory=list)
    statements: List[Statement] = field(default_factory=list)
    functions: List[FunctionDefinition] = field(default_factory=list)
    source_file: str = "<input>"

    @property
    def declarations(self) -> Tuple[Any, ...]:
        return tuple(self.classes) + tuple(self.operators)
