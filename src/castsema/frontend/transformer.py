"""
castsema AST Transformer

Converts the lark parse tree into syntax-tree nodes and the type
declaration set. Optional grammar items are omitted from the children
(maybe_placeholders=False), so handlers with several optional parts sort
their children by type.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, List, Optional

from lark import Token, Transformer, v_args

from ..shared.errors import ParseError
from ..shared.nodes import (
    Assignment,
    BinaryOp,
    Block,
    Cast,
    CastSyntax,
    ClassDeclaration,
    Construction,
    Expression,
    ExpressionStatement,
    FunctionDefinition,
    LetStatement,
    Literal,
    MemberAccess,
    MemberDeclaration,
    Move,
    NewExpression,
    OperatorDeclaration,
    OwnershipConstruction,
    Parameter,
    Program,
    Release,
    ReturnStatement,
    Statement,
    Subscript,
    TemplateConstruction,
    TupleAccess,
    UnaryOp,
    VariableReference,
)
from ..shared.source_location import SourceLocation
from ..shared.types import TypeRef, integer_literal_type

logger = logging.getLogger("castsema.frontend.transformer")

# Marks a `= 0` pure-virtual specifier among method children
_PURE = object()


@dataclass
class _Constructor:
    name: str
    params: List[Parameter]
    explicit: bool
    location: SourceLocation


@dataclass
class _Destructor:
    name: str
    is_virtual: bool
    location: SourceLocation


@dataclass
class _Conversion:
    target: TypeRef
    explicit: bool


def _is_token(value: Any, kind: str) -> bool:
    return isinstance(value, Token) and value.type == kind


def _value_type(ref: TypeRef) -> TypeRef:
    """`const T&` parameters convert the same values as plain `T`."""
    return replace(ref, is_reference=False, is_const=False)


@v_args(inline=True, meta=True)
class CastsemaTransformer(Transformer):
    """Parse tree -> Program."""

    def __init__(self) -> None:
        super().__init__()
        self.current_file: str = ""

    def _location(self, meta) -> SourceLocation:
        if not self.current_file:
            raise RuntimeError("Parser bug: current_file not set before transforming")
        if meta is None or getattr(meta, "empty", True):
            return SourceLocation(self.current_file, 0, 0)
        return SourceLocation(
            file=self.current_file,
            line=meta.line,
            column=meta.column,
            end_line=getattr(meta, "end_line", 0) or 0,
            end_column=getattr(meta, "end_column", 0) or 0,
        )

    # =========================================================================
    # Program structure
    # =========================================================================

    def program(self, meta, *items) -> Program:
        program = Program(source_file=self.current_file)
        for item in items:
            if isinstance(item, ClassDeclaration):
                program.classes.append(item)
            elif isinstance(item, OperatorDeclaration):
                program.operators.append(item)
            elif isinstance(item, FunctionDefinition):
                program.functions.append(item)
            elif isinstance(item, Statement):
                program.statements.append(item)
        logger.debug(
            "parsed %s: %d classes, %d operators, %d functions, %d statements",
            self.current_file, len(program.classes), len(program.operators),
            len(program.functions), len(program.statements),
        )
        return program

    # =========================================================================
    # Declarations
    # =========================================================================

    def class_decl(self, meta, name: Token, *items) -> ClassDeclaration:
        location = self._location(meta)
        decl = ClassDeclaration(name=str(name), location=location)
        for item in items:
            if item is None:
                continue
            if isinstance(item, list):
                decl.bases.extend(item)
            elif isinstance(item, MemberDeclaration):
                decl.members.append(item)
            elif isinstance(item, OperatorDeclaration):
                item.owner = decl.name
                decl.operators.append(item)
            elif isinstance(item, _Constructor):
                if item.name != decl.name:
                    raise ParseError(
                        f"'{item.name}' looks like a constructor but the class is '{decl.name}'",
                        item.location,
                    )
                if not item.explicit and len(item.params) == 1:
                    decl.converting_constructors.append(_value_type(item.params[0].type_ref))
            elif isinstance(item, _Destructor):
                if item.name != decl.name:
                    raise ParseError(f"destructor '~{item.name}' in class '{decl.name}'", item.location)
                if item.is_virtual:
                    decl.members.append(MemberDeclaration(
                        f"~{item.name}", TypeRef("void"), is_method=True, is_virtual=True,
                        location=item.location,
                    ))
            elif isinstance(item, _Conversion):
                if not item.explicit:
                    decl.conversion_operators.append(_value_type(item.target))
        return decl

    def base_clause(self, meta, *bases: str) -> List[str]:
        return list(bases)

    def base_spec(self, meta, *children) -> str:
        return [c for c in children if isinstance(c, str)][-1]

    def access(self, meta) -> None:
        return None

    def field_decl(self, meta, type_ref: TypeRef, name: Token) -> MemberDeclaration:
        return MemberDeclaration(str(name), type_ref, location=self._location(meta))

    def method_decl(self, meta, *children) -> MemberDeclaration:
        is_virtual = any(
            _is_token(c, "VIRTUAL") or _is_token(c, "OVERRIDE") or c is _PURE for c in children
        )
        type_ref = next(c for c in children if isinstance(c, TypeRef))
        name = next(c for c in children if _is_token(c, "NAME"))
        params = next((c for c in children if isinstance(c, list)), [])
        return MemberDeclaration(
            str(name), type_ref, is_method=True, is_virtual=is_virtual,
            params=params, location=self._location(meta),
        )

    def pure_spec(self, meta, value: Token):
        if str(value) != "0":
            raise ParseError(f"expected '= 0' for a pure virtual method, got '= {value}'", self._location(meta))
        return _PURE

    def constructor_decl(self, meta, *children) -> _Constructor:
        explicit = any(_is_token(c, "EXPLICIT") for c in children)
        name = next(c for c in children if _is_token(c, "NAME"))
        params = next((c for c in children if isinstance(c, list)), [])
        return _Constructor(str(name), params, explicit, self._location(meta))

    def destructor_decl(self, meta, *children) -> _Destructor:
        is_virtual = any(_is_token(c, "VIRTUAL") or c is _PURE for c in children)
        name = next(c for c in children if _is_token(c, "NAME"))
        return _Destructor(str(name), is_virtual, self._location(meta))

    def conversion_decl(self, meta, *children) -> _Conversion:
        explicit = any(_is_token(c, "EXPLICIT") for c in children)
        target = next(c for c in children if isinstance(c, TypeRef))
        return _Conversion(target, explicit)

    def operator_decl(self, meta, result: TypeRef, symbol: str, params: Optional[List[Parameter]] = None) -> OperatorDeclaration:
        return OperatorDeclaration(symbol, params or [], result, location=self._location(meta))

    def op_symbol(self, meta, *tokens: Token) -> str:
        return "".join(str(t) for t in tokens)

    def params(self, meta, *params: Parameter) -> List[Parameter]:
        return list(params)

    def param(self, meta, type_ref: TypeRef, name: Optional[Token] = None) -> Parameter:
        return Parameter(str(name) if name is not None else None, type_ref, self._location(meta))

    def function_def(self, meta, return_type: TypeRef, name: Token, *rest) -> FunctionDefinition:
        params = rest[0] if len(rest) == 2 else []
        body = rest[-1]
        return FunctionDefinition(
            name=str(name), return_type=return_type, params=params, body=body,
            location=self._location(meta),
        )

    # =========================================================================
    # Statements
    # =========================================================================

    def let_stmt(self, meta, name: Token, *rest) -> LetStatement:
        declared = next((r for r in rest if isinstance(r, TypeRef)), None)
        value = next((r for r in rest if isinstance(r, Expression)), None)
        return LetStatement(name=str(name), declared_type=declared, value=value, location=self._location(meta))

    def return_stmt(self, meta, value: Optional[Expression] = None) -> ReturnStatement:
        return ReturnStatement(value=value, location=self._location(meta))

    def block(self, meta, *statements: Statement) -> Block:
        return Block(statements=list(statements), location=self._location(meta))

    def expr_stmt(self, meta, expr: Expression) -> ExpressionStatement:
        return ExpressionStatement(expr=expr, location=self._location(meta))

    # =========================================================================
    # Types
    # =========================================================================

    def type_ref(self, meta, *children) -> TypeRef:
        is_const = False
        core: Optional[TypeRef] = None
        depth = 0
        is_reference = False
        for child in children:
            if _is_token(child, "CONST"):
                is_const = True
            elif _is_token(child, "STAR"):
                depth += 1
            elif _is_token(child, "AMP"):
                is_reference = True
            elif isinstance(child, TypeRef):
                core = child
            else:
                core = TypeRef(str(child))
        return TypeRef(core.name, core.args, depth, is_reference, is_const)

    def prim_type(self, meta, *words: str) -> TypeRef:
        return TypeRef(" ".join(words))

    def prim_word(self, meta, word: Token) -> str:
        return str(word)

    def template_type(self, meta, name: str, *args: TypeRef) -> TypeRef:
        return TypeRef(name, tuple(args))

    def template_kw(self, meta, *tokens: Token) -> str:
        return str(tokens[-1])

    def qualified_name(self, meta, name: Token) -> str:
        return str(name)

    # =========================================================================
    # Expressions
    # =========================================================================

    def assign(self, meta, target: Expression, value: Expression) -> Assignment:
        return Assignment(target, value, location=self._location(meta))

    def binary(self, meta, left: Expression, op: str, right: Expression) -> BinaryOp:
        return BinaryOp(op, left, right, location=self._location(meta))

    def comp_op(self, meta, token: Token) -> str:
        return str(token)

    add_op = comp_op
    mul_op = comp_op
    unary_op = comp_op
    cast_kw = comp_op

    def unary(self, meta, op: str, operand: Expression) -> UnaryOp:
        return UnaryOp(op, operand, location=self._location(meta))

    def c_cast(self, meta, target: TypeRef, operand: Expression) -> Cast:
        return Cast(CastSyntax.C_STYLE, target, operand, location=self._location(meta))

    def named_cast(self, meta, keyword: str, target: TypeRef, operand: Expression) -> Cast:
        return Cast(CastSyntax(keyword), target, operand, location=self._location(meta))

    def member(self, meta, base: Expression, name: Token) -> MemberAccess:
        return MemberAccess(base, str(name), location=self._location(meta))

    def arrow_member(self, meta, base: Expression, name: Token) -> MemberAccess:
        return MemberAccess(base, str(name), arrow=True, location=self._location(meta))

    def member_call(self, meta, base: Expression, name: Token, args: Optional[List[Expression]] = None) -> MemberAccess:
        return MemberAccess(base, str(name), call_args=args or [], location=self._location(meta))

    def arrow_call(self, meta, base: Expression, name: Token, args: Optional[List[Expression]] = None) -> MemberAccess:
        return MemberAccess(base, str(name), arrow=True, call_args=args or [], location=self._location(meta))

    def subscript(self, meta, base: Expression, index: Expression) -> Subscript:
        return Subscript(base, index, location=self._location(meta))

    def int_lit(self, meta, token: Token) -> Literal:
        location = self._location(meta)
        try:
            integer_literal_type(str(token))
        except ValueError as e:
            raise ParseError(str(e), location) from None
        return Literal("int", str(token), location=location)

    def float_lit(self, meta, token: Token) -> Literal:
        return Literal("float", str(token), location=self._location(meta))

    def char_lit(self, meta, token: Token) -> Literal:
        return Literal("char", str(token), location=self._location(meta))

    def string_lit(self, meta, token: Token) -> Literal:
        return Literal("string", str(token), location=self._location(meta))

    def true_lit(self, meta) -> Literal:
        return Literal("bool", "true", location=self._location(meta))

    def false_lit(self, meta) -> Literal:
        return Literal("bool", "false", location=self._location(meta))

    def null_lit(self, meta) -> Literal:
        return Literal("null", "nullptr", location=self._location(meta))

    def var(self, meta, name: Token) -> VariableReference:
        return VariableReference(str(name), location=self._location(meta))

    def template_construct(self, meta, ty: TypeRef, args: Optional[List[Expression]] = None) -> TemplateConstruction:
        return TemplateConstruction(ty.name, list(ty.args), args or [], location=self._location(meta))

    def make_tuple(self, meta, args: Optional[List[Expression]] = None) -> TemplateConstruction:
        return TemplateConstruction("tuple", None, args or [], location=self._location(meta))

    def ownership_kw(self, meta, *tokens: Token) -> str:
        return "unique" if str(tokens[-1]) == "make_unique" else "shared"

    def make_handle(self, meta, mode: str, pointee: TypeRef, args: Optional[List[Expression]] = None) -> OwnershipConstruction:
        return OwnershipConstruction(mode, pointee, args or [], location=self._location(meta))

    def tuple_get(self, meta, index: Token, operand: Expression) -> TupleAccess:
        location = self._location(meta)
        try:
            position = int(str(index).rstrip("uUlL"), 0)
        except ValueError:
            raise ParseError(f"invalid tuple index '{index}'", location) from None
        return TupleAccess(position, operand, location=location)

    def move(self, meta, operand: Expression) -> Move:
        return Move(operand, location=self._location(meta))

    def release(self, meta, operand: Expression) -> Release:
        return Release(operand, location=self._location(meta))

    def new_expr(self, meta, target: TypeRef, args: Optional[List[Expression]] = None) -> NewExpression:
        return NewExpression(target, args or [], location=self._location(meta))

    def construct(self, meta, name: str, args: Optional[List[Expression]] = None) -> Construction:
        return Construction(name, args or [], location=self._location(meta))

    def args(self, meta, *exprs: Expression) -> List[Expression]:
        return list(exprs)
