"""
Type Resolution Pass

ExpressionTypeResolver walks the program post-order (children before
parents) and assigns every expression its static type exactly once.

- casts and implicit conversions go through the CastClassifier; a cast
  node always resolves to its target type, whatever the classification
- template spellings go through the TemplateInstantiator
- ownership-relevant nodes (construction, copy, move, release, use through
  a handle) drive the OwnershipTracker
- recoverable findings and ownership violations are recorded in the report
  and the walk continues; fatal errors propagate to the driver
"""

import logging
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from ..analysis.ownership import OwnershipHandle
from ..analysis.type_registry import OperatorSignature
from ..shared.ast_visitor import ASTVisitor
from ..shared.errors import (
    AmbiguousOverloadError,
    IndexOutOfRangeError,
    NoViableOverloadError,
    OwnershipViolation,
    TemplateArgumentError,
    UnknownIdentifierError,
    UnknownMemberError,
    UnknownTypeError,
)
from ..shared.nodes import (
    COMPARISON_OPERATORS,
    Expression,
    FunctionDefinition,
    Program,
    Statement,
    VariableReference,
)
from ..shared.scope import Binding, ScopeKind, ScopeManager
from ..shared.source_location import SourceLocation
from ..shared.types import (
    BOOL,
    INT,
    LONG,
    NULLPTR,
    UNKNOWN,
    ULONG,
    VOID,
    ClassType,
    PointerType,
    PrimitiveType,
    ReferenceType,
    TemplateInstanceType,
    TemplateName,
    Type,
    TypeKind,
    TypeRef,
    infer_literal_type,
    is_arithmetic,
    is_handle,
    strip_reference,
)
from .base import AnalysisContext, BasePass
from .cast_classification import MECHANISM_FOR_SYNTAX, CastClassifier, CastMechanism
from .declaration_collection import DeclarationCollectionPass

logger = logging.getLogger("castsema.passes.type_resolution")

# Overload candidate ranks, best first
RANK_EXACT = 0
RANK_CONVERSION = 1
RANK_BASE = 2


def promote_integer(ty: PrimitiveType) -> PrimitiveType:
    """Integral promotion: anything narrower than int computes as int."""
    if ty.is_integer and ty.precision < INT.precision:
        return INT
    return ty


def arithmetic_result(a: PrimitiveType, b: PrimitiveType) -> PrimitiveType:
    """Usual arithmetic conversions over the LP64 primitives."""
    if a.is_floating or b.is_floating:
        floats = [t for t in (a, b) if t.is_floating]
        return max(floats, key=lambda t: t.precision)
    a, b = promote_integer(a), promote_integer(b)
    if a.storage_bits != b.storage_bits:
        return a if a.storage_bits > b.storage_bits else b
    if a == b:
        return a
    return a if not a.is_signed else b


class ExpressionTypeResolver(ASTVisitor[Type]):
    """Resolves one program against a frozen registry."""

    def __init__(self, ctx: AnalysisContext):
        self.ctx = ctx
        self.registry = ctx.registry
        self.instantiator = ctx.instantiator
        self.tracker = ctx.tracker
        self.report = ctx.report
        self.classifier = CastClassifier(ctx.registry)
        self.scopes = ScopeManager()
        self._handles: Dict[Expression, OwnershipHandle] = {}
        # expressions whose handle transfer already failed with a violation
        self._refused: Set[Expression] = set()
        self._return_types: List[Type] = []

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def resolve_program(self, program: Program) -> None:
        with self._scope(ScopeKind.GLOBAL):
            for stmt in program.statements:
                stmt.accept(self)
            for func in program.functions:
                func.accept(self)

    def resolve(self, expr: Expression) -> Type:
        if expr.is_resolved:
            return expr.resolved_type
        return expr.accept(self)

    def _finish(self, expr: Expression, ty: Type, is_lvalue: bool = False) -> Type:
        expr.assign_type(ty, is_lvalue)
        self.report.record_expression(expr)
        return ty

    @contextmanager
    def _scope(self, kind: ScopeKind, location: Optional[SourceLocation] = None):
        with self.scopes.scope(kind), self.tracker.scope(location):
            yield

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_type(self, ref: TypeRef, location: Optional[SourceLocation]) -> Type:
        return self.registry.resolve_ref(ref, self.ctx.instantiate, location)

    def _spec_type(self, spec, location: Optional[SourceLocation]) -> Type:
        return self.registry.resolve_spec(spec, self.ctx.instantiate, location)

    def _track(self, operation: Callable, *args):
        """Run a tracker operation; a violation is recorded instead of aborting."""
        try:
            return operation(*args)
        except OwnershipViolation as violation:
            logger.debug("ownership violation: %s", violation.message)
            self.report.record_violation(violation)
            return None

    def _convert(self, value: Expression, target: Type, location: Optional[SourceLocation]) -> None:
        """Classify the implicit conversion of an already resolved value to `target`."""
        source = value.resolved_type
        if source.kind is TypeKind.UNKNOWN or target.kind is TypeKind.UNKNOWN:
            return
        if strip_reference(source) == strip_reference(target):
            return
        classification = self.classifier.classify(source, target, CastMechanism.IMPLICIT_NUMERIC, location)
        self.report.record_cast(str(value), classification, implicit=True, location=location or value.location)

    def _take_handle(self, value: Expression,
                     location: Optional[SourceLocation]) -> Tuple[bool, Optional[OwnershipHandle]]:
        """
        Handle a new owner receives from `value`: lvalues are copied,
        temporaries handed over. Returns (taken, handle); taken is False when
        the transfer was refused and a violation recorded.
        """
        if value in self._refused:
            return False, None
        handle = self._handles.get(value)
        if handle is None or not value.is_lvalue:
            return True, handle
        alias = self._track(self.tracker.copy, handle, location)
        return alias is not None, alias

    def _give_handle(self, binding: Binding, handle: Optional[OwnershipHandle]) -> None:
        binding.handle = handle
        if handle is not None:
            self.tracker.adopt(handle, binding.depth)

    def _use_handle(self, expr: Expression, location: Optional[SourceLocation]) -> None:
        handle = self._handles.get(expr)
        if handle is not None:
            self._track(self.tracker.use, handle, location)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def visit_literal(self, node) -> Type:
        return self._finish(node, infer_literal_type(node.literal_kind, node.text))

    def visit_variable(self, node) -> Type:
        binding = self.scopes.lookup(node.name)
        if binding is None:
            raise UnknownIdentifierError(f"cannot find value '{node.name}' in this scope", node.location)
        if binding.handle is not None:
            self._handles[node] = binding.handle
        return self._finish(node, binding.type, is_lvalue=True)

    def visit_member_access(self, node) -> Type:
        base_type = strip_reference(self.resolve(node.base))
        if node.call_args is not None:
            for arg in node.call_args:
                self.resolve(arg)
        if base_type.kind is TypeKind.UNKNOWN:
            return self._finish(node, UNKNOWN)

        if node.arrow:
            if isinstance(base_type, PointerType):
                cls = base_type.pointee
            elif is_handle(base_type):
                self._use_handle(node.base, node.location)
                cls = base_type.args[0]
            else:
                raise UnknownMemberError(
                    f"'->' applied to '{base_type}', which is neither a pointer nor a handle", node.location
                )
        else:
            cls = base_type
        if not isinstance(cls, ClassType):
            raise UnknownMemberError(f"'{cls}' is not a class type and has no member '{node.member}'", node.location)

        member = self.registry.find_member(cls, node.member)
        if member is None:
            raise UnknownMemberError(f"no member named '{node.member}' in '{cls}'", node.location)

        if node.call_args is None:
            if member.is_method:
                raise UnknownMemberError(f"method '{cls}::{node.member}' must be called", node.location)
            return self._finish(node, self._spec_type(member.type, node.location), is_lvalue=True)

        if not member.is_method:
            raise UnknownMemberError(f"'{cls}::{node.member}' is a field, not a method", node.location)
        if len(node.call_args) != len(member.params):
            raise NoViableOverloadError(
                f"'{cls}::{node.member}' takes {len(member.params)} argument(s), {len(node.call_args)} given",
                node.location,
            )
        for arg, param in zip(node.call_args, member.params):
            self._convert(arg, self._spec_type(param, node.location), arg.location)
        result = self._spec_type(member.type, node.location)
        return self._finish(node, result, is_lvalue=isinstance(result, ReferenceType))

    def visit_binary_op(self, node) -> Type:
        left = strip_reference(self.resolve(node.left))
        right = strip_reference(self.resolve(node.right))
        op = node.operator
        if left.kind is TypeKind.UNKNOWN or right.kind is TypeKind.UNKNOWN:
            return self._finish(node, UNKNOWN)

        if is_arithmetic(left) and is_arithmetic(right):
            if op in COMPARISON_OPERATORS:
                return self._finish(node, BOOL)
            return self._finish(node, arithmetic_result(left, right))

        if isinstance(left, PointerType) or isinstance(right, PointerType):
            result = self._pointer_arithmetic(op, left, right)
            if result is not None:
                return self._finish(node, result)

        if op in ("==", "!=") and self._handle_comparison(left, right):
            return self._finish(node, BOOL)

        result = self._resolve_overload(op, [left, right], node.location)
        return self._finish(node, result, is_lvalue=isinstance(result, ReferenceType))

    @staticmethod
    def _handle_comparison(left: Type, right: Type) -> bool:
        """A handle compares with nullptr or a handle of its own type; no use of the handle."""
        if is_handle(left):
            return right == NULLPTR or right == left
        return is_handle(right) and left == NULLPTR

    def _pointer_arithmetic(self, op: str, left: Type, right: Type) -> Optional[Type]:
        if op in COMPARISON_OPERATORS:
            if isinstance(left, PointerType) and (right == left or right == NULLPTR):
                return BOOL
            if isinstance(right, PointerType) and left == NULLPTR:
                return BOOL
            return None
        if op in ("+", "-") and isinstance(left, PointerType) and is_arithmetic(right) and right.is_integer:
            return left
        if op == "+" and isinstance(right, PointerType) and is_arithmetic(left) and left.is_integer:
            return right
        if op == "-" and isinstance(left, PointerType) and left == right:
            return LONG
        return None

    def visit_unary_op(self, node) -> Type:
        operand_type = strip_reference(self.resolve(node.operand))
        op = node.operator
        if operand_type.kind is TypeKind.UNKNOWN:
            return self._finish(node, UNKNOWN)
        if op == "&":
            return self._finish(node, PointerType(operand_type))
        if op == "*":
            if isinstance(operand_type, PointerType):
                return self._finish(node, operand_type.pointee, is_lvalue=True)
            if is_handle(operand_type):
                self._use_handle(node.operand, node.location)
                return self._finish(node, operand_type.args[0], is_lvalue=True)
        if op == "!" and (is_arithmetic(operand_type) or isinstance(operand_type, PointerType)
                          or is_handle(operand_type)):
            return self._finish(node, BOOL)
        if op in ("-", "+") and is_arithmetic(operand_type):
            return self._finish(node, promote_integer(operand_type))
        result = self._resolve_overload(op, [operand_type], node.location)
        return self._finish(node, result, is_lvalue=isinstance(result, ReferenceType))

    def visit_cast(self, node) -> Type:
        source = self.resolve(node.operand)
        target = self._resolve_type(node.target, node.location)
        mechanism = MECHANISM_FOR_SYNTAX[node.syntax]
        classification = self.classifier.classify(source, target, mechanism, node.location)
        self.report.record_cast(str(node), classification, implicit=False, location=node.location)
        if not classification.legal:
            logger.debug("illegal cast %s: %s", node, classification.reason.message)
        return self._finish(node, target, is_lvalue=isinstance(target, ReferenceType))

    def visit_template_construction(self, node) -> Type:
        for arg in node.args:
            self.resolve(arg)
        if node.type_args is None:
            # make_tuple: arity and member types come from the arguments
            members = tuple(strip_reference(a.resolved_type) for a in node.args)
            return self._finish(node, self.instantiator.instantiate(TemplateName.FIXED_ARITY_TUPLE, members, node.location))

        args = tuple(self._resolve_type(t, node.location) for t in node.type_args)
        instance = self.instantiator.instantiate(node.template, args, node.location)
        self._check_constructor_args(node, instance)
        return self._finish(node, instance)

    def _check_constructor_args(self, node, instance: TemplateInstanceType) -> None:
        template = instance.template
        if template is TemplateName.FIXED_ARITY_TUPLE:
            if node.args and len(node.args) != instance.arity:
                raise TemplateArgumentError(
                    f"'{instance}' is constructed from {instance.arity} value(s), {len(node.args)} given",
                    node.location,
                )
            for arg, member in zip(node.args, instance.args):
                self._convert(arg, member, arg.location)
        elif template is TemplateName.SEQUENCE:
            element = self.instantiator.element_type(instance)
            for arg in node.args:
                self._convert(arg, element, arg.location)
        elif template is TemplateName.ORDERED_MAPPING:
            if node.args:
                raise TemplateArgumentError(f"'{instance}' is only default-constructible here", node.location)
        elif instance.is_handle:
            if len(node.args) > 1:
                raise TemplateArgumentError(f"'{instance}' takes at most one pointer", node.location)
            pointee = self.instantiator.pointee_type(instance)
            for arg in node.args:
                self._convert(arg, PointerType(pointee), arg.location)
            if template is TemplateName.UNIQUE_HANDLE:
                self._handles[node] = self.tracker.make_unique(pointee, node.location)
            else:
                self._handles[node] = self.tracker.make_shared(pointee, node.location)

    def visit_tuple_access(self, node) -> Type:
        operand = self.resolve(node.operand)
        tup = strip_reference(operand)
        if tup.kind is TypeKind.UNKNOWN:
            return self._finish(node, UNKNOWN)
        try:
            member = self.instantiator.member_type(tup, node.index, node.location)
        except IndexOutOfRangeError as finding:
            self.report.record_finding(finding)
            return self._finish(node, UNKNOWN)
        return self._finish(node, member, is_lvalue=node.operand.is_lvalue)

    def visit_subscript(self, node) -> Type:
        container = strip_reference(self.resolve(node.base))
        index_type = strip_reference(self.resolve(node.index))
        if container.kind is TypeKind.UNKNOWN:
            return self._finish(node, UNKNOWN)

        if isinstance(container, TemplateInstanceType) and container.template is TemplateName.ORDERED_MAPPING:
            self._convert(node.index, self.instantiator.key_type(container), node.index.location)
            return self._finish(node, self.instantiator.value_type(container), is_lvalue=True)

        if not (is_arithmetic(index_type) and index_type.is_integer):
            self._convert(node.index, ULONG, node.index.location)
        if isinstance(container, TemplateInstanceType) and container.template is TemplateName.SEQUENCE:
            return self._finish(node, self.instantiator.element_type(container), is_lvalue=True)
        if isinstance(container, PointerType):
            return self._finish(node, container.pointee, is_lvalue=True)
        raise NoViableOverloadError(f"'{container}' cannot be subscripted", node.location)

    def visit_construction(self, node) -> Type:
        for arg in node.args:
            self.resolve(arg)
        ty = self.registry.resolve(node.class_name, node.location)
        if not isinstance(ty, ClassType):
            raise UnknownTypeError(f"'{node.class_name}' is not a class type", node.location)
        if len(node.args) == 1:
            source = strip_reference(node.args[0].resolved_type)
            if source != ty and source.kind is not TypeKind.UNKNOWN:
                self._convert(node.args[0], ty, node.args[0].location)
        return self._finish(node, ty)

    def visit_new(self, node) -> Type:
        for arg in node.args:
            self.resolve(arg)
        target = self._resolve_type(node.target, node.location)
        if is_arithmetic(target) and len(node.args) == 1:
            self._convert(node.args[0], target, node.args[0].location)
        return self._finish(node, PointerType(target))

    def visit_ownership_construction(self, node) -> Type:
        for arg in node.args:
            self.resolve(arg)
        pointee = self._resolve_type(node.pointee, node.location)
        if is_arithmetic(pointee) and len(node.args) == 1:
            self._convert(node.args[0], pointee, node.args[0].location)
        if node.mode == "unique":
            handle_type = self.instantiator.instantiate(TemplateName.UNIQUE_HANDLE, (pointee,), node.location)
            self._handles[node] = self.tracker.make_unique(pointee, node.location)
        else:
            handle_type = self.instantiator.instantiate(TemplateName.SHARED_HANDLE, (pointee,), node.location)
            self._handles[node] = self.tracker.make_shared(pointee, node.location)
        return self._finish(node, handle_type)

    def visit_move(self, node) -> Type:
        operand = strip_reference(self.resolve(node.operand))
        handle = self._handles.get(node.operand)
        if handle is not None:
            moved = self._track(self.tracker.move, handle, node.location)
            if moved is None:
                self._refused.add(node)
            else:
                self._handles[node] = moved
        return self._finish(node, operand)

    def visit_release(self, node) -> Type:
        self.resolve(node.operand)
        handle = self._handles.get(node.operand)
        if handle is not None:
            self._track(self.tracker.release, handle, node.location)
        return self._finish(node, VOID)

    def visit_assignment(self, node) -> Type:
        target_type = self.resolve(node.target)
        self.resolve(node.value)
        self._convert(node.value, strip_reference(target_type), node.location)

        if is_handle(strip_reference(target_type)) and isinstance(node.target, VariableReference):
            binding = self.scopes.lookup(node.target.name)
            previous = binding.handle
            taken, handle = self._take_handle(node.value, node.location)
            if taken:
                self._give_handle(binding, handle)
                if previous is not None and previous.is_valid and previous is not handle:
                    self._track(self.tracker.release, previous, node.location)
        return self._finish(node, target_type, is_lvalue=True)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def visit_let(self, node) -> None:
        if node.value is not None:
            self.resolve(node.value)
        if node.declared_type is not None:
            ty = self._resolve_type(node.declared_type, node.location)
            if node.value is not None:
                self._convert(node.value, ty, node.location)
        elif node.value is not None:
            ty = strip_reference(node.value.resolved_type)
        else:
            raise UnknownTypeError(f"cannot infer the type of '{node.name}' without an initializer", node.location)

        binding = Binding(node.name, ty, node.location)
        self.scopes.define(binding)
        if node.value is not None and is_handle(strip_reference(ty)):
            _, handle = self._take_handle(node.value, node.location)
            self._give_handle(binding, handle)

    def visit_expression_statement(self, node) -> None:
        self.resolve(node.expr)

    def visit_return(self, node) -> None:
        if node.value is None:
            return
        self.resolve(node.value)
        if self._return_types:
            self._convert(node.value, self._return_types[-1], node.location)

    def visit_block(self, node) -> None:
        with self._scope(ScopeKind.BLOCK, node.location):
            self._statements(node.statements)

    def visit_function(self, node: FunctionDefinition) -> None:
        return_type = self._resolve_type(node.return_type, node.location) if node.return_type else VOID
        with self._scope(ScopeKind.FUNCTION, node.location):
            for param in node.params:
                if param.name is None:
                    continue
                ty = self._resolve_type(param.type_ref, param.location)
                self.scopes.define(Binding(param.name, ty, param.location))
            self._return_types.append(return_type)
            try:
                self._statements(node.body.statements if node.body else [])
            finally:
                self._return_types.pop()

    def _statements(self, statements: Sequence[Statement]) -> None:
        for stmt in statements:
            stmt.accept(self)

    # ------------------------------------------------------------------
    # Operator overloads
    # ------------------------------------------------------------------

    def _param_rank(self, arg: Type, param: Type) -> Optional[int]:
        arg, param = strip_reference(arg), strip_reference(param)
        if arg == param:
            return RANK_EXACT
        if self.registry.has_user_conversion(arg, param):
            return RANK_CONVERSION
        if isinstance(arg, ClassType) and isinstance(param, ClassType) and self.registry.is_base_of(param, arg):
            return RANK_BASE
        return None

    def _resolve_overload(self, symbol: str, operands: List[Type],
                          location: Optional[SourceLocation]) -> Type:
        """Best candidate by worst per-parameter rank; equal best ranks are ambiguous."""
        ranked = []
        for signature in self.registry.operators(symbol):
            if len(signature.params) != len(operands):
                continue
            ranks = [self._param_rank(a, p) for a, p in zip(operands, signature.params)]
            if any(r is None for r in ranks):
                continue
            ranked.append((max(ranks, default=RANK_EXACT), signature))

        operand_text = ", ".join(f"'{t}'" for t in operands)
        if not ranked:
            raise NoViableOverloadError(f"no operator{symbol} accepts ({operand_text})", location)
        best = min(rank for rank, _ in ranked)
        winners: List[OperatorSignature] = [sig for rank, sig in ranked if rank == best]
        if len(winners) > 1:
            raise AmbiguousOverloadError(
                f"call to operator{symbol} with ({operand_text}) is ambiguous between "
                + " and ".join(repr(w) for w in winners),
                location,
            )
        logger.debug("operator%s(%s) resolved to %r", symbol, operand_text, winners[0])
        return winners[0].result


class TypeResolutionPass(BasePass):
    requires = [DeclarationCollectionPass]

    def run(self, program: Program, ctx: AnalysisContext) -> Program:
        resolver = ExpressionTypeResolver(ctx)
        resolver.resolve_program(program)
        ctx.set_analysis(TypeResolutionPass, ctx.report)
        return program
