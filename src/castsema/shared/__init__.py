"""
Shared components: locations, diagnostics, type model, syntax tree, scopes.
"""

from .source_location import SourceLocation
from .errors import (
    Error, ErrorReporter,
    CastsemaError, FatalAnalysisError, RecoverableAnalysisError, OwnershipViolation,
    ParseError, UnknownTypeError, UnknownIdentifierError, UnknownMemberError,
    CyclicHierarchyError, DuplicateTypeError, DuplicateDeclarationError,
    AmbiguousOverloadError, NoViableOverloadError, TemplateArgumentError,
    CastError, UnrelatedTypesError, NotPolymorphicError, NotReinterpretableError,
    IndexOutOfRangeError,
    UseAfterMoveError, UseAfterReleaseError, NonCopyableError, DoubleReleaseError,
    CastsemaImplementationError, RegistryFrozenError, ResolutionError,
)
from .types import (
    Type, TypeKind, TemplateName, TypeRef, Member,
    PrimitiveType, ClassType, PointerType, ReferenceType, TemplateInstanceType, UnknownType,
    BOOL, CHAR, SCHAR, UCHAR, SHORT, USHORT, INT, UINT, LONG, ULONG, LLONG, ULLONG,
    FLOAT, DOUBLE, LDOUBLE, VOID, NULLPTR, OPAQUE_POINTER, STRING_LITERAL, UNKNOWN,
    PRIMITIVES, ARITHMETIC_TYPES,
)
from .nodes import (
    ExpressionKind, CastSyntax, Expression, Literal, VariableReference, MemberAccess,
    BinaryOp, UnaryOp, Cast, TemplateConstruction, TupleAccess, Subscript,
    Construction, NewExpression, OwnershipConstruction, Move, Release, Assignment,
    Statement, LetStatement, ExpressionStatement, ReturnStatement, Block,
    Parameter, FunctionDefinition, MemberDeclaration, OperatorDeclaration,
    ClassDeclaration, Program,
)
from .ast_visitor import ASTVisitor
from .scope import ScopeManager, ScopeKind, Binding
