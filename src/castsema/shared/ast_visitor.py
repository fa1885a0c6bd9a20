"""
AST Visitor Pattern

- Abstract base class with visit_* methods for each node type
- Nodes dispatch through accept(), so no isinstance() chains in analyzers
- Extensible (add new visitors without changing nodes)
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

T = TypeVar('T')


class ASTVisitor(ABC, Generic[T]):
    """Visitor over expressions and statements of the castsema syntax tree."""

    # -- expressions --------------------------------------------------------

    @abstractmethod
    def visit_literal(self, node) -> T: ...

    @abstractmethod
    def visit_variable(self, node) -> T: ...

    @abstractmethod
    def visit_member_access(self, node) -> T: ...

    @abstractmethod
    def visit_binary_op(self, node) -> T: ...

    @abstractmethod
    def visit_unary_op(self, node) -> T: ...

    @abstractmethod
    def visit_cast(self, node) -> T: ...

    @abstractmethod
    def visit_template_construction(self, node) -> T: ...

    @abstractmethod
    def visit_tuple_access(self, node) -> T: ...

    @abstractmethod
    def visit_subscript(self, node) -> T: ...

    @abstractmethod
    def visit_construction(self, node) -> T: ...

    @abstractmethod
    def visit_new(self, node) -> T: ...

    @abstractmethod
    def visit_ownership_construction(self, node) -> T: ...

    @abstractmethod
    def visit_move(self, node) -> T: ...

    @abstractmethod
    def visit_release(self, node) -> T: ...

    @abstractmethod
    def visit_assignment(self, node) -> T: ...

    # -- statements ---------------------------------------------------------

    @abstractmethod
    def visit_let(self, node) -> T: ...

    @abstractmethod
    def visit_expression_statement(self, node) -> T: ...

    @abstractmethod
    def visit_return(self, node) -> T: ...

    @abstractmethod
    def visit_block(self, node) -> T: ...

    @abstractmethod
    def visit_function(self, node) -> T: ...
