"""
Declaration Collection Pass

Builds the type registry from the program's declaration set in a single
construction pass, then freezes it. Class declarations are registered in
source order (so a base cycle is reported at the declaration that closes
it); operator overloads are resolved against the complete set of classes
and registered last.
"""

import logging
from typing import List

from ..analysis.type_registry import OperatorSignature
from ..shared.nodes import ClassDeclaration, OperatorDeclaration, Program
from ..shared.types import ClassType, Member, TypeRef
from .base import AnalysisContext, BasePass

logger = logging.getLogger("castsema.passes.declaration_collection")


def class_type_from(decl: ClassDeclaration) -> ClassType:
    members = tuple(
        Member(
            name=m.name,
            type=m.type_ref,
            is_method=m.is_method,
            is_virtual=m.is_virtual,
            params=tuple(p.type_ref for p in m.params),
        )
        for m in decl.members
    )
    return ClassType(
        decl.name,
        bases=tuple(decl.bases),
        members=members,
        converts_from=tuple(decl.converting_constructors),
        converts_to=tuple(decl.conversion_operators),
    )


class DeclarationCollectionPass(BasePass):
    requires = []

    def run(self, program: Program, ctx: AnalysisContext) -> Program:
        registry = ctx.registry
        for decl in program.classes:
            registry.register(class_type_from(decl), decl.location)

        for op in self._all_operators(program):
            params = [TypeRef(op.owner)] if op.owner else []
            params += [p.type_ref for p in op.params]
            signature = OperatorSignature(
                op.symbol,
                [registry.resolve_ref(p, ctx.instantiate, op.location) for p in params],
                registry.resolve_ref(op.result, ctx.instantiate, op.location),
                op.location,
            )
            registry.register_operator(signature)
            logger.debug("registered %r", signature)

        registry.freeze()
        ctx.set_analysis(DeclarationCollectionPass, registry)
        return program

    @staticmethod
    def _all_operators(program: Program) -> List[OperatorDeclaration]:
        ops = list(program.operators)
        for decl in program.classes:
            ops.extend(decl.operators)
        return ops
