"""
Analysis passes.
"""

from .base import AnalysisContext, BasePass, PassManager
from .cast_classification import (
    CastClassifier, CastClassification, CastMechanism, CastNote, CastDirection,
    MECHANISM_FOR_SYNTAX,
)
from .declaration_collection import DeclarationCollectionPass
from .type_resolution import ExpressionTypeResolver, TypeResolutionPass
