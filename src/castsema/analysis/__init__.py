"""
Analysis services: type registry, template instantiation, ownership
tracking and the analysis report.
"""

from .type_registry import TypeRegistry, OperatorSignature
from .template_instantiation import TemplateInstantiator, TEMPLATE_ARITY, template_for
from .ownership import (
    OwnershipTracker, OwnershipHandle, OwnershipMode, HandleState, SharedLineage,
)
from .report import (
    AnalysisReport, ExpressionRecord, CastRecord, Severity, ReportSerializer, serialize_report,
)
