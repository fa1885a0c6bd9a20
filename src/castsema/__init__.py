"""
castsema: type resolution, cast classification, template instantiation and
ownership tracking for a small C++-like expression language.
"""

from .compiler.driver import AnalysisDriver, AnalysisResult
from .analysis.report import AnalysisReport, serialize_report

__version__ = "0.1.0"

__all__ = ["AnalysisDriver", "AnalysisResult", "AnalysisReport", "serialize_report", "__version__"]
