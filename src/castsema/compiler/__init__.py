"""
Analysis driver.
"""

from .driver import AnalysisDriver, AnalysisResult
