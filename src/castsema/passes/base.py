"""
Base Pass System

Passes declare their dependencies through `requires`; the PassManager
orders them topologically and runs each against one shared
AnalysisContext. Analysis results live on the context, never on the pass.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set, Type

from ..analysis.ownership import OwnershipTracker
from ..analysis.report import AnalysisReport
from ..analysis.template_instantiation import TemplateInstantiator
from ..analysis.type_registry import TypeRegistry
from ..shared.errors import ErrorReporter
from ..shared.nodes import Program

logger = logging.getLogger("castsema.passes.base")


class AnalysisContext:
    """
    Single source of truth for one analysis run.

    The registry is filled by DeclarationCollectionPass and frozen before
    any expression is resolved; every later pass only reads it.
    """

    def __init__(self, strict: bool = False):
        self.registry: TypeRegistry = TypeRegistry()
        self.instantiator: TemplateInstantiator = TemplateInstantiator()
        self.tracker: OwnershipTracker = OwnershipTracker()
        self.report: AnalysisReport = AnalysisReport()
        self.source_files: Dict[str, str] = {}
        self.reporter: ErrorReporter = ErrorReporter(self.source_files)
        self.strict = strict

        self._analysis_results: Dict[Type['BasePass'], Any] = {}

    def instantiate(self, name, args, location=None):
        """Registry callback for template spellings inside type references."""
        return self.instantiator.instantiate(name, args, location)

    def get_analysis(self, pass_class: Type['BasePass']) -> Any:
        if pass_class not in self._analysis_results:
            raise RuntimeError(f"Analysis {pass_class.__name__} not available")
        return self._analysis_results[pass_class]

    def set_analysis(self, pass_class: Type['BasePass'], results: Any) -> None:
        self._analysis_results[pass_class] = results


class BasePass(ABC):
    """Base class for all passes; `requires` lists the passes that must run first."""
    requires: List[Type['BasePass']] = []

    @abstractmethod
    def run(self, program: Program, ctx: AnalysisContext) -> Program:
        raise NotImplementedError


class PassManager:
    """Runs registered passes in dependency order over one context."""

    def __init__(self):
        self.passes: List[Type[BasePass]] = []
        self._dependency_graph: Dict[Type[BasePass], Set[Type[BasePass]]] = {}

    def register_pass(self, pass_class: Type[BasePass]) -> None:
        self.passes.append(pass_class)
        self._dependency_graph[pass_class] = set(pass_class.requires)

    def run_all(self, program: Program, ctx: AnalysisContext,
                stop_after: Optional[str] = None) -> Program:
        for pass_class in self._topological_sort():
            logger.debug("running %s", pass_class.__name__)
            program = pass_class().run(program, ctx)
            if stop_after and pass_class.__name__ == stop_after:
                break
        return program

    def _topological_sort(self) -> List[Type[BasePass]]:
        for pass_class, deps in self._dependency_graph.items():
            missing = [d.__name__ for d in deps if d not in self._dependency_graph]
            if missing:
                raise RuntimeError(f"{pass_class.__name__} requires unregistered passes: {', '.join(missing)}")

        in_degree = {p: len(self._dependency_graph[p]) for p in self.passes}
        queue = [p for p, degree in in_degree.items() if degree == 0]
        result = []

        while queue:
            pass_class = queue.pop(0)
            result.append(pass_class)
            for other_pass in self.passes:
                if pass_class in self._dependency_graph[other_pass]:
                    in_degree[other_pass] -= 1
                    if in_degree[other_pass] == 0:
                        queue.append(other_pass)

        if len(result) != len(self.passes):
            raise RuntimeError("Circular dependency detected in passes")
        return result
