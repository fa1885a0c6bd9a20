"""
Pytest configuration and shared fixtures for all castsema tests.

The driver and parser are stateless between runs (every analysis gets a
fresh AnalysisContext), so one instance is shared by the whole session.
"""

import sys
import pytest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
from castsema.analysis.type_registry import TypeRegistry
from castsema.compiler.driver import AnalysisDriver
from castsema.frontend.parser import Parser
from castsema.passes.cast_classification import CastClassifier
from castsema.shared.types import ClassType, Member, TypeRef


# =============================================================================
# Session-scoped fixtures (shared across all tests)
# =============================================================================

@pytest.fixture(scope="session")
def session_driver():
    """Grammar loading is the expensive part; build it once."""
    return AnalysisDriver()


@pytest.fixture(scope="session")
def session_parser(session_driver):
    return session_driver.parser


# =============================================================================
# Class-scoped fixtures
# =============================================================================

@pytest.fixture(scope="class")
def driver(session_driver):
    return session_driver


@pytest.fixture(scope="class")
def parser(session_parser) -> Parser:
    return session_parser


# =============================================================================
# Registry fixtures (function-scoped: registries are frozen after use)
# =============================================================================

def build_shape_registry() -> TypeRegistry:
    """
    Shape (polymorphic) <- Circle <- Ring ; Widget (non-polymorphic) <- Button ; Gadget unrelated.
    """
    registry = TypeRegistry()
    registry.register(ClassType("Shape", members=(
        Member("area", TypeRef("double"), is_method=True, is_virtual=True),
    )))
    registry.register(ClassType("Circle", bases=("Shape",), members=(
        Member("radius", TypeRef("double")),
    )))
    registry.register(ClassType("Ring", bases=("Circle",)))
    registry.register(ClassType("Widget", members=(Member("id", TypeRef("int")),)))
    registry.register(ClassType("Button", bases=("Widget",)))
    registry.register(ClassType("Gadget"))
    registry.freeze()
    return registry


@pytest.fixture
def shape_registry() -> TypeRegistry:
    return build_shape_registry()


@pytest.fixture
def classifier(shape_registry) -> CastClassifier:
    return CastClassifier(shape_registry)
