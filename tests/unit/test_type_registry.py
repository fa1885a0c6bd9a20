"""
Tests for the TypeRegistry: construct-then-freeze, hierarchy queries and
eager cycle detection.
"""

import pytest
from castsema.analysis.type_registry import OperatorSignature, TypeRegistry
from castsema.shared.errors import (
    CyclicHierarchyError,
    DuplicateTypeError,
    RegistryFrozenError,
    TemplateArgumentError,
    UnknownTypeError,
)
from castsema.shared.source_location import SourceLocation
from castsema.shared.types import (
    INT,
    ClassType,
    Member,
    PointerType,
    ReferenceType,
    TypeRef,
)


class TestRegistration:
    """register() and freeze()"""

    def test_duplicate_name_fails(self):
        registry = TypeRegistry()
        registry.register(ClassType("Base"))
        with pytest.raises(DuplicateTypeError):
            registry.register(ClassType("Base"))

    def test_declaration_location_is_kept(self):
        registry = TypeRegistry()
        where = SourceLocation("a.sema", 3, 1)
        registry.register(ClassType("Base"), where)
        assert registry.location_of("Base") == where
        assert registry.location_of("Other") is None

    def test_primitive_names_are_taken(self):
        registry = TypeRegistry()
        with pytest.raises(DuplicateTypeError):
            registry.register(ClassType("int"))

    def test_builtin_string_class(self):
        registry = TypeRegistry()
        assert isinstance(registry.lookup("string"), ClassType)
        assert registry.lookup("std::string") is registry.lookup("string")

    def test_frozen_registry_rejects_types(self):
        registry = TypeRegistry()
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register(ClassType("Late"))

    def test_frozen_registry_rejects_operators(self):
        registry = TypeRegistry()
        registry.freeze()
        with pytest.raises(RegistryFrozenError):
            registry.register_operator(OperatorSignature("+", [INT, INT], INT))

    def test_freeze_is_idempotent(self):
        registry = TypeRegistry()
        registry.freeze()
        registry.freeze()
        assert registry.frozen

    def test_unknown_base_fails_at_freeze(self):
        registry = TypeRegistry()
        registry.register(ClassType("Orphan", bases=("Missing",)))
        with pytest.raises(UnknownTypeError, match="Missing"):
            registry.freeze()
        assert not registry.frozen

    def test_primitive_base_fails_at_freeze(self):
        registry = TypeRegistry()
        registry.register(ClassType("Weird", bases=("int",)))
        with pytest.raises(UnknownTypeError, match="not a class type"):
            registry.freeze()

    def test_unknown_member_type_fails_at_freeze(self):
        registry = TypeRegistry()
        registry.register(ClassType("Holder", members=(Member("thing", TypeRef("Nowhere")),)))
        with pytest.raises(UnknownTypeError, match="Nowhere"):
            registry.freeze()

    def test_template_conversion_rejected(self):
        registry = TypeRegistry()
        registry.register(ClassType("Box", converts_from=(TypeRef("vector", (TypeRef("int"),)),)))
        with pytest.raises(TemplateArgumentError):
            registry.freeze()


class TestCycleDetection:
    """A base cycle is rejected by the register() call that closes it."""

    def test_three_class_cycle(self):
        registry = TypeRegistry()
        registry.register(ClassType("A", bases=("C",)))
        registry.register(ClassType("C", bases=("B",)))
        with pytest.raises(CyclicHierarchyError) as excinfo:
            registry.register(ClassType("B", bases=("A",)))
        cycle = excinfo.value.cycle
        assert cycle[0] == cycle[-1] == "B"
        assert set(cycle) == {"A", "B", "C"}

    def test_rejected_class_is_not_registered(self):
        registry = TypeRegistry()
        registry.register(ClassType("A", bases=("B",)))
        with pytest.raises(CyclicHierarchyError):
            registry.register(ClassType("B", bases=("A",)))
        assert "B" not in registry
        # The remaining graph is acyclic; only the dangling base is wrong
        with pytest.raises(UnknownTypeError):
            registry.freeze()

    def test_self_base(self):
        registry = TypeRegistry()
        with pytest.raises(CyclicHierarchyError, match="Loop -> Loop"):
            registry.register(ClassType("Loop", bases=("Loop",)))

    def test_diamond_is_not_a_cycle(self):
        registry = TypeRegistry()
        registry.register(ClassType("Top"))
        registry.register(ClassType("Left", bases=("Top",)))
        registry.register(ClassType("Right", bases=("Top",)))
        registry.register(ClassType("Bottom", bases=("Left", "Right")))
        registry.freeze()
        assert registry.is_base_of("Top", "Bottom")


class TestHierarchyQueries:
    """is_base_of, are_related, is_polymorphic, find_member"""

    def test_transitive_base(self, shape_registry):
        assert shape_registry.is_base_of("Shape", "Ring")
        assert shape_registry.is_base_of("Circle", "Ring")
        assert not shape_registry.is_base_of("Ring", "Shape")

    def test_class_is_not_its_own_base(self, shape_registry):
        assert not shape_registry.is_base_of("Shape", "Shape")
        assert shape_registry.are_related("Shape", "Shape")

    def test_unrelated(self, shape_registry):
        assert not shape_registry.are_related("Widget", "Shape")
        assert not shape_registry.are_related("Gadget", "Button")

    def test_polymorphism_is_inherited(self, shape_registry):
        assert shape_registry.is_polymorphic("Shape")
        assert shape_registry.is_polymorphic("Ring")
        assert not shape_registry.is_polymorphic("Button")

    def test_inherited_member_lookup(self, shape_registry):
        member = shape_registry.find_member("Ring", "area")
        assert member is not None and member.is_method
        assert shape_registry.find_member("Ring", "radius").type == TypeRef("double")
        assert shape_registry.find_member("Button", "radius") is None

    def test_query_on_primitive_fails(self, shape_registry):
        with pytest.raises(UnknownTypeError):
            shape_registry.is_base_of("int", "Shape")


class TestResolution:
    """resolve() / resolve_ref()"""

    def test_unknown_name(self, shape_registry):
        with pytest.raises(UnknownTypeError, match="Triangle"):
            shape_registry.resolve("Triangle")

    def test_primitive_synonyms(self):
        registry = TypeRegistry()
        assert registry.resolve("size_t").name == "unsigned long"
        assert registry.resolve("unsigned").name == "unsigned int"
        assert registry.resolve("long long int").name == "long long"

    def test_pointer_and_reference(self, shape_registry):
        shape = shape_registry.resolve("Shape")
        assert shape_registry.resolve_ref(TypeRef("Shape", pointer_depth=2)) == PointerType(PointerType(shape))
        assert shape_registry.resolve_ref(TypeRef("Shape", is_reference=True, is_const=True)) == ReferenceType(shape)

    def test_template_needs_instantiator(self, shape_registry):
        with pytest.raises(TemplateArgumentError):
            shape_registry.resolve_ref(TypeRef("vector", (TypeRef("int"),)))

    def test_non_template_with_arguments(self, shape_registry):
        with pytest.raises(TemplateArgumentError, match="not a template"):
            shape_registry.resolve_ref(TypeRef("Shape", (TypeRef("int"),)), instantiate=lambda *a: None)

    def test_user_conversion(self):
        registry = TypeRegistry()
        meters = registry.register(ClassType("Meters", converts_from=(TypeRef("double"),),
                                             converts_to=(TypeRef("float"),)))
        registry.freeze()
        assert registry.has_user_conversion(registry.resolve("double"), meters)
        assert registry.has_user_conversion(meters, registry.resolve("float"))
        assert not registry.has_user_conversion(INT, meters)
