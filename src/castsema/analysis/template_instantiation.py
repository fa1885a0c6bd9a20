"""
Template instantiation service.

Instantiations are memoized by (template, argument list): asking twice for
`vector<int>` returns the very same TemplateInstanceType object. The memo
table lives here rather than in the registry, which stays frozen during
resolution.
"""

import logging
from typing import Dict, List, Optional, Tuple, Union

from ..shared.errors import IndexOutOfRangeError, TemplateArgumentError
from ..shared.source_location import SourceLocation
from ..shared.types import TemplateInstanceType, TemplateName, Type
from ..utils.config import TEMPLATE_ALIASES

logger = logging.getLogger("castsema.analysis.template_instantiation")

# Required argument count; None means any count (fixed at instantiation)
TEMPLATE_ARITY: Dict[TemplateName, Optional[int]] = {
    TemplateName.SEQUENCE: 1,
    TemplateName.ORDERED_MAPPING: 2,
    TemplateName.FIXED_ARITY_TUPLE: None,
    TemplateName.UNIQUE_HANDLE: 1,
    TemplateName.SHARED_HANDLE: 1,
}


def template_for(name: Union[str, TemplateName]) -> TemplateName:
    """Map a surface spelling (`vector`, `std::map`) or canonical name to a TemplateName."""
    if isinstance(name, TemplateName):
        return name
    short = name.split("::")[-1]
    canonical = TEMPLATE_ALIASES.get(short, short)
    try:
        return TemplateName(canonical)
    except ValueError:
        raise TemplateArgumentError(f"'{name}' is not a known template") from None


class TemplateInstantiator:
    """Resolves container, tuple and handle instantiations to concrete, memoized types."""

    def __init__(self) -> None:
        self._instances: Dict[Tuple[TemplateName, Tuple[Type, ...]], TemplateInstanceType] = {}

    @property
    def instances(self) -> List[TemplateInstanceType]:
        return list(self._instances.values())

    def instantiate(self, template: Union[str, TemplateName], args: Tuple[Type, ...],
                    location: Optional[SourceLocation] = None) -> TemplateInstanceType:
        kind = template_for(template)
        args = tuple(args)
        expected = TEMPLATE_ARITY[kind]
        if expected is not None and len(args) != expected:
            raise TemplateArgumentError(
                f"{kind.value} expects {expected} type argument{'s' if expected != 1 else ''}, got {len(args)}",
                location,
            )
        key = (kind, args)
        instance = self._instances.get(key)
        if instance is None:
            instance = TemplateInstanceType(kind, args)
            self._instances[key] = instance
            logger.debug("instantiated %s", instance)
        return instance

    # -- element access ------------------------------------------------------

    @staticmethod
    def _expect(instance: Type, kind: TemplateName) -> TemplateInstanceType:
        if not isinstance(instance, TemplateInstanceType) or instance.template is not kind:
            raise TemplateArgumentError(f"expected a {kind.value} instantiation, got '{instance}'")
        return instance

    def element_type(self, sequence: Type) -> Type:
        return self._expect(sequence, TemplateName.SEQUENCE).args[0]

    def key_type(self, mapping: Type) -> Type:
        return self._expect(mapping, TemplateName.ORDERED_MAPPING).args[0]

    def value_type(self, mapping: Type) -> Type:
        return self._expect(mapping, TemplateName.ORDERED_MAPPING).args[1]

    def member_type(self, tup: Type, index: int, location: Optional[SourceLocation] = None) -> Type:
        """Positional member of a tuple; the index is checked against the fixed arity."""
        instance = self._expect(tup, TemplateName.FIXED_ARITY_TUPLE)
        if index < 0 or index >= instance.arity:
            raise IndexOutOfRangeError(index, instance.arity, location)
        return instance.args[index]

    def pointee_type(self, handle: Type) -> Type:
        if not isinstance(handle, TemplateInstanceType) or not handle.is_handle:
            raise TemplateArgumentError(f"expected an ownership handle, got '{handle}'")
        return handle.args[0]
