"""Models package for the facility import system."""
from backend.models.facility import (
    DEFAULT_CLASS_LIBRARY,
    FacilityLocation,
    FacilityModel,
    FacilitySize,
    IntelligentObject,
    LinkObject,
    NetworkElement,
    NodeObject,
    ObjectClass,
    Property,
    PropertyDefinition,
    RepeatingProperty,
)

__all__ = [
    'DEFAULT_CLASS_LIBRARY',
    'FacilityLocation',
    'FacilityModel',
    'FacilitySize',
    'IntelligentObject',
    'LinkObject',
    'NetworkElement',
    'NodeObject',
    'ObjectClass',
    'Property',
    'PropertyDefinition',
    'RepeatingProperty',
]
