"""
Requirements and mockup synthesis adapters.
"""

from .requirements import (
    Requirement,
    RequirementCategory,
    RequirementsDocument,
    RequirementsSynthesizer,
    new_requirements_document,
    format_requirements,
)
from .mockup import MockupGenerator, MockupResult, strip_type_assertions

__all__ = [
    "Requirement",
    "RequirementCategory",
    "RequirementsDocument",
    "RequirementsSynthesizer",
    "new_requirements_document",
    "format_requirements",
    "MockupGenerator",
    "MockupResult",
    "strip_type_assertions",
]
