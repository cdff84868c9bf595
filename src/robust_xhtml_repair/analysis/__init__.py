"""Structural analysis layer.

Detects markup defects from scanner tokens and classifies them by severity and
fixability.
"""

from .issues import (
    DECLARATION_TYPES,
    CorruptedQuotes,
    InvalidEntity,
    InvalidSelfClosing,
    Issue,
    IssueType,
    MalformedAttribute,
    MalformedDoctype,
    MissingDoctype,
    MissingNamespace,
    MissingXmlDeclaration,
    UnbalancedQuotes,
    UnclosedTag,
    UndeclaredEntity,
    UnquotedAttribute,
)
from .analyzer import (
    StructuralAnalyzer,
    TagFrame,
)
from .classifier import (
    IssueClassification,
    classify,
)

__all__ = [
    "DECLARATION_TYPES",
    "CorruptedQuotes",
    "InvalidEntity",
    "InvalidSelfClosing",
    "Issue",
    "IssueType",
    "MalformedAttribute",
    "MalformedDoctype",
    "MissingDoctype",
    "MissingNamespace",
    "MissingXmlDeclaration",
    "UnbalancedQuotes",
    "UnclosedTag",
    "UndeclaredEntity",
    "UnquotedAttribute",
    "StructuralAnalyzer",
    "TagFrame",
    "IssueClassification",
    "classify",
]
