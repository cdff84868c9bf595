"""Structural issue types.

Every defect the analyzer can report is one ``Issue`` subclass, selected by its
``IssueType``. The set is closed: the repair layer keys its fix planners on
``IssueType`` and checks at import time that every fixable kind is covered.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from robust_xhtml_repair.shared import Severity


class IssueType(Enum):
    """Kinds of structural issues."""

    MISSING_XML_DECLARATION = "missing_xml_declaration"
    MISSING_DOCTYPE = "missing_doctype"
    MALFORMED_DOCTYPE = "malformed_doctype"
    MISSING_NAMESPACE = "missing_namespace"
    UNCLOSED_TAG = "unclosed_tag"
    INVALID_SELF_CLOSING = "invalid_self_closing"
    UNQUOTED_ATTRIBUTE = "unquoted_attribute"
    MALFORMED_ATTRIBUTE = "malformed_attribute"
    CORRUPTED_QUOTES = "corrupted_quotes"
    UNBALANCED_QUOTES = "unbalanced_quotes"
    INVALID_ENTITY = "invalid_entity"
    UNDECLARED_ENTITY = "undeclared_entity"


DECLARATION_TYPES = frozenset({
    IssueType.MISSING_XML_DECLARATION,
    IssueType.MISSING_DOCTYPE,
    IssueType.MALFORMED_DOCTYPE,
    IssueType.MISSING_NAMESPACE,
})

_BASE_FIELDS = ("message", "severity", "fixable", "line", "column")


@dataclass(frozen=True)
class Issue:
    """A single structural defect.

    Issues are immutable; a repaired document is re-scanned to produce a fresh
    issue list rather than updating old entries.
    """

    type: ClassVar[IssueType]

    message: str
    severity: Severity
    fixable: bool
    line: Optional[int] = None
    column: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate issue data."""
        if not self.message:
            raise ValueError("Issue message cannot be empty")
        if self.line is not None and self.line < 1:
            raise ValueError("Issue line must be >= 1")
        if self.column is not None and self.column < 1:
            raise ValueError("Issue column must be >= 1")

    @property
    def is_declaration_level(self) -> bool:
        """Issues about the prolog, DOCTYPE or root namespace."""
        return self.type in DECLARATION_TYPES

    @property
    def payload(self) -> Dict[str, Any]:
        """Type-specific fields."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in _BASE_FIELDS
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible representation."""
        data: Dict[str, Any] = {
            "type": self.type.value,
            "message": self.message,
            "line": self.line,
            "severity": self.severity.value,
            "fixable": self.fixable,
        }
        if self.column is not None:
            data["column"] = self.column
        data.update(self.payload)
        return data


@dataclass(frozen=True)
class MissingXmlDeclaration(Issue):
    """Document does not start with a version 1.0 prolog."""

    type: ClassVar[IssueType] = IssueType.MISSING_XML_DECLARATION

    found: Optional[str] = None  # malformed declaration, when one exists


@dataclass(frozen=True)
class MissingDoctype(Issue):
    type: ClassVar[IssueType] = IssueType.MISSING_DOCTYPE


@dataclass(frozen=True)
class MalformedDoctype(Issue):
    type: ClassVar[IssueType] = IssueType.MALFORMED_DOCTYPE

    found: str = ""


@dataclass(frozen=True)
class MissingNamespace(Issue):
    """Root element lacks the XHTML namespace (or declares another one)."""

    type: ClassVar[IssueType] = IssueType.MISSING_NAMESPACE

    found: Optional[str] = None


@dataclass(frozen=True)
class UnclosedTag(Issue):
    """Tag-balance violation.

    ``residual`` issues are frames still open at end of document and can be
    closed automatically; mismatches found mid-document cannot.
    """

    type: ClassVar[IssueType] = IssueType.UNCLOSED_TAG

    tag: str = ""
    closing_tag: Optional[str] = None
    opened_line: Optional[int] = None
    residual: bool = False


@dataclass(frozen=True)
class InvalidSelfClosing(Issue):
    type: ClassVar[IssueType] = IssueType.INVALID_SELF_CLOSING

    tag: str = ""
    raw: str = ""


@dataclass(frozen=True)
class UnquotedAttribute(Issue):
    type: ClassVar[IssueType] = IssueType.UNQUOTED_ATTRIBUTE

    attribute: str = ""
    value: str = ""
    tag: Optional[str] = None


@dataclass(frozen=True)
class MalformedAttribute(Issue):
    type: ClassVar[IssueType] = IssueType.MALFORMED_ATTRIBUTE

    attribute: str = ""
    value: str = ""
    tag: Optional[str] = None
    stray_quote: bool = False


@dataclass(frozen=True)
class CorruptedQuotes(Issue):
    type: ClassVar[IssueType] = IssueType.CORRUPTED_QUOTES

    run: str = ""


@dataclass(frozen=True)
class UnbalancedQuotes(Issue):
    type: ClassVar[IssueType] = IssueType.UNBALANCED_QUOTES

    quote_count: int = 0


@dataclass(frozen=True)
class InvalidEntity(Issue):
    """Unterminated entity reference or bare ampersand (``name`` empty)."""

    type: ClassVar[IssueType] = IssueType.INVALID_ENTITY

    entity: str = ""
    name: str = ""

    @property
    def is_bare_ampersand(self) -> bool:
        return not self.name


@dataclass(frozen=True)
class UndeclaredEntity(Issue):
    """Terminated named entity XML does not predefine, e.g. ``&nbsp;``."""

    type: ClassVar[IssueType] = IssueType.UNDECLARED_ENTITY

    entity: str = ""
    codepoint: Optional[int] = None
