"""Fix planning for structural issues.

Each fixable ``IssueType`` maps to one planner that turns an issue into a
``Fix``: a pure ``str -> Optional[str]`` transform plus the phase and position
the applier uses to order it. A transform returns ``None`` when its target is
no longer present in the content it is given.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Dict, List, Optional, Tuple

from robust_xhtml_repair.analysis.issues import (
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
    UnclosedTag,
    UndeclaredEntity,
    UnquotedAttribute,
)
from robust_xhtml_repair.scanning import mask_text
from robust_xhtml_repair.shared import CANONICAL_DOCTYPE, AnalysisConfig

Transform = Callable[[str], Optional[str]]

LEADING_DECLARATION = re.compile(r"\A(\ufeff?)\s*<\?xml(?=[\s?])[^>]*?\?>")
VERSION_1_0 = re.compile(r"""\bversion\s*=\s*["']1\.0["']""")
ANY_DOCTYPE = re.compile(r"<!DOCTYPE\b", re.IGNORECASE)
SELF_CLOSED_DOCTYPE = re.compile(r"<!DOCTYPE(\s+html\b[^>]*?)\s*/>", re.IGNORECASE)
HTML_START_TAG = re.compile(r"<html\b[^<>]*>", re.IGNORECASE)
XMLNS_ATTRIBUTE = re.compile(r"""(\sxmlns\s*=\s*)(["'])(.*?)\2""")
QUOTE_RUN = re.compile(r'"{4,}')
# An ampersand that starts no name and no numeric reference, e.g. "R&#D"
BARE_AMPERSAND = re.compile(r"&(?![A-Za-z_:]|#[0-9]|#[xX][0-9A-Fa-f])")
BODY_END_ANCHORS = (
    re.compile(r"</body\s*>", re.IGNORECASE),
    re.compile(r"</html\s*>", re.IGNORECASE),
)


class FixPhase(Enum):
    """Application phases, in the order the applier runs them."""

    POSITIONAL = auto()   # anchored at a line/column, applied bottom-up
    NAMESPACE = auto()    # xmlns on <html>
    DOCTYPE = auto()      # insert or rewrite <!DOCTYPE html>
    PROLOG = auto()       # <?xml ...?> header, always last


@dataclass(frozen=True)
class Fix:
    """A planned repair for one issue."""

    issue: Issue
    phase: FixPhase
    description: str
    transform: Transform
    line: int = 0
    column: int = 0

    def apply(self, content: str) -> Optional[str]:
        """Apply the fix, or return None when its target is gone."""
        return self.transform(content)

    @property
    def position(self) -> Tuple[int, int]:
        return (self.line, self.column)


def newline_of(content: str) -> str:
    """Newline style of a document: CRLF when any CRLF is present."""
    return "\r\n" if "\r\n" in content else "\n"


def offset_of(content: str, line: int, column: int) -> Optional[int]:
    """Convert a 1-based line/column into a string offset.

    Returns None when the position lies outside the content.
    """
    start = 0
    for _ in range(line - 1):
        start = content.find("\n", start)
        if start < 0:
            return None
        start += 1
    end = content.find("\n", start)
    end = len(content) if end < 0 else end
    offset = start + column - 1
    return offset if offset <= end else None


def _search_markup(
    pattern: "re.Pattern[str]", content: str, start: int = 0
) -> Optional["re.Match[str]"]:
    """Search outside comments, CDATA sections and processing instructions.

    Masking keeps offsets, so the match addresses ``content`` directly.
    """
    return pattern.search(mask_text(content), start)


def _replace_at(
    line: int,
    column: int,
    pattern: "re.Pattern[str]",
    replacement: Callable[["re.Match[str]"], str]
) -> Transform:
    """Build a transform re-matching ``pattern`` exactly at line/column."""
    def transform(content: str) -> Optional[str]:
        offset = offset_of(content, line, column)
        if offset is None:
            return None
        match = pattern.match(content, offset)
        if match is None:
            return None
        return content[:match.start()] + replacement(match) + content[match.end():]

    return transform


def _plan_attribute(issue: Issue, config: AnalysisConfig) -> Fix:
    assert isinstance(issue, (UnquotedAttribute, MalformedAttribute))
    stray = isinstance(issue, MalformedAttribute) and issue.stray_quote
    pattern = re.compile(
        re.escape(issue.attribute)
        + r"""\s*=\s*([^\s"'>]+?)(?=\s|/?>|["']|\Z)"""
        + (r"""["']?""" if stray else "")
    )
    return Fix(
        issue=issue,
        phase=FixPhase.POSITIONAL,
        description=f'Quoted attribute {issue.attribute}="{issue.value}"',
        transform=_replace_at(
            issue.line or 1, issue.column or 1, pattern,
            lambda m: f'{issue.attribute}="{m.group(1)}"'
        ),
        line=issue.line or 1,
        column=issue.column or 1,
    )


def _plan_entity(issue: Issue, config: AnalysisConfig) -> Fix:
    assert isinstance(issue, InvalidEntity)
    if issue.is_bare_ampersand:
        pattern = BARE_AMPERSAND
        replacement = "&amp;"
        description = "Escaped bare ampersand as &amp;"
    else:
        pattern = re.compile("&" + re.escape(issue.name) + r"(?![\w.:;\-])")
        replacement = f"&{issue.name};"
        description = f"Terminated entity reference {replacement}"
    return Fix(
        issue=issue,
        phase=FixPhase.POSITIONAL,
        description=description,
        transform=_replace_at(
            issue.line or 1, issue.column or 1, pattern, lambda m: replacement
        ),
        line=issue.line or 1,
        column=issue.column or 1,
    )


def _plan_undeclared_entity(issue: Issue, config: AnalysisConfig) -> Fix:
    assert isinstance(issue, UndeclaredEntity)
    pattern = re.compile(re.escape(issue.entity))
    replacement = f"&#{issue.codepoint};"
    return Fix(
        issue=issue,
        phase=FixPhase.POSITIONAL,
        description=f"Replaced {issue.entity} with {replacement}",
        transform=_replace_at(
            issue.line or 1, issue.column or 1, pattern, lambda m: replacement
        ),
        line=issue.line or 1,
        column=issue.column or 1,
    )


def _collapse_quotes(match: "re.Match[str]") -> str:
    following = match.string[match.end():match.end() + 1]
    # An empty value when nothing but tag syntax follows the run
    if not following or following.isspace() or following in (">", "/"):
        return '""'
    return '"'


def _plan_corrupted_quotes(issue: Issue, config: AnalysisConfig) -> Fix:
    assert isinstance(issue, CorruptedQuotes)
    return Fix(
        issue=issue,
        phase=FixPhase.POSITIONAL,
        description="Collapsed corrupted quote run",
        transform=_replace_at(
            issue.line or 1, issue.column or 1, QUOTE_RUN, _collapse_quotes
        ),
        line=issue.line or 1,
        column=issue.column or 1,
    )


def _plan_self_closing(issue: Issue, config: AnalysisConfig) -> Fix:
    assert isinstance(issue, InvalidSelfClosing)
    pattern = re.compile(
        r"<(" + re.escape(issue.tag) + r")(\s[^<>]*?)?\s*/>", re.IGNORECASE
    )
    return Fix(
        issue=issue,
        phase=FixPhase.POSITIONAL,
        description=f"Expanded self-closing <{issue.tag}/>",
        transform=_replace_at(
            issue.line or 1, issue.column or 1, pattern,
            lambda m: f"<{m.group(1)}{(m.group(2) or '').rstrip()}></{m.group(1)}>"
        ),
        line=issue.line or 1,
        column=issue.column or 1,
    )


def _closing_anchors(tag: str) -> List["re.Pattern[str]"]:
    """Closing tags a residual <tag> is closed in front of, in preference order."""
    if tag == "html":
        return []
    if tag == "body":
        return [BODY_END_ANCHORS[1]]
    return list(BODY_END_ANCHORS)


def _plan_unclosed_tag(issue: Issue, config: AnalysisConfig) -> Optional[Fix]:
    assert isinstance(issue, UnclosedTag)
    if not issue.residual:
        return None
    closing = f"</{issue.tag}>"
    anchors = _closing_anchors(issue.tag)

    def transform(content: str) -> Optional[str]:
        # Anchors are searched from the opening tag onwards
        opened = offset_of(content, issue.line or 1, issue.column or 1) or 0
        for pattern in anchors:
            match = _search_markup(pattern, content, opened)
            if match is not None:
                return content[:match.start()] + closing + content[match.start():]
        stripped = content.rstrip()
        return stripped + closing + content[len(stripped):]

    return Fix(
        issue=issue,
        phase=FixPhase.POSITIONAL,
        description=f"Closed <{issue.tag}> opened at line {issue.opened_line}",
        transform=transform,
        line=issue.line or 1,
        column=issue.column or 1,
    )


def _plan_namespace(issue: Issue, config: AnalysisConfig) -> Fix:
    assert isinstance(issue, MissingNamespace)
    namespace = config.xhtml_namespace

    def transform(content: str) -> Optional[str]:
        root = _search_markup(HTML_START_TAG, content)
        if root is None:
            return None
        tag = content[root.start():root.end()]
        declared = XMLNS_ATTRIBUTE.search(tag)
        if declared is None:
            fixed = tag[:5] + f' xmlns="{namespace}"' + tag[5:]
        elif declared.group(3) == namespace:
            return None
        else:
            fixed = tag[:declared.start(3)] + namespace + tag[declared.end(3):]
        return content[:root.start()] + fixed + content[root.end():]

    return Fix(
        issue=issue,
        phase=FixPhase.NAMESPACE,
        description="Added XHTML namespace to <html>",
        transform=transform,
    )


def _plan_missing_doctype(issue: Issue, config: AnalysisConfig) -> Fix:
    assert isinstance(issue, MissingDoctype)

    def transform(content: str) -> Optional[str]:
        if _search_markup(ANY_DOCTYPE, content):
            return None
        newline = newline_of(content)
        declaration = LEADING_DECLARATION.match(content)
        if declaration is not None:
            at = declaration.end()
            rest = content[at:]
            if rest.startswith(newline):
                rest = rest[len(newline):]
            return content[:at] + newline + CANONICAL_DOCTYPE + newline + rest
        bom = "\ufeff" if content.startswith("\ufeff") else ""
        return bom + CANONICAL_DOCTYPE + newline + content[len(bom):]

    return Fix(
        issue=issue,
        phase=FixPhase.DOCTYPE,
        description=f"Added {CANONICAL_DOCTYPE}",
        transform=transform,
    )


def _plan_malformed_doctype(issue: Issue, config: AnalysisConfig) -> Fix:
    assert isinstance(issue, MalformedDoctype)

    def transform(content: str) -> Optional[str]:
        match = _search_markup(SELF_CLOSED_DOCTYPE, content)
        if match is None:
            return None
        return content[:match.start()] + f"<!DOCTYPE{match.group(1)}>" + content[match.end():]

    return Fix(
        issue=issue,
        phase=FixPhase.DOCTYPE,
        description="Removed self-closing slash from DOCTYPE",
        transform=transform,
    )


def _plan_prolog(issue: Issue, config: AnalysisConfig) -> Fix:
    assert isinstance(issue, MissingXmlDeclaration)
    prolog = config.canonical_prolog

    def transform(content: str) -> Optional[str]:
        declaration = LEADING_DECLARATION.match(content)
        bom = "\ufeff" if content.startswith("\ufeff") else ""
        if declaration is not None:
            in_place = declaration.group(0)[len(bom):]
            if in_place.startswith("<?xml") and VERSION_1_0.search(in_place):
                return None
            return bom + prolog + content[declaration.end():]
        return bom + prolog + newline_of(content) + content[len(bom):]

    if issue.found:
        description = f"Replaced malformed XML declaration with {prolog}"
    else:
        description = f"Added {prolog}"
    return Fix(
        issue=issue,
        phase=FixPhase.PROLOG,
        description=description,
        transform=transform,
    )


Planner = Callable[[Issue, AnalysisConfig], Optional[Fix]]

FIX_PLANNERS: Dict[IssueType, Planner] = {
    IssueType.MISSING_XML_DECLARATION: _plan_prolog,
    IssueType.MISSING_DOCTYPE: _plan_missing_doctype,
    IssueType.MALFORMED_DOCTYPE: _plan_malformed_doctype,
    IssueType.MISSING_NAMESPACE: _plan_namespace,
    IssueType.UNCLOSED_TAG: _plan_unclosed_tag,
    IssueType.INVALID_SELF_CLOSING: _plan_self_closing,
    IssueType.UNQUOTED_ATTRIBUTE: _plan_attribute,
    IssueType.MALFORMED_ATTRIBUTE: _plan_attribute,
    IssueType.CORRUPTED_QUOTES: _plan_corrupted_quotes,
    IssueType.INVALID_ENTITY: _plan_entity,
    IssueType.UNDECLARED_ENTITY: _plan_undeclared_entity,
}

# Kinds that are always reported for manual review
MANUAL_REVIEW_TYPES = frozenset({IssueType.UNBALANCED_QUOTES})

_unplanned = set(IssueType) - MANUAL_REVIEW_TYPES - set(FIX_PLANNERS)
if _unplanned:
    raise RuntimeError(
        f"No fix planner registered for: {sorted(t.value for t in _unplanned)}"
    )


def plan_fix(issue: Issue, config: Optional[AnalysisConfig] = None) -> Optional[Fix]:
    """Plan the fix for one issue.

    Args:
        issue: Issue to repair
        config: Analysis configuration supplying namespace and prolog values

    Returns:
        The planned Fix, or None for issues that are not fixable
    """
    if not issue.fixable or issue.type in MANUAL_REVIEW_TYPES:
        return None
    return FIX_PLANNERS[issue.type](issue, config or AnalysisConfig())
