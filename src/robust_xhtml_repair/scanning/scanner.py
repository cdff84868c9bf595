"""Line-aware lexical scanner for XHTML content documents.

The scanner reduces a document to the lexical evidence the structural analyzer
needs: tag occurrences, attribute assignments, entity references, declaration
headers and runs of corrupted quotes. It uses pattern matching over the text and
never builds a tree. Malformed input is never an error here; it simply shows up
as tokens the analyzer will flag.
"""

import bisect
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Tuple

from robust_xhtml_repair.shared import ScanConfig, get_logger

BOM = "\ufeff"

# <name attrs> / </name> / <name attrs/>; attribute text must start with whitespace
TAG_PATTERN = re.compile(r"<(/?)([A-Za-z][\w:.\-]*)(\s[^<>]*?|)(/?)>")
ATTRIBUTE_PATTERN = re.compile(
    r"""(?<![^\s])([^\s=/"'<>]+)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))"""
)
ENTITY_PATTERN = re.compile(r"&(#[xX][0-9A-Fa-f]+|#[0-9]+|[A-Za-z_:][\w.:\-]*)?(;)?")
DECLARATION_PATTERN = re.compile(r"\s*(<\?xml(?=[\s?])[^>]*?\?>)")
VERSION_PATTERN = re.compile(r"""\bversion\s*=\s*["']([^"']*)["']""")
DOCTYPE_PATTERN = re.compile(r"<!DOCTYPE\s+([^\s>/\[]+)[^>]*>", re.IGNORECASE)
QUOTE_RUN_PATTERN = re.compile(r'"{4,}')

COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.DOTALL)
CDATA_PATTERN = re.compile(r"<!\[CDATA\[.*?\]\]>", re.DOTALL)
PI_PATTERN = re.compile(r"<\?.*?\?>", re.DOTALL)


class TokenKind(Enum):
    """Lexical token kinds produced by the scanner."""

    OPEN_TAG = auto()           # <name ...>
    CLOSE_TAG = auto()          # </name>
    SELF_CLOSING_TAG = auto()   # <name .../> or a void element
    ATTRIBUTE = auto()          # name=value inside a start tag
    ENTITY = auto()             # &...; or a bare/unterminated &...
    DECLARATION = auto()        # leading <?xml ...?>
    DOCTYPE = auto()            # <!DOCTYPE ...>
    QUOTE_RUN = auto()          # four or more consecutive double quotes


@dataclass(frozen=True)
class Token:
    """A single lexical occurrence with its 1-based line and column."""

    kind: TokenKind
    name: str
    raw: str
    line: int
    column: int
    offset: int
    value: Optional[str] = None
    quote: Optional[str] = None
    owner: Optional[str] = None
    terminated: bool = True
    followed_by_quote: bool = False

    def __post_init__(self) -> None:
        """Validate position values."""
        if self.line < 1:
            raise ValueError("Line number must be >= 1")
        if self.column < 1:
            raise ValueError("Column number must be >= 1")
        if self.offset < 0:
            raise ValueError("Offset must be >= 0")

    @property
    def is_tag(self) -> bool:
        return self.kind in (TokenKind.OPEN_TAG, TokenKind.CLOSE_TAG, TokenKind.SELF_CLOSING_TAG)

    @property
    def is_void(self) -> bool:
        """True for void elements written without a slash, e.g. ``<br>``."""
        return self.kind is TokenKind.SELF_CLOSING_TAG and not self.raw.endswith("/>")


@dataclass
class ScanResult:
    """Tokens found in one document plus the header declarations."""

    text: str
    tokens: List[Token] = field(default_factory=list)
    declaration: Optional[Token] = None
    misplaced_declaration: Optional[Token] = None
    doctypes: List[Token] = field(default_factory=list)
    has_bom: bool = False

    def of_kind(self, *kinds: TokenKind) -> List[Token]:
        """Tokens of the given kinds in document order."""
        return [token for token in self.tokens if token.kind in kinds]

    @property
    def tags(self) -> List[Token]:
        return [token for token in self.tokens if token.is_tag]

    @property
    def line_count(self) -> int:
        return self.text.count("\n") + 1

    def first_tag(self, name: str) -> Optional[Token]:
        """First start tag (open or self-closing) with the given name."""
        for token in self.tokens:
            if token.name == name and token.kind in (TokenKind.OPEN_TAG, TokenKind.SELF_CLOSING_TAG):
                return token
        return None


def _blank(match: "re.Match[str]") -> str:
    """Replace everything but newlines so offsets stay put."""
    return re.sub(r"[^\n]", " ", match.group(0))


def mask_text(
    text: str,
    mask_comments: bool = True,
    mask_cdata: bool = True,
    mask_instructions: bool = True
) -> str:
    """Blank out comments, CDATA sections and processing instructions.

    The result has the same length and line structure as ``text``, so offsets
    found in it address the same characters in the original.
    """
    masked = text
    if mask_comments:
        masked = COMMENT_PATTERN.sub(_blank, masked)
    if mask_cdata:
        masked = CDATA_PATTERN.sub(_blank, masked)
    if mask_instructions:
        masked = PI_PATTERN.sub(_blank, masked)
    return masked


class _LineIndex:
    """Offset to (line, column) conversion."""

    def __init__(self, text: str) -> None:
        self._starts = [0] + [m.end() for m in re.finditer("\n", text)]

    def position(self, offset: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self._starts, offset)
        return line, offset - self._starts[line - 1] + 1


class MarkupScanner:
    """Pattern-based scanner producing tokens for structural analysis."""

    def __init__(
        self,
        config: Optional[ScanConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        """Initialize the scanner.

        Args:
            config: Scanner configuration (void element set, masking switches)
            correlation_id: Optional run identifier for logging
        """
        self.config = config or ScanConfig()
        self.logger = get_logger(__name__, correlation_id, "scanner")

    def scan(self, text: str) -> ScanResult:
        """Tokenize a document.

        Args:
            text: Raw document text

        Returns:
            ScanResult holding tokens in document order
        """
        text = text or ""
        index = _LineIndex(text)
        masked = mask_text(text, self.config.mask_comments, self.config.mask_cdata)
        result = ScanResult(text=text, has_bom=text.startswith(BOM))

        result.declaration = self._scan_declaration(text, index, result.has_bom)
        if result.declaration is None:
            result.misplaced_declaration = self._scan_misplaced_declaration(text, index)
        tokens: List[Token] = []
        for match in DOCTYPE_PATTERN.finditer(masked):
            line, column = index.position(match.start())
            doctype = Token(
                kind=TokenKind.DOCTYPE,
                name=match.group(1).lower(),
                raw=text[match.start():match.end()],
                line=line,
                column=column,
                offset=match.start(),
            )
            result.doctypes.append(doctype)
            tokens.append(doctype)

        tokens.extend(self._scan_tags(text, masked, index))
        tokens.extend(self._scan_entities(masked, index))
        tokens.extend(self._scan_quote_runs(masked, index))
        tokens.sort(key=lambda token: token.offset)
        result.tokens = tokens

        self.logger.debug(
            "Scan completed",
            extra={"token_count": len(tokens), "line_count": result.line_count}
        )
        return result

    def _scan_declaration(self, text: str, index: _LineIndex, has_bom: bool) -> Optional[Token]:
        start = 1 if has_bom else 0
        match = DECLARATION_PATTERN.match(text, start)
        if match is None:
            return None
        return self._declaration_token(text, match, index)

    def _scan_misplaced_declaration(self, text: str, index: _LineIndex) -> Optional[Token]:
        """First <?xml ...?> declaration that does not open the document."""
        masked = mask_text(
            text, self.config.mask_comments, self.config.mask_cdata, mask_instructions=False
        )
        match = DECLARATION_PATTERN.search(masked)
        if match is None:
            return None
        return self._declaration_token(text, match, index)

    @staticmethod
    def _declaration_token(text: str, match: "re.Match[str]", index: _LineIndex) -> Token:
        raw = text[match.start(1):match.end(1)]
        version = VERSION_PATTERN.search(raw)
        line, column = index.position(match.start(1))
        return Token(
            kind=TokenKind.DECLARATION,
            name="xml",
            raw=raw,
            line=line,
            column=column,
            offset=match.start(1),
            value=version.group(1) if version else None,
        )

    def _scan_tags(self, text: str, masked: str, index: _LineIndex) -> List[Token]:
        tokens: List[Token] = []
        for match in TAG_PATTERN.finditer(masked):
            closing, name, attributes, slash = match.groups()
            name = name.lower()
            if closing:
                kind = TokenKind.CLOSE_TAG
            elif slash or name in self.config.void_elements:
                kind = TokenKind.SELF_CLOSING_TAG
            else:
                kind = TokenKind.OPEN_TAG
            line, column = index.position(match.start())
            tokens.append(Token(
                kind=kind,
                name=name,
                raw=text[match.start():match.end()],
                line=line,
                column=column,
                offset=match.start(),
            ))
            if not closing and attributes:
                tokens.extend(self._scan_attributes(name, attributes, match.start(3), index))
        return tokens

    def _scan_attributes(
        self, owner: str, segment: str, segment_offset: int, index: _LineIndex
    ) -> List[Token]:
        tokens: List[Token] = []
        for match in ATTRIBUTE_PATTERN.finditer(segment):
            double, single, unquoted = match.group(2), match.group(3), match.group(4)
            if double is not None:
                value, quote = double, '"'
            elif single is not None:
                value, quote = single, "'"
            else:
                value, quote = unquoted, None
            offset = segment_offset + match.start()
            line, column = index.position(offset)
            trailing = segment[match.end():match.end() + 1]
            tokens.append(Token(
                kind=TokenKind.ATTRIBUTE,
                name=match.group(1),
                raw=match.group(0),
                line=line,
                column=column,
                offset=offset,
                value=value,
                quote=quote,
                owner=owner,
                followed_by_quote=quote is None and trailing in ('"', "'"),
            ))
        return tokens

    def _scan_entities(self, masked: str, index: _LineIndex) -> List[Token]:
        tokens: List[Token] = []
        for match in ENTITY_PATTERN.finditer(masked):
            name = match.group(1) or ""
            line, column = index.position(match.start())
            tokens.append(Token(
                kind=TokenKind.ENTITY,
                name=name,
                raw=match.group(0),
                line=line,
                column=column,
                offset=match.start(),
                terminated=bool(name) and match.group(2) is not None,
            ))
        return tokens

    def _scan_quote_runs(self, masked: str, index: _LineIndex) -> List[Token]:
        tokens: List[Token] = []
        for match in QUOTE_RUN_PATTERN.finditer(masked):
            line, column = index.position(match.start())
            tokens.append(Token(
                kind=TokenKind.QUOTE_RUN,
                name='"',
                raw=match.group(0),
                line=line,
                column=column,
                offset=match.start(),
            ))
        return tokens
