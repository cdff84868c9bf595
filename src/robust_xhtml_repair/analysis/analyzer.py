"""Structural analysis of scanned XHTML documents.

The analyzer walks scanner tokens top to bottom keeping an open-tag stack, and
independently checks declaration headers, attribute quoting, entity references
and quote corruption. It reports issues in scan order and never raises for
malformed input.
"""

import re
from dataclasses import dataclass
from html.entities import name2codepoint
from typing import List, Optional, Tuple, Union

from robust_xhtml_repair.analysis.issues import (
    CorruptedQuotes,
    InvalidEntity,
    InvalidSelfClosing,
    Issue,
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
from robust_xhtml_repair.scanning import MarkupScanner, ScanResult, Token, TokenKind
from robust_xhtml_repair.shared import AnalysisConfig, ScanConfig, Severity, get_logger

PREDEFINED_ENTITIES = frozenset({"lt", "gt", "amp", "quot", "apos"})
NUMERIC_ENTITY = re.compile(r"#(?:[0-9]+|[xX][0-9A-Fa-f]+)\Z")
CLEAN_UNQUOTED_VALUE = re.compile(r"[A-Za-z0-9_.:#%/+,;?!~@$*()\-]+\Z")


@dataclass
class TagFrame:
    """An open element on the tag stack."""

    name: str
    line: int
    column: int


class StructuralAnalyzer:
    """Detects structural defects from scanner tokens."""

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        scan_config: Optional[ScanConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        """Initialize the analyzer.

        Args:
            config: Which checks run and the canonical declaration values
            scan_config: Scanner configuration used when analyzing raw text
            correlation_id: Optional run identifier for logging
        """
        self.config = config or AnalysisConfig()
        self.scanner = MarkupScanner(scan_config, correlation_id)
        self.logger = get_logger(__name__, correlation_id, "analyzer")

    def analyze(self, source: Union[str, ScanResult]) -> List[Issue]:
        """Analyze a document.

        Args:
            source: Raw text or an existing scan of it

        Returns:
            Issues in scan order: declaration checks, then body issues top to
            bottom and left to right, then tags still open at end of document
        """
        scan = source if isinstance(source, ScanResult) else self.scanner.scan(source)

        issues: List[Issue] = []
        if self.config.check_declarations:
            issues.extend(self._check_declarations(scan))

        body: List[Issue] = []
        residual: List[Issue] = []
        if self.config.check_tags:
            balance, residual = self._check_tag_balance(scan)
            body.extend(balance)
        if self.config.check_attributes:
            body.extend(self._check_attributes(scan))
        if self.config.check_entities:
            body.extend(self._check_entities(scan))
        if self.config.check_quotes:
            body.extend(self._check_quotes(scan))
        body.sort(key=lambda issue: (issue.line or 0, issue.column or 0))

        issues.extend(body)
        issues.extend(residual)

        self.logger.debug(
            "Analysis completed",
            extra={
                "issue_count": len(issues),
                "fatal_count": sum(1 for i in issues if i.severity is Severity.FATAL),
            }
        )
        return issues

    def _check_declarations(self, scan: ScanResult) -> List[Issue]:
        issues: List[Issue] = []
        declaration = scan.declaration
        html_doctypes = [d for d in scan.doctypes if d.name == "html"]
        valid_doctypes = [d for d in html_doctypes if not d.raw.endswith("/>")]
        leading = 1 if scan.has_bom else 0

        if declaration is None and scan.misplaced_declaration is not None:
            # Prepending a second prolog would not parse; reported for manual review
            misplaced = scan.misplaced_declaration
            issues.append(MissingXmlDeclaration(
                message=f"XML declaration is not at the start of the document: {misplaced.raw}",
                severity=Severity.ERROR,
                fixable=False,
                line=misplaced.line,
                column=misplaced.column,
                found=misplaced.raw,
            ))
        elif (
            declaration is None
            or declaration.value != "1.0"
            or declaration.offset != leading
        ):
            # A DOCTYPE means the document is at least partly conformant
            severity = Severity.WARNING if scan.doctypes else Severity.ERROR
            if declaration is None:
                message = "Missing XML declaration"
            else:
                message = f"Malformed XML declaration: {declaration.raw}"
            issues.append(MissingXmlDeclaration(
                message=message,
                severity=severity,
                fixable=True,
                line=1,
                found=declaration.raw if declaration else None,
            ))

        if not valid_doctypes:
            if html_doctypes:
                malformed = html_doctypes[0]
                issues.append(MalformedDoctype(
                    message=f"Malformed DOCTYPE declaration: {malformed.raw}",
                    severity=Severity.ERROR,
                    fixable=True,
                    line=malformed.line,
                    column=malformed.column,
                    found=malformed.raw,
                ))
            else:
                issues.append(MissingDoctype(
                    message="Missing DOCTYPE declaration",
                    severity=Severity.ERROR,
                    fixable=not scan.doctypes,
                    line=2 if declaration is not None else 1,
                ))

        namespace_issue = self._check_namespace(scan)
        if namespace_issue is not None:
            issues.append(namespace_issue)
        return issues

    def _check_namespace(self, scan: ScanResult) -> Optional[Issue]:
        root = scan.first_tag("html")
        if root is None:
            return MissingNamespace(
                message="Missing XHTML namespace (no <html> element found)",
                severity=Severity.ERROR,
                fixable=True,
            )

        end = root.offset + len(root.raw)
        declared = [
            token for token in scan.of_kind(TokenKind.ATTRIBUTE)
            if token.name == "xmlns" and root.offset < token.offset < end
        ]
        if declared and declared[0].value == self.config.xhtml_namespace:
            return None
        found = declared[0].value if declared else None
        message = (
            "Missing XHTML namespace" if found is None
            else f"Unexpected root namespace: {found}"
        )
        return MissingNamespace(
            message=message,
            severity=Severity.ERROR,
            fixable=True,
            line=root.line,
            column=root.column,
            found=found,
        )

    def _check_tag_balance(self, scan: ScanResult) -> Tuple[List[Issue], List[Issue]]:
        issues: List[Issue] = []
        stack: List[TagFrame] = []

        for token in scan.tags:
            if token.kind is TokenKind.OPEN_TAG:
                stack.append(TagFrame(token.name, token.line, token.column))
            elif token.kind is TokenKind.CLOSE_TAG:
                issues.extend(self._close(stack, token))
            elif (
                self.config.check_self_closing_containers
                and token.raw.endswith("/>")
                and token.name in self.config.container_elements
            ):
                issues.append(InvalidSelfClosing(
                    message=f"Element <{token.name}> must not be self-closing",
                    severity=Severity.WARNING,
                    fixable=True,
                    line=token.line,
                    column=token.column,
                    tag=token.name,
                    raw=token.raw,
                ))

        residual: List[Issue] = [
            UnclosedTag(
                message=f"Unclosed tag <{frame.name}> opened at line {frame.line}",
                severity=Severity.FATAL,
                fixable=True,
                line=frame.line,
                column=frame.column,
                tag=frame.name,
                opened_line=frame.line,
                residual=True,
            )
            for frame in stack
        ]
        return issues, residual

    @staticmethod
    def _close(stack: List[TagFrame], token: Token) -> List[Issue]:
        if stack and stack[-1].name == token.name:
            stack.pop()
            return []

        if not any(frame.name == token.name for frame in stack):
            # Stray closing tag; leave the stack alone
            return [UnclosedTag(
                message=f"Unexpected closing tag </{token.name}>",
                severity=Severity.FATAL,
                fixable=False,
                line=token.line,
                column=token.column,
                tag=token.name,
                closing_tag=token.name,
            )]

        issues: List[Issue] = []
        while stack[-1].name != token.name:
            frame = stack.pop()
            issues.append(UnclosedTag(
                message=(
                    f"Unclosed tag <{frame.name}> opened at line {frame.line}, "
                    f"closed by </{token.name}>"
                ),
                severity=Severity.FATAL,
                fixable=False,
                line=token.line,
                column=token.column,
                tag=frame.name,
                closing_tag=token.name,
                opened_line=frame.line,
            ))
        stack.pop()
        return issues

    def _check_attributes(self, scan: ScanResult) -> List[Issue]:
        issues: List[Issue] = []
        for token in scan.of_kind(TokenKind.ATTRIBUTE):
            if token.quote is not None:
                continue
            value = token.value or ""
            if CLEAN_UNQUOTED_VALUE.match(value) and not token.followed_by_quote:
                issues.append(UnquotedAttribute(
                    message=f"Attribute {token.name} should be quoted",
                    severity=Severity.ERROR,
                    fixable=True,
                    line=token.line,
                    column=token.column,
                    attribute=token.name,
                    value=value,
                    tag=token.owner,
                ))
            else:
                issues.append(MalformedAttribute(
                    message=f'Malformed attribute {token.name}="{value}"',
                    severity=Severity.FATAL,
                    fixable=True,
                    line=token.line,
                    column=token.column,
                    attribute=token.name,
                    value=value,
                    tag=token.owner,
                    stray_quote=token.followed_by_quote,
                ))
        return issues

    def _check_entities(self, scan: ScanResult) -> List[Issue]:
        issues: List[Issue] = []
        for token in scan.of_kind(TokenKind.ENTITY):
            # Predefined and numeric references are valid once terminated
            if not token.terminated:
                if token.name:
                    message = f"Invalid entity reference: {token.raw}"
                else:
                    message = "Unescaped ampersand"
                issues.append(InvalidEntity(
                    message=message,
                    severity=Severity.FATAL,
                    fixable=True,
                    line=token.line,
                    column=token.column,
                    entity=token.raw,
                    name=token.name,
                ))
            elif (
                self.config.flag_html_named_entities
                and token.name not in PREDEFINED_ENTITIES
                and not NUMERIC_ENTITY.match(token.name)
            ):
                codepoint = name2codepoint.get(token.name)
                issues.append(UndeclaredEntity(
                    message=f"Entity {token.raw} is not defined in XML",
                    severity=Severity.WARNING,
                    fixable=codepoint is not None,
                    line=token.line,
                    column=token.column,
                    entity=token.raw,
                    codepoint=codepoint,
                ))
        return issues

    def _check_quotes(self, scan: ScanResult) -> List[Issue]:
        issues: List[Issue] = []
        for token in scan.of_kind(TokenKind.QUOTE_RUN):
            after_equals = scan.text[:token.offset].rstrip().endswith("=")
            issues.append(CorruptedQuotes(
                message="Multiple consecutive quotes detected (corruption)",
                severity=Severity.ERROR,
                fixable=after_equals,
                line=token.line,
                column=token.column,
                run=token.raw,
            ))

        for number, line in enumerate(scan.text.split("\n"), start=1):
            quote_count = line.count('"')
            if quote_count % 2 and "=" in line and ">" not in line:
                issues.append(UnbalancedQuotes(
                    message="Potential unclosed quote in attributes",
                    severity=Severity.WARNING,
                    fixable=False,
                    line=number,
                    column=1,
                    quote_count=quote_count,
                ))
        return issues
