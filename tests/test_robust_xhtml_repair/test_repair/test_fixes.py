"""Tests for fix planning."""

import pytest

from robust_xhtml_repair.analysis import (
    CorruptedQuotes,
    InvalidEntity,
    InvalidSelfClosing,
    IssueType,
    MalformedAttribute,
    MalformedDoctype,
    MissingDoctype,
    MissingNamespace,
    MissingXmlDeclaration,
    StructuralAnalyzer,
    UnbalancedQuotes,
    UnclosedTag,
    UndeclaredEntity,
    UnquotedAttribute,
)
from robust_xhtml_repair.repair import FIX_PLANNERS, MANUAL_REVIEW_TYPES, FixPhase, plan_fix
from robust_xhtml_repair.repair.fixes import newline_of, offset_of
from robust_xhtml_repair.shared import AnalysisConfig, Severity

XHTML = "http://www.w3.org/1999/xhtml"


def apply(issue, content):
    fix = plan_fix(issue)
    assert fix is not None
    return fix.apply(content)


class TestHelpers:
    """Test position helpers."""

    def test_offset_of(self):
        content = "ab\ncd\nef"
        assert offset_of(content, 1, 1) == 0
        assert offset_of(content, 2, 2) == 4
        assert offset_of(content, 3, 3) == 8
        assert offset_of(content, 2, 5) is None
        assert offset_of(content, 4, 1) is None

    def test_newline_of(self):
        assert newline_of("a\nb") == "\n"
        assert newline_of("a\r\nb") == "\r\n"


class TestPlanning:
    """Test planner selection."""

    def test_every_kind_is_covered(self):
        assert set(FIX_PLANNERS) | MANUAL_REVIEW_TYPES == set(IssueType)

    def test_unfixable_issue_has_no_fix(self):
        issue = UnclosedTag(
            message="x", severity=Severity.FATAL, fixable=False, line=1, column=1, tag="p"
        )
        assert plan_fix(issue) is None

    def test_manual_review_kind_has_no_fix(self):
        issue = UnbalancedQuotes(message="x", severity=Severity.WARNING, fixable=True, line=1)
        assert plan_fix(issue) is None

    def test_phases(self):
        prolog = MissingXmlDeclaration(message="x", severity=Severity.ERROR, fixable=True, line=1)
        entity = InvalidEntity(message="x", severity=Severity.FATAL, fixable=True, line=3, column=7)
        assert plan_fix(prolog).phase is FixPhase.PROLOG
        fix = plan_fix(entity)
        assert fix.phase is FixPhase.POSITIONAL
        assert fix.position == (3, 7)


class TestAttributeFixes:
    """Test attribute quoting fixes."""

    def test_unquoted_value(self):
        issue = UnquotedAttribute(
            message="x", severity=Severity.ERROR, fixable=True, line=1, column=6,
            attribute="class", value="note", tag="div",
        )
        assert apply(issue, "<div class=note>x</div>") == '<div class="note">x</div>'
        assert plan_fix(issue).description == 'Quoted attribute class="note"'

    def test_value_before_self_closing_slash(self):
        issue = UnquotedAttribute(
            message="x", severity=Severity.ERROR, fixable=True, line=1, column=6,
            attribute="src", value="a.png", tag="img",
        )
        assert apply(issue, "<img src=a.png/>") == '<img src="a.png"/>'

    def test_stray_quote_consumed(self):
        issue = MalformedAttribute(
            message="x", severity=Severity.FATAL, fixable=True, line=1, column=4,
            attribute="class", value="note", tag="p", stray_quote=True,
        )
        assert apply(issue, '<p class=note">x</p>') == '<p class="note">x</p>'

    def test_target_gone(self):
        issue = UnquotedAttribute(
            message="x", severity=Severity.ERROR, fixable=True, line=1, column=6,
            attribute="class", value="note", tag="div",
        )
        assert apply(issue, '<div class="note">x</div>') is None
        assert apply(issue, "<div>") is None


class TestEntityFixes:
    """Test entity reference fixes."""

    def test_bare_ampersand(self):
        issue = InvalidEntity(
            message="Unescaped ampersand", severity=Severity.FATAL, fixable=True,
            line=1, column=8, entity="&",
        )
        assert apply(issue, "<p>Tom & Jerry</p>") == "<p>Tom &amp; Jerry</p>"

    def test_unterminated_reference(self):
        issue = InvalidEntity(
            message="x", severity=Severity.FATAL, fixable=True,
            line=1, column=9, entity="&chips", name="chips",
        )
        assert apply(issue, "<p>Fish &chips</p>") == "<p>Fish &chips;</p>"

    @pytest.mark.parametrize("body, escaped", [
        ("<p>R&#D</p>", "<p>R&amp;#D</p>"),
        ("<p>&#;</p>", "<p>&amp;#;</p>"),
        ("<p>&#x;</p>", "<p>&amp;#x;</p>"),
    ])
    def test_hash_without_digits_is_escaped(self, body, escaped):
        (issue,) = [
            i for i in StructuralAnalyzer().analyze(body) if isinstance(i, InvalidEntity)
        ]
        assert issue.is_bare_ampersand is True
        assert apply(issue, body) == escaped

    def test_numeric_reference_is_not_escaped(self):
        issue = InvalidEntity(
            message="Unescaped ampersand", severity=Severity.FATAL, fixable=True,
            line=1, column=4, entity="&",
        )
        assert apply(issue, "<p>&#169;</p>") is None

    def test_undeclared_entity(self):
        issue = UndeclaredEntity(
            message="x", severity=Severity.WARNING, fixable=True,
            line=2, column=5, entity="&nbsp;", codepoint=160,
        )
        assert apply(issue, "<p>\n<b>a&nbsp;b</b></p>") == "<p>\n<b>a&#160;b</b></p>"


class TestQuoteFixes:
    """Test corrupted quote collapsing."""

    def test_run_before_value(self):
        issue = CorruptedQuotes(
            message="x", severity=Severity.ERROR, fixable=True, line=1, column=10, run='""""'
        )
        assert apply(issue, '<p class=""""note">x</p>') == '<p class="note">x</p>'

    def test_run_as_empty_value(self):
        issue = CorruptedQuotes(
            message="x", severity=Severity.ERROR, fixable=True, line=1, column=10, run='""""'
        )
        assert apply(issue, '<p class="""">x</p>') == '<p class="">x</p>'


class TestTagFixes:
    """Test tag structure fixes."""

    def test_self_closing_container(self):
        issue = InvalidSelfClosing(
            message="x", severity=Severity.WARNING, fixable=True, line=1, column=4,
            tag="div", raw='<div class="x" />',
        )
        assert apply(issue, '<p><div class="x" /></p>') == '<p><div class="x"></div></p>'

    def test_residual_closed_before_body_end(self):
        issue = UnclosedTag(
            message="x", severity=Severity.FATAL, fixable=True, line=1, column=13,
            tag="p", opened_line=1, residual=True,
        )
        content = "<html><body><p>text</body></html>"
        assert apply(issue, content) == "<html><body><p>text</p></body></html>"

    def test_residual_body_closed_before_html_end(self):
        issue = UnclosedTag(
            message="x", severity=Severity.FATAL, fixable=True, line=1, column=7,
            tag="body", opened_line=1, residual=True,
        )
        assert apply(issue, "<html><body>x</html>") == "<html><body>x</body></html>"

    def test_residual_appended_before_trailing_whitespace(self):
        issue = UnclosedTag(
            message="x", severity=Severity.FATAL, fixable=True, line=1, column=1,
            tag="html", opened_line=1, residual=True,
        )
        assert apply(issue, "<html><body></body>\n") == "<html><body></body></html>\n"

    def test_residual_anchor_ignores_comments(self):
        issue = UnclosedTag(
            message="x", severity=Severity.FATAL, fixable=True, line=1, column=13,
            tag="p", opened_line=1, residual=True,
        )
        content = "<html><body><p>text<!-- </body> --></body></html>"
        assert apply(issue, content) == "<html><body><p>text<!-- </body> --></p></body></html>"

    def test_mismatch_is_not_planned(self):
        issue = UnclosedTag(
            message="x", severity=Severity.FATAL, fixable=True, line=1, column=1,
            tag="p", closing_tag="div",
        )
        assert plan_fix(issue) is None


class TestDeclarationFixes:
    """Test prolog, DOCTYPE and namespace fixes."""

    def test_namespace_added(self):
        issue = MissingNamespace(message="x", severity=Severity.ERROR, fixable=True)
        fixed = apply(issue, '<html lang="en"><body/></html>')
        assert fixed == f'<html xmlns="{XHTML}" lang="en"><body/></html>'

    def test_namespace_replaced(self):
        issue = MissingNamespace(
            message="x", severity=Severity.ERROR, fixable=True, found="http://example.com"
        )
        fixed = apply(issue, "<html xmlns='http://example.com'></html>")
        assert fixed == f"<html xmlns='{XHTML}'></html>"

    def test_namespace_already_present_or_no_root(self):
        issue = MissingNamespace(message="x", severity=Severity.ERROR, fixable=True)
        assert apply(issue, f'<html xmlns="{XHTML}"></html>') is None
        assert apply(issue, "<body></body>") is None

    def test_namespace_skips_commented_root(self):
        issue = MissingNamespace(message="x", severity=Severity.ERROR, fixable=True)
        content = "<!-- old root was <html> -->\n<html>\n</html>"
        assert apply(issue, content) == (
            f'<!-- old root was <html> -->\n<html xmlns="{XHTML}">\n</html>'
        )

    def test_custom_namespace(self):
        issue = MissingNamespace(message="x", severity=Severity.ERROR, fixable=True)
        fix = plan_fix(issue, AnalysisConfig(xhtml_namespace="urn:test"))
        assert fix.apply("<html>") == '<html xmlns="urn:test">'

    def test_doctype_after_declaration(self):
        issue = MissingDoctype(message="x", severity=Severity.ERROR, fixable=True)
        content = '<?xml version="1.0"?>\n<html/>'
        assert apply(issue, content) == '<?xml version="1.0"?>\n<!DOCTYPE html>\n<html/>'

    def test_doctype_without_declaration(self):
        issue = MissingDoctype(message="x", severity=Severity.ERROR, fixable=True)
        assert apply(issue, "<html/>") == "<!DOCTYPE html>\n<html/>"
        assert apply(issue, "\ufeff<html/>") == "\ufeff<!DOCTYPE html>\n<html/>"

    def test_doctype_keeps_crlf(self):
        issue = MissingDoctype(message="x", severity=Severity.ERROR, fixable=True)
        content = '<?xml version="1.0"?>\r\n<html>\r\n</html>'
        assert apply(issue, content) == (
            '<?xml version="1.0"?>\r\n<!DOCTYPE html>\r\n<html>\r\n</html>'
        )

    def test_doctype_present(self):
        issue = MissingDoctype(message="x", severity=Severity.ERROR, fixable=True)
        assert apply(issue, "<!DOCTYPE svg><html/>") is None

    def test_commented_doctype_does_not_count(self):
        issue = MissingDoctype(message="x", severity=Severity.ERROR, fixable=True)
        content = '<?xml version="1.0"?>\n<!-- <!DOCTYPE html> -->\n<html/>'
        assert apply(issue, content) == (
            '<?xml version="1.0"?>\n<!DOCTYPE html>\n<!-- <!DOCTYPE html> -->\n<html/>'
        )

    @pytest.mark.parametrize("raw", ["<!DOCTYPE html/>", "<!DOCTYPE html />"])
    def test_self_closed_doctype(self, raw):
        issue = MalformedDoctype(
            message="x", severity=Severity.ERROR, fixable=True, line=1, column=1, found=raw
        )
        assert apply(issue, raw + "\n<html/>") == "<!DOCTYPE html>\n<html/>"

    def test_prolog_added(self):
        issue = MissingXmlDeclaration(message="x", severity=Severity.ERROR, fixable=True, line=1)
        fix = plan_fix(issue)
        assert fix.apply("<html/>") == '<?xml version="1.0" encoding="UTF-8"?>\n<html/>'
        assert fix.description.startswith("Added")

    def test_prolog_replaced(self):
        issue = MissingXmlDeclaration(
            message="x", severity=Severity.ERROR, fixable=True, line=1,
            found='<?xml version="1.1"?>',
        )
        fix = plan_fix(issue)
        fixed = fix.apply('\ufeff<?xml version="1.1"?>\n<html/>')
        assert fixed == '\ufeff<?xml version="1.0" encoding="UTF-8"?>\n<html/>'
        assert fix.description.startswith("Replaced malformed XML declaration")

    def test_prolog_already_valid(self):
        issue = MissingXmlDeclaration(message="x", severity=Severity.ERROR, fixable=True, line=1)
        assert apply(issue, '<?xml version="1.0"?><html/>') is None
