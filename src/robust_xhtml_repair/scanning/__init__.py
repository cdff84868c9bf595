"""Lexical scanning layer.

Turns raw document text into tag, attribute, entity and declaration tokens with
line and column positions.
"""

from .scanner import (
    MarkupScanner,
    ScanResult,
    Token,
    TokenKind,
    mask_text,
)

__all__ = [
    "MarkupScanner",
    "ScanResult",
    "Token",
    "TokenKind",
    "mask_text",
]
