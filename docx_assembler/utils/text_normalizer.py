"""
Text normalization utilities for exhibit names and paragraph text.

Word and upload forms bring in non-breaking spaces, typographic dashes and
zero-width characters; matching on exhibit labels only works on a canonical
lower-case form.
"""

import re
from typing import Optional

from lxml import etree

from docx_assembler.utils.xml_utils import W_NS


class TextNormalizer:
    """Normalizes extracted text content from WordprocessingML."""

    # Common Word special characters that need normalization
    SPECIAL_CHARS = {
        '\u00a0': ' ',      # Non-breaking space -> regular space
        '\u2009': ' ',      # Thin space -> regular space
        '\u2007': ' ',      # Figure space -> regular space
        '\u2008': ' ',      # Punctuation space -> regular space
        '\u200b': '',       # Zero-width space -> remove
        '\u200c': '',       # Zero-width non-joiner -> remove
        '\u200d': '',       # Zero-width joiner -> remove
        '\ufeff': '',       # Byte order mark -> remove
        '\u00ad': '',       # Soft hyphen -> remove
        '\u2010': '-',      # Hyphen
        '\u2011': '-',      # Non-breaking hyphen
        '\u2013': '-',      # En dash
        '\u2014': '-',      # Em dash
        '\u2018': "'",
        '\u2019': "'",
        '\u201c': '"',
        '\u201d': '"',
    }

    WHITESPACE_PATTERN = re.compile(r'\s+')

    CONTROL_CHARS_PATTERN = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]')

    TEXT_TAG = f"{{{W_NS}}}t"

    def __init__(self, preserve_whitespace: bool = False):
        """Initialize text normalizer.

        Args:
            preserve_whitespace: If True, keep whitespace runs as they are.
                                If False, collapse them to single spaces.
        """
        self.preserve_whitespace = preserve_whitespace

    def normalize_text(self, text: str) -> str:
        """Normalize text content extracted from WordprocessingML."""
        if not text:
            return text

        normalized = self._replace_special_chars(text)
        normalized = self.CONTROL_CHARS_PATTERN.sub('', normalized)

        if not self.preserve_whitespace:
            normalized = self.WHITESPACE_PATTERN.sub(' ', normalized).strip()

        return normalized

    def paragraph_text(self, element: Optional[etree._Element]) -> str:
        """Concatenate every ``w:t`` descendant of a block and normalize it."""
        if element is None:
            return ""
        raw_text = ''.join(node.text or '' for node in element.iter(self.TEXT_TAG))
        return self.normalize_text(raw_text)

    def _replace_special_chars(self, text: str) -> str:
        for original, replacement in self.SPECIAL_CHARS.items():
            text = text.replace(original, replacement)
        return text


def normalize_label(text: Optional[str]) -> str:
    """Return the lower-case canonical form used for label matching."""
    if not text:
        return ""
    return TextNormalizer().normalize_text(text).lower()
