"""
Document parsers.

- DocumentParser: abstract parser interface
- DarkMatterParser: default line-oriented directive parser
"""

from composition.core.parser.base import DocumentParser
from composition.core.parser.darkmatter import DarkMatterParser, split_frontmatter

__all__ = [
    "DarkMatterParser",
    "DocumentParser",
    "split_frontmatter",
]
