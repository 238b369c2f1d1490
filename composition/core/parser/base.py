"""
Abstract base class for document parsers.
"""

from abc import ABC, abstractmethod

from composition.models.document import ParsedDocument
from composition.models.resource import ResourceId


class DocumentParser(ABC):
    """
    Abstract interface for document parsers.

    A parser turns raw document text into the directives it references and
    the plain structure around them. The engine never interprets directive
    syntax itself.
    """

    @abstractmethod
    def parse(self, content: str, resource_id: ResourceId | None = None) -> ParsedDocument:
        """
        Parse a document.

        Args:
            content: Raw document text
            resource_id: Identity of the document, for error context

        Returns:
            ParsedDocument with frontmatter, directives and segments

        Raises:
            ParseError: If a directive is malformed
        """
        pass
