from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PdfInspection:
    """Page count and extractable text of a PDF."""

    page_count: int
    text: str


class BasePdfInspector(ABC):
    """Contract for all PDF inspection adapters."""

    @abstractmethod
    def inspect(self, pdf_bytes: bytes) -> PdfInspection:
        """Read the page count and plain text of a PDF.

        Args:
            pdf_bytes: Raw PDF file content.

        Returns:
            PdfInspection with the page count and stripped, page-joined text.

        Raises:
            PdfInspectionError: if the PDF cannot be parsed for any reason.
        """
