import io

import pdfplumber

from intake.pdf.base import BasePdfInspector, PdfInspection
from intake.pdf.exceptions import PdfInspectionError


class PdfPlumberAdapter(BasePdfInspector):
    """Inspects PDFs using pdfplumber."""

    def inspect(self, pdf_bytes: bytes) -> PdfInspection:
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
            return PdfInspection(page_count=len(pages), text="\n".join(pages).strip())
        except PdfInspectionError:
            raise
        except Exception as exc:
            raise PdfInspectionError(f"pdfplumber inspection failed: {exc}") from exc
