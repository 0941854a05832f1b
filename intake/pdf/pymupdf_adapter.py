import pymupdf

from intake.pdf.base import BasePdfInspector, PdfInspection
from intake.pdf.exceptions import PdfInspectionError


class PyMuPdfAdapter(BasePdfInspector):
    """Inspects PDFs using PyMuPDF."""

    def inspect(self, pdf_bytes: bytes) -> PdfInspection:
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                if doc.needs_pass:
                    raise PdfInspectionError("PDF is password protected")
                pages = [page.get_text() for page in doc]
            return PdfInspection(page_count=len(pages), text="\n".join(pages).strip())
        except PdfInspectionError:
            raise
        except Exception as exc:
            raise PdfInspectionError(f"pymupdf inspection failed: {exc}") from exc
