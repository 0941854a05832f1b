class PdfInspectionError(Exception):
    """Raised when a PDF cannot be opened or read (corrupt or encrypted)."""
