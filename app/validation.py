from app.errors import RejectionReason, UploadRejected
from app.models import UploadCandidate

PDF_MAGIC = b"%PDF"
DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024


def is_pdf(data: bytes) -> bool:
    return data[: len(PDF_MAGIC)] == PDF_MAGIC


class ContentValidator:
    """Size gate then the ``%PDF`` gate. The declared content type is never consulted."""

    def __init__(self, max_file_size: int = DEFAULT_MAX_FILE_SIZE):
        self.max_file_size = max_file_size

    def too_large(self) -> UploadRejected:
        max_mb = self.max_file_size / (1024 * 1024)
        return UploadRejected(RejectionReason.FILE_TOO_LARGE, f"File too large. Max size is {max_mb:g}MB.")

    def validate(self, candidate: UploadCandidate) -> None:
        size = max(candidate.declared_size, len(candidate.data))
        if size > self.max_file_size:
            raise self.too_large()
        if not is_pdf(candidate.data):
            raise UploadRejected(RejectionReason.NOT_A_PDF)
