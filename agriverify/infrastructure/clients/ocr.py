"""Document OCR service HTTP client"""

from pathlib import Path

import httpx

from agriverify.config import settings
from agriverify.domain.exceptions import DocumentExtractionError
from agriverify.domain.models import ExtractedText


class DocumentTextClient:
    """Client for the external document text extraction service"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.ocr_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def extract_text(self, document_reference: str) -> ExtractedText:
        """
        Upload a loan document and return its text with OCR confidence (0-100).

        Raises:
            DocumentExtractionError: On unreadable document, timeout, HTTP errors, or invalid response
        """
        path = Path(document_reference)
        try:
            content = path.read_bytes()
        except OSError as e:
            raise DocumentExtractionError(f"Document not readable: {document_reference}") from e

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/ocr/extract",
                    files={"document": (path.name, content)},
                )
                response.raise_for_status()
                data = response.json()

                return ExtractedText(
                    text=data["text"],
                    confidence=float(data["confidence"]),
                )

            except httpx.TimeoutException as e:
                raise DocumentExtractionError(f"OCR service timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise DocumentExtractionError(f"OCR service error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise DocumentExtractionError(f"OCR service unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise DocumentExtractionError(f"Invalid OCR response: {e}") from e
