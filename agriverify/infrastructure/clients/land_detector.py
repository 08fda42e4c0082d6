"""Land-area detection service HTTP client"""

from pathlib import Path

import httpx

from agriverify.config import settings
from agriverify.domain.exceptions import LandDetectionError
from agriverify.domain.models import DetectedArea


class LandAreaClient:
    """Client for the computer-vision service that measures farmland in an image"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.land_detector_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def detect_area(self, image_reference: str) -> DetectedArea:
        """
        Measure cultivated area in a satellite image.

        Raises:
            LandDetectionError: On unreadable image, timeout, HTTP errors, or invalid response
        """
        path = Path(image_reference)
        try:
            content = path.read_bytes()
        except OSError as e:
            raise LandDetectionError(f"Satellite image not readable: {image_reference}") from e

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/detect",
                    files={"image": (path.name, content, "image/jpeg")},
                )
                response.raise_for_status()
                data = response.json()

                hectares = float(data["hectares"])
                if hectares < 0:
                    raise ValueError(f"negative area {hectares}")

                return DetectedArea(
                    hectares=hectares,
                    confidence=float(data["confidence"]),
                )

            except httpx.TimeoutException as e:
                raise LandDetectionError(f"Land detector timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise LandDetectionError(f"Land detector error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise LandDetectionError(f"Land detector unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise LandDetectionError(f"Invalid land detector response: {e}") from e
