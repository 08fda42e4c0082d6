"""Evidence aggregation - runs both evidence chains and never lets one sink the other"""

import asyncio
import time
from typing import Awaitable, TypeVar

from agriverify.config import settings
from agriverify.domain.exceptions import ProviderFailure
from agriverify.domain.land_size import parse_land_size
from agriverify.domain.models import Absent, Coordinates, Evidence, EvidenceBundle, Present
from agriverify.infrastructure.clients.land_detector import LandAreaClient
from agriverify.infrastructure.clients.ocr import DocumentTextClient
from agriverify.infrastructure.clients.satellite import SatelliteImageClient
from agriverify.infrastructure.observability.logging import log_provider_failure
from agriverify.infrastructure.observability.metrics import (
    provider_failure_counter,
    provider_latency_histogram,
)

T = TypeVar("T")

TEXT_EXCERPT_CHARS = 500


class EvidenceAggregator:
    """
    Collects document and satellite evidence for one application.

    Chains:
    - document: text extraction -> land size parsing
    - satellite: image fetch -> land-area detection

    Both chains run concurrently and are joined before returning. Every
    provider call is bounded by a timeout; any failure becomes Absent evidence.
    """

    def __init__(
        self,
        text_extractor: DocumentTextClient | None = None,
        image_fetcher: SatelliteImageClient | None = None,
        area_detector: LandAreaClient | None = None,
        timeout: float | None = None,
    ):
        self.text_extractor = text_extractor or DocumentTextClient()
        self.image_fetcher = image_fetcher or SatelliteImageClient()
        self.area_detector = area_detector or LandAreaClient()
        self.timeout = timeout or settings.provider_timeout_seconds

    async def collect(
        self,
        document_reference: str,
        location: Coordinates,
        application_id: str = "",
    ) -> EvidenceBundle:
        document, satellite = await asyncio.gather(
            self._document_evidence(document_reference, application_id),
            self._satellite_evidence(location, application_id),
        )
        return EvidenceBundle(document=document, satellite=satellite)

    async def _call(self, provider: str, call: Awaitable[T]) -> T:
        start_time = time.time()
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderFailure(f"{provider} timed out after {self.timeout}s") from e
        finally:
            provider_latency_histogram.labels(provider=provider).observe(time.time() - start_time)

    async def _document_evidence(self, document_reference: str, application_id: str) -> Evidence:
        try:
            extracted = await self._call("ocr", self.text_extractor.extract_text(document_reference))
        except Exception as e:
            return self._absent("ocr", e, application_id)

        details = {"text_excerpt": extracted.text[:TEXT_EXCERPT_CHARS]}

        # Text without a recognisable size is still evidence (its confidence counts)
        reading = parse_land_size(extracted.text)
        if reading is None:
            return Present(confidence=extracted.confidence, details=details)

        details.update(
            unit=reading.unit,
            original_value=reading.original_value,
            parse_confidence=reading.confidence,
        )
        return Present(confidence=extracted.confidence, value=reading.hectares, details=details)

    async def _satellite_evidence(self, location: Coordinates, application_id: str) -> Evidence:
        provider = "satellite"
        try:
            image = await self._call(
                provider,
                self.image_fetcher.fetch_image(location.latitude, location.longitude),
            )
            provider = "land_detector"
            area = await self._call(provider, self.area_detector.detect_area(image.image_reference))
        except Exception as e:
            return self._absent(provider, e, application_id)

        return Present(
            confidence=area.confidence,
            value=area.hectares,
            details={
                "image_reference": image.image_reference,
                "source": image.source,
                "capture_metadata": image.capture_metadata,
            },
        )

    @staticmethod
    def _absent(provider: str, error: Exception, application_id: str) -> Absent:
        reason = str(error) if isinstance(error, ProviderFailure) else f"{type(error).__name__}: {error}"
        provider_failure_counter.labels(provider=provider).inc()
        log_provider_failure(application_id, provider, reason)
        return Absent(reason=f"{provider}: {reason}")
