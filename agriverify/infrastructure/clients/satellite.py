"""Satellite imagery client with Sentinel Hub primary and NASA Earth fallback"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import httpx

from agriverify.config import settings
from agriverify.domain.exceptions import SatelliteFetchError
from agriverify.domain.models import SatelliteImage
from agriverify.utils.date_utils import imagery_time_range

SENTINEL_BBOX_DELTA = 0.01  # ~1km around the point
SENTINEL_LOOKBACK_MONTHS = 6
NASA_DIMENSION_DEGREES = 0.1

TRUE_COLOR_EVALSCRIPT = """
//VERSION=3
function setup() {
  return {
    input: ["B02", "B03", "B04"],
    output: { bands: 3 }
  };
}

function evaluatePixel(sample) {
  return [sample.B04 * 2.5, sample.B03 * 2.5, sample.B02 * 2.5];
}
"""


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    return -90 <= latitude <= 90 and -180 <= longitude <= 180


def bounding_box(latitude: float, longitude: float, delta: float) -> List[float]:
    """[west, south, east, north] around a point"""
    return [longitude - delta, latitude - delta, longitude + delta, latitude + delta]


class SatelliteImageClient:
    """
    Fetches recent imagery for a plot.

    Providers are tried in order; callers only ever see one success or one
    SatelliteFetchError.
    """

    def __init__(
        self,
        sentinel_base: str | None = None,
        nasa_base: str | None = None,
        image_dir: str | None = None,
        timeout: float | None = None,
    ):
        self.sentinel_base = sentinel_base or settings.sentinel_hub_base
        self.nasa_base = nasa_base or settings.nasa_earth_base
        self.image_dir = Path(image_dir or settings.satellite_image_dir)
        self.timeout = timeout or settings.http_timeout_seconds
        self.sentinel_client_id = settings.sentinel_hub_client_id
        self.sentinel_client_secret = settings.sentinel_hub_client_secret
        self.nasa_api_key = settings.nasa_api_key

    @property
    def sentinel_configured(self) -> bool:
        return bool(self.sentinel_client_id and self.sentinel_client_secret)

    async def fetch_image(self, latitude: float, longitude: float) -> SatelliteImage:
        """
        Fetch imagery for the given coordinates.

        Raises:
            SatelliteFetchError: On invalid coordinates or when every provider failed
        """
        if not is_valid_coordinate(latitude, longitude):
            raise SatelliteFetchError(f"Invalid coordinates: ({latitude}, {longitude})")

        start_time = time.time()
        errors = []

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            if self.sentinel_configured:
                try:
                    image = await self._fetch_sentinel(client, latitude, longitude)
                    image.capture_metadata["processing_time_ms"] = (time.time() - start_time) * 1000
                    return image
                except (httpx.HTTPError, KeyError, ValueError, OSError) as e:
                    logging.warning(f"Sentinel Hub failed, falling back to NASA: {e}")
                    errors.append(f"sentinel-hub: {e}")

            try:
                image = await self._fetch_nasa(client, latitude, longitude)
                image.capture_metadata["processing_time_ms"] = (time.time() - start_time) * 1000
                return image
            except (httpx.HTTPError, OSError) as e:
                errors.append(f"nasa-earth: {e}")

        raise SatelliteFetchError("All satellite providers failed: " + "; ".join(errors))

    async def _sentinel_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            f"{self.sentinel_base}/oauth/token",
            data={"grant_type": "client_credentials"},
            auth=(self.sentinel_client_id, self.sentinel_client_secret),
        )
        response.raise_for_status()
        return response.json()["access_token"]

    async def _fetch_sentinel(self, client: httpx.AsyncClient, latitude: float, longitude: float) -> SatelliteImage:
        token = await self._sentinel_token(client)
        bbox = bounding_box(latitude, longitude, SENTINEL_BBOX_DELTA)
        time_from, time_to = imagery_time_range(SENTINEL_LOOKBACK_MONTHS)

        response = await client.post(
            f"{self.sentinel_base}/process",
            headers={"Authorization": f"Bearer {token}"},
            json={
                "input": {
                    "bounds": {
                        "bbox": bbox,
                        "properties": {"crs": "http://www.opengis.net/def/crs/EPSG/0/4326"},
                    },
                    "data": [
                        {
                            "type": "sentinel-2-l2a",
                            "dataFilter": {"timeRange": {"from": time_from, "to": time_to}},
                        }
                    ],
                },
                "output": {
                    "width": 1000,
                    "height": 1000,
                    "responses": [{"identifier": "default", "format": {"type": "image/jpeg"}}],
                },
                "evalscript": TRUE_COLOR_EVALSCRIPT,
            },
        )
        response.raise_for_status()

        return SatelliteImage(
            image_reference=self._save_image("sentinel", latitude, longitude, response.content),
            source="sentinel-hub",
            capture_metadata=self._metadata(
                latitude,
                longitude,
                resolution="10m",
                bands="RGB (B04, B03, B02)",
                bounding_box=bbox,
            ),
        )

    async def _fetch_nasa(self, client: httpx.AsyncClient, latitude: float, longitude: float) -> SatelliteImage:
        response = await client.get(
            f"{self.nasa_base}/imagery",
            params={
                "lon": longitude,
                "lat": latitude,
                "dim": NASA_DIMENSION_DEGREES,
                "api_key": self.nasa_api_key,
            },
        )
        response.raise_for_status()

        return SatelliteImage(
            image_reference=self._save_image("nasa", latitude, longitude, response.content),
            source="nasa-earth",
            capture_metadata=self._metadata(
                latitude,
                longitude,
                resolution="~1km",
                bands="Natural Color",
                dimension=NASA_DIMENSION_DEGREES,
            ),
        )

    def _save_image(self, prefix: str, latitude: float, longitude: float, content: bytes) -> str:
        self.image_dir.mkdir(parents=True, exist_ok=True)
        filename = f"{prefix}_{latitude}_{longitude}_{int(time.time() * 1000)}.jpg"
        image_path = self.image_dir / filename
        image_path.write_bytes(content)
        return str(image_path)

    @staticmethod
    def _metadata(latitude: float, longitude: float, **extra: Any) -> Dict[str, Any]:
        return {
            "coordinates": {"latitude": latitude, "longitude": longitude},
            "capture_date": datetime.now(timezone.utc).isoformat(),
            **extra,
        }
