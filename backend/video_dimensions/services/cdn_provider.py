"""Cloudinary admin API lookups for CDN-stored videos."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import httpx

from video_dimensions.core.config import Settings, settings
from video_dimensions.schemas.dimensions import Dimensions

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r"\.[^/.]+$")


@dataclass(frozen=True)
class CdnCredentials:
    cloud_name: str | None = None
    api_key: str | None = None
    api_secret: str | None = None

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> CdnCredentials:
        source = source or settings
        return cls(
            cloud_name=(source.storage_cloudinary_cloud_name or "").strip() or None,
            api_key=(source.storage_cloudinary_api_key or "").strip() or None,
            api_secret=(source.storage_cloudinary_api_secret or "").strip() or None,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)


def public_id_for(filename: str) -> str:
    return _EXTENSION_RE.sub("", filename or "")


class CdnProvider:
    """Reads stored width/height for an uploaded video.

    Every failure (missing credentials, HTTP error status, network error,
    unexpected body) yields ``None``; nothing is raised to the caller.
    """

    def __init__(
        self,
        credentials: CdnCredentials,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials = credentials
        self._base_url = (base_url or settings.cdn_api_base_url).rstrip("/")
        self._timeout = max(1.0, float(timeout_seconds or settings.cdn_timeout_seconds))
        self._transport = transport

    def resource_url(self, public_id: str) -> str:
        return f"{self._base_url}/v1_1/{self._credentials.cloud_name}/video/upload/{public_id}"

    async def fetch_dimensions(self, asset_name: str) -> Dimensions | None:
        if not self._credentials.is_complete:
            logger.warning("cdn_credentials_missing", extra={"asset_name": asset_name})
            return None

        url = self.resource_url(public_id_for(asset_name))
        auth = httpx.BasicAuth(self._credentials.api_key or "", self._credentials.api_secret or "")
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(url, auth=auth)
                if not resp.is_success:
                    logger.warning(
                        "cdn_metadata_request_failed",
                        extra={"asset_name": asset_name, "status_code": resp.status_code},
                    )
                    return None
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("cdn_metadata_request_error", extra={"asset_name": asset_name, "error": str(exc)})
            return None

        if not isinstance(data, dict):
            return None
        width, height = data.get("width"), data.get("height")
        if isinstance(width, bool) or isinstance(height, bool):
            return None
        if not isinstance(width, int) or not isinstance(height, int) or width <= 0 or height <= 0:
            return None
        return Dimensions(width=width, height=height)
