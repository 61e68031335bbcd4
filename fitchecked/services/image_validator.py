"""Lightweight existence checks for image references."""

import base64
import binascii
import io
import logging

import httpx
from PIL import Image, UnidentifiedImageError

from ..errors import ValidationError

logger = logging.getLogger(__name__)


class ImageValidator:
    """Checks that an image reference is reachable and really is an image.

    Supports ``http(s)://`` URLs (HEAD, or a streamed GET when HEAD is not
    allowed) and inline ``data:image/...;base64,`` URLs (decoded and verified
    with Pillow).
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
            self._owns_client = True
        return self._client

    async def ensure_image(self, ref: str | None, role: str = "image") -> None:
        """Raise ValidationError unless ``ref`` points at a reachable image."""
        if not ref:
            raise ValidationError(f"No {role} image provided", role=role)

        if ref.startswith("data:"):
            self._check_data_url(ref, role)
        elif ref.startswith(("http://", "https://")):
            await self._check_remote(ref, role)
        else:
            raise ValidationError(f"Unsupported {role} image reference: {ref[:40]}", role=role)

    def _check_data_url(self, ref: str, role: str) -> None:
        header, _, encoded = ref.partition(",")
        if not header.startswith("data:image/") or ";base64" not in header:
            raise ValidationError(f"The {role} data URL is not a base64 image", role=role)

        try:
            raw_bytes = base64.b64decode(encoded, validate=True)
            Image.open(io.BytesIO(raw_bytes)).verify()
        # Pillow reports corrupt PNG chunks as SyntaxError
        except (binascii.Error, ValueError, UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ValidationError(f"The {role} image could not be decoded: {e}", role=role) from e

    async def _check_remote(self, ref: str, role: str) -> None:
        try:
            response = await self.client.head(ref)
            if response.status_code == 405:
                async with self.client.stream("GET", ref) as streamed:
                    response = streamed
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ {role} image unreachable: {e}")
            raise ValidationError(f"The {role} image is unreachable", role=role) from e

        if response.status_code >= 400:
            raise ValidationError(
                f"The {role} image is unreachable (HTTP {response.status_code})", role=role
            )

        content_type = response.headers.get("content-type", "")
        if not content_type.lower().startswith("image/"):
            raise ValidationError(
                f"The {role} reference is not an image (content type {content_type or 'missing'})",
                role=role,
            )

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
