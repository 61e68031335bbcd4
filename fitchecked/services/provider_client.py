"""HTTP clients for the generative providers used by the try-on engine."""

import logging
from typing import Any

import httpx

from ..config import ProviderEndpoint
from ..errors import ProviderError, ProviderTimeoutError

logger = logging.getLogger(__name__)


class ProviderClient:
    """Base client posting JSON to one provider endpoint."""

    def __init__(
        self,
        name: str,
        endpoint: ProviderEndpoint,
        client: httpx.AsyncClient | None = None,
    ):
        self.name = name
        self.endpoint = endpoint
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.endpoint.timeout)
            self._owns_client = True
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.endpoint.api_key:
            headers["Authorization"] = f"Key {self.endpoint.api_key}"
        return headers

    async def post_json(self, payload: dict[str, Any]) -> Any:
        """POST ``payload`` and return the decoded JSON body.

        Raises:
            ProviderTimeoutError: the call exceeded the endpoint timeout
            ProviderError: transport failure, HTTP status >= 400 or a non-JSON body
        """
        try:
            response = await self.client.post(
                self.endpoint.url,
                json=payload,
                headers=self._headers(),
                timeout=self.endpoint.timeout,
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"{self.name} timed out after {self.endpoint.timeout}s", provider=self.name
            ) from e
        except httpx.TransportError as e:
            raise ProviderError(
                f"{self.name} unreachable: {e}", provider=self.name, detail=str(e)
            ) from e

        if response.status_code >= 400:
            error_text = response.text
            raise ProviderError(
                f"{self.name} failed: {response.status_code} - {error_text[:200]}",
                provider=self.name,
                status_code=response.status_code,
                detail=error_text[:500],
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.name} returned a non-JSON body",
                provider=self.name,
                status_code=response.status_code,
                detail=response.text[:500],
                transient=False,
            ) from e

    def _image_urls(self, data: Any) -> list[str]:
        """Read image URLs from ``images[*].url`` or a ``data.images[*].url`` envelope.

        Raises:
            ProviderError: fatal for a body of the wrong shape, transient for no images
        """
        if not isinstance(data, dict):
            raise ProviderError(
                f"{self.name} returned a malformed body ({type(data).__name__})",
                provider=self.name,
                detail=str(data)[:500],
                transient=False,
            )

        images = data.get("images")
        if not images and isinstance(data.get("data"), dict):
            images = data["data"].get("images")
        if images and not isinstance(images, list):
            raise ProviderError(
                f"{self.name} returned malformed images ({type(images).__name__})",
                provider=self.name,
                detail=str(images)[:500],
                transient=False,
            )

        urls = [image.get("url") for image in images or [] if isinstance(image, dict)]
        urls = [url for url in urls if isinstance(url, str) and url]
        if images and not urls:
            raise ProviderError(
                f"{self.name} returned images without usable URLs",
                provider=self.name,
                detail=str(images)[:500],
                transient=False,
            )
        if not urls:
            raise ProviderError(f"{self.name} returned no images", provider=self.name)
        return urls

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


class ImageSynthesisClient(ProviderClient):
    """Text-to-image provider producing standalone garment images."""

    async def generate(
        self,
        prompt: str,
        negative_prompt: str,
        width: int,
        height: int,
        num_images: int = 1,
    ) -> list[str]:
        """Generate garment images and return their URLs."""
        data = await self.post_json({
            "prompt": prompt,
            "negative_prompt": negative_prompt,
            "image_size": {"width": width, "height": height},
            "num_images": num_images,
        })
        return self._image_urls(data)


class ImageCompositingClient(ProviderClient):
    """Try-on provider placing a garment image onto an avatar image."""

    async def composite(
        self,
        source_image_url: str,
        garment_image_url: str,
        category_hint: str,
        strength: float,
    ) -> list[str]:
        """Composite the garment onto the avatar and return the result URLs."""
        data = await self.post_json({
            "source_image_url": source_image_url,
            "garment_image_url": garment_image_url,
            "category_hint": category_hint,
            "strength": strength,
        })
        return self._image_urls(data)


class TextGenerationClient(ProviderClient):
    """Text provider used to enrich garment prompts."""

    async def generate(self, text: str, instructions: str) -> str:
        data = await self.post_json({"text": text, "instructions": instructions})
        result = data.get("text") if isinstance(data, dict) else None
        if not isinstance(result, str):
            raise ProviderError(
                f"{self.name} response has no text field", provider=self.name, transient=False
            )
        return result
