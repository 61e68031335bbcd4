# Test fixtures and configuration
import base64
import io
import json
import sys
from collections import defaultdict
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
from PIL import Image

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fitchecked.config import (  # noqa: E402
    CompositingConfig,
    EngineConfig,
    LedgerConfig,
    ProviderEndpoint,
    RetryConfig,
    SynthesisConfig,
    TextGenerationConfig,
)
from fitchecked.pipeline import TryOnEngine  # noqa: E402
from fitchecked.services import (  # noqa: E402
    ImageCompositingClient,
    ImageSynthesisClient,
    ImageValidator,
    RetryScheduler,
)


SYNTHESIS_URL = "https://synthesis.test/v1/generate"
PRIMARY_URL = "https://primary.test/v1/tryon"
FALLBACK_URL = "https://fallback.test/v1/tryon"
TEXT_URL = "https://text.test/v1/enrich"
AVATAR_URL = "https://cdn.test/avatars/original.png"


def images_response(*urls: str) -> httpx.Response:
    """Provider success body with the given image URLs."""
    return httpx.Response(200, json={"images": [{"url": url} for url in urls]})


class ProviderRouter:
    """Scripted httpx transport shared by every provider client in a test.

    POSTs pop the next scripted item queued for their URL (a Response, an
    exception to raise, or a callable taking the request). HEAD/GET requests
    are image checks and succeed unless the URL was marked broken.
    """

    def __init__(self):
        self.queues = defaultdict(list)
        self.requests = []
        self.broken_images = set()

    def queue(self, url: str, *items) -> None:
        self.queues[url].extend(items)

    def posts(self, url: str) -> list[dict]:
        """JSON bodies POSTed to ``url``, in order."""
        return [body for method, u, body in self.requests if method == "POST" and u == url]

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, url, body))

        if request.method in ("HEAD", "GET"):
            if url in self.broken_images:
                return httpx.Response(404)
            return httpx.Response(200, headers={"content-type": "image/png"})

        if not self.queues[url]:
            return httpx.Response(500, json={"detail": "nothing scripted"})
        item = self.queues[url].pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def router():
    return ProviderRouter()


@pytest.fixture
def http_client(router):
    return router.client()


@pytest.fixture
def config(tmp_path):
    """Engine config pointing at the scripted providers, without backoff delays."""
    return EngineConfig(
        output_dir=tmp_path / "users",
        synthesis=SynthesisConfig(
            endpoint=ProviderEndpoint(base_url=SYNTHESIS_URL),
            retry=RetryConfig(max_attempts=3, base_delay=0.0),
        ),
        compositing=CompositingConfig(
            primary=ProviderEndpoint(base_url=PRIMARY_URL),
            fallback=ProviderEndpoint(base_url=FALLBACK_URL),
            primary_retry=RetryConfig(max_attempts=2, base_delay=0.0),
            fallback_retry=RetryConfig(max_attempts=1, base_delay=0.0),
        ),
        text_generation=TextGenerationConfig(backend="none"),
        ledger=LedgerConfig(max_changes=5, warning_fraction=0.8),
    )


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def engine(config, http_client, sleep):
    """Engine whose provider and validator traffic goes through the router."""
    return TryOnEngine(
        config,
        synthesis_client=ImageSynthesisClient("image-synthesis", config.synthesis.endpoint, client=http_client),
        primary_client=ImageCompositingClient("compositing-primary", config.compositing.primary, client=http_client),
        fallback_client=ImageCompositingClient("compositing-fallback", config.compositing.fallback, client=http_client),
        validator=ImageValidator(client=http_client),
        scheduler=RetryScheduler(sleep=sleep),
    )


@pytest.fixture
def sample_descriptions():
    """Garment requests as users type them."""
    return {
        "sundress": "red sundress for a beach day",
        "slip_dress": "black satin slip dress with lace trim",
        "separates": "white blouse with jeans, a trench coat, ankle boots and a leather belt",
        "office": "navy blazer over a silk blouse with tailored trousers",
        "vague": "something nice for friday",
    }


@pytest.fixture
def png_bytes():
    """Small valid PNG image bytes."""
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_data_url(png_bytes):
    return f"data:image/png;base64,{base64.b64encode(png_bytes).decode()}"
