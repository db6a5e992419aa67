"""FastAPI providers for the refresh collaborators; overridden in tests."""

from country_sync.config import settings
from country_sync.services.image_generator import SummaryImageRenderer
from country_sync.services.sources import SourceClient


def get_source_client():
    client = SourceClient.from_settings(settings)
    try:
        yield client
    finally:
        client.close()


def get_renderer() -> SummaryImageRenderer:
    return SummaryImageRenderer(settings.cache_dir / "summary.png")
