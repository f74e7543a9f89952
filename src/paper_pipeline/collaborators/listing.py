"""
Listing fetcher - loads one catalogue page in the browser and parses it.
"""
import logging
from typing import List

from playwright.async_api import Error as PlaywrightError

from .base import ListingFetcher
from .browser import PageHandle
from .parsing import parse_listing, LISTING_SELECTOR
from ..pipeline.models import ItemDescriptor
from ..pipeline.errors import SourceUnavailable


class PlaywrightListingFetcher(ListingFetcher):
    """Catalogue pages are `<listing_base_url>p<n>`."""

    def __init__(self, handle: PageHandle, listing_base_url: str, site_root: str):
        self.handle = handle
        self.listing_base_url = listing_base_url
        self.site_root = site_root
        self.logger = logging.getLogger(self.__class__.__name__)

    def page_url(self, page_number: int) -> str:
        return f"{self.listing_base_url}p{page_number}"

    async def fetch_listing(self, page_number: int) -> List[ItemDescriptor]:
        url = self.page_url(page_number)
        self.logger.debug(f"Opening listing page {url}")

        try:
            async with self.handle.acquire() as page:
                response = await page.goto(url, wait_until="domcontentloaded")
                if response is not None and response.status >= 400:
                    raise SourceUnavailable(page_number, f"HTTP {response.status} from {url}")
                try:
                    await page.wait_for_selector(LISTING_SELECTOR, timeout=10_000)
                except PlaywrightError:
                    self.logger.debug(f"No listing entries appeared on {url}")
                html = await page.content()
        except PlaywrightError as e:
            raise SourceUnavailable(page_number, str(e)) from e

        descriptors = parse_listing(html, self.site_root)
        self.logger.debug(f"Parsed {len(descriptors)} entries from {url}")
        return descriptors
