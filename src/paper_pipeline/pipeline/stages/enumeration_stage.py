"""
Enumeration Stage - Lists the item descriptors found on one page unit.
"""

import threading
import logging
from typing import List

from ..models import ItemDescriptor
from ..errors import SourceUnavailable
from ...collaborators.base import ListingFetcher


class SourceEnumerator:
    """
    Stage 0: Enumeration.

    Issues a fresh listing fetch on every call; nothing is cached, so calling
    twice for the same page hits the source twice. An empty page is a normal
    result.
    """

    def __init__(self, fetcher: ListingFetcher):
        self.fetcher = fetcher
        self.logger = logging.getLogger(self.__class__.__name__)

        self.stats = {
            'pages_enumerated': 0,
            'pages_unavailable': 0,
            'descriptors_found': 0,
        }
        self.stats_lock = threading.Lock()

    async def enumerate(self, page_number: int) -> List[ItemDescriptor]:
        """
        Fetch the descriptors of one page.

        Raises:
            SourceUnavailable: the listing could not be fetched
        """
        try:
            descriptors = await self.fetcher.fetch_listing(page_number)
        except SourceUnavailable:
            self._count('pages_unavailable')
            raise
        except Exception as e:
            self._count('pages_unavailable')
            raise SourceUnavailable(page_number, str(e)) from e

        descriptors = list(descriptors)

        with self.stats_lock:
            self.stats['pages_enumerated'] += 1
            self.stats['descriptors_found'] += len(descriptors)

        if descriptors:
            self.logger.info(f"Page {page_number}: found {len(descriptors)} items")
        else:
            self.logger.info(f"Page {page_number}: no items")

        return descriptors

    def _count(self, key: str):
        with self.stats_lock:
            self.stats[key] += 1

    def get_stats(self) -> dict:
        with self.stats_lock:
            return self.stats.copy()
