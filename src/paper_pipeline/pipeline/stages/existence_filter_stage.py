"""
Existence Filter Stage - Splits a page's descriptors into skip / proceed.

The registry is asked whether each title is already published. When the
question cannot be answered the item proceeds.
"""

import logging
from typing import List, Tuple

from ..stage import PipelineStage
from ..models import ItemDescriptor
from ...collaborators.base import ExistenceChecker


class ExistenceFilter(PipelineStage):
    """
    Stage 1: Existence Filter.

    Runs up to `num_workers` registry checks at once.
    """

    def __init__(self, checker: ExistenceChecker, num_workers: int = 10):
        super().__init__(name="ExistenceFilter", num_workers=num_workers)
        self.checker = checker
        self.logger = logging.getLogger(self.__class__.__name__)

        self.stats = {
            'existing': 0,
            'new': 0,
            'check_failures': 0,
        }

    async def check(self, descriptor: ItemDescriptor) -> bool:
        """
        True if the registry already holds this title.

        Any failure of the check itself is logged and answered with False.
        """
        try:
            exists = bool(await self.checker.check_exists(descriptor.title))
        except Exception as e:
            with self.stats_lock:
                self.stats['check_failures'] += 1
            self.logger.warning(f"Existence check failed for '{descriptor.title}', "
                                f"treating as new: {e}")
            return False

        return exists

    async def process(self, data: ItemDescriptor) -> ItemDescriptor:
        exists = await self.check(data)

        with self.stats_lock:
            self.stats['existing' if exists else 'new'] += 1

        if exists:
            self.logger.info(f"Already published, skipping: {data.title}")
        else:
            self.logger.debug(f"Not yet published: {data.title}")

        return data.with_existence(exists)

    async def partition(self, descriptors: List[ItemDescriptor]
                        ) -> Tuple[List[ItemDescriptor], List[ItemDescriptor]]:
        """
        Check every descriptor and split them.

        Returns:
            (skip, proceed) - both carry `already_exists` set
        """
        checked = await self.run(descriptors)
        skip = [d for d in checked if d.already_exists]
        proceed = [d for d in checked if not d.already_exists]
        return skip, proceed

    def get_stats(self) -> dict:
        base_stats = super().get_stats()

        with self.stats_lock:
            base_stats['existence_stats'] = self.stats.copy()

        return base_stats
