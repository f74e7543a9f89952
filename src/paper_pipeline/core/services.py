"""
Service wiring - builds the production collaborators for one run and tears
them down afterwards.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import aiohttp

from ..config.pipeline_config import PipelineConfig
from ..collaborators.browser import BrowserSession
from ..collaborators.listing import PlaywrightListingFetcher
from ..collaborators.renderer import PlaywrightDocumentRenderer
from ..collaborators.registry import RegistryClient
from ..collaborators.storage import ObjectStorageUploader
from ..collaborators.conversion import RegistryDocumentConverter
from ..collaborators.classifier import LLMClassifier
from ..collaborators.warning_sink import FileWarningSink
from ..collaborators.artifact_store import ArtifactStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every collaborator the coordinator needs."""
    fetcher: PlaywrightListingFetcher
    registry: RegistryClient
    renderer: PlaywrightDocumentRenderer
    classifier: LLMClassifier
    converter: RegistryDocumentConverter
    warning_sink: FileWarningSink
    artifact_store: ArtifactStore


@asynccontextmanager
async def open_services(config: PipelineConfig) -> AsyncIterator[Services]:
    """
    Open the HTTP session and the browser, yield the wired collaborators and
    close everything on exit.
    """
    connector = aiohttp.TCPConnector(limit=max(config.existence_workers, config.publish_workers) * 2)

    async with aiohttp.ClientSession(connector=connector) as session:
        async with BrowserSession(config.browser) as browser:
            listing_handle = await browser.new_handle("listing")
            screenshot_handle = await browser.new_handle("screenshot")

            registry = RegistryClient(session, config.registry, config.storage)
            uploader = ObjectStorageUploader(session, registry, config.storage)

            services = Services(
                fetcher=PlaywrightListingFetcher(
                    listing_handle,
                    config.listing_base_url,
                    config.browser.site_root,
                ),
                registry=registry,
                renderer=PlaywrightDocumentRenderer(
                    browser,
                    screenshot_handle,
                    config.output_dir,
                    settle_seconds=config.browser.screenshot_settle_seconds,
                ),
                classifier=LLMClassifier(session, config.classifier),
                converter=RegistryDocumentConverter(uploader, registry),
                warning_sink=FileWarningSink(config.warning_log_path),
                artifact_store=ArtifactStore(config.output_dir),
            )

            logger.info("Services ready")
            try:
                yield services
            finally:
                await listing_handle.close()
                await screenshot_handle.close()
