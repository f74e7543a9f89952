"""
Document renderer - extracts content from a paper page, prints it to PDF and
screenshots every question body.
"""
import asyncio
import base64
import logging
from pathlib import Path
from typing import List

from .base import DocumentRenderer, RenderedDocument
from .browser import BrowserSession, PageHandle
from .parsing import parse_document, wrap_fragment
from ..pipeline.models import ItemDescriptor
from ..pipeline.lookups import sanitize_filename

# Collects every readable stylesheet rule so fragments render like the page.
STYLES_JS = """
() => Array.from(document.styleSheets)
    .map(sheet => {
        try {
            return Array.from(sheet.cssRules).map(rule => rule.cssText).join('\\n');
        } catch (e) {
            return '';
        }
    })
    .join('\\n')
"""


class PlaywrightDocumentRenderer(DocumentRenderer):
    """
    Each document is rendered on its own page; screenshots share one page
    guarded by `screenshot_handle`.
    """

    def __init__(self, session: BrowserSession, screenshot_handle: PageHandle,
                 output_dir: str, settle_seconds: float = 0.8):
        self.session = session
        self.screenshot_handle = screenshot_handle
        self.output_dir = Path(output_dir)
        self.settle_seconds = settle_seconds
        self.logger = logging.getLogger(self.__class__.__name__)

    def document_path(self, title: str) -> Path:
        return self.output_dir / f"{sanitize_filename(title)}.pdf"

    async def render_document(self, descriptor: ItemDescriptor) -> RenderedDocument:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        pdf_path = self.document_path(descriptor.title)

        async with self.session.open_page() as page:
            self.logger.debug(f"Opening {descriptor.source_url}")
            await page.goto(descriptor.source_url, wait_until="networkidle")

            styles = await page.evaluate(STYLES_JS)
            html = await page.content()

            await page.emulate_media(media="screen")
            await page.pdf(path=str(pdf_path), print_background=True)

        hints, units, fragments = parse_document(html)
        self.logger.info(f"Rendered '{descriptor.title}': {len(units)} units, PDF at {pdf_path}")

        return RenderedDocument(
            content_units=units,
            document_file=pdf_path,
            hints=hints,
            styles=styles or "",
            fragments=fragments,
        )

    async def capture_unit_images(self, document: RenderedDocument) -> List[str]:
        images = []
        async with self.screenshot_handle.acquire() as page:
            for index, fragment in enumerate(document.fragments):
                await page.set_content(wrap_fragment(fragment, document.styles))
                await asyncio.sleep(self.settle_seconds)
                png = await page.locator("body").screenshot(type="png")
                images.append(base64.b64encode(png).decode('ascii'))
                self.logger.debug(f"Captured unit {index + 1}/{len(document.fragments)}")
        return images
