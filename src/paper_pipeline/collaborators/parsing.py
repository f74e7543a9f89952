"""
HTML parsing for listing and document pages (BeautifulSoup).

Pure functions over page markup; the browser layer only supplies HTML.
"""
import logging
from typing import List, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..pipeline.models import ItemDescriptor, ContentUnit, ContentKind
from .base import MetadataHints

logger = logging.getLogger(__name__)

LISTING_SELECTOR = "div.info-item.exam-info a.exam-name"
TITLE_SELECTOR = ".title-txt .txt"
INFO_SELECTOR = ".info-list .item"
SUBJECT_SELECTORS = (".subject-menu__title .title-txt", ".subject")
SECTION_SELECTOR = ".sec-title, .sec-list"
BODY_SELECTOR = ".exam-item__cnt"
ATTRIBUTION_SELECTOR = "a.ques-src"

NOT_FOUND = "未找到"
MISSING_ATTRIBUTION = "未找到来源"

PARSER = "html.parser"


def parse_listing(html: str, site_root: str) -> List[ItemDescriptor]:
    """Descriptors for every paper link on a listing page, in page order."""
    soup = BeautifulSoup(html, PARSER)
    descriptors = []

    for anchor in soup.select(LISTING_SELECTOR):
        href = anchor.get('href')
        title = anchor.get_text(strip=True)
        if not href or not title:
            logger.debug(f"Skipping listing anchor without href/title: {anchor}")
            continue
        descriptors.append(ItemDescriptor(source_url=urljoin(site_root, href), title=title))

    return descriptors


def parse_metadata(soup: BeautifulSoup) -> MetadataHints:
    """Title, province, grade and subject text of a document page."""
    title_el = soup.select_one(TITLE_SELECTOR)
    title = title_el.get_text(strip=True) if title_el else ""

    items = soup.select(INFO_SELECTOR)
    if len(items) >= 2:
        province = items[0].get_text(strip=True)
        grade = items[1].get_text(strip=True)
    else:
        province = grade = NOT_FOUND

    subject_text = ""
    for selector in SUBJECT_SELECTORS:
        element = soup.select_one(selector)
        if element:
            subject_text = element.get_text(strip=True)
            break

    return MetadataHints(title=title, province=province, grade=grade, subject_text=subject_text)


def parse_content_units(soup: BeautifulSoup) -> Tuple[List[ContentUnit], List[str]]:
    """
    Section headings and question bodies in reading order.

    Returns:
        (units, fragments) - fragments holds the outer HTML of each body unit
    """
    units: List[ContentUnit] = []
    fragments: List[str] = []

    for section in soup.select(SECTION_SELECTOR):
        classes = section.get('class') or []

        if 'sec-title' in classes:
            span = section.find('span')
            text = span.get_text(strip=True) if span else ""
            if text:
                units.append(ContentUnit(kind=ContentKind.TITLE_MARKER, text=text))
            continue

        for body in section.select(BODY_SELECTOR):
            text = body.get_text(" ", strip=True)
            if not text:
                continue
            units.append(ContentUnit(
                kind=ContentKind.BODY,
                text=text,
                source_attribution=extract_attribution(body, section),
                images=extract_images(body),
            ))
            fragments.append(str(body))

    return units, fragments


def parse_document(html: str) -> Tuple[MetadataHints, List[ContentUnit], List[str]]:
    soup = BeautifulSoup(html, PARSER)
    units, fragments = parse_content_units(soup)
    return parse_metadata(soup), units, fragments


def extract_attribution(body, section=None) -> str:
    """Source link inside the body, else the first one in its section."""
    source = body.select_one(ATTRIBUTION_SELECTOR)
    if source is None and section is not None:
        source = section.select_one(ATTRIBUTION_SELECTOR)
    if source is None:
        return MISSING_ATTRIBUTION
    text = source.get_text(strip=True)
    return text or MISSING_ATTRIBUTION


def extract_images(body) -> List[str]:
    """Image URLs (src, then data-src), de-duplicated, document order."""
    seen = set()
    images = []
    for img in body.find_all('img'):
        url = img.get('src') or img.get('data-src')
        if url and url not in seen:
            seen.add(url)
            images.append(url)
    return images


def wrap_fragment(fragment: str, styles: str) -> str:
    """Standalone page for screenshotting one body fragment with the page styles."""
    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<style>
{styles}

body {{
    background-color: #fff;
    padding: 20px;
    margin: 0;
    -webkit-font-smoothing: antialiased;
}}
.exam-item__cnt {{ margin: 0 !important; border: none !important; }}
</style>
</head>
<body>
<div class="exam-item__cnt">{fragment}</div>
</body>
</html>"""
