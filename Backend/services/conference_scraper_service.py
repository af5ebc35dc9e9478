from __future__ import annotations

import re
from typing import List, Optional
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from app.core.logging import get_logger
from app.models.records import ConferenceRecord
from services.base_scraper_service import BaseScraperService, is_absolute_http

logger = get_logger()

# Listing rows: [term, name+link, date, venue, remarks]
MIN_CELLS = 5
NAME_CELL, DATE_CELL, VENUE_CELL, REMARKS_CELL = 1, 2, 3, 4

_WHITESPACE_RE = re.compile(r"\s+")


def _cell_text(node: Node) -> str:
    return _WHITESPACE_RE.sub(" ", node.text(separator=" ", strip=True) or "").strip()


def _document_base(parser: HTMLParser, page_url: str) -> str:
    base = parser.css_first("base[href]")
    if base is not None:
        href = (base.attributes.get("href") or "").strip()
        if href:
            return urljoin(page_url, href)
    return page_url


def _absolutize(base_url: str, href: Optional[str]) -> Optional[str]:
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith(("#", "javascript:", "mailto:")):
        return None
    resolved = urljoin(base_url, href)
    return resolved if is_absolute_http(resolved) else None


def parse_conference_rows(html_text: str, page_url: str) -> List[ConferenceRecord]:
    """
    One record per table row with at least five cells, in document order.
    Rows without a name or without a resolvable link are dropped; duplicates
    are kept (dedupe happens at write time).
    """
    parser = HTMLParser(html_text)
    base_url = _document_base(parser, page_url)
    records: List[ConferenceRecord] = []
    tables = parser.css("table")
    logger.debug("conference_tables_found", count=len(tables))
    for table in tables:
        for row in table.css("tr"):
            cells = row.css("td")
            if len(cells) < MIN_CELLS:
                continue
            name_cell = cells[NAME_CELL]
            name = _cell_text(name_cell)
            anchor = name_cell.css_first("a[href]")
            link = _absolutize(base_url, anchor.attributes.get("href") if anchor else None)
            if not name or not link:
                continue
            records.append(
                ConferenceRecord(
                    name=name,
                    url=link,
                    date_text=_cell_text(cells[DATE_CELL]),
                    venue_text=_cell_text(cells[VENUE_CELL]),
                    remarks_text=_cell_text(cells[REMARKS_CELL]),
                )
            )
    return records


class ConferenceScraperService(BaseScraperService):
    async def scrape(self, list_url: str) -> List[ConferenceRecord]:
        html_text = await self.fetch_html_or_none(list_url)
        if html_text is None:
            return []
        records = parse_conference_rows(html_text, list_url)
        logger.info("conference_rows_parsed", url=list_url, rows=len(records))
        return records
