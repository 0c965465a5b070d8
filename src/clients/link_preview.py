from __future__ import annotations

import logging

import requests
from bs4 import BeautifulSoup


LOGGER = logging.getLogger(__name__)

OPEN_GRAPH_PROPERTIES = ("og:title", "og:description", "og:site_name")


class LinkPreviewClient:
    def __init__(self, request_timeout_seconds: int = 8, max_bytes: int = 512 * 1024):
        self.request_timeout_seconds = request_timeout_seconds
        self.max_bytes = max_bytes

    def describe(self, url: str) -> str:
        """Return ``url`` followed by its page title/description when available."""

        try:
            page = self._fetch_page(url)
        except (requests.RequestException, LookupError) as exc:
            LOGGER.info("Link preview unavailable for %s: %s", url, exc)
            return url

        info = extract_open_graph(page)
        parts = [url]
        title = info.get("og:title") or info.get("title")
        description = info.get("og:description") or info.get("description")
        if title:
            parts.append(f"title: {title}")
        if description:
            parts.append(f"description: {description}")
        return "\n".join(parts)

    def _fetch_page(self, url: str) -> str:
        with requests.get(
            url,
            timeout=self.request_timeout_seconds,
            headers={"User-Agent": "Mozilla/5.0 (compatible; summary-bot)"},
            stream=True,
        ) as response:
            response.raise_for_status()
            chunks: list[bytes] = []
            size = 0
            for chunk in response.iter_content(chunk_size=8192):
                chunks.append(chunk)
                size += len(chunk)
                if size >= self.max_bytes:
                    break
            raw = b"".join(chunks)[: self.max_bytes]
            return raw.decode(response.encoding or "utf-8", errors="replace")


def extract_open_graph(page: str) -> dict[str, str]:
    soup = BeautifulSoup(page, "html.parser")
    info: dict[str, str] = {}
    for prop in OPEN_GRAPH_PROPERTIES:
        tag = soup.find("meta", attrs={"property": prop})
        content = (tag.get("content") or "").strip() if tag else ""
        if content:
            info[prop] = content

    description = soup.find("meta", attrs={"name": "description"})
    content = (description.get("content") or "").strip() if description else ""
    if content:
        info["description"] = content

    if soup.title and soup.title.string:
        title = soup.title.string.strip()
        if title:
            info["title"] = title
    return info
