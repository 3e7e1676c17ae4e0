# audiotour/services/encyclopedia.py
# Wikipedia keyword search and page summaries.

import re
from typing import Any, List, Optional
from urllib.parse import quote

from pydantic import ValidationError

from audiotour.core.errors import ProviderError
from audiotour.models.domain import EncyclopediaHit, EncyclopediaSummary
from audiotour.services.http_client import ProviderClient

_TAG_RE = re.compile(r"<[^>]+>")


def strip_markup(snippet: str) -> str:
    """Search snippets come with <span class="searchmatch"> highlighting."""
    return _TAG_RE.sub("", snippet or "")


class EncyclopediaClient(ProviderClient):
    provider_name = "wikipedia"

    async def search(self, query: str, limit: int = 3) -> List[EncyclopediaHit]:
        data = await self.get_json(
            self.settings.WIKIPEDIA_API_URL,
            params={
                "action": "query",
                "list": "search",
                "format": "json",
                "srlimit": limit,
                "srsearch": query,
            },
        )
        if not isinstance(data, dict):
            raise ProviderError(self.provider_name, "malformed search payload")
        block = data.get("query")
        if block is None:
            return []
        if not isinstance(block, dict):
            raise ProviderError(self.provider_name, "malformed search payload")
        results = block.get("search")
        if results is None:
            return []
        if not isinstance(results, list):
            raise ProviderError(self.provider_name, "malformed search payload")

        hits: List[EncyclopediaHit] = []
        for r in results[:limit]:
            if not isinstance(r, dict) or not isinstance(r.get("title"), str) or not r["title"]:
                continue
            snippet = r.get("snippet")
            hits.append(EncyclopediaHit(title=r["title"], snippet=strip_markup(snippet if isinstance(snippet, str) else "")))
        return hits

    async def summary(self, title: str) -> EncyclopediaSummary:
        data = await self.get_json(
            f"{self.settings.WIKIPEDIA_REST_URL}/page/summary/{quote(title, safe='')}"
        )
        if not isinstance(data, dict):
            raise ProviderError(self.provider_name, "malformed summary payload")

        extract = data.get("extract")
        try:
            return EncyclopediaSummary(
                title=title,
                url=_page_url(data.get("content_urls")),
                extract=extract if isinstance(extract, str) and extract.strip() else None,
                is_disambiguation=data.get("type") == "disambiguation",
            )
        except ValidationError as e:
            raise ProviderError(self.provider_name, f"malformed summary payload: {e}")


def _page_url(content_urls: Any) -> Optional[str]:
    """Desktop page URL, else the mobile one."""
    if not isinstance(content_urls, dict):
        return None
    for variant in ("desktop", "mobile"):
        urls = content_urls.get(variant)
        page = urls.get("page") if isinstance(urls, dict) else None
        if isinstance(page, str) and page:
            return page
    return None
