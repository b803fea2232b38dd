from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

NO_QUERY_TEXT = "No search terms were provided."
FALLBACK_TEXT = (
    "Sorry, we couldn't find any detailed information for this topic on Wikipedia. "
    "The topic may be too specific or not have a direct article."
)
EXTRACT_CHARS = 500


class EnrichmentUnavailable(Exception):
    """No usable text for one candidate. Never leaves this module."""


class EnrichmentFetcher:
    """
    Best-effort lookup of a short explanatory text.

    Candidates are tried in order; the first non-empty extract wins. All
    failures are logged and swallowed, and `fetch` falls back to a fixed
    sentence. Instances hold no per-call state, so concurrent fetches are
    independent.
    """

    def __init__(self, client: httpx.AsyncClient, api_url: str) -> None:
        self.client = client
        self.api_url = api_url

    async def fetch(self, candidates: Sequence[str]) -> str:
        queries = [c.strip() for c in (candidates or []) if c and c.strip()]
        if not queries:
            return NO_QUERY_TEXT

        for query in queries:
            try:
                return await self._lookup(query)
            except EnrichmentUnavailable as e:
                logger.info("no enrichment for %r: %s", query, e)
            except Exception:
                logger.exception("enrichment lookup crashed for %r", query)
        return FALLBACK_TEXT

    async def _lookup(self, query: str) -> str:
        title = await self._top_title(query)
        extract = await self._extract(title)
        if not extract:
            raise EnrichmentUnavailable(f"empty extract for {title!r}")
        return extract

    async def _get_json(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            r = await self.client.get(self.api_url, params={**params, "format": "json"})
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPError as e:
            raise EnrichmentUnavailable(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise EnrichmentUnavailable("response was not JSON") from e

        if not isinstance(data, dict):
            raise EnrichmentUnavailable("unexpected response shape")
        err = data.get("error")
        if err:
            info = err.get("info") if isinstance(err, dict) else err
            raise EnrichmentUnavailable(f"api error: {info}")
        return data

    async def _top_title(self, query: str) -> str:
        data = await self._get_json({"action": "query", "list": "search", "srsearch": query})
        hits = (data.get("query") or {}).get("search") or []
        if not hits or not isinstance(hits[0], dict) or not hits[0].get("title"):
            raise EnrichmentUnavailable("no search results")
        return str(hits[0]["title"])

    async def _extract(self, title: str) -> Optional[str]:
        data = await self._get_json(
            {
                "action": "query",
                "prop": "extracts",
                "exchars": EXTRACT_CHARS,
                "explaintext": 1,
                "titles": title,
            }
        )
        pages = (data.get("query") or {}).get("pages") or {}
        if not isinstance(pages, dict):
            raise EnrichmentUnavailable("unexpected pages shape")
        for page in pages.values():
            if isinstance(page, dict):
                text = (page.get("extract") or "").strip()
                if text:
                    return text
        return None
