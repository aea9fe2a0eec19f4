import httpx
from typing import Any, Dict, List, Optional

from shared.conventions.records import EventRecord
from shared.logging.logger import get_logger

log = get_logger("allcpp.api.search")

COVER_REFERER = "https://cp.allcpp.cn/"

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
}


class ConventionSearchClient:
    """
    Client for the convention search backend.

    - search(): one GET per keyword; a non-200 body code or an empty result
      list both mean "no results". Transport and HTTP status errors propagate.
    - fetch_cover(): best-effort cover image download, never raises.
    """

    def __init__(
        self,
        api_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        if not api_url:
            raise RuntimeError("Search api_url is required")

        self.api_url = api_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=DEFAULT_HEADERS,
            follow_redirects=True,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def close(self) -> None:
        if not self._owns_client:
            return
        try:
            await self._client.aclose()
        except Exception as e:
            log.debug(f"Search client close error ignored: {e}")

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    async def search(self, keyword: str) -> List[EventRecord]:
        resp = await self._client.get(self.api_url, params={"msg": keyword})
        resp.raise_for_status()

        body = resp.json()
        if not isinstance(body, dict):
            log.warning(f"Search returned non-object payload for {keyword!r}")
            return []

        if body.get("code") != 200:
            log.info(f"Search for {keyword!r} returned code={body.get('code')}")
            return []

        return self._parse_records(body.get("data"), keyword)

    @staticmethod
    def _parse_records(data: Any, keyword: str) -> List[EventRecord]:
        if not isinstance(data, list):
            return []

        records: List[EventRecord] = []
        for item in data:
            try:
                records.append(EventRecord.from_payload(item))
            except ValueError as e:
                log.warning(f"Skipping malformed record for {keyword!r}: {e}")

        log.debug(f"Search for {keyword!r} yielded {len(records)} record(s)")
        return records

    # ------------------------------------------------------------------ #
    # Covers
    # ------------------------------------------------------------------ #

    async def fetch_cover(self, url: Optional[str]) -> Optional[bytes]:
        if not url:
            return None

        try:
            resp = await self._client.get(url, headers={"Referer": COVER_REFERER})
            resp.raise_for_status()
        except Exception as e:
            log.warning(f"Cover fetch failed for {url}: {e}")
            return None

        return resp.content or None

