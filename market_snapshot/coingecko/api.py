from __future__ import annotations

from dataclasses import dataclass
from http.client import HTTPException
from typing import Any, Dict, List
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen
import json

from .errors import MalformedPage, SourceUnavailable


COINGECKO_MARKETS = "https://api.coingecko.com/api/v3/coins/markets"

MarketRecord = Dict[str, Any]


def build_markets_url(base_url: str, vs_currency: str, page_size: int, page: int) -> str:
    qs = urlencode(
        {
            "vs_currency": vs_currency,
            "order": "market_cap_desc",
            "per_page": page_size,
            "page": page,
        }
    )
    return f"{base_url}?{qs}"


def fetch_page(
    page: int,
    *,
    base_url: str = COINGECKO_MARKETS,
    vs_currency: str = "usd",
    page_size: int = 250,
    timeout: float = 15.0,
) -> Any:
    """Fetch one page of /coins/markets and return the decoded JSON payload.

    The payload is returned as-is; callers decide whether it is a usable page.
    Raises SourceUnavailable on any non-2xx status or transport failure and
    MalformedPage when the body is not JSON.
    """
    url = build_markets_url(base_url, vs_currency, page_size, page)
    req = Request(url, headers={"User-Agent": "market-snapshot/1.0", "Accept": "application/json"})
    try:
        with urlopen(req, timeout=timeout) as resp:
            body = resp.read()
    except HTTPError as e:
        raise SourceUnavailable(f"CoinGecko API error: {e.code} {e.reason} (page={page})") from e
    except URLError as e:
        raise SourceUnavailable(f"CoinGecko API unreachable: {e.reason} (page={page})") from e
    except (OSError, HTTPException) as e:
        # timeouts and resets while reading the body
        raise SourceUnavailable(f"CoinGecko API unreachable: {e} (page={page})") from e
    try:
        return json.loads(body)
    except ValueError as e:
        raise MalformedPage(f"page {page} is not valid JSON: {e}") from e


@dataclass(frozen=True)
class CoinGeckoSource:
    """Market data source bound to one configuration."""

    base_url: str = COINGECKO_MARKETS
    vs_currency: str = "usd"
    page_size: int = 250
    timeout: float = 15.0

    def fetch_page(self, page: int) -> Any:
        return fetch_page(
            page,
            base_url=self.base_url,
            vs_currency=self.vs_currency,
            page_size=self.page_size,
            timeout=self.timeout,
        )


def as_page(payload: Any) -> List[MarketRecord]:
    """Return payload as a page of records.

    Anything other than a list of JSON objects is an empty page.
    """
    if not isinstance(payload, list):
        return []
    if not all(isinstance(row, dict) for row in payload):
        return []
    return payload
