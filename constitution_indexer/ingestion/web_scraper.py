"""
Web Scraper for the Planalto constitution page.

Fetches the compiled constitution HTML:
- Fixed timeout and browser-like headers
- Body decoded as latin-1 (the encoding the page is published in)
- Bounded retries with exponential backoff (tenacity)
- Optional HTML cache consulted before and filled after the request
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import requests
from tenacity import RetryError, Retrying, stop_after_attempt, wait_exponential

from ..errors import FetchError
from .html_cache import HtmlCache

logger = logging.getLogger(__name__)

CONSTITUTION_URL = "https://www.planalto.gov.br/ccivil_03/constituicao/ConstituicaoCompilado.htm"


@dataclass
class FetchConfig:
    """Configuration for fetching the source document."""
    url: str = CONSTITUTION_URL
    timeout_seconds: int = 30
    encoding: str = "latin-1"
    max_attempts: int = 3
    backoff_seconds: float = 1.0  # Exponential wait multiplier between attempts
    headers: dict = field(default_factory=lambda: {
        'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        'Accept-Language': 'pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7',
    })


class ConstitutionFetcher:
    """
    Retrieve the raw constitution HTML.

    Usage:
        fetcher = ConstitutionFetcher(FetchConfig(), cache=HtmlCache())
        html = fetcher.fetch()
    """

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        cache: Optional[HtmlCache] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or FetchConfig()
        self.cache = cache
        self.session = session or requests.Session()

    def _request(self, url: str) -> str:
        response = self.session.get(
            url,
            headers=self.config.headers,
            timeout=self.config.timeout_seconds,
        )
        response.raise_for_status()
        return response.content.decode(self.config.encoding, errors="replace")

    def fetch(self, url: Optional[str] = None) -> str:
        """
        Fetch the document, using the cache when configured.

        Args:
            url: Document locator (defaults to the configured URL)

        Returns:
            Decoded HTML text

        Raises:
            FetchError: after all attempts failed
        """
        url = url or self.config.url

        if self.cache is not None:
            cached = self.cache.get(url)
            if cached is not None:
                return cached

        logger.info(f"Fetching {url}")
        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(multiplier=self.config.backoff_seconds, max=30),
            reraise=False,
            before_sleep=lambda state: logger.warning(
                f"Fetch attempt {state.attempt_number} for {url} failed: "
                f"{state.outcome.exception()}"
            ),
        )
        try:
            html = retrying(self._request, url)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error(f"Failed to fetch {url} after {self.config.max_attempts} attempts: {cause}")
            raise FetchError(f"Failed to fetch {url}: {cause}") from cause

        logger.info(f"Fetched {len(html)} characters from {url}")

        if self.cache is not None:
            self.cache.set(url, html)
        return html
