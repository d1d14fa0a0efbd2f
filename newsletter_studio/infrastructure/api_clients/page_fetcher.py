"""HTTP client for fetching article pages."""

import asyncio
from typing import Optional
from urllib.parse import urlparse

import aiohttp
import structlog

from newsletter_studio.infrastructure.config import DEFAULT_USER_AGENT
from newsletter_studio.infrastructure.error_handling import UpstreamFetchError, ValidationError


def validate_article_url(url: Optional[str]) -> str:
    """Return the trimmed URL or raise ValidationError if it is not http(s)."""
    if not url or not isinstance(url, str) or not url.strip():
        raise ValidationError("URL is required.")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Not a valid http(s) URL: {url}")
    return url


class PageFetcher:
    """Fetches HTML pages with a browser-like User-Agent."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 20.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the page fetcher.

        Args:
            user_agent: User-Agent header sent to origin servers
            timeout: Total request timeout in seconds
            session: Optional shared session; one is created per request otherwise
        """
        self.logger = structlog.get_logger(__name__)
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session = session
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def fetch(self, url: str) -> str:
        """Fetch a page and return its decoded HTML.

        Raises:
            UpstreamFetchError: If the origin is unreachable or answers non-2xx
        """
        url = validate_article_url(url)
        try:
            if self.session is not None:
                return await self._get(self.session, url)
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                return await self._get(session, url)
        except UpstreamFetchError:
            raise
        except asyncio.TimeoutError as e:
            self.logger.warning("Page fetch timed out", url=url)
            raise UpstreamFetchError(f"Timed out fetching {url}") from e
        except aiohttp.ClientError as e:
            self.logger.warning("Page fetch failed", url=url, error=str(e))
            raise UpstreamFetchError(f"Failed to fetch content from {url}: {e}") from e

    async def _get(self, session: aiohttp.ClientSession, url: str) -> str:
        async with session.get(
            url,
            headers=self.headers,
            timeout=self.timeout,
            allow_redirects=True,
        ) as response:
            if response.status < 200 or response.status >= 300:
                raise UpstreamFetchError(
                    f"Failed to fetch content from {url}: {response.status} {response.reason}",
                    status=response.status,
                )
            html = await response.text(errors="replace")
            self.logger.debug(
                "Fetched page",
                url=url,
                status=response.status,
                size_kb=round(len(html) / 1024, 1),
            )
            return html
