"""Article content extraction from web pages."""

import re
from typing import Iterable, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from newsletter_studio.infrastructure.api_clients import PageFetcher
from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.error_handling import InsufficientContentError
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.content import UNTITLED, ExtractedPage


NON_CONTENT_TAGS = [
    "script", "style", "noscript", "template", "svg", "nav", "header",
    "footer", "aside", "form", "iframe", "button",
]

# class or id tokens that start a boilerplate block, e.g. "ad", "share-bar", "cookie_notice"
BOILERPLATE_PATTERN = re.compile(
    r"^(ads?|advert\w*|banner|cookie\w*|promo\w*|sponsor\w*|"
    r"share|social|sidebar|popup|modal)($|[_-])",
    re.IGNORECASE,
)

CONTENT_SELECTORS = [
    "article",
    "main",
    "[role='main']",
    ".post-content",
    ".article-content",
    ".article-body",
    ".entry-content",
    ".story-body",
    ".content",
    "#content",
]

CONTENT_CONTAINER_SELECTOR = ", ".join(CONTENT_SELECTORS)

WHITESPACE_PATTERN = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def _meta_content(soup: BeautifulSoup, prop: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"property": prop}) or soup.find("meta", attrs={"name": prop})
    if tag and tag.get("content"):
        content = tag["content"].strip()
        return content or None
    return None


def _dimension(value: Optional[str]) -> int:
    """Parse a width/height attribute such as '640' or '640px'."""
    if not value:
        return 0
    match = re.match(r"\s*(\d+)", str(value))
    return int(match.group(1)) if match else 0


def resolve_title(soup: BeautifulSoup) -> str:
    """<title>, then first <h1>, then og:title, else 'Untitled'."""
    if soup.title and soup.title.string and soup.title.string.strip():
        return collapse_whitespace(soup.title.string)
    h1 = soup.find("h1")
    if h1:
        text = collapse_whitespace(h1.get_text(" "))
        if text:
            return text
    og_title = _meta_content(soup, "og:title")
    if og_title:
        return collapse_whitespace(og_title)
    return UNTITLED


def resolve_image(soup: BeautifulSoup, page_url: str, min_dimension: int = 200) -> Optional[str]:
    """og:image, else the first <img> declaring width or height above min_dimension."""
    og_image = _meta_content(soup, "og:image")
    if og_image:
        return urljoin(page_url, og_image)

    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src")
        if not src:
            continue
        if _dimension(img.get("width")) > min_dimension or _dimension(img.get("height")) > min_dimension:
            return urljoin(page_url, src.strip())
    return None


def is_boilerplate(element: Tag) -> bool:
    """True when one of the element's class or id tokens is a boilerplate marker."""
    attrs = element.attrs or {}
    tokens = list(attrs.get("class") or [])
    if attrs.get("id"):
        tokens.append(str(attrs["id"]))
    return any(BOILERPLATE_PATTERN.match(token) for token in tokens)


def strip_boilerplate(soup: BeautifulSoup) -> None:
    """Remove non-content markup in place."""
    for element in soup(NON_CONTENT_TAGS):
        element.decompose()

    for element in soup.find_all(True):
        if not isinstance(element, Tag) or element.decomposed:
            continue
        if element.name in ("html", "body", "article", "main"):
            continue
        if not is_boilerplate(element):
            continue
        # layout wrappers such as "ad-free" or "sidebar-layout" may hold the article
        if element.select_one(CONTENT_CONTAINER_SELECTOR):
            continue
        element.decompose()


class ContentExtractor(LoggerMixin):
    """Fetches article pages and derives title, lead image and body text."""

    def __init__(
        self,
        fetcher: Optional[PageFetcher] = None,
        config: Optional[ApplicationConfig] = None,
    ):
        self.config = config or ApplicationConfig()
        self.fetcher = fetcher or PageFetcher(
            user_agent=self.config.user_agent,
            timeout=self.config.request_timeout,
        )

    async def extract(self, url: str) -> ExtractedPage:
        """Fetch a URL and extract its content.

        Raises:
            ValidationError: If the URL is not http(s)
            UpstreamFetchError: If the page could not be fetched
            InsufficientContentError: If too little text remains after cleaning
        """
        html = await self.fetcher.fetch(url)
        return self.extract_from_html(html, url)

    def extract_from_html(self, html: str, url: str) -> ExtractedPage:
        """Extract content from already-fetched HTML."""
        soup = BeautifulSoup(html or "", "html.parser")

        # title and image come from the full document, before stripping
        title = resolve_title(soup)
        image_url = resolve_image(soup, url, self.config.min_image_dimension)

        strip_boilerplate(soup)
        text, method = self._resolve_body_text(soup)

        if len(text) < self.config.min_content_length:
            self.logger.warning(
                "Insufficient content extracted",
                url=url,
                length=len(text),
                minimum=self.config.min_content_length,
            )
            raise InsufficientContentError(
                "Could not extract enough readable content from the page to summarize.",
                details={"url": url, "length": len(text)},
            )

        self.logger.info(
            "Content extracted",
            url=url,
            method=method,
            length=len(text),
            has_image=image_url is not None,
        )
        return ExtractedPage(
            url=url,
            title=title,
            text=text,
            image_url=image_url,
            extraction_method=method,
        )

    def _resolve_body_text(self, soup: BeautifulSoup) -> tuple:
        for selector in CONTENT_SELECTORS:
            for container in soup.select(selector):
                text = collapse_whitespace(container.get_text(" "))
                if len(text) >= self.config.container_min_length:
                    return text, "container"

        paragraphs = self._long_paragraphs(soup.find_all("p"))
        text = collapse_whitespace(" ".join(paragraphs))
        if len(text) >= self.config.container_min_length:
            return text, "paragraphs"

        root = soup.body or soup
        return collapse_whitespace(root.get_text(" ")), "full_page"

    def _long_paragraphs(self, paragraphs: Iterable[Tag]) -> list:
        kept = []
        for paragraph in paragraphs:
            text = collapse_whitespace(paragraph.get_text(" "))
            if len(text) > self.config.paragraph_min_length:
                kept.append(text)
        return kept
