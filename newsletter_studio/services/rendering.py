"""Newsletter rendering into standalone HTML documents."""

import html as html_lib
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import markdown
from bs4 import BeautifulSoup
from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup
from premailer import Premailer

from newsletter_studio.infrastructure.config import ApplicationConfig, get_templates_dir
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.newsletter import (
    Article,
    ContentType,
    NewsletterDraft,
    StyleSlot,
    StyleTokens,
)

TEMPLATE_NAME = "newsletter.html"
SOURCE_LINK_TEXT = "Read the source article"

# base classes per slot; style tokens are appended to these
BASE_CLASSES = {
    StyleSlot.CARD: "newsletter-card w-full max-w-2xl mx-auto shadow-lg bg-white rounded-lg overflow-hidden",
    StyleSlot.HEADER: "newsletter-header p-6",
    StyleSlot.MAIN_TITLE: "newsletter-title text-3xl font-bold text-center",
    StyleSlot.ARTICLE_CONTAINER: "article py-4",
    StyleSlot.ARTICLE_TITLE: "article-title text-xl font-semibold mb-2",
    StyleSlot.FOOTER: "newsletter-footer text-center text-xs text-gray-400 pt-6 border-t border-gray-200",
}

UNSAFE_TAGS = ["script", "iframe", "object", "embed", "frame", "frameset", "base", "meta", "link"]
URL_ATTRIBUTES = ("href", "src", "action", "formaction", "xlink:href")
UNSAFE_SCHEMES = ("javascript:", "vbscript:", "data:text/html")
# browsers ignore whitespace and control characters inside a URL scheme
URL_NOISE_PATTERN = re.compile(r"[\x00-\x20\x7f]+")


def merge_classes(*parts: Optional[str]) -> str:
    """Join class strings, skipping empty ones."""
    return " ".join(part.strip() for part in parts if part and part.strip())


def sanitize_html(content: str) -> str:
    """Strip active content from user-authored HTML.

    Removes script-like elements, ``on*`` event handler attributes and
    ``javascript:`` URLs. Everything else is kept as written.
    """
    soup = BeautifulSoup(content, "html.parser")
    for element in soup(UNSAFE_TAGS):
        element.decompose()
    for element in soup.find_all(True):
        for attr in list(element.attrs):
            if attr.lower().startswith("on"):
                del element.attrs[attr]
            elif attr.lower() in URL_ATTRIBUTES:
                value = URL_NOISE_PATTERN.sub("", str(element.attrs[attr])).lower()
                if value.startswith(UNSAFE_SCHEMES):
                    del element.attrs[attr]
    return str(soup)


def text_to_html(content: str) -> str:
    """Escape plain text into paragraphs separated by blank lines."""
    paragraphs = [block.strip() for block in content.replace("\r\n", "\n").split("\n\n")]
    return "\n".join(
        "<p>" + html_lib.escape(block).replace("\n", "<br>") + "</p>"
        for block in paragraphs
        if block
    )


class NewsletterRenderer(LoggerMixin):
    """Renders a NewsletterDraft plus StyleTokens into a complete HTML document."""

    def __init__(
        self,
        templates_dir: Optional[Path] = None,
        config: Optional[ApplicationConfig] = None,
    ):
        self.templates_dir = templates_dir or get_templates_dir()
        self.config = config or ApplicationConfig()
        self.jinja_env = self._setup_jinja_environment()

    def _setup_jinja_environment(self) -> Environment:
        """Set up Jinja2 environment with proper configuration."""
        return Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render_article_body(self, article: Article) -> Markup:
        """Convert an article's content into HTML according to its content type."""
        content = article.content or ""
        if article.content_type is ContentType.HTML:
            body = sanitize_html(content) if self.config.sanitize_html_content else content
        elif article.content_type is ContentType.TEXT:
            body = text_to_html(content)
        else:
            body = markdown.markdown(content, extensions=["extra", "sane_lists"])
        return Markup(body)

    def _template_context(
        self,
        draft: NewsletterDraft,
        styles: Optional[StyleTokens],
        year: Optional[int],
        include_tailwind: bool,
    ) -> Dict[str, Any]:
        styles = styles or StyleTokens()
        classes = {
            slot.name.lower(): merge_classes(base, styles.get(slot))
            for slot, base in BASE_CLASSES.items()
        }
        articles: List[Dict[str, Any]] = [
            {
                "title": article.title,
                "url": article.url,
                "image_url": article.image_url,
                "body": self.render_article_body(article),
            }
            for article in draft.articles
        ]
        return {
            "lang": "en",
            "title": draft.title,
            "subject": draft.subject,
            "articles": articles,
            "classes": classes,
            "year": year if year is not None else datetime.now().year,
            "company_name": self.config.company_name,
            "company_url": self.config.company_url,
            "source_link_text": SOURCE_LINK_TEXT,
            "include_tailwind": include_tailwind,
        }

    def render(
        self,
        draft: NewsletterDraft,
        styles: Optional[StyleTokens] = None,
        year: Optional[int] = None,
        include_tailwind: bool = True,
    ) -> str:
        """Render the preview/export document.

        Raises:
            ValidationError: If the draft has no articles or lacks title/subject
        """
        draft.ensure_sendable()
        template = self.jinja_env.get_template(TEMPLATE_NAME)
        html = template.render(**self._template_context(draft, styles, year, include_tailwind))
        self.logger.debug(
            "Rendered newsletter",
            articles=draft.article_count,
            styled_slots=len((styles or StyleTokens()).to_dict()),
            size_kb=round(len(html.encode("utf-8")) / 1024, 1),
        )
        return html

    def render_email(
        self,
        draft: NewsletterDraft,
        styles: Optional[StyleTokens] = None,
        year: Optional[int] = None,
    ) -> str:
        """Render the email variant: no script tags, CSS inlined when enabled."""
        html = self.render(draft, styles, year=year, include_tailwind=False)
        if self.config.inline_email_css:
            html = self._inline_css(html)
        return html

    def _inline_css(self, html_content: str) -> str:
        """Inline CSS styles for better email client compatibility."""
        try:
            inliner = Premailer(
                remove_classes=False,
                keep_style_tags=True,
                strip_important=False,
                disable_validation=True,
                allow_network=False,
            )
            return inliner.transform(html_content)
        except Exception as e:
            self.logger.warning("Failed to inline CSS, using original HTML", error=str(e))
            return html_content

    def render_text(self, draft: NewsletterDraft) -> str:
        """Plain-text version of the newsletter."""
        draft.ensure_sendable()
        lines = [draft.title, "=" * len(draft.title), "", draft.subject, ""]

        for article in draft.articles:
            lines.append(article.title or "Untitled")
            lines.append("-" * 40)
            body_html = str(self.render_article_body(article))
            body_text = BeautifulSoup(body_html, "html.parser").get_text("\n").strip()
            if body_text:
                lines.append(body_text)
            if article.url:
                lines.append(f"{SOURCE_LINK_TEXT}: {article.url}")
            lines.append("")

        lines.append(f"(c) {datetime.now().year} {self.config.company_name}")
        return "\n".join(lines)


def render_newsletter(
    draft: NewsletterDraft,
    styles: Optional[StyleTokens] = None,
    *,
    year: Optional[int] = None,
    config: Optional[ApplicationConfig] = None,
) -> str:
    """Render a draft with style tokens into a standalone HTML document."""
    return NewsletterRenderer(config=config).render(draft, styles, year=year)
