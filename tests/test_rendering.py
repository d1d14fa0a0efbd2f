import pytest
from bs4 import BeautifulSoup

from newsletter_studio.infrastructure.error_handling import ValidationError
from newsletter_studio.models.newsletter import Article, ContentType, NewsletterDraft, StyleTokens
from newsletter_studio.services.rendering import (
    SOURCE_LINK_TEXT,
    NewsletterRenderer,
    render_newsletter,
    sanitize_html,
    text_to_html,
)


@pytest.fixture
def renderer(config) -> NewsletterRenderer:
    return NewsletterRenderer(config=config)


def test_render_is_deterministic_for_fixed_year(renderer, draft) -> None:
    styles = StyleTokens(card="bg-gray-900", main_title="text-blue-400")

    first = renderer.render(draft, styles, year=2024)
    second = renderer.render(draft, styles, year=2024)

    assert first == second


def test_render_produces_standalone_document(renderer, draft) -> None:
    html = renderer.render(draft, year=2024)

    assert html.lstrip().lower().startswith("<!doctype html>")
    soup = BeautifulSoup(html, "html.parser")
    assert soup.title.string == "Acme Digest"
    assert soup.find("h1").get_text() == "Acme Digest"
    assert "This week at Acme" in html
    assert "2024" in soup.find("footer").get_text()
    assert "Acme Weekly" in soup.find("footer").get_text()


def test_empty_draft_cannot_be_rendered(renderer) -> None:
    with pytest.raises(ValidationError):
        renderer.render(NewsletterDraft(title="Empty", subject="Nothing", articles=[]), year=2024)


def test_style_tokens_are_appended_to_base_classes(renderer, draft) -> None:
    styles = StyleTokens.from_mapping({
        "card": "bg-gray-900 text-gray-100",
        "mainTitle": "text-blue-400",
        "articleTitle": "text-blue-300",
    })

    soup = BeautifulSoup(renderer.render(draft, styles, year=2024), "html.parser")

    title_classes = soup.find("h1")["class"]
    assert "newsletter-title" in title_classes
    assert "text-blue-400" in title_classes
    for heading in soup.find_all("h3"):
        assert "article-title" in heading["class"]
        assert "text-blue-300" in heading["class"]


def test_missing_style_tokens_leave_default_styling(renderer, draft) -> None:
    plain = BeautifulSoup(renderer.render(draft, year=2024), "html.parser")
    empty = BeautifulSoup(renderer.render(draft, StyleTokens(), year=2024), "html.parser")

    assert plain.find("h1")["class"] == empty.find("h1")["class"]


def test_articles_render_in_order_with_source_link_only_when_url(renderer, draft) -> None:
    soup = BeautifulSoup(renderer.render(draft, year=2024), "html.parser")

    titles = [h3.get_text() for h3 in soup.find_all("h3")]
    assert titles == ["Rockets, revisited", "Anvils in the wild"]

    links = soup.find_all("a", class_="article-link")
    assert len(links) == 1
    assert links[0]["href"] == "https://news.example/rockets"
    assert links[0].get_text() == SOURCE_LINK_TEXT

    images = soup.select(".article-image img")
    assert [img["src"] for img in images] == ["https://news.example/rocket.jpg"]


def test_markdown_content_is_converted(renderer, draft) -> None:
    soup = BeautifulSoup(renderer.render(draft, year=2024), "html.parser")
    body = soup.find_all("div", class_="article-body")[0]

    assert body.find("strong").get_text() == "new"
    assert [li.get_text() for li in body.find_all("li")] == ["faster", "cheaper"]


def test_html_content_is_inserted_as_markup(renderer, draft) -> None:
    soup = BeautifulSoup(renderer.render(draft, year=2024), "html.parser")
    body = soup.find_all("div", class_="article-body")[1]

    assert body.find("em").get_text() == "anvils"


def test_html_content_is_sanitized(renderer) -> None:
    draft = NewsletterDraft(
        title="T",
        subject="S",
        articles=[Article(
            title="Unsafe",
            content='<p onclick="steal()">Hi<script>alert(1)</script></p><a href="javascript:evil()">x</a>',
            content_type=ContentType.HTML,
        )],
    )

    html = renderer.render(draft, year=2024)

    assert "alert(1)" not in html
    assert "onclick" not in html
    assert "javascript:" not in html
    assert "<p>Hi</p>" in html


def test_sanitizing_can_be_disabled(config) -> None:
    config.sanitize_html_content = False
    renderer = NewsletterRenderer(config=config)
    article = Article(title="Raw", content='<b onmouseover="x()">raw</b>', content_type=ContentType.HTML)

    assert 'onmouseover="x()"' in str(renderer.render_article_body(article))


def test_text_content_is_escaped(renderer) -> None:
    article = Article(title="Text", content="1 < 2 & 3\n\nsecond paragraph", content_type=ContentType.TEXT)

    body = str(renderer.render_article_body(article))

    assert body == "<p>1 &lt; 2 &amp; 3</p>\n<p>second paragraph</p>"


def test_title_is_escaped(renderer, draft) -> None:
    draft.title = "<b>Bold</b> news"

    html = renderer.render(draft, year=2024)

    assert "&lt;b&gt;Bold&lt;/b&gt; news" in html


def test_tailwind_script_only_in_preview(renderer, draft) -> None:
    assert "cdn.tailwindcss.com" in renderer.render(draft, year=2024)
    assert "cdn.tailwindcss.com" not in renderer.render_email(draft, year=2024)


def test_email_variant_inlines_css(renderer, draft) -> None:
    soup = BeautifulSoup(renderer.render_email(draft, year=2024), "html.parser")

    assert "font-weight" in soup.find("h1").get("style", "")


def test_plain_text_version(renderer, draft) -> None:
    text = renderer.render_text(draft)

    assert text.startswith("Acme Digest\n===========")
    assert "Rockets, revisited" in text
    assert f"{SOURCE_LINK_TEXT}: https://news.example/rockets" in text
    assert "<p>" not in text


def test_render_newsletter_helper(config, draft) -> None:
    assert render_newsletter(draft, year=2024, config=config) == NewsletterRenderer(config=config).render(
        draft, year=2024
    )


def test_sanitize_html_keeps_safe_markup() -> None:
    assert sanitize_html('<a href="https://ok.example">ok</a>') == '<a href="https://ok.example">ok</a>'


@pytest.mark.parametrize(
    "href",
    ["java&#09;script:evil()", "java\nscript:evil()", " \x01javascript:evil()", "JaVa Script:evil()"],
)
def test_sanitize_html_drops_obfuscated_script_urls(href) -> None:
    assert sanitize_html(f'<a href="{href}">x</a>') == "<a>x</a>"


def test_text_to_html_keeps_line_breaks() -> None:
    assert text_to_html("line one\nline two") == "<p>line one<br>line two</p>"
