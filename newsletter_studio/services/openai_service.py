"""OpenAI service for article summaries and newsletter style generation."""

from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.error_handling import (
    AIFormatError,
    AuthenticationError,
    UpstreamServiceError,
    ValidationError,
)
from newsletter_studio.infrastructure.logging import get_logger
from newsletter_studio.models.newsletter import StyleSlot, StyleTokens
from newsletter_studio.services.structured_response import extract_structured_response

logger = get_logger(__name__)

INVALID_KEY_MESSAGE = "The provided AI API Key is not valid."

SUMMARY_SYSTEM_PROMPT = (
    "You are an editor who writes concise, faithful summaries of articles "
    "for an email newsletter."
)

STYLE_SYSTEM_PROMPT = "You are a web design assistant specializing in Tailwind CSS."

STYLE_EXAMPLE = """{
  "card": "bg-gray-900 text-gray-100 border border-gray-700",
  "header": "bg-gray-800 border-b border-gray-700",
  "mainTitle": "text-blue-400",
  "articleContainer": "p-4 rounded-lg bg-gray-800/50",
  "articleTitle": "text-blue-300",
  "footer": "bg-gray-950 border-t border-gray-800"
}"""


def build_summary_prompt(text: str) -> str:
    return f"""
Summarize the following article in 3-4 sentences.
Write the summary in the same language as the article.
Also give the article a short, accurate title in that language.

Return only a single JSON object with this structure:
{{"title": "Article title", "summary": "The 3-4 sentence summary."}}

Article:
\"\"\"
{text}
\"\"\"
"""


def build_style_prompt(design_prompt: str) -> str:
    keys = ", ".join(f'"{slot.value}"' for slot in StyleSlot)
    return f"""
Based on the user's request, generate a JSON object containing Tailwind CSS utility classes to style a newsletter.
The JSON object should have the following keys: {keys}.
Only provide Tailwind classes as string values for these keys. Do not add any other properties.
User's design request: "{design_prompt}"

Example response for a "dark mode" request:
{STYLE_EXAMPLE}
"""


class OpenAIService:
    """Service for OpenAI LLM interactions.

    The API key belongs to the end user and is supplied per request; it is
    only held for the lifetime of this object.
    """

    def __init__(
        self,
        api_key: str,
        config: Optional[ApplicationConfig] = None,
        client: Any = None,
    ):
        if not api_key or not api_key.strip():
            raise ValidationError("API Key is required for AI services.")
        self.config = config or ApplicationConfig()
        self.client = client or AsyncOpenAI(
            api_key=api_key.strip(),
            timeout=self.config.ai_timeout,
        )

    async def _complete(self, messages: List[Dict[str, str]], json_mode: bool = True) -> str:
        """Run a chat completion and return the text of the first choice."""
        kwargs: Dict[str, Any] = {
            "model": self.config.openai_model,
            "messages": messages,
            "max_tokens": self.config.openai_max_tokens,
            "temperature": self.config.openai_temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.AuthenticationError as e:
            logger.warning("AI provider rejected API key", error=str(e))
            raise AuthenticationError(INVALID_KEY_MESSAGE) from e
        except openai.BadRequestError as e:
            if json_mode and "response_format" in str(e):
                logger.info("JSON mode not supported by model, retrying without it")
                return await self._complete(messages, json_mode=False)
            logger.error("AI request rejected", error=str(e))
            raise UpstreamServiceError(f"AI request was rejected: {e}") from e
        except openai.APITimeoutError as e:
            logger.error("AI request timed out", error=str(e))
            raise UpstreamServiceError("The AI service timed out. Please try again.") from e
        except openai.OpenAIError as e:
            logger.error("OpenAI API call failed", error=str(e))
            raise UpstreamServiceError(f"The AI service failed: {e}") from e

        if not response.choices:
            raise AIFormatError("AI returned no choices.")
        content = response.choices[0].message.content or ""
        logger.debug(
            "AI completion received",
            model=self.config.openai_model,
            tokens_used=response.usage.total_tokens if getattr(response, "usage", None) else 0,
        )
        return content

    async def summarize_article(self, text: str, fallback_title: str = "") -> Dict[str, str]:
        """Summarize cleaned article text.

        Returns:
            ``{"title": ..., "summary": ...}``; the title falls back to
            ``fallback_title`` when the model omits it.

        Raises:
            AuthenticationError, AIFormatError, UpstreamServiceError
        """
        limit = self.config.summary_input_char_limit
        truncated = text[:limit]
        if len(text) > limit:
            logger.info("Article text truncated for summarization", original=len(text), limit=limit)

        response_text = await self._complete([
            {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
            {"role": "user", "content": build_summary_prompt(truncated)},
        ])
        data = extract_structured_response(response_text, required_keys=["summary"])

        summary = data["summary"]
        if not isinstance(summary, str):
            raise AIFormatError("AI returned a summary that is not text.")
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            title = fallback_title

        logger.info("Generated article summary", summary_length=len(summary))
        return {"title": title.strip(), "summary": summary.strip()}

    async def generate_style_tokens(self, design_prompt: str) -> StyleTokens:
        """Turn a free-text design request into style tokens.

        Raises:
            ValidationError, AuthenticationError, AIFormatError, UpstreamServiceError
        """
        if not design_prompt or not design_prompt.strip():
            raise ValidationError("Design prompt is required.")

        response_text = await self._complete([
            {"role": "system", "content": STYLE_SYSTEM_PROMPT},
            {"role": "user", "content": build_style_prompt(design_prompt.strip())},
        ])
        data = extract_structured_response(response_text)
        tokens = StyleTokens.from_mapping(data)

        logger.info("Generated style tokens", slots=sorted(tokens.to_dict()))
        return tokens
