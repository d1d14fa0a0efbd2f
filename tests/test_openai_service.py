import httpx
import openai
import pytest

from newsletter_studio.infrastructure.error_handling import (
    AIFormatError,
    AuthenticationError,
    UpstreamServiceError,
    ValidationError,
)
from newsletter_studio.services.openai_service import INVALID_KEY_MESSAGE, OpenAIService

from tests.conftest import FakeOpenAIClient


def provider_error(cls, status: int, message: str):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return cls(message, response=response, body=None)


def make_service(config, *responses) -> OpenAIService:
    return OpenAIService("sk-test", config=config, client=FakeOpenAIClient(*responses))


async def test_summary_from_raw_json(config) -> None:
    service = make_service(config, '{"title": "Rockets", "summary": "Acme launched a rocket."}')

    result = await service.summarize_article("article text", fallback_title="Page title")

    assert result == {"title": "Rockets", "summary": "Acme launched a rocket."}
    call = service.client.calls[0]
    assert call["response_format"] == {"type": "json_object"}
    assert call["model"] == config.openai_model


async def test_summary_from_fenced_json_uses_fallback_title(config) -> None:
    service = make_service(config, '```json\n{"summary": "Acme launched a rocket."}\n```')

    result = await service.summarize_article("article text", fallback_title="Page title")

    assert result == {"title": "Page title", "summary": "Acme launched a rocket."}


async def test_long_input_is_truncated(config) -> None:
    config.summary_input_char_limit = 100
    service = make_service(config, '{"summary": "Short."}')

    await service.summarize_article("x" * 500)

    prompt = service.client.calls[0]["messages"][1]["content"]
    assert "x" * 100 in prompt
    assert "x" * 101 not in prompt


async def test_summary_without_summary_key_is_format_error(config) -> None:
    service = make_service(config, '{"title": "No summary here"}')

    with pytest.raises(AIFormatError):
        await service.summarize_article("article text")


async def test_rejected_key_is_authentication_error(config) -> None:
    service = make_service(config, provider_error(openai.AuthenticationError, 401, "Incorrect API key"))

    with pytest.raises(AuthenticationError) as excinfo:
        await service.summarize_article("article text")

    assert excinfo.value.message == INVALID_KEY_MESSAGE
    assert excinfo.value.status_code == 401


async def test_json_mode_rejection_retries_without_it(config) -> None:
    service = make_service(
        config,
        provider_error(openai.BadRequestError, 400, "Invalid parameter: 'response_format' is not supported"),
        '```json\n{"summary": "Acme launched a rocket."}\n```',
    )

    result = await service.summarize_article("article text")

    assert result["summary"] == "Acme launched a rocket."
    assert "response_format" in service.client.calls[0]
    assert "response_format" not in service.client.calls[1]


async def test_other_provider_errors_are_upstream_errors(config) -> None:
    service = make_service(config, provider_error(openai.InternalServerError, 500, "server exploded"))

    with pytest.raises(UpstreamServiceError):
        await service.summarize_article("article text")


async def test_style_tokens_ignore_unknown_and_non_string_values(config) -> None:
    service = make_service(
        config,
        '{"card": "bg-gray-900", "mainTitle": "text-blue-400", "footer": 7, "extra": "nope"}',
    )

    tokens = await service.generate_style_tokens("dark mode")

    assert tokens.to_dict() == {"card": "bg-gray-900", "mainTitle": "text-blue-400"}
    assert "dark mode" in service.client.calls[0]["messages"][1]["content"]


async def test_style_response_must_be_an_object(config) -> None:
    service = make_service(config, "Sorry, I can only help with CSS.")

    with pytest.raises(AIFormatError):
        await service.generate_style_tokens("dark mode")


async def test_blank_design_prompt(config) -> None:
    service = make_service(config)

    with pytest.raises(ValidationError):
        await service.generate_style_tokens("   ")


def test_api_key_is_required(config) -> None:
    with pytest.raises(ValidationError):
        OpenAIService("", config=config)
