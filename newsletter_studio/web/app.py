"""aiohttp application exposing the newsletter operations as a JSON API."""

import json
from typing import Any, Dict

from aiohttp import web

from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.error_handling import (
    NewsletterError,
    NewsletterNotFoundError,
    ValidationError,
)
from newsletter_studio.infrastructure.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
)
from newsletter_studio.models.newsletter import StyleTokens, parse_draft
from newsletter_studio.models.subscriber import SubscribeOutcome
from newsletter_studio.services.studio import NewsletterStudio, create_studio

logger = get_logger(__name__)

STUDIO_KEY = web.AppKey("studio", NewsletterStudio)
REQUEST_ID_HEADER = "X-Request-ID"

routes = web.RouteTableDef()


@web.middleware
async def request_context_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Tag every log line of a request and echo the id back to the caller."""
    request_id = bind_request_context(
        request_id=request.headers.get(REQUEST_ID_HEADER),
        method=request.method,
        path=request.path,
    )
    try:
        response = await handler(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        clear_request_context()


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Turn every failure into a JSON error response."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except NewsletterError as e:
        logger.info(
            "Request failed",
            status=e.status_code,
            error_code=e.error_code,
            error=e.message,
        )
        return web.json_response(e.to_dict(), status=e.status_code)
    except Exception as e:
        logger.error("Unhandled error", error=str(e), exc_info=True)
        return web.json_response({"error": "An unexpected error occurred."}, status=500)


async def read_json(request: web.Request) -> Dict[str, Any]:
    """Decode a JSON object body or raise ValidationError."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Request body must be valid JSON.") from e
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object.")
    return body


def _studio(request: web.Request) -> NewsletterStudio:
    return request.app[STUDIO_KEY]


@routes.get("/health")
async def health(request: web.Request) -> web.Response:
    return web.json_response({
        "status": "ok",
        "gmailConfigured": _studio(request).config.gmail_configured,
    })


@routes.post("/api/subscribe")
async def subscribe(request: web.Request) -> web.Response:
    body = await read_json(request)
    outcome = await _studio(request).subscribe(body.get("email"))
    status = 201 if outcome is SubscribeOutcome.CREATED else 200
    return web.json_response({"message": outcome.message}, status=status)


@routes.post("/api/summarize")
async def summarize(request: web.Request) -> web.Response:
    body = await read_json(request)
    summary = await _studio(request).summarize(body.get("url"), body.get("apiKey"))
    return web.json_response(summary.to_dict())


@routes.post("/api/redesign")
async def redesign(request: web.Request) -> web.Response:
    body = await read_json(request)
    tokens = await _studio(request).redesign(body.get("designPrompt"), body.get("apiKey"))
    return web.json_response(tokens.to_dict())


@routes.post("/api/send-newsletter")
async def send_newsletter(request: web.Request) -> web.Response:
    body = await read_json(request)
    result = await _studio(request).send_single(
        body.get("to"), body.get("subject"), body.get("htmlContent")
    )
    return web.json_response({
        "message": "Email sent successfully!",
        "messageId": result.message_id,
    })


@routes.post("/api/send-bulk-newsletter")
async def send_bulk_newsletter(request: web.Request) -> web.Response:
    body = await read_json(request)
    draft = parse_draft(body.get("newsletterData"))
    styles = StyleTokens.from_mapping(body.get("aiStyles"))
    result = await _studio(request).send_bulk(draft, styles)
    return web.json_response(result.to_dict())


@routes.post("/api/render")
async def render(request: web.Request) -> web.Response:
    body = await read_json(request)
    draft = parse_draft(body.get("newsletterData"))
    styles = StyleTokens.from_mapping(body.get("aiStyles"))
    html = _studio(request).render(draft, styles)
    return web.Response(text=html, content_type="text/html", charset="utf-8")


@routes.get("/api/newsletters")
async def list_newsletters(request: web.Request) -> web.Response:
    newsletters = await _studio(request).list_newsletters()
    return web.json_response([newsletter.to_dict() for newsletter in newsletters])


@routes.post("/api/newsletters")
async def create_newsletter(request: web.Request) -> web.Response:
    body = await read_json(request)
    saved = await _studio(request).save_newsletter(parse_draft(body))
    return web.json_response(saved.to_dict(), status=201)


@routes.get("/api/newsletters/{newsletter_id}")
async def get_newsletter(request: web.Request) -> web.Response:
    newsletter_id = request.match_info["newsletter_id"]
    saved = await _studio(request).get_newsletter(newsletter_id)
    if saved is None:
        raise NewsletterNotFoundError(f"Newsletter {newsletter_id} not found.")
    return web.json_response(saved.to_dict())


@routes.put("/api/newsletters/{newsletter_id}")
async def update_newsletter(request: web.Request) -> web.Response:
    body = await read_json(request)
    saved = await _studio(request).save_newsletter(
        parse_draft(body), request.match_info["newsletter_id"]
    )
    return web.json_response(saved.to_dict())


@routes.delete("/api/newsletters/{newsletter_id}")
async def delete_newsletter(request: web.Request) -> web.Response:
    newsletter_id = request.match_info["newsletter_id"]
    if not await _studio(request).delete_newsletter(newsletter_id):
        raise NewsletterNotFoundError(f"Newsletter {newsletter_id} not found.")
    return web.Response(status=204)


def create_app(studio: NewsletterStudio) -> web.Application:
    """Build the aiohttp application around a studio instance."""
    app = web.Application(middlewares=[request_context_middleware, error_middleware], client_max_size=5 * 1024 * 1024)
    app[STUDIO_KEY] = studio
    app.add_routes(routes)
    return app


async def _build_app(config: ApplicationConfig) -> web.Application:
    studio = await create_studio(config)
    app = create_app(studio)

    async def close_studio(app: web.Application) -> None:
        await app[STUDIO_KEY].close()

    app.on_cleanup.append(close_studio)
    return app


def run_server(config: ApplicationConfig) -> None:
    """Run the web API until interrupted."""
    logger.info("Starting web API", host=config.host, port=config.port)
    web.run_app(
        _build_app(config),
        host=config.host,
        port=config.port,
        print=None,
    )
