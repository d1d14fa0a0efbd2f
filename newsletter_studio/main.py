#!/usr/bin/env python3
"""Main entry point for Newsletter Studio."""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional, Tuple

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from newsletter_studio.infrastructure.api_clients.gmail_api import run_authorization_flow
from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.database import init_database
from newsletter_studio.infrastructure.error_handling import (
    ConfigurationError,
    NewsletterError,
    ValidationError,
)
from newsletter_studio.infrastructure.logging import get_logger, setup_logging
from newsletter_studio.models.newsletter import NewsletterDraft, StyleTokens, parse_draft
from newsletter_studio.services.studio import NewsletterStudio, create_studio

console = Console()
logger = get_logger(__name__)


def load_draft_file(path: Path) -> Tuple[NewsletterDraft, StyleTokens]:
    """Read a draft JSON file.

    Accepts either the bare draft object or the API request shape
    ``{"newsletterData": ..., "aiStyles": ...}``.
    """
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ValidationError(f"Cannot read draft file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ValidationError(f"Draft file {path} is not valid JSON: {e}") from e

    if isinstance(payload, dict) and "newsletterData" in payload:
        return parse_draft(payload["newsletterData"]), StyleTokens.from_mapping(payload.get("aiStyles"))
    return parse_draft(payload), StyleTokens()


class NewsletterCLI:
    """Command-line interface over the newsletter studio."""

    def __init__(self, config: ApplicationConfig):
        self.config = config
        self.studio: Optional[NewsletterStudio] = None

    async def _ensure_studio(self) -> NewsletterStudio:
        """Lazy initialization of the studio."""
        if self.studio is None:
            with console.status("[bold blue]Opening database..."):
                self.studio = await create_studio(self.config)
        return self.studio

    async def close(self) -> None:
        if self.studio is not None:
            await self.studio.close()
            self.studio = None

    async def summarize(self, url: str, api_key: Optional[str]) -> None:
        studio = await self._ensure_studio()
        with console.status(f"[bold green]Summarizing {url}..."):
            summary = await studio.summarize(url, api_key)

        console.print(Panel(
            summary.summary,
            title=f"[bold]{summary.title}[/bold]",
            subtitle=summary.image_url or "no image",
            border_style="green",
        ))

    async def redesign(self, design_prompt: str, api_key: Optional[str]) -> None:
        studio = await self._ensure_studio()
        with console.status("[bold green]Generating styles..."):
            tokens = await studio.redesign(design_prompt, api_key)

        table = Table(title="Style Tokens")
        table.add_column("Slot", style="cyan")
        table.add_column("Classes", style="white")
        for slot, classes in tokens.to_dict().items():
            table.add_row(slot, classes)
        console.print(table)

    async def render(self, draft_path: Path, output: Optional[Path]) -> None:
        draft, styles = load_draft_file(draft_path)
        studio = await self._ensure_studio()
        html = studio.render(draft, styles)
        if output is None:
            sys.stdout.write(html)
            return
        output.write_text(html, encoding="utf-8")
        console.print(f"[bold green]Success:[/bold green] Wrote {output} ({draft.article_count} articles)")

    async def send_bulk(self, draft_path: Path) -> bool:
        draft, styles = load_draft_file(draft_path)
        studio = await self._ensure_studio()
        with console.status("[bold green]Sending newsletter..."):
            result = await studio.send_bulk(draft, styles)

        console.print(result.message)
        if result.failed_emails:
            failed = Table(title=f"Failed Recipients ({result.failed_count})")
            failed.add_column("Email", style="red")
            for email in result.failed_emails:
                failed.add_row(email)
            console.print(failed)
        return result.failed_count == 0

    async def subscribe(self, email: str) -> None:
        studio = await self._ensure_studio()
        outcome = await studio.subscribe(email)
        console.print(f"[bold green]{outcome.message}[/bold green]")

    async def list_drafts(self) -> None:
        studio = await self._ensure_studio()
        newsletters = await studio.list_newsletters()
        if not newsletters:
            console.print("[yellow]No saved newsletters.[/yellow]")
            return

        table = Table(title=f"Saved Newsletters ({len(newsletters)})")
        table.add_column("ID", style="cyan", width=34)
        table.add_column("Title", style="white")
        table.add_column("Articles", style="green", justify="right")
        table.add_column("Updated", style="yellow")
        for newsletter in newsletters:
            table.add_row(
                newsletter.id,
                newsletter.title,
                str(newsletter.draft.article_count),
                newsletter.updated_at.strftime("%Y-%m-%d %H:%M"),
            )
        console.print(table)

    async def show_draft(self, newsletter_id: str) -> bool:
        studio = await self._ensure_studio()
        saved = await studio.get_newsletter(newsletter_id)
        if saved is None:
            console.print(f"[bold red]Error:[/bold red] Newsletter not found: {newsletter_id}")
            return False
        console.print_json(data=saved.to_dict())
        return True

    async def delete_draft(self, newsletter_id: str) -> bool:
        studio = await self._ensure_studio()
        if not await studio.delete_newsletter(newsletter_id):
            console.print(f"[bold red]Error:[/bold red] Newsletter not found: {newsletter_id}")
            return False
        console.print(f"[bold green]Deleted[/bold green] {newsletter_id}")
        return True

    async def init_db(self) -> None:
        db = await init_database(self.config)
        await db.close()
        console.print(f"[green]✓[/green] Database ready at {self.config.database_url}")


def authorize_gmail(config: ApplicationConfig, port: int, open_browser: bool) -> None:
    """Print a Gmail refresh token obtained through the browser consent flow."""
    if not config.gmail_client_id or not config.gmail_client_secret:
        raise ConfigurationError(
            "Set NEWSLETTER_GMAIL_CLIENT_ID and NEWSLETTER_GMAIL_CLIENT_SECRET first."
        )
    refresh_token = run_authorization_flow(
        config.gmail_client_id,
        config.gmail_client_secret,
        port=port,
        open_browser=open_browser,
    )
    if not refresh_token:
        raise ConfigurationError(
            "Google did not return a refresh token. Revoke the app's access and try again."
        )
    console.print(Panel.fit(
        f"[bold]{refresh_token}[/bold]\n\n"
        "Store it as NEWSLETTER_GMAIL_REFRESH_TOKEN in your .env file.",
        title="Gmail Refresh Token",
        border_style="green",
    ))


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Newsletter Studio",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  newsletter-studio serve --port 8080
  newsletter-studio summarize https://example.com/post --api-key sk-...
  newsletter-studio render draft.json -o newsletter.html
  newsletter-studio send-bulk draft.json
  newsletter-studio drafts list
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the web API")
    serve_parser.add_argument("--host", help="Bind address (overrides config)")
    serve_parser.add_argument("--port", type=int, help="Port (overrides config)")

    summarize_parser = subparsers.add_parser("summarize", help="Extract and summarize an article")
    summarize_parser.add_argument("url", help="Article URL")
    summarize_parser.add_argument(
        "--api-key",
        default=os.environ.get("OPENAI_API_KEY"),
        help="AI API key (defaults to OPENAI_API_KEY)"
    )

    redesign_parser = subparsers.add_parser("redesign", help="Generate style tokens from a prompt")
    redesign_parser.add_argument("prompt", help="Free-text design request")
    redesign_parser.add_argument(
        "--api-key",
        default=os.environ.get("OPENAI_API_KEY"),
        help="AI API key (defaults to OPENAI_API_KEY)"
    )

    render_parser = subparsers.add_parser("render", help="Render a draft file to HTML")
    render_parser.add_argument("draft", type=Path, help="Draft JSON file")
    render_parser.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")

    send_parser = subparsers.add_parser("send-bulk", help="Send a draft to every active subscriber")
    send_parser.add_argument("draft", type=Path, help="Draft JSON file")

    subscribe_parser = subparsers.add_parser("subscribe", help="Add a subscriber")
    subscribe_parser.add_argument("email", help="Subscriber email")

    drafts_parser = subparsers.add_parser("drafts", help="Manage saved newsletters")
    drafts_sub = drafts_parser.add_subparsers(dest="drafts_command")
    drafts_sub.add_parser("list", help="List saved newsletters")
    show_parser = drafts_sub.add_parser("show", help="Show a saved newsletter")
    show_parser.add_argument("id", help="Newsletter ID")
    delete_parser = drafts_sub.add_parser("delete", help="Delete a saved newsletter")
    delete_parser.add_argument("id", help="Newsletter ID")

    auth_parser = subparsers.add_parser("authorize-gmail", help="Obtain a Gmail refresh token")
    auth_parser.add_argument("--port", type=int, default=0, help="Local redirect port")
    auth_parser.add_argument("--no-browser", action="store_true", help="Print the URL instead of opening a browser")

    subparsers.add_parser("init-db", help="Create database tables")

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    return parser


async def run_command(args: argparse.Namespace, config: ApplicationConfig) -> int:
    """Run an async CLI command and return the exit code."""
    cli = NewsletterCLI(config)
    try:
        if args.command == "summarize":
            await cli.summarize(args.url, args.api_key)
        elif args.command == "redesign":
            await cli.redesign(args.prompt, args.api_key)
        elif args.command == "render":
            await cli.render(args.draft, args.output)
        elif args.command == "send-bulk":
            return 0 if await cli.send_bulk(args.draft) else 2
        elif args.command == "subscribe":
            await cli.subscribe(args.email)
        elif args.command == "drafts":
            if args.drafts_command == "show":
                return 0 if await cli.show_draft(args.id) else 1
            if args.drafts_command == "delete":
                return 0 if await cli.delete_draft(args.id) else 1
            await cli.list_drafts()
        elif args.command == "init-db":
            await cli.init_db()
        return 0
    finally:
        await cli.close()


def main(argv: Optional[Any] = None) -> None:
    """Main application entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = ApplicationConfig()
    log_level = "DEBUG" if args.verbose else config.log_level
    setup_logging(level=log_level, format_type=config.log_format, log_file=config.log_to_file)

    try:
        if args.command == "serve":
            from newsletter_studio.web import run_server

            if args.host:
                config.host = args.host
            if args.port:
                config.port = args.port
            run_server(config)
            return

        if args.command == "authorize-gmail":
            authorize_gmail(config, port=args.port, open_browser=not args.no_browser)
            return

        sys.exit(asyncio.run(run_command(args, config)))

    except NewsletterError as e:
        logger.info("Command failed", command=args.command, error_code=e.error_code)
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        logger.error("Application error", error=str(e), exc_info=True)
        console.print(f"[bold red]Unexpected error:[/bold red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
