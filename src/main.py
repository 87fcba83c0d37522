"""Command-line entry point for the DocWebsite backend.

Usage:
    uv run python -m src.main serve                 # run the API server
    uv run python -m src.main generate --website-id <id> --service-name "Dental Implants" [--fast]
    uv run python -m src.main renew-webhooks        # one renewal pass
    uv run python -m src.main llm-status            # configured providers
    uv run python -m src.main --debug <command>     # debug mode (shows API calls)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        # Silence chatty HTTP loggers even if root is WARNING
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("src").setLevel(logging.DEBUG if debug else logging.INFO)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


# ── Commands ─────────────────────────────────────────────────────────


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from src.config import SERVER_HOST, SERVER_PORT

    uvicorn.run("src.server:app", host=SERVER_HOST, port=SERVER_PORT, reload=args.reload)
    return 0


async def _generate(args: argparse.Namespace) -> int:
    from src.api.errors import APIError
    from src.api.schemas import GenerateContentRequest
    from src.database import DatabaseManager, ensure_indexes
    from src.repositories.calendar import UserRepository
    from src.repositories.websites import WebsiteRepository
    from src.services.content_generation import ContentGenerationService
    from src.services.llm_service import get_llm_service

    db_manager = DatabaseManager()
    database = await db_manager.connect()
    try:
        await ensure_indexes(database)
        website = await WebsiteRepository(database).get_by_id(args.website_id)
        if website is None:
            print(f"Website {args.website_id} not found", file=sys.stderr)
            return 1
        doctor = await UserRepository(database).get_by_id(website["doctorId"]) or {"_id": website["doctorId"]}

        request = GenerateContentRequest(
            service_name=args.service_name,
            website_id=args.website_id,
            keywords=args.keyword or [],
            fast_mode=args.fast,
            generate_blogs=not args.no_blogs,
        )
        try:
            result = await ContentGenerationService(database, get_llm_service()).generate_from_service_data(
                request, doctor,
            )
        except APIError as exc:
            print(f"Generation failed: {exc.message} {exc.error or ''}", file=sys.stderr)
            return 1

        data = result["data"]
        print(result["message"])
        print(f"  page:   {data['page']['_id']} ({data['page']['slug']})")
        print(f"  blogs:  {result['blogsGenerated']}")
        print(f"  tokens: {data['tokensUsed']}")
        return 0
    finally:
        await db_manager.disconnect()


async def _renew_webhooks(args: argparse.Namespace) -> int:
    from src.database import DatabaseManager
    from src.services.webhook_service import WebhookService

    db_manager = DatabaseManager()
    database = await db_manager.connect()
    try:
        result = await WebhookService(database).check_and_renew_expiring(args.threshold_hours)
    finally:
        await db_manager.disconnect()
    _print_json(result)
    return 1 if result["failed"] else 0


def _llm_status(args: argparse.Namespace) -> int:
    from src.services.llm_service import get_llm_service

    _print_json(get_llm_service().get_provider_status())
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse the command line and run the chosen command."""
    parser = argparse.ArgumentParser(description="DocWebsite backend CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the API server")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    generate = commands.add_parser("generate", help="Generate a service page for a website")
    generate.add_argument("--website-id", required=True)
    generate.add_argument("--service-name", required=True)
    generate.add_argument("--keyword", action="append", help="SEO keyword (repeatable)")
    generate.add_argument("--fast", action="store_true", help="Use templates instead of the LLM")
    generate.add_argument("--no-blogs", action="store_true", help="Skip blog generation")

    renew = commands.add_parser("renew-webhooks", help="Renew calendar webhooks that expire soon")
    renew.add_argument("--threshold-hours", type=float, default=48)

    commands.add_parser("llm-status", help="Show LLM provider configuration")

    args = parser.parse_args(argv)

    load_dotenv()
    _configure_logging(debug=args.debug)

    if args.command == "serve":
        return _serve(args)
    if args.command == "generate":
        return asyncio.run(_generate(args))
    if args.command == "renew-webhooks":
        return asyncio.run(_renew_webhooks(args))
    return _llm_status(args)


if __name__ == "__main__":
    sys.exit(main())
