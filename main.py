"""
ratsinfo entry point
Lists, searches or fetches OParl resources through the cached FetchClient.
"""

import argparse
import asyncio
import json
import sys

from loguru import logger

from ratsinfo.services import FetchClient, OparlResources, ServiceError
from ratsinfo.settings import Settings, global_settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Browse an OParl council API")
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="List a collection page")
    list_cmd.add_argument("resource", help="e.g. meetings, papers, people, organizations")
    list_cmd.add_argument("--page", type=int, default=1)

    search_cmd = sub.add_parser("search", help="Search a collection")
    search_cmd.add_argument("resource")
    search_cmd.add_argument("query")
    search_cmd.add_argument("--page", type=int, default=1)

    get_cmd = sub.add_parser("get", help="Fetch one object by its id URL")
    get_cmd.add_argument("identifier")

    return parser.parse_args(argv)


async def run(args: argparse.Namespace, settings: Settings) -> int:
    async with FetchClient(settings.client_config()) as client:
        resources = OparlResources(client)
        try:
            if args.command == "get":
                result = await resources.get_by_identifier(args.identifier)
            elif args.command == "search":
                page = await resources.search(args.resource, args.query, args.page)
                result = page.model_dump(by_alias=True)
            else:
                page = await resources.list_resource(args.resource, {"page": args.page})
                result = page.model_dump(by_alias=True)
        except ServiceError as e:
            logger.error(f"Request failed: {e}")
            return 1

        print(json.dumps(result, indent=2, ensure_ascii=False))
        logger.debug(f"Client status: {client.get_health_status()}")
    return 0


def main(argv: list[str] | None = None) -> int:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if global_settings.debug else global_settings.log_level)

    args = parse_args(argv)
    return asyncio.run(run(args, global_settings))


if __name__ == "__main__":
    sys.exit(main())
