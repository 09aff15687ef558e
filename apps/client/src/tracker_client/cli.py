from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Sequence

from tracker_client.cache import CacheStore
from tracker_client.config import Settings, get_settings, resolve_base_url
from tracker_client.errors import TrackerError
from tracker_client.http import JobsClient
from tracker_client.queries import JobQueries


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tracker",
        description="Record and track job applications",
    )
    parser.add_argument("--token", default=None, help="Bearer token (defaults to TRACKER_TOKEN)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add = subparsers.add_parser("add", help="Record a new application")
    add.add_argument("--position", required=True)
    add.add_argument("--company", required=True)
    add.add_argument("--url", required=True)
    add.add_argument("--status", default="applied")
    add.add_argument("--notes", default=None)
    add.add_argument("--image", default=None, help="Base64 image or data URL")

    subparsers.add_parser("list", help="List recorded applications")

    show = subparsers.add_parser("show", help="Show one application")
    show.add_argument("job_id")

    update = subparsers.add_parser("update", help="Change an application")
    update.add_argument("job_id")
    update.add_argument("--position", default=None)
    update.add_argument("--company", default=None)
    update.add_argument("--url", default=None)
    update.add_argument("--status", default=None)
    update.add_argument("--notes", default=None)

    delete = subparsers.add_parser("delete", help="Remove an application")
    delete.add_argument("job_id")
    return parser


async def _run_command(
    args: argparse.Namespace,
    settings: Settings,
    *,
    client: JobsClient | None = None,
) -> Any:
    cache = CacheStore()
    jobs_client = client or JobsClient(
        base_url=resolve_base_url(settings),
        timeout_seconds=settings.timeout_seconds,
    )
    queries = JobQueries(client=jobs_client, cache=cache, token=args.token or settings.token)

    async with jobs_client:
        try:
            if args.command == "add":
                await queries.create_job(
                    {
                        "position": args.position,
                        "company": args.company,
                        "url": args.url,
                        "status": args.status,
                        "notes": args.notes,
                        "image": args.image,
                    }
                )
                created = queries.last_created()
                return created.to_dict() if created is not None else None
            if args.command == "list":
                return [job.to_dict() for job in await queries.get_jobs()]
            if args.command == "show":
                job = await queries.get_job(args.job_id)
                return job.to_dict() if job is not None else None
            if args.command == "update":
                payload = {
                    "position": args.position,
                    "company": args.company,
                    "url": args.url,
                    "status": args.status,
                    "notes": args.notes,
                }
                return (await queries.update_job(args.job_id, payload)).to_dict()
            if args.command == "delete":
                await queries.delete_job(args.job_id)
                return {"deleted": args.job_id}
            raise ValueError(f"unknown command: {args.command}")
        finally:
            await cache.settle()


def main(argv: Sequence[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        result = asyncio.run(_run_command(args, settings))
    except (TrackerError, ValueError) as exc:
        print(f"[tracker] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    print(json.dumps(result, indent=2), flush=True)


if __name__ == "__main__":
    main()
