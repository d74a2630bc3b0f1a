#!/usr/bin/env python3
"""
Catalog Ingestion Script
Operator CLI for the catalog ingest API.

Usage:
    python -m catalog_backend.scripts.ingest_catalog parse "Burger €12, Fries €4"
    python -m catalog_backend.scripts.ingest_catalog submit-url --market m1 --listing l1 \
        --kind menuItems https://example.com/menu --wait
    python -m catalog_backend.scripts.ingest_catalog submit-file --market m1 --listing l1 \
        --kind menuItems menu.pdf
    python -m catalog_backend.scripts.ingest_catalog poll --market m1 JOB_ID
    python -m catalog_backend.scripts.ingest_catalog latest --listing l1 --kind menuItems
    python -m catalog_backend.scripts.ingest_catalog apply --listing l1 PROPOSAL_ID
    python -m catalog_backend.scripts.ingest_catalog reject --listing l1 PROPOSAL_ID

API location and token come from CATALOG_API_URL / CATALOG_API_TOKEN.
"""

import argparse
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from catalog_backend.client import (
    FileSource,
    IngestClientError,
    IngestionJobClient,
    PollState,
    UrlSource,
)
from catalog_backend.ingestion.quick_text_parser import parse_items_from_text
from catalog_backend.models.catalog import IngestKind

logger = logging.getLogger(__name__)

KIND_CHOICES = [kind.value for kind in IngestKind]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Catalog ingestion operator tool")
    parser.add_argument("--api-url", type=str, default=None, help="API root (default: CATALOG_API_URL)")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Parse free text locally and print the items")
    parse_cmd.add_argument("text", type=str)

    for name, target_help in (("submit-url", "Page URL"), ("submit-file", "Image or PDF file")):
        cmd = subparsers.add_parser(name, help=f"Create an extraction job from a {target_help.lower()}")
        cmd.add_argument("target", type=str, help=target_help)
        cmd.add_argument("--market", required=True, help="Market ID")
        cmd.add_argument("--listing", required=True, help="Listing ID")
        cmd.add_argument("--kind", required=True, choices=KIND_CHOICES)
        cmd.add_argument("--wait", action="store_true", help="Poll until the job finishes")
        if name == "submit-file":
            cmd.add_argument("--type", choices=["image", "pdf"], default=None,
                             help="Source type (default: from file extension)")

    poll_cmd = subparsers.add_parser("poll", help="Poll a job until it finishes")
    poll_cmd.add_argument("job_id")
    poll_cmd.add_argument("--market", required=True, help="Market ID")

    latest_cmd = subparsers.add_parser("latest", help="Show the proposal awaiting review")
    latest_cmd.add_argument("--listing", required=True, help="Listing ID")
    latest_cmd.add_argument("--kind", required=True, choices=KIND_CHOICES)

    for name in ("apply", "reject"):
        cmd = subparsers.add_parser(name, help=f"{name.capitalize()} a proposal")
        cmd.add_argument("proposal_id")
        cmd.add_argument("--listing", required=True, help="Listing ID")

    return parser


def _print_proposal(proposal) -> None:
    logger.info(f"Proposal {proposal.id} ({proposal.kind.value}, {proposal.status.value})")
    for item in proposal.extracted_items:
        price = f"{item.price} {item.currency or ''}".strip() if item.price is not None else "no price"
        logger.info(f"  - {item.name}: {price}" + (f" [{item.category}]" if item.category else ""))
    for warning in proposal.warnings:
        logger.warning(f"  ! {warning}")


def _poll(client: IngestionJobClient, market_id: str, job_id: str) -> int:
    def on_update(state: PollState, message: str) -> None:
        logger.info(f"[{job_id}] {message}")

    with client.poll_job(market_id, job_id, on_update=on_update) as poller:
        try:
            outcome = poller.run()
        except KeyboardInterrupt:
            poller.cancel()
            logger.warning("Polling interrupted")
            return 130

    if outcome.state == PollState.REVIEW_READY:
        _print_proposal(outcome.proposal)
        return 0
    if outcome.state == PollState.APPLIED:
        return 0
    if outcome.error:
        logger.error(f"Job {job_id}: {outcome.error}")
    return 1


def _file_source(path: Path, source_type: Optional[str]) -> FileSource:
    content_type, _ = mimetypes.guess_type(path.name)
    if source_type is None:
        source_type = "pdf" if path.suffix.lower() == ".pdf" else "image"
    return FileSource(
        type=source_type,
        filename=path.name,
        data=path.read_bytes(),
        content_type=content_type,
    )


def main(argv: Optional[List[str]] = None, client: Optional[IngestionJobClient] = None) -> int:
    """Run the CLI. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "parse":
        items = parse_items_from_text(args.text)
        if not items:
            logger.warning("No items recognised")
            return 1
        for item in items:
            logger.info(f"{item.name}: {item.price} {item.currency}")
        return 0

    if client is None:
        client = IngestionJobClient(base_url=args.api_url)

    try:
        if args.command in ("submit-url", "submit-file"):
            if args.command == "submit-url":
                source = UrlSource(args.target)
            else:
                path = Path(args.target)
                if not path.is_file():
                    logger.error(f"File not found: {path}")
                    return 1
                source = _file_source(path, args.type)

            job_id = client.create_job(args.kind, args.listing, args.market, source)
            logger.info(f"Job: {job_id}")
            if args.wait:
                return _poll(client, args.market, job_id)
            return 0

        if args.command == "poll":
            return _poll(client, args.market, args.job_id)

        if args.command == "latest":
            proposal = client.load_latest_proposal(args.listing, args.kind)
            if proposal is None:
                logger.info("No proposal awaiting review")
                return 1
            _print_proposal(proposal)
            return 0

        if args.command == "apply":
            client.apply_proposal(args.listing, args.proposal_id)
            logger.info(f"Applied {args.proposal_id}")
            return 0

        if args.command == "reject":
            client.reject_proposal(args.listing, args.proposal_id)
            logger.info(f"Rejected {args.proposal_id}")
            return 0

    except IngestClientError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    return 2


if __name__ == "__main__":
    sys.exit(main())
