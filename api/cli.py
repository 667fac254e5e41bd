#!/usr/bin/env python3
"""CLI for certificate service management tasks.

Usage:
    python -m cli <command>

Commands:
    migrate    Run database migrations
    issue      Issue one certificate against the configured database
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _get_alembic_config():
    from alembic.config import Config

    api_dir = Path(__file__).resolve().parent
    cfg = Config(str(api_dir / "alembic.ini"))
    # Make script_location absolute so it works from any working directory.
    cfg.set_main_option("script_location", str(api_dir / "alembic"))
    return cfg


def cmd_migrate() -> int:
    """Run database migrations."""
    from alembic import command

    logger.info("Running database migrations...")
    command.upgrade(_get_alembic_config(), "head")
    logger.info("Migrations complete")
    return 0


async def _issue(args: argparse.Namespace):
    from core.config import get_settings
    from core.database import create_engine, create_session_maker, dispose_engine
    from services.certificates_service import issue_certificate

    settings = get_settings()
    engine = create_engine(settings)
    session_maker = create_session_maker(engine)
    try:
        async with session_maker() as session:
            return await issue_certificate(
                session,
                settings,
                recipient_name=args.name,
                recipient_email=args.email,
                resource_name=args.resource,
                issuer_name=args.issuer,
                auto_email=args.email_pdf,
            )
    finally:
        await dispose_engine(engine)


def cmd_issue(args: argparse.Namespace) -> int:
    """Issue a certificate and print its identifiers."""
    from services.certificates_service import CertificateValidationError

    try:
        issued = asyncio.run(_issue(args))
    except CertificateValidationError as e:
        logger.error(str(e))
        return 2

    print(f"Certificate ID:     {issued.certificate_id}")
    print(f"PDF:                {issued.artifact_ref}")
    print(f"Verification token: {issued.verification_token}")
    print(f"Verify URL:         {issued.verify_url}")
    if issued.email_sent is False:
        logger.warning("Certificate generated, but email delivery failed")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Certificate service CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "migrate",
        help="Run database migrations",
    )

    issue = subparsers.add_parser(
        "issue",
        help="Issue one certificate",
    )
    issue.add_argument("--name", required=True, help="Recipient name")
    issue.add_argument("--email", required=True, help="Recipient e-mail")
    issue.add_argument("--resource", required=True, help="Course / resource name")
    issue.add_argument("--issuer", default=None, help="Issuing organisation")
    issue.add_argument(
        "--email-pdf",
        action="store_true",
        help="E-mail the PDF to the recipient",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "migrate":
        return cmd_migrate()
    elif args.command == "issue":
        return cmd_issue(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
