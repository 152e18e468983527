"""Verify that the service's environment configuration is complete and unchanged.

Three things are checked:

1. ``AppSettings`` can be built from the given ``.env`` file (Jobber client
   credentials, mailer address, store settings).
2. Settings that only matter in combination are consistent, e.g. the
   DynamoDB backend needs a table name and lookup emails need a Resend key.
3. Optionally, the ``.env`` file still matches a recorded SHA256 checksum.

Example usages::

    python -m scripts.check_env check --env-file /srv/jobber-tools/.env

    python -m scripts.check_env record --env-file /srv/jobber-tools/.env \
        --hash-file /srv/jobber-tools/.env.sha256

    python -m scripts.check_env verify --env-file /srv/jobber-tools/.env \
        --hash-file /srv/jobber-tools/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import List

from pydantic import ValidationError

from app.core.config import AppSettings, load_settings

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _checksum(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def find_inconsistencies(settings: AppSettings) -> List[str]:
    """Return configuration problems that field validation cannot see."""
    problems: List[str] = []
    if settings.token_store.backend == "dynamodb" and not settings.aws.dynamodb_table_name:
        problems.append("TOKEN_STORE_BACKEND=dynamodb requires DYNAMODB_TABLE_NAME.")
    if not settings.mailer.resend_api_key:
        problems.append("RESEND_API_KEY is not set; lookup emails cannot be delivered.")
    if settings.token_store.refresh_margin_seconds <= 0:
        problems.append("TOKEN_REFRESH_MARGIN_SECONDS must be positive.")
    return problems


def _record(env_file: Path, hash_file: Path) -> int:
    checksum = _checksum(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"Expected checksum file {hash_file} is missing. "
            "Run the 'record' command first to establish a baseline.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _checksum(env_file)
    if expected != actual:
        print(
            "Environment checksum mismatch!\n"
            f"  expected: {expected}\n"
            f"  actual:   {actual}",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR

    print("Environment checksum OK.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate service settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text, needs_hash in (
        ("check", "Validate settings only.", False),
        ("record", "Validate settings and store the checksum baseline.", True),
        ("verify", "Validate settings and compare against the baseline.", True),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env).",
        )
        if needs_hash:
            subparser.add_argument(
                "--hash-file",
                required=True,
                type=Path,
                help="Location of the checksum baseline.",
            )
        subparser.add_argument(
            "--strict",
            action="store_true",
            help="Treat configuration inconsistencies as validation errors.",
        )

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings = load_settings(str(env_file))
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    problems = find_inconsistencies(settings)
    for problem in problems:
        print(f"warning: {problem}", file=sys.stderr)
    if problems and args.strict:
        return EXIT_VALIDATION_ERROR

    if args.command == "record":
        return _record(env_file, args.hash_file)
    if args.command == "verify":
        return _verify(env_file, args.hash_file)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
