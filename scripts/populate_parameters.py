#!/usr/bin/env python3
"""
Populate AWS Parameter Store with site metadata from a .env file.

This script reads the page metadata keys from .env.{environment} and uploads
them under the site's parameter prefix, where app.config.Config looks them
up at cold start ({prefix}/{KEY}).

Usage:
    python scripts/populate_parameters.py --env dev
    python scripts/populate_parameters.py --env prod --prefix /site-lambda-prod --dry-run
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import boto3
from dotenv import dotenv_values

# Keys read by Config.get_site_metadata()
PARAMETER_KEYS = ["ANALYTICS_ID", "CONTACT_EMAIL"]


def load_env_file(env: str) -> Dict[str, Optional[str]]:
    """Load values from .env.{env}."""
    env_file = Path(f".env.{env}")
    if not env_file.exists():
        raise FileNotFoundError(f"{env_file} not found")

    print(f"Loading values from {env_file}")
    return dotenv_values(env_file)


def populate_parameters(
    values: Dict[str, Optional[str]],
    prefix: str,
    ssm=None,
    dry_run: bool = False,
) -> Tuple[int, int]:
    """
    Upload metadata values to Parameter Store.

    Args:
        values: Parsed .env values
        prefix: Parameter prefix (e.g. /site-lambda)
        ssm: SSM client (created when omitted)
        dry_run: Only print what would be uploaded

    Returns:
        (uploaded, skipped) counts
    """
    prefix = prefix.rstrip("/")
    if ssm is None and not dry_run:
        ssm = boto3.client("ssm")

    uploaded = 0
    skipped = 0
    for key in PARAMETER_KEYS:
        name = f"{prefix}/{key}"
        value = values.get(key)
        if not value:
            print(f"Skipping {name} (not set)")
            skipped += 1
            continue

        if dry_run:
            print(f"[DRY RUN] Would upload: {name} = {value}")
        else:
            ssm.put_parameter(
                Name=name,
                Value=value,
                Type="String",
                Overwrite=True,
                Description=f"Site metadata {key}",
            )
            print(f"Uploaded: {name} = {value}")
        uploaded += 1

    return uploaded, skipped


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Populate Parameter Store with site metadata from a .env file")
    parser.add_argument("--env", default="dev", choices=["dev", "test", "prod"], help="Environment (default: dev)")
    parser.add_argument("--prefix", default="/site-lambda", help="Parameter prefix (default: /site-lambda)")
    parser.add_argument("--dry-run", action="store_true", help="Print what would be uploaded without uploading")
    args = parser.parse_args()

    try:
        values = load_env_file(args.env)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    uploaded, skipped = populate_parameters(values, args.prefix, dry_run=args.dry_run)
    print(f"Summary: {uploaded} uploaded, {skipped} skipped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
