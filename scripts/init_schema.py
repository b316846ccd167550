#!/usr/bin/env python3
"""
Create the activity entries table in Snowflake.

Reads the same settings as the API (environment variables or .env) and
runs the table DDL. The statements are idempotent, so running this
against an existing schema is harmless.

Usage:
    python scripts/init_schema.py
    python scripts/init_schema.py --dry-run

Requires:
    - .env file with Snowflake credentials
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
from snowflake.connector import errors as snowflake_errors

# Load environment variables
load_dotenv()

from trainlog.config.settings import Settings
from trainlog.core.progress.errors import StoreUnavailableError
from trainlog.infrastructure.snowflake.client import SnowflakeConfig, get_snowflake_connection
from trainlog.infrastructure.snowflake.repositories.entries import create_table_statements


def build_config(settings: Settings) -> SnowflakeConfig:
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def init_schema(settings: Settings, dry_run: bool = False) -> bool:
    statements = create_table_statements(settings.entries_table)

    if dry_run:
        print("\n=== DRY RUN - No statements will be executed ===\n")
        for statement in statements:
            print(statement.strip())
            print()
        return True

    missing = [
        field for field in settings.validate_required_fields()
        if field.startswith("SNOWFLAKE")
    ]
    if missing:
        print(f"ERROR: Missing configuration: {', '.join(missing)}")
        return False

    try:
        with get_snowflake_connection(build_config(settings)) as conn:
            cursor = conn.cursor()
            try:
                for statement in statements:
                    cursor.execute(statement)
                conn.commit()
            finally:
                cursor.close()
    except (StoreUnavailableError, snowflake_errors.Error) as e:
        print(f"ERROR: {e}")
        return False

    print(f"Table {settings.entries_table} is ready in "
          f"{settings.snowflake_database}.{settings.snowflake_schema}")
    return True


def main():
    parser = argparse.ArgumentParser(description='Create the TrainLog entries table in Snowflake')
    parser.add_argument('--dry-run', action='store_true', help='Print the DDL, don\'t execute it')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    success = init_schema(Settings(), dry_run=args.dry_run)
    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
