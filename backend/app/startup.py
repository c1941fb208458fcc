"""
Application startup validation and initialization.

This module performs startup checks so that a misconfigured deployment
fails loudly instead of serving requests against a missing database.
"""

import logging
import sys
from typing import List, Tuple

from sqlalchemy import inspect, text

from core.config import settings
from core.database import engine

logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    "restaurants",
    "customers",
    "menu_items",
    "point_transactions",
    "rewards",
    "reward_redemptions",
]


class StartupValidator:
    """Validates application startup requirements"""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    async def check_database_connection(self) -> bool:
        """Check database connectivity"""
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                result.fetchone()
            logger.info("Database connection successful")
            return True
        except Exception as e:
            self.errors.append(f"Database connection failed: {str(e)}")
            return False

    async def check_required_tables(self) -> bool:
        """Check that the loyalty tables exist"""
        try:
            async with engine.connect() as conn:
                existing_tables = await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).get_table_names()
                )

            missing_tables = [t for t in REQUIRED_TABLES if t not in existing_tables]
            if missing_tables:
                self.warnings.append(
                    f"Missing database tables: {', '.join(missing_tables)}. "
                    "Run migrations with: alembic upgrade head"
                )
            return True
        except Exception as e:
            self.warnings.append(f"Could not check database tables: {str(e)}")
            return True

    async def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        """Run all validation checks"""
        checks = [
            ("Database Connection", self.check_database_connection),
            ("Database Tables", self.check_required_tables),
        ]

        all_passed = True

        for check_name, check_func in checks:
            logger.info(f"Running check: {check_name}")
            if not await check_func():
                all_passed = False

        return all_passed, self.errors, self.warnings


async def run_startup_checks() -> Tuple[bool, List[str]]:
    """Run all startup validation checks"""
    logger.info("=" * 60)
    logger.info("Starting loyalty backend")
    logger.info(f"Environment: {settings.environment}")
    logger.info("=" * 60)

    validator = StartupValidator()
    passed, errors, warnings = await validator.validate_all()

    if warnings:
        logger.warning("Startup Warnings:")
        for warning in warnings:
            logger.warning(f"  {warning}")

    if errors:
        logger.error("Startup Errors:")
        for error in errors:
            logger.error(f"  {error}")

    if not passed and settings.environment == "production":
        logger.error("Cannot start in production with errors!")
        sys.exit(1)
    elif not passed:
        logger.warning(f"Starting in {settings.environment} mode despite errors")
    else:
        logger.info("All startup checks passed")

    return passed, warnings


def configure_logging():
    """Configure root logging for the application"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
