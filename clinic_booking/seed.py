"""Populate the database with the bootstrap admin and a week of slots.

    python -m clinic_booking.seed --start-date 2026-10-19
"""
from datetime import date
import logging

import click

from .core.config import Settings, settings
from .core.database import Store
from .services.auth_service import AuthService
from .services.slot_generator import SlotGenerator

logger = logging.getLogger(__name__)


def _parse_start_date(ctx, param, value):
    if value is None:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter("use YYYY-MM-DD")


def seed_database(store: Store, config: Settings, start_date: date, with_admin: bool = True) -> int:
    """Create tables, upsert the admin account and generate slots.

    Returns the number of slots created.
    """
    store.init_db()

    if with_admin:
        if not config.ADMIN_EMAIL or not config.ADMIN_PASSWORD:
            raise click.ClickException(
                "ADMIN_EMAIL and ADMIN_PASSWORD must be set in environment variables."
            )
        with store.session_scope() as db:
            AuthService(db, config).ensure_admin(
                config.ADMIN_NAME, config.ADMIN_EMAIL, config.ADMIN_PASSWORD
            )

    return SlotGenerator(store).generate(start_date)


@click.command()
@click.option(
    "--start-date",
    callback=_parse_start_date,
    help="First day to generate slots for (YYYY-MM-DD). Defaults to today.",
)
@click.option("--skip-admin", is_flag=True, help="Do not create the admin account.")
@click.option("--database-url", default=None, help="Override DATABASE_URL.")
def main(start_date, skip_admin, database_url):
    """Seed the booking database."""
    logging.basicConfig(level=settings.LOG_LEVEL)

    store = Store(database_url or settings.get_database_url)
    try:
        created = seed_database(store, settings, start_date, with_admin=not skip_admin)
    finally:
        store.dispose()

    click.echo(f"Database seeded successfully! {created} slots created.")


if __name__ == "__main__":
    main()
