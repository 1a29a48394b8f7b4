"""CLI entry point for Campus Calendar."""

import argparse
import asyncio
import sys
from datetime import date
from typing import Optional

from .auth.session import Session
from .backends.base import BackendProvider
from .backends.memory import InMemoryBackend
from .backends.rest import RestBackend
from .config import AppConfig, BackendConfig, SeedData, config
from .dashboard.controller import CalendarDashboard
from .dashboard.ranges import ViewMode
from .utils.exceptions import CampusCalendarError, ConfigurationError
from .utils.logging import setup_logging


def _create_backend(backend_config: BackendConfig) -> BackendProvider:
    """Create a backend provider from configuration."""
    if backend_config.kind == "memory":
        seed = SeedData.from_file(backend_config.seed_file) if backend_config.seed_file else None
        return InMemoryBackend(seed)
    if backend_config.kind == "rest":
        return RestBackend(
            backend_config.url,
            backend_config.api_key,
            timeout=backend_config.request_timeout,
        )
    raise ConfigurationError(f"Unknown backend: {backend_config.kind}")


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid date '{value}', expected YYYY-MM-DD") from e


async def _run(args: argparse.Namespace, app_config: AppConfig, logger) -> int:
    backend = _create_backend(app_config.backend)

    async with Session(backend) as session:
        if args.email:
            await session.login(args.email, args.password)
        user = session.user
        if user is None:
            logger.error("Not signed in. Use --email (and --password for the REST backend)")
            return 1

        caps = session.capabilities
        logger.info(
            f"👤 {user.display_name} <{user.email}> role={user.role.value}"
            + (f" university={user.university_name or user.university_id}" if user.university_id else "")
        )
        logger.info(
            f"   create={caps.can_create} edit={caps.can_edit} "
            f"delete={caps.can_delete} share={caps.can_share}"
        )

        dashboard = CalendarDashboard.from_config(session, backend, app_config)
        dashboard.anchor = _parse_date(args.date) or date.today()
        dashboard.view_mode = ViewMode(args.view or app_config.default_view)

        async with dashboard:
            if dashboard.catalog_error:
                logger.error(f"Failed to load calendars: {dashboard.catalog_error}")
                return 1

            if args.list_calendars:
                logger.info(f"📅 {len(dashboard.calendars)} visible calendars:")
                for cal in dashboard.calendars:
                    marker = "*" if dashboard.active_calendar and cal.id == dashboard.active_calendar.id else " "
                    logger.info(
                        f"  {marker} {cal.id}  {cal.name}  [{cal.category.value}]"
                        + ("  public" if cal.is_public else "")
                    )

            if args.list_event_types:
                logger.info(f"🏷️  {len(dashboard.event_types)} event types:")
                for et in dashboard.event_types:
                    logger.info(f"    {et.id}  {et.name}  {et.color}")

            if args.calendar:
                await dashboard.select_calendar(args.calendar)

            if args.events:
                if dashboard.feed.last_error:
                    logger.error(f"Failed to load events: {dashboard.feed.last_error}")
                    return 1
                active = dashboard.active_calendar
                result = dashboard.feed.last_result
                if active is None or result is None or result.range is None:
                    logger.info("No calendar selected, nothing to show")
                else:
                    logger.info(
                        f"🗓️  {active.name}: {len(dashboard.events)} events "
                        f"({dashboard.view_mode.value}, {result.range.start.date()} - {result.range.end.date()})"
                    )
                    if result.degraded:
                        logger.warning("  Aggregate calendar has no university; showing its own events only")
                    for item in dashboard.display_events():
                        event = item.event
                        when = "all day" if event.all_day else item.time_label
                        source = f"  ({event.calendar_name})" if event.calendar_name else ""
                        logger.info(f"    {event.start.date()}  {when}  {event.title}{source}")

            if args.share:
                link = await dashboard.sharing.create_share_link(args.share)
                logger.info(f"🔗 Share link (valid {app_config.share_ttl_days} days): {link}")

    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Campus Calendar - role-scoped academic calendar dashboard"
    )
    parser.add_argument("--email", type=str, help="Sign in with this email")
    parser.add_argument("--password", type=str, default=None, help="Password (REST backend)")
    parser.add_argument(
        "--list-calendars",
        action="store_true",
        help="List calendars visible to the user",
    )
    parser.add_argument(
        "--list-event-types",
        action="store_true",
        help="List event types",
    )
    parser.add_argument(
        "--events",
        action="store_true",
        help="Show events of the active calendar for the view",
    )
    parser.add_argument("--calendar", type=str, help="Calendar ID to activate")
    parser.add_argument(
        "--view",
        choices=[mode.value for mode in ViewMode],
        default=None,
        help="View mode (default: from config)",
    )
    parser.add_argument(
        "--date",
        type=str,
        default=None,
        help="Anchor date (YYYY-MM-DD, default: today)",
    )
    parser.add_argument("--share", type=str, metavar="CALENDAR_ID", help="Create a share link")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args()

    log_level = "DEBUG" if args.verbose else config.log_level
    try:
        logger = setup_logging(level=log_level, log_file=config.log_file)
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(_run(args, config, logger))
    except CampusCalendarError as e:
        logger.error(f"❌ {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Cancelled")
        return 1


if __name__ == "__main__":
    sys.exit(main())
