import argparse
import asyncio
import signal
import sys
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from .config import Settings
from .cron import Scheduler, ScheduleSpec
from .dns import AddressResolver, CloudflareClient, ReconciliationEngine
from .errors import ConfigurationConflict
from .logger import configure_logging, logger
from .system import PlatformInfo

CONFIG_HELP = """\
Configuration sources (highest priority first):
   - command line arguments
   - environment variables
   - .env file (path from ENV_FILE)
   - config.toml (path from CF_DDNS_CONFIG)

Required variables:
   - CF_API_TOKEN: Cloudflare API token
   - CF_ZONE_ID: Cloudflare zone ID
   - DNS_RECORD_NAME: Domain name(s) separated by commas
   - UPDATE_INTERVAL or UPDATE_CRON (exactly one, unless --once)"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cfddns",
        description="Dynamic DNS updater for Cloudflare. Keeps A/AAAA records "
        "pointed at this host's public address.",
        epilog=CONFIG_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--cf-api-token", help="Cloudflare API token")
    parser.add_argument("--cf-zone-id", help="Cloudflare zone ID")
    parser.add_argument(
        "--dns-record-name",
        help="DNS record name(s) separated by commas, optionally suffixed "
        "with :A or :AAAA",
    )
    parser.add_argument(
        "--dns-record-type", choices=["A", "AAAA"], help="Default record type"
    )
    parser.add_argument(
        "--proxy",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable Cloudflare proxy",
    )
    parser.add_argument("--ttl", type=int, help="TTL in seconds (1 = automatic)")
    parser.add_argument(
        "--update-interval", type=float, help="Seconds between updates"
    )
    parser.add_argument(
        "--update-cron",
        help=(
            "Six-field calendar expression: second minute hour day month "
            "day_of_week. Numeric day_of_week counts 0 as Monday, so prefer "
            "names such as mon-fri. When both day and day_of_week are "
            "restricted, both must match"
        ),
    )
    parser.add_argument("--network", help="Network identifier shown in logs")
    parser.add_argument("--log-level", help="Log level (default INFO)")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--show-platform", action="store_true", help="Show platform information"
    )
    return parser


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Settings explicitly given on the command line"""
    fields = (
        "cf_api_token",
        "cf_zone_id",
        "dns_record_name",
        "dns_record_type",
        "proxy",
        "ttl",
        "update_interval",
        "update_cron",
        "network",
        "log_level",
    )
    return {
        field: getattr(args, field)
        for field in fields
        if getattr(args, field) is not None
    }


def log_configuration(settings: Settings, schedule: Optional[ScheduleSpec]):
    platform_info = PlatformInfo.current()
    logger.info(f"Starting Cloudflare DDNS client on {platform_info.display()}")
    logger.info(f"Zone ID: {settings.cf_zone_id}")
    logger.info(f"Proxy enabled: {settings.proxy}")
    logger.info(f"TTL: {settings.ttl} seconds")
    logger.info(f"Host identifier: {settings.platform_identifier}")
    if settings.network:
        logger.info(f"Network: {settings.network}")
    if schedule is not None:
        logger.info(f"Schedule: {schedule.describe()}")

    targets = settings.targets()
    names = ", ".join(f"{t.domain_name} ({t.record_type.value})" for t in targets)
    logger.info(f"Monitoring {len(targets)} domain(s): {names}")


_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _install_signal_handlers(stop_event: asyncio.Event) -> list[signal.Signals]:
    """
    Set ``stop_event`` on SIGINT/SIGTERM so a pass stops between targets.

    Returns:
        The signals a handler was installed for
    """

    def request_stop():
        if not stop_event.is_set():
            logger.info("Shutdown requested, finishing the current call")
        stop_event.set()

    loop = asyncio.get_running_loop()
    installed = []
    for sig in _STOP_SIGNALS:
        try:
            loop.add_signal_handler(sig, request_stop)
        except (NotImplementedError, RuntimeError):
            # Windows event loops and non-main threads do not support signal handlers
            break
        installed.append(sig)
    return installed


async def run(
    settings: Settings,
    schedule: Optional[ScheduleSpec],
    stop_event: Optional[asyncio.Event] = None,
) -> int:
    """
    Run a single pass when ``schedule`` is None, otherwise loop until stopped.

    Termination signals set ``stop_event`` in both modes: the in-flight call
    finishes, no further target is started and the HTTP sessions are closed.

    Returns:
        Process exit status
    """
    targets = settings.targets()
    reconcile_settings = settings.reconcile_settings()
    if stop_event is None:
        stop_event = asyncio.Event()

    resolver = AddressResolver(timeout=settings.discovery_timeout)
    client = CloudflareClient(settings.cf_api_base_url, timeout=settings.api_timeout)
    engine = ReconciliationEngine(resolver, client)
    installed_signals = _install_signal_handlers(stop_event)

    try:
        if schedule is None:
            result = await engine.run_pass(targets, reconcile_settings, stop_event)
            logger.info("Completed (one-time mode)")
            if len(result) < len(targets):
                return 1
            return 0 if result.successful else 1

        scheduler = Scheduler(
            schedule, run_on_start=settings.run_on_start, stop_event=stop_event
        )
        await scheduler.run(
            lambda: engine.run_pass(targets, reconcile_settings, stop_event)
        )
        return 0
    finally:
        loop = asyncio.get_running_loop()
        for sig in installed_signals:
            loop.remove_signal_handler(sig)
        await resolver.close()
        await client.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.show_platform:
        platform_info = PlatformInfo.current()
        print(f"Platform: {platform_info.display()}")
        print(f"OS: {platform_info.os}")
        print(f"Architecture: {platform_info.arch}")
        print(f"Family: {platform_info.family}")
        return 0

    try:
        settings = Settings(**cli_overrides(args))  # type: ignore
        schedule = None if args.once else settings.schedule()
    except (ValidationError, ConfigurationConflict) as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        print(CONFIG_HELP, file=sys.stderr)
        return 2

    configure_logging(settings.log_level, settings.logs_dir)
    log_configuration(settings, schedule)

    return asyncio.run(run(settings, schedule))


if __name__ == "__main__":
    sys.exit(main())
