"""Main entry point for the marketplace monitor service."""

import argparse
import signal
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from market_monitor.commands import CommandHandler, CommandPoller
from market_monitor.config.environment import EnvironmentConfig
from market_monitor.config.exceptions import ConfigurationError
from market_monitor.config.loader import load_config
from market_monitor.config.models import AppConfig
from market_monitor.dispatch import DispatchLoop
from market_monitor.logging import get_logger
from market_monitor.logging.config import configure_logging
from market_monitor.marketplace import MarketplaceClient
from market_monitor.notifications import MessageFormatter, Notifier, TelegramClient
from market_monitor.persistence import Database, SubscriptionStore
from market_monitor.scheduler import SchedulerService
from market_monitor.subscriptions import InterestMatcher, SubscriptionRegistry
from market_monitor.tracker import ChangeDetector, SnapshotStore

logger = get_logger(__name__, component="cli")


@dataclass
class Application:
    """The wired object graph of one running service."""

    database: Database
    registry: SubscriptionRegistry
    marketplace: MarketplaceClient
    telegram: TelegramClient
    snapshot: SnapshotStore
    dispatch: DispatchLoop
    command_poller: Optional[CommandPoller]

    def close(self) -> None:
        self.marketplace.close()
        self.telegram.close()
        self.database.close()


def load_runtime_config(config_path: Optional[Path], log_level_override: Optional[str]) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the log level.

    Priority for the log level: CLI flag, then ``LOG_LEVEL``, then the file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)
    if log_level_override:
        env_config.log_level = log_level_override
    else:
        env_config.log_level = app_config.logging.level
    return app_config, env_config


def build_application(app_config: AppConfig, env_config: EnvironmentConfig) -> Application:
    """Construct every component and load persisted subscriptions."""
    database = Database(app_config.storage.database_url)
    registry = SubscriptionRegistry(SubscriptionStore(database))
    registry.load()

    marketplace = MarketplaceClient(
        base_url=app_config.marketplace.base_url,
        api_key=env_config.marketplace_api_key,
        timeout=app_config.marketplace.http_request_timeout,
        user_agent=app_config.marketplace.user_agent,
    )
    snapshot = SnapshotStore()
    detector = ChangeDetector(marketplace, snapshot)

    telegram_config = app_config.telegram
    formatter = MessageFormatter(
        job_url_template=telegram_config.job_url_template,
        poll_interval_text=app_config.poll_interval_text,
    )
    telegram = TelegramClient(env_config.telegram_bot_token, timeout=app_config.marketplace.http_request_timeout)
    notifier = Notifier(
        telegram,
        formatter,
        channel_id=telegram_config.channel_id,
        max_retries=telegram_config.max_retries,
        retry_initial_delay=telegram_config.retry_initial_delay,
        retry_backoff_multiplier=telegram_config.retry_backoff_multiplier,
    )
    dispatch = DispatchLoop(detector, InterestMatcher(registry), notifier)

    command_poller = None
    if telegram_config.commands_enabled:
        channel = telegram_config.channel_id
        handler = CommandHandler(
            registry,
            snapshot,
            formatter,
            channel=channel if isinstance(channel, str) and channel.startswith("@") else None,
        )
        command_poller = CommandPoller(telegram, handler)

    return Application(
        database=database,
        registry=registry,
        marketplace=marketplace,
        telegram=telegram,
        snapshot=snapshot,
        dispatch=dispatch,
        command_poller=command_poller,
    )


def main(argv=None) -> int:
    """
    Main entry point for the marketplace monitor.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    parser = argparse.ArgumentParser(
        description="Marketplace Monitor - posts marketplace job and bid activity to Telegram"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml, then config/config.yaml)",
    )
    parser.add_argument(
        "--manual-run",
        action="store_true",
        help="Warm up, run a single dispatch cycle and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    args = parser.parse_args(argv)

    load_dotenv()

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )

        logger.info(
            "Marketplace monitor starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "manual_run": args.manual_run,
            },
        )
        logger.info(
            "Configuration loaded",
            extra={
                "event": "config.loaded",
                "poll_interval_seconds": app_config.poll_interval_seconds,
                "commands_enabled": app_config.telegram.commands_enabled,
                "broadcast_enabled": app_config.telegram.channel_id is not None,
            },
        )

        app = build_application(app_config, env_config)
        logger.info(
            f"Services initialized with {len(app.registry)} subscribers",
            extra={"event": "services.initialized", "subscriber_count": len(app.registry)},
        )

        warm_up = app.dispatch.initialize()
        if not warm_up.ok:
            logger.warning(
                "Warm-up failed; the first scheduled cycle will retry it",
                extra={"event": "service.warm_up.deferred", "error": warm_up.fault},
            )

        if args.manual_run:
            result = app.dispatch.run_once()
            logger.info(
                f"Manual cycle completed: {result.change_count} changes, "
                f"{result.notifications_sent} notifications sent",
                extra={
                    "event": "service.manual_run.completed",
                    "duration_seconds": result.duration_seconds,
                    "had_errors": result.had_errors,
                },
            )
            app.close()
            logger.info(
                "Marketplace monitor stopped",
                extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
            )
            return 1 if result.fault or result.failed_job_ids or result.skipped else 0

        shutdown_event = threading.Event()
        scheduler_service = SchedulerService(
            dispatch_callable=app.dispatch.run_once,
            interval_seconds=app_config.poll_interval_seconds,
            command_callable=app.command_poller.poll_once if app.command_poller else None,
            command_interval_seconds=app_config.telegram.command_poll_interval,
            shutdown_event=shutdown_event,
        )

        def signal_handler(signum, frame):
            logger.info(
                f"Received signal {signum}, shutting down",
                extra={"event": "service.signal_received", "signal": signum},
            )
            scheduler_service.shutdown(wait=False)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        scheduler_service.start()
        logger.info("Scheduler started. Press Ctrl+C to stop", extra={"event": "service.daemon_mode.started"})

        try:
            shutdown_event.wait()
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down", extra={"event": "service.keyboard_interrupt"})
            scheduler_service.shutdown(wait=False)

        app.close()
        logger.info(
            "Marketplace monitor stopped",
            extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
        )
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            exc_info=True,
            extra={"event": "service.startup.failed", "error_type": type(e).__name__},
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
