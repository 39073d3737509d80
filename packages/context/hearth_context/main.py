"""
Context CLI entry point.

Loads configuration, configures logging, signs in with the configured session
and prints the resulting active context.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import structlog

from .config import HearthConfig, load_config
from .manager import ActiveContextManager, ContextSnapshot, ContextStatus

EXIT_CONFIG_ERROR = 1
EXIT_CONTEXT_ERROR = 2


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(level)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


async def run_context(
    config: HearthConfig,
    switch_to: str | None = None,
    force_refresh: bool = False,
    manager: ActiveContextManager | None = None,
) -> tuple[ContextSnapshot, ActiveContextManager]:
    """Sign in, load the context, and apply the requested operations."""
    manager = manager or ActiveContextManager.from_config(config)
    await manager.open()
    try:
        session = config.session.to_session()
        if session is None:
            structlog.get_logger().warning(
                "context.no_session",
                user_id=config.session.user_id,
                token_env=config.session.token_env,
            )
            snapshot = await manager.initialize()
        else:
            snapshot = await manager.sign_in(session)

        if switch_to is not None and snapshot.status is ContextStatus.READY:
            snapshot = await manager.switch_active(switch_to)
        if force_refresh:
            snapshot = await manager.force_refresh()
    finally:
        await manager.close()
    return snapshot, manager


def run(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Hearth active-group context")
    parser.add_argument(
        "-c", "--config",
        default="hearth.yaml",
        help="Path to configuration file (default: hearth.yaml)",
    )
    parser.add_argument("--switch", metavar="GROUP_ID", help="Switch the active group")
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Signal dependents to refetch for the active group",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print metrics in Prometheus text format after the context",
    )
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(config.logging.level, config.logging.format)
    log = structlog.get_logger()
    log.info("context.config_loaded", config_path=args.config)

    snapshot, manager = asyncio.run(
        run_context(config, switch_to=args.switch, force_refresh=args.force_refresh)
    )

    print(json.dumps(snapshot.to_dict(), indent=2))
    if args.metrics and config.metrics.enabled:
        print(manager.metrics.to_prometheus(), end="")

    if snapshot.status is ContextStatus.ERROR or (args.switch and snapshot.error):
        return EXIT_CONTEXT_ERROR
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
