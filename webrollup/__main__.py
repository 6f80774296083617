#!/usr/bin/env python3
"""
webrollup - Main Entry Point

Loads the configuration, sets up logging, crawls every site and writes the
rollup files.
"""

import sys
import signal
import asyncio
import time
from typing import List, Optional

from webrollup.core.base import OutputMode, ConfigurationError, WriteError
from webrollup.core.config import ConfigManager
from webrollup.core.logging import setup_logging, get_logger, logging_manager
from webrollup.cli.arguments import CLIManager
from webrollup.utils.component_factory import create_pipeline


def apply_cli_overrides(config_manager: ConfigManager, args) -> None:
    """Let command line flags win over the config file"""
    scrape = config_manager.scrape_config
    if args.rate_limit is not None:
        scrape.requests_per_second = args.rate_limit
    if args.burst is not None:
        scrape.burst_limit = args.burst
    if args.max_workers is not None:
        scrape.max_workers = args.max_workers
    if args.run_timeout is not None:
        scrape.run_timeout = args.run_timeout

    output = config_manager.output_config
    if args.output_type:
        output.output_type = args.output_type
    if args.output_dir:
        output.output_dir = args.output_dir


class InterruptHandler:
    """
    Turns Ctrl-C into a crawl cancellation, so the content extracted before
    the interrupt is still aggregated and written.
    """

    def __init__(self, orchestrator):
        self.orchestrator = orchestrator
        self.interrupted = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous = None

    def signal_handler(self) -> None:
        if not self.interrupted:
            get_logger().warning("Interrupted, writing the content extracted so far")
        self.interrupted = True
        self.orchestrator.cancel()

    def install(self) -> None:
        self._loop = asyncio.get_running_loop()
        try:
            self._loop.add_signal_handler(signal.SIGINT, self.signal_handler)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            self._previous = signal.signal(
                signal.SIGINT,
                lambda signum, frame: self._loop.call_soon_threadsafe(self.signal_handler)
            )

    def remove(self) -> None:
        if self._previous is not None:
            signal.signal(signal.SIGINT, self._previous)
            self._previous = None
        elif self._loop is not None:
            self._loop.remove_signal_handler(signal.SIGINT)
        self._loop = None


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for webrollup"""
    cli_manager = CLIManager()
    args = cli_manager.parse_arguments(argv)

    if args.examples:
        print("\nwebrollup - Usage Examples\n")
        print(cli_manager.get_usage_examples())
        return 0

    config_manager = ConfigManager(args.config)
    try:
        config_manager.load_config()
    except ConfigurationError as e:
        setup_logging(level="DEBUG" if args.verbose else (args.log_level or "INFO"))
        get_logger().error(f"Configuration loading failed: {e}")
        return 1

    # Set up logging
    logging_config = config_manager.logging_config
    level = "DEBUG" if args.verbose else (args.log_level or logging_config.level)
    setup_logging(
        level=level,
        log_file=args.log_file or logging_config.file,
        max_size=logging_config.max_size,
        backup_count=logging_config.backup_count
    )
    logger = get_logger()

    apply_cli_overrides(config_manager, args)
    sites = cli_manager.get_sites_from_args(args) or config_manager.sites

    try:
        config_manager.validate_config(sites)
    except ConfigurationError as e:
        logger.error(f"Configuration validation failed: {e}")
        return 1

    config = config_manager.to_component_config()
    mode = OutputMode(config['output_type'])
    logger.info(f"Rolling up {len(sites)} sites in {mode.value.upper()} mode")

    start_time = time.time()
    pipeline = create_pipeline(config)
    orchestrator = pipeline.orchestrator
    interrupt = InterruptHandler(orchestrator)
    interrupt.install()

    try:
        await orchestrator.initialize()
        await pipeline.aggregator.consume(orchestrator.crawl(sites))
    except Exception as e:
        logger.error(f"Crawl failed: {e}", exc_info=True)
        return 1
    finally:
        interrupt.remove()
        await orchestrator.cleanup()

    bundle = pipeline.aggregator.build_bundle(mode)
    if bundle.is_empty:
        logger.error("No content was extracted, nothing to write")
        files = []
    else:
        try:
            files = await pipeline.writer.write(bundle)
        except WriteError as e:
            logger.error(f"Writing output failed: {e}")
            return 1

    stats = orchestrator.get_stats()
    logging_manager.generate_summary_report({
        'sites': len(sites),
        'mode': mode.value,
        'duration': time.time() - start_time,
        'scheduled': stats['scheduled'],
        'succeeded': stats['succeeded'],
        'failed': stats['failed'],
        'cancelled': stats['cancelled'],
        'files': [str(path) for path in files],
        'errors': pipeline.aggregator.errors
    })

    if interrupt.interrupted:
        return 130
    return 0 if files else 1


def run() -> None:
    """Console script entry point"""
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        print("\nRollup interrupted by user")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
