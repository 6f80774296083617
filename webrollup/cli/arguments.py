"""
Command Line Argument Parsing for webrollup

Handles command line arguments for site selection, extraction rules,
output options and scheduling overrides.
"""

import argparse
from pathlib import Path
from typing import List, Optional

from webrollup.core.base import SiteSpec, OutputMode


class CLIManager:
    """
    Command line interface manager for webrollup

    Sites given with --urls replace the configured ones; the other flags
    override the matching configuration values.
    """

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all options

        Returns:
            Configured argument parser
        """
        parser = argparse.ArgumentParser(
            prog="webrollup",
            description="Crawl websites and roll their content up into Markdown files",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=self._get_epilog()
        )

        parser.add_argument(
            "-f", "--config",
            help="Path to the config file (default: rollup.yml in the current directory)"
        )

        # Site options
        site_group = parser.add_argument_group("Sites")
        site_group.add_argument(
            "--urls",
            nargs="+",
            help="One or more base URLs to crawl instead of the configured sites"
        )
        site_group.add_argument(
            "--css",
            default="",
            help="CSS selector of the content region (default: page body)"
        )
        site_group.add_argument(
            "--exclude",
            nargs="+",
            default=[],
            help="CSS selectors of elements to remove from the content"
        )
        site_group.add_argument(
            "--allowed-paths",
            nargs="+",
            default=[],
            help="Only crawl URL paths starting with one of these prefixes"
        )
        site_group.add_argument(
            "--exclude-paths",
            nargs="+",
            default=[],
            help="Never crawl URL paths starting with one of these prefixes"
        )
        site_group.add_argument(
            "--depth",
            type=int,
            default=0,
            help="How many links deep to follow from each seed URL (default: 0)"
        )

        # Output options
        output_group = parser.add_argument_group("Output")
        output_group.add_argument(
            "--output-type",
            choices=[mode.value for mode in OutputMode],
            help="One combined file or one file per page group"
        )
        output_group.add_argument(
            "--output-dir",
            help="Directory to write rollup files to"
        )

        # Scheduling options
        scrape_group = parser.add_argument_group("Scheduling")
        scrape_group.add_argument(
            "--rate-limit",
            type=float,
            help="Maximum sustained fetches per second"
        )
        scrape_group.add_argument(
            "--burst",
            type=int,
            help="Number of fetches allowed back to back"
        )
        scrape_group.add_argument(
            "--max-workers",
            type=int,
            help="Maximum number of concurrent workers"
        )
        scrape_group.add_argument(
            "--run-timeout",
            type=float,
            help="Cancel the crawl after this many seconds"
        )

        # Logging options
        logging_group = parser.add_argument_group("Logging")
        logging_group.add_argument(
            "--log-level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Logging level"
        )
        logging_group.add_argument(
            "--log-file",
            help="Also write logs to this file"
        )
        logging_group.add_argument(
            "-v", "--verbose",
            action="store_true",
            help="Enable verbose logging (same as --log-level DEBUG)"
        )

        parser.add_argument(
            "--examples",
            action="store_true",
            help="Show usage examples and exit"
        )

        return parser

    def _get_epilog(self) -> str:
        """
        Get epilog text for help message

        Returns:
            Formatted epilog text
        """
        return """
Examples:
  # Crawl the sites listed in ./rollup.yml
  python -m webrollup

  # Use another config file
  python -m webrollup -f docs.rollup.yml

  # Crawl one site two links deep, keeping only the article body
  python -m webrollup --urls https://example.com --css article --depth 2

  # Restrict to the docs section and drop navigation
  python -m webrollup --urls https://example.com --allowed-paths /docs \\
      --exclude nav .sidebar

  # Everything in one file, at most 2 fetches per second
  python -m webrollup --output-type single --rate-limit 2 --burst 2

Notes:
  - Output files end in .rollup.md and are written to ./output by default
  - Separate mode writes one file per allowed path, or per page when none are set
  - ROLLUP_OUTPUT_TYPE, ROLLUP_REQUESTS_PER_SECOND, ROLLUP_BURST_LIMIT,
    ROLLUP_MAX_WORKERS and LOG_LEVEL override the config file
"""

    def parse_arguments(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        """
        Parse command line arguments

        Args:
            args: Command line arguments (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        parsed_args = self.parser.parse_args(args)
        self.validate_arguments(parsed_args)
        return parsed_args

    def validate_arguments(self, args: argparse.Namespace) -> bool:
        """
        Validate parsed arguments for consistency

        Exits through parser.error() on the first invalid value.
        """
        if args.config and not Path(args.config).is_file():
            self.parser.error(f"Configuration file not found: {args.config}")

        if args.depth < 0:
            self.parser.error("Depth must be non-negative")

        if args.max_workers is not None and args.max_workers <= 0:
            self.parser.error("Maximum workers must be greater than 0")

        if args.rate_limit is not None and args.rate_limit <= 0:
            self.parser.error("Rate limit must be greater than 0")

        if args.burst is not None and args.burst <= 0:
            self.parser.error("Burst must be greater than 0")

        if args.run_timeout is not None and args.run_timeout <= 0:
            self.parser.error("Run timeout must be greater than 0")

        return True

    def get_sites_from_args(self, args: argparse.Namespace) -> List[SiteSpec]:
        """
        Build site specifications from command line flags

        Returns:
            One SiteSpec per --urls entry, sharing the extraction flags;
            an empty list when no URLs were given
        """
        if not args.urls:
            return []

        return [
            SiteSpec(
                base_url=url,
                css_locator=args.css,
                exclude_selectors=tuple(args.exclude),
                allowed_paths=tuple(args.allowed_paths),
                exclude_paths=tuple(args.exclude_paths),
                max_depth=args.depth
            )
            for url in args.urls
        ]

    def print_help(self) -> None:
        """Print help message"""
        self.parser.print_help()

    def get_usage_examples(self) -> str:
        return self._get_epilog()
