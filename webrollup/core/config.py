"""
Configuration Manager for webrollup

Handles YAML/JSON configuration files and environment variable overrides,
validates site specifications, and resolves optional scrape settings to
their defaults.
"""

import os
import json
import yaml
import validators
from typing import Dict, Any, Optional, List
from dataclasses import dataclass
from pathlib import Path

from webrollup.core.base import SiteSpec, OutputMode, ConfigurationError


DEFAULT_CONFIG_PATH = "rollup.yml"
DEFAULT_REQUESTS_PER_SECOND = 1.0
DEFAULT_BURST_LIMIT = 3


@dataclass
class CrawlConfig:
    """Configuration for the crawl4ai browser"""
    headless: bool = True
    scan_full_page: bool = True
    scroll_delay: float = 0.5
    timeout: int = 30
    user_agent: Optional[str] = None


@dataclass
class ScrapeConfig:
    """Scheduling configuration; rate and burst stay None until resolved"""
    requests_per_second: Optional[float] = None
    burst_limit: Optional[int] = None
    max_workers: int = 10
    run_timeout: Optional[float] = None


@dataclass
class ScrapeSettings:
    """Scheduling configuration with every default applied"""
    requests_per_second: float
    burst_limit: int
    max_workers: int
    run_timeout: Optional[float]


@dataclass
class OutputConfig:
    """Output bundle configuration"""
    output_type: str = OutputMode.SEPARATE.value
    output_dir: str = "output"
    output_file: str = "combined.rollup.md"


@dataclass
class LoggingConfig:
    """Logging system configuration"""
    level: str = "INFO"
    file: Optional[str] = None
    max_size: str = "10MB"
    backup_count: int = 3


class ConfigManager:
    """
    Centralized configuration manager with support for YAML/JSON files
    and environment variable integration.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config_data: Dict[str, Any] = {}
        self.scrape_config: ScrapeConfig = ScrapeConfig()
        self.crawl_config: CrawlConfig = CrawlConfig()
        self.output_config: OutputConfig = OutputConfig()
        self.logging_config: LoggingConfig = LoggingConfig()
        self.sites: List[SiteSpec] = []

    def load_config(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from file with environment variable override.

        A missing file yields an empty configuration; sites may still be
        supplied from the command line.
        """
        if config_path:
            self.config_path = config_path

        config_file = Path(self.config_path)

        if not config_file.exists():
            self._config_data = {}
        else:
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    if config_file.suffix.lower() == '.json':
                        self._config_data = json.load(f)
                    else:  # Assume YAML
                        self._config_data = yaml.safe_load(f) or {}
            except (OSError, ValueError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load config from {config_file}: {e}")

            if not isinstance(self._config_data, dict):
                raise ConfigurationError(f"Config file {config_file} must contain a mapping")

        self._apply_env_overrides()
        self._parse_config()

        return self._config_data

    def load_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Load configuration from an in-memory mapping"""
        self._config_data = dict(data)
        self._parse_config()
        return self._config_data

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides"""
        if os.getenv('ROLLUP_OUTPUT_TYPE'):
            self._config_data['output_type'] = os.getenv('ROLLUP_OUTPUT_TYPE')

        numeric_overrides = [
            ('ROLLUP_REQUESTS_PER_SECOND', 'requests_per_second', float),
            ('ROLLUP_BURST_LIMIT', 'burst_limit', int),
            ('ROLLUP_MAX_WORKERS', 'max_workers', int),
        ]
        for env_name, key, cast in numeric_overrides:
            value = os.getenv(env_name)
            if not value:
                continue
            try:
                self._config_data.setdefault('scrape', {})[key] = cast(value)
            except ValueError:
                raise ConfigurationError(f"Invalid value for {env_name}: {value!r}")

        if os.getenv('LOG_LEVEL'):
            self._config_data.setdefault('logging', {})['level'] = os.getenv('LOG_LEVEL')

    def _parse_config(self) -> None:
        """Parse configuration into dataclass objects"""
        data = self._config_data

        # Rate settings live at top level (as in rollup.yml) or under 'scrape'
        scrape_data = dict(data.get('scrape') or {})
        for key in ('requests_per_second', 'burst_limit'):
            if key in data and key not in scrape_data:
                scrape_data[key] = data[key]

        self.scrape_config = ScrapeConfig(
            requests_per_second=scrape_data.get('requests_per_second'),
            burst_limit=scrape_data.get('burst_limit'),
            max_workers=scrape_data.get('max_workers', 10),
            run_timeout=scrape_data.get('run_timeout')
        )

        crawl_data = data.get('crawl') or {}
        try:
            self.crawl_config = CrawlConfig(**crawl_data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid crawl settings: {e}")

        output_data = data.get('output') or {}
        self.output_config = OutputConfig(
            output_type=data.get('output_type') or output_data.get('type', OutputMode.SEPARATE.value),
            output_dir=output_data.get('dir', 'output'),
            output_file=output_data.get('file', 'combined.rollup.md')
        )

        logging_data = data.get('logging') or {}
        self.logging_config = LoggingConfig(
            level=logging_data.get('level', 'INFO'),
            file=logging_data.get('file'),
            max_size=logging_data.get('max_size', '10MB'),
            backup_count=logging_data.get('backup_count', 3)
        )

        sites_data = data.get('sites') or []
        if not isinstance(sites_data, list):
            raise ConfigurationError("'sites' must be a list")
        self.sites = [SiteSpec.from_dict(site) for site in sites_data]

    def validate_config(self, sites: Optional[List[SiteSpec]] = None) -> bool:
        """
        Validate configuration before any crawling starts

        Args:
            sites: Sites to validate instead of the configured ones

        Raises:
            ConfigurationError: On the first invalid value
        """
        sites = self.sites if sites is None else sites

        if not sites:
            raise ConfigurationError("At least one site must be specified")

        valid_modes = [mode.value for mode in OutputMode]
        if self.output_config.output_type not in valid_modes:
            raise ConfigurationError(
                f"output_type must be one of {valid_modes}, got {self.output_config.output_type!r}"
            )

        scrape = self.scrape_config
        if scrape.requests_per_second is not None and scrape.requests_per_second <= 0:
            raise ConfigurationError("requests_per_second must be positive")
        if scrape.burst_limit is not None and scrape.burst_limit <= 0:
            raise ConfigurationError("burst_limit must be positive")
        if scrape.max_workers is None or scrape.max_workers <= 0:
            raise ConfigurationError("max_workers must be positive")
        if scrape.run_timeout is not None and scrape.run_timeout <= 0:
            raise ConfigurationError("run_timeout must be positive")

        for site in sites:
            validate_site(site)

        return True

    def resolve_scrape_settings(self) -> ScrapeSettings:
        """Apply defaults to the optional scrape settings, once per run"""
        scrape = self.scrape_config
        return ScrapeSettings(
            requests_per_second=(
                scrape.requests_per_second
                if scrape.requests_per_second is not None
                else DEFAULT_REQUESTS_PER_SECOND
            ),
            burst_limit=scrape.burst_limit if scrape.burst_limit is not None else DEFAULT_BURST_LIMIT,
            max_workers=scrape.max_workers,
            run_timeout=scrape.run_timeout
        )

    def to_component_config(self) -> Dict[str, Any]:
        """Flatten settings into the mapping handed to components"""
        settings = self.resolve_scrape_settings()
        return {
            'crawl': {
                'headless': self.crawl_config.headless,
                'scan_full_page': self.crawl_config.scan_full_page,
                'scroll_delay': self.crawl_config.scroll_delay,
                'timeout': self.crawl_config.timeout,
                'user_agent': self.crawl_config.user_agent
            },
            'requests_per_second': settings.requests_per_second,
            'burst_limit': settings.burst_limit,
            'max_workers': settings.max_workers,
            'run_timeout': settings.run_timeout,
            'output_type': self.output_config.output_type,
            'output_dir': self.output_config.output_dir,
            'output_file': self.output_config.output_file,
            'markdown': self._config_data.get('markdown') or {}
        }


def validate_site(site: SiteSpec) -> None:
    """Raise ConfigurationError if a site specification is unusable"""
    if not site.base_url:
        raise ConfigurationError("base_url must be specified for each site")
    if not validators.url(site.base_url, simple_host=True):
        raise ConfigurationError(f"Invalid base_url: {site.base_url}")
    if not isinstance(site.max_depth, int) or site.max_depth < 0:
        raise ConfigurationError(f"max_depth must be a non-negative integer for {site.base_url}")
    for override in site.path_overrides:
        if not override.path:
            raise ConfigurationError(f"Path override without path for {site.base_url}")
