"""Main application entry point for the JVM monitoring tool."""

import argparse
import logging
import signal
import sys
from typing import Optional, Sequence

from .collectors.jvm_sampler import TargetSampler
from .config.loader import ConfigLoader
from .config.models import MonitoringSystemConfig
from .config.settings import Settings
from .scheduler import PollScheduler
from .utils.errors import ConfigError
from .utils.logger import setup_logger
from .writers.alert_file import AlertFileWriter
from .writers.console import ConsoleWriter
from .writers.csv_log import CsvLogWriter, GcDetailCsvWriter
from .writers.error_log import ErrorLogWriter


class MonitoringApp:
    """
    Main monitoring application.

    Loads the configuration, wires sampler and writers into the scheduler
    and runs the polling loop until the process is terminated.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        overrides: Sequence[str] = (),
        log_level: str = "INFO"
    ):
        """
        Initialize monitoring application.

        Args:
            config_path: Path to a YAML or properties configuration file
            overrides: key=value command-line arguments
            log_level: Logging level

        Raises:
            SystemExit: If the configuration is invalid
        """
        self.config_path = config_path
        self.logger = setup_logger("jmxmon", log_level)

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        self.config = self._load_config(overrides)
        self._log_settings()

        output = self.config.output
        self.error_log = ErrorLogWriter(self.logger, output.error_file)
        self.writers = [
            ConsoleWriter(self.logger, show=output.console),
            AlertFileWriter(self.logger, output.nagios_file),
            CsvLogWriter(self.logger, output.csv_file),
            GcDetailCsvWriter(self.logger, output.csv_file, output.all_gc_values),
        ]
        self.sampler = TargetSampler(self.config.transport, self.logger)
        self.scheduler = PollScheduler(
            self.config, self.sampler, self.writers, self.error_log, self.logger
        )
        self.logger.info("Application initialized successfully")

    def _load_config(self, overrides: Sequence[str]) -> MonitoringSystemConfig:
        try:
            config = ConfigLoader.load(self.config_path, overrides)
            self.logger.info("Configuration loaded successfully")
            return config
        except ConfigError as e:
            self.logger.error(f"Invalid configuration: {e}")
            sys.exit(1)

    def _log_settings(self) -> None:
        """Log the effective settings with passwords masked."""
        config = self.config
        self.logger.info(f"Period: {config.period_seconds}s")
        for target in config.targets:
            credentials = f", user={target.username}, password=***" if target.has_credentials else ""
            self.logger.info(f"Target: {target.display_name}{credentials}")
        for spec in config.attributes:
            mode = "diff" if spec.rate else "abs"
            self.logger.info(
                f"Attribute: {mode}; {spec.title}; {spec.attribute_path}; {spec.object_pattern}"
            )
        output = config.output
        self.logger.info(
            f"Output: console={output.console}, nagiosfile={output.nagios_file}, "
            f"csvfile={output.csv_file}, errorfile={output.error_file}, "
            f"allgcvalues={output.all_gc_values}"
        )

    def _signal_handler(self, signum, frame):
        """
        Handle shutdown signals.

        Args:
            signum: Signal number
            frame: Current stack frame
        """
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received {signal_name}, shutting down")
        sys.exit(0)

    def run_once(self) -> None:
        self.scheduler.run_pass()

    def run(self) -> None:
        self.logger.info("Starting polling loop. Press Ctrl+C to exit.")
        self.scheduler.run()


def main(argv: Optional[Sequence[str]] = None):
    """
    CLI entry point.

    Parses command-line arguments and starts the polling loop.
    """
    parser = argparse.ArgumentParser(
        description='Periodic GC, CPU and attribute monitoring of remote JVMs',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Poll two JVMs every 10 seconds
  jmxmon url=srv1:8778,srv2:8778 periodseconds=10

  # Read settings from a properties file and override the CSV log
  jmxmon propfile=jmxmon.properties csvfile=jmxmon.csv

  # Single pass, then exit
  jmxmon --config config/jmxmon.yaml --run-once
        """
    )

    parser.add_argument(
        '--config',
        default=None,
        help='Path to a YAML or properties file (default: JMXMON_CONFIG or jmxmon.properties)'
    )

    parser.add_argument(
        '--run-once',
        action='store_true',
        help='Run a single pass and exit'
    )

    parser.add_argument(
        '--log-level',
        default=Settings.log_level(),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO or LOG_LEVEL env var)'
    )

    parser.add_argument(
        'overrides',
        nargs='*',
        metavar='key=value',
        help='Configuration settings taking priority over the file'
    )

    args = parser.parse_args(argv)

    app = MonitoringApp(
        config_path=args.config,
        overrides=args.overrides,
        log_level=args.log_level
    )

    try:
        if args.run_once:
            app.run_once()
        else:
            app.run()
    except KeyboardInterrupt:
        logging.getLogger("jmxmon").info("Received keyboard interrupt")

    sys.exit(0)


if __name__ == '__main__':
    main()
