from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from .config import ProvisionConfig, load_config
from .errors import ConfigError, ManifestError
from .lib.native import NativeInstaller
from .logging_utils import close_logging, configure_logging
from .models import ProvisioningReport
from .pipeline import provision
from .report import exit_code_for, log_summary

logger = logging.getLogger(__name__)

EXIT_FATAL = 2


def run(
    config: ProvisionConfig,
    *,
    force: bool = False,
    native: Optional[NativeInstaller] = None,
) -> ProvisioningReport:
    """Provision everything in the configured manifest and log the outcome."""

    actual_log_path = configure_logging(log_path=config.log_path)
    logger.info("Provisioning from %s (log: %s)", config.manifest, actual_log_path)
    if config.dry_run:
        logger.info("Dry run: nothing will be downloaded or installed")

    report = provision(config, native=native, force=force)
    log_summary(report)
    return report


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="langpack-provision",
        description="Download and install the language-pack artifacts listed in a manifest.",
    )
    p.add_argument("--config", default=None, help="YAML config file")
    p.add_argument("--manifest", default=None, help="Manifest URL or path (default: <base-url>/manifest.txt)")
    p.add_argument("--base-url", default=None, help="URL the artifacts are downloaded from")
    p.add_argument("--store", default=None, dest="store_dir", help="Local artifact directory")
    p.add_argument("--log", default=None, dest="log_path", help="Append-only log file")
    p.add_argument("--state", default=None, dest="state_path", help="Run state file (json|yaml)")
    p.add_argument("--workers", type=int, default=None, dest="fetch_workers", help="Parallel downloads")
    p.add_argument("--timeout", type=float, default=None, dest="timeout_s", help="Network timeout in seconds")
    p.add_argument("--force", action="store_true", help="Ignore outcomes recorded by previous runs")
    p.add_argument("--dry-run", action="store_true", help="Log what would be done without doing it")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config).with_overrides(
            manifest=args.manifest,
            base_url=args.base_url,
            store_dir=args.store_dir,
            log_path=args.log_path,
            state_path=args.state_path,
            fetch_workers=args.fetch_workers,
            timeout_s=args.timeout_s,
            dry_run=True if args.dry_run else None,
        ).validate()
        report = run(config, force=args.force)
    except (ConfigError, FileNotFoundError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FATAL
    except ManifestError as e:
        logger.error("%s", e)
        return EXIT_FATAL
    finally:
        close_logging()

    return exit_code_for(report)


if __name__ == "__main__":
    raise SystemExit(main())
