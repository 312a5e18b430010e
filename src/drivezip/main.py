"""Main entry point."""
import sys
import argparse
from pathlib import Path
from typing import List, Optional

from drivezip.config.settings import AppSettings, get_settings, validate_settings
from drivezip.orchestrator.pipeline import ArchivePipeline, PipelineReport
from drivezip.utils.exceptions import ApiError, AuthError, ConfigError
from drivezip.utils.logger import configure_logging, get_logger

logger = get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Zip matching documents in Google Drive folders and upload the archives back"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML settings (default: config.yaml in the working directory if present)"
    )
    parser.add_argument(
        "--keyword",
        help="Folder name keyword (overrides search.keyword)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console and file log level (overrides logging.level)"
    )
    return parser


def _load_and_validate_settings(args: argparse.Namespace) -> AppSettings:
    """Load settings, apply CLI overrides and validate."""
    settings = get_settings(args.config)

    if args.keyword:
        settings.keyword = args.keyword
    if args.log_level:
        settings.log_level = args.log_level

    is_valid, message = validate_settings(settings)
    if not is_valid:
        raise ConfigError(f"Invalid configuration: {message}")

    return settings


def _log_run_results(report: PipelineReport) -> None:
    """Log summary of the run."""
    total_files = sum(len(entry.files) for entry in report.manifest)
    uploads = report.stages.get("upload")
    uploaded = uploads.success_count if uploads else 0

    logger.info(
        f"Run complete: "
        f"{len(report.folders)} folders matched, "
        f"{len(report.manifest)} with files, "
        f"{total_files} files, "
        f"{uploaded} archives uploaded, "
        f"{report.files_failed} per-file failures"
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for drivezip."""
    args = _build_parser().parse_args(argv)

    try:
        settings = _load_and_validate_settings(args)
        configure_logging(
            settings.log_level,
            settings.log_file,
            settings.log_max_file_size_mb,
            settings.log_backup_count
        )
        logger.info(f"{settings.app_name} {settings.app_version} starting (keyword: '{settings.keyword}')")

        report = ArchivePipeline(settings).run()
        _log_run_results(report)
    except ConfigError as e:
        logger.critical(str(e))
        return 1
    except AuthError as e:
        logger.critical(f"Authentication failed: {e}")
        return 1
    except ApiError as e:
        logger.critical(f"Aborted: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        return 1
    except Exception as e:
        logger.critical(f"Fatal error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
