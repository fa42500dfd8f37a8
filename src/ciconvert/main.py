"""
Command-line interface for converting CI pipelines to the unified format.

Reads one pipeline file, converts it with the provider's converter and writes
the unified YAML (or, with --downgrade, the legacy YAML) to a file or stdout.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

from .core.exceptions import (
    ExternalServiceError,
    ParseError,
    SerializationError,
    UnsupportedProviderError,
)
from .core.options import ConverterOptions
from .core.plugin_registry import get_global_registry
from .downgrader import Downgrader, DowngradeOptions

# source type of documents that are already in the unified format
UNIFIED_SOURCE = "v1"


@dataclass
class SourceSpec:
    """A source input with its provider type."""

    provider: str
    source_path: Path


def parse_source_argument(source_arg: str) -> SourceSpec:
    """
    Parse a source argument in TYPE:PATH format.

    Args:
        source_arg: Source argument string (e.g., 'gitlab:.gitlab-ci.yml')

    Returns:
        SourceSpec with parsed provider type and path

    Raises:
        ValueError: If the argument format is invalid
    """
    if ":" not in source_arg:
        raise ValueError(
            f"Invalid source format: '{source_arg}'. "
            "Expected format: TYPE:PATH (e.g., 'drone:.drone.yml')"
        )

    provider, path_str = source_arg.split(":", 1)

    if not provider.strip():
        raise ValueError(
            f"Empty provider type in source: '{source_arg}'. "
            "Expected format: TYPE:PATH (e.g., 'drone:.drone.yml')"
        )

    if not path_str.strip():
        raise ValueError(
            f"Empty path in source: '{source_arg}'. "
            "Expected format: TYPE:PATH (e.g., 'drone:.drone.yml')"
        )

    return SourceSpec(
        provider=provider.strip().lower(), source_path=Path(path_str.strip())
    )


def show_available_plugins() -> NoReturn:
    """Show available provider types and exit."""
    registry = get_global_registry()
    available_types = registry.providers()

    print("Available Providers:")
    print("=" * 50)

    if not available_types:
        print("No providers registered.")
        sys.exit(0)

    for provider in available_types:
        info = registry.describe(provider)
        description = info.get("description") or "No description available"
        print(f"  {provider:<14} - {description}")

        files = info.get("supported_files")
        if files:
            print(f"                   Supported files: {', '.join(files)}")

    print(f"  {UNIFIED_SOURCE:<14} - Unified pipeline (with --downgrade)")
    sys.exit(0)


def configure_logging(debug: bool = False, verbose: bool = False) -> None:
    """Configure application logging.

    Logs always go to stderr so that converted pipelines can be written to
    stdout.

    Args:
        debug: Enable debug-level logging if True.
        verbose: Enable info-level logging from converters if True.
    """
    if debug:
        level = logging.DEBUG
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    elif verbose:
        level = logging.INFO
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    else:
        level = logging.WARNING
        format_str = "%(levelname)s: %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        stream=sys.stderr,
        force=True,  # Override existing configuration
    )


def build_converter_options(args: argparse.Namespace) -> ConverterOptions:
    org_secrets = [s.strip() for s in (args.org_secrets or "").split(",") if s.strip()]
    return ConverterOptions(
        dockerhub_connector=args.docker_connector or "",
        kube_namespace=args.kube_namespace or "",
        kube_connector=args.kube_connector or "",
        org_secrets=org_secrets,
        default_image=args.default_image or "",
    )


def build_downgrade_options(args: argparse.Namespace) -> DowngradeOptions:
    return DowngradeOptions(
        codebase_name=args.repo_name or "",
        codebase_connector=args.repo_connector or "",
        dockerhub_connector=args.docker_connector or "",
        kube_namespace=args.kube_namespace or "",
        kube_connector=args.kube_connector or "",
        pipeline_name=args.pipeline or "",
        organization=args.org or "",
        project=args.project or "",
        default_image=args.default_image or "",
        use_intelligence=args.intelligence,
    )


def convert_source(source: SourceSpec, args: argparse.Namespace) -> bytes:
    """
    Convert one source file, downgrading the result when requested.

    Raises:
        UnsupportedProviderError: If the provider is unknown
        ConversionError: If the source cannot be converted
        OSError: If the source cannot be read
    """
    logger = logging.getLogger(__name__)

    if not source.source_path.is_file():
        raise FileNotFoundError(f"Source file does not exist: {source.source_path}")

    if source.provider == UNIFIED_SOURCE:
        if not args.downgrade:
            raise UnsupportedProviderError(
                f"'{UNIFIED_SOURCE}' sources can only be downgraded (use --downgrade)",
                provider=UNIFIED_SOURCE,
            )
        output = source.source_path.read_bytes()
    else:
        converter = get_global_registry().create_converter(
            source.provider,
            build_converter_options(args),
            token=args.token,
            format=args.format,
            debug=args.debug or None,
            pipeline_name=args.pipeline,
            organization=args.org,
            project=args.project,
            notify_user_group=args.notify_user_group,
            github_connector=args.github_connector,
        )
        logger.info(f"Converting {source.source_path} with the {source.provider} converter")
        output = converter.convert_file(source.source_path)

        if converter.output_format == "v0":
            if args.downgrade:
                logger.warning(
                    f"The {source.provider} converter writes legacy pipelines; "
                    "--downgrade is ignored"
                )
            return output

    if args.downgrade:
        logger.info("Downgrading to the legacy pipeline format")
        output = Downgrader(build_downgrade_options(args)).downgrade_bytes(output)
    return output


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and validate command line arguments."""
    available_types = get_global_registry().providers()

    parser = argparse.ArgumentParser(
        prog="ciconvert",
        description="Convert CI pipeline definitions to the unified pipeline format",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert a GitLab pipeline and print the result
  ciconvert --source gitlab:.gitlab-ci.yml

  # Convert a Drone pipeline to the legacy format
  ciconvert --source drone:.drone.yml --downgrade --org acme \\
    --project web --repo-name web --repo-connector github out.yaml

  # Convert a Rio pipeline (written in the legacy format)
  ciconvert --source rio:.rio.yml --notify-user-group account.release

  # Downgrade an existing unified pipeline
  ciconvert --source v1:.harness.yaml --downgrade

  # List available providers
  ciconvert --list-plugins
        """,
    )

    parser.add_argument(
        "-s",
        "--source",
        metavar="TYPE:PATH",
        help="Pipeline to convert. Available types: "
        f"{', '.join(available_types + [UNIFIED_SOURCE])}",
    )
    parser.add_argument(
        "output_file",
        nargs="?",
        type=Path,
        help="File the converted pipeline is written to (default: stdout)",
    )
    parser.add_argument(
        "--list-plugins",
        action="store_true",
        help="List available provider types and exit",
    )
    parser.add_argument(
        "--downgrade",
        action="store_true",
        help="Downgrade the converted pipeline to the legacy format",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging for detailed output"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable info logging from converters",
    )

    conversion = parser.add_argument_group("conversion options")
    conversion.add_argument("--docker-connector", help="Container registry connector")
    conversion.add_argument("--kube-namespace", help="Kubernetes namespace")
    conversion.add_argument(
        "--kube-connector",
        help="Kubernetes connector; enables kubernetes infrastructure",
    )
    conversion.add_argument(
        "--org-secrets", help="Comma separated organization secret names"
    )
    conversion.add_argument("--default-image", help="Image of steps without one")

    downgrade = parser.add_argument_group("downgrade options")
    downgrade.add_argument("--org", help="Organization identifier")
    downgrade.add_argument("--project", help="Project identifier")
    downgrade.add_argument("--pipeline", help="Pipeline name")
    downgrade.add_argument("--repo-name", help="Codebase repository name")
    downgrade.add_argument("--repo-connector", help="Codebase repository connector")
    downgrade.add_argument(
        "--intelligence",
        action="store_true",
        help="Enable build intelligence and test steps",
    )

    rio = parser.add_argument_group("rio options")
    rio.add_argument(
        "--notify-user-group",
        help="User group emailed on pipeline success and failure "
        "(default: account._account_all_users)",
    )
    rio.add_argument("--github-connector", help="Codebase connector of Rio pipelines")

    jenkins = parser.add_argument_group("jenkins options")
    jenkins.add_argument("--token", help="Chat-completion API token")
    jenkins.add_argument(
        "--format",
        default="gitlab",
        choices=["gitlab", "github", "drone"],
        help="Intermediate pipeline format (default: gitlab)",
    )

    args = parser.parse_args(argv)

    if args.list_plugins:
        show_available_plugins()

    if not args.source:
        parser.error("Must specify either --source TYPE:PATH or use --list-plugins")

    return args


def run_conversion(args: argparse.Namespace) -> NoReturn:
    """Execute the conversion and exit with a status code.

    Exit codes: 0 success, 1 parse or decode error, 2 external service
    error, 3 unsupported provider, 4 serialization error, 8 file system
    error, 9 unexpected error.

    Raises:
        SystemExit: Always.
    """
    configure_logging(args.debug, args.verbose)
    logger = logging.getLogger(__name__)

    try:
        source = parse_source_argument(args.source)
        output = convert_source(source, args)

        if args.output_file:
            args.output_file.parent.mkdir(parents=True, exist_ok=True)
            args.output_file.write_bytes(output)
            logger.info(f"Pipeline saved to: {args.output_file}")
        else:
            sys.stdout.buffer.write(output)
            sys.stdout.flush()

        sys.exit(0)

    except ValueError as e:
        logger.error(f"Invalid arguments: {e}")
        sys.exit(1)
    except ParseError as e:
        logger.error(f"Parse error: {e}")
        logger.info(f"Suggestion: {e.get_recovery_hint()}")
        sys.exit(1)
    except ExternalServiceError as e:
        logger.error(f"External service error: {e}")
        logger.info(f"Suggestion: {e.get_recovery_hint()}")
        sys.exit(2)
    except UnsupportedProviderError as e:
        logger.error(f"Unsupported provider: {e}")
        sys.exit(3)
    except SerializationError as e:
        logger.error(f"Serialization error: {e}")
        sys.exit(4)
    except (PermissionError, FileNotFoundError, OSError) as e:
        logger.error(f"File system error: {e}")
        sys.exit(8)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            logger.exception("Full traceback:")
        sys.exit(9)


def cli(argv: list[str] | None = None) -> NoReturn:
    run_conversion(parse_arguments(argv))


if __name__ == "__main__":
    cli()
