"""Command-line entry point.

Usage:
    invpa [PATH ...] [--config config.json] [--output result.json] [--workers N]
    python -m invpa.cli invoices/ --recursive

PATHs may be files or directories (default: current directory). Directories are
scanned for PDF, PNG and JPEG files. The batch result (per-document invoices and
the deduplicated counterparty registry) is written as JSON.
"""

import argparse
import logging
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path

from pydantic import ValidationError

from invpa.inference.factory import create_vision_client
from invpa.pipeline.orchestrator import BatchResult, PipelineOrchestrator
from invpa.rendering.service import SUPPORTED_EXTENSIONS, is_supported
from invpa.shared.config import get_settings
from invpa.shared.logging import configure_logging
from invpa.shared.metrics import write_metrics

logger = logging.getLogger(__name__)


def find_invoice_files(paths: Iterable[Path], recursive: bool = False) -> list[Path]:
    """Expand files and directories into the list of documents to process.

    Explicit files are kept as given, even with an unsupported extension, so that
    they are reported as failed rather than silently dropped. Directory scans only
    pick up supported files and skip macOS ``._`` resource forks.

    Args:
        paths: Files and/or directories
        recursive: Descend into subdirectories

    Returns:
        Documents to process
    """
    files: list[Path] = []
    for path in paths:
        if path.is_file():
            files.append(path)
        elif path.is_dir():
            candidates = path.rglob("*") if recursive else path.iterdir()
            files.extend(
                sorted(
                    candidate
                    for candidate in candidates
                    if candidate.is_file()
                    and is_supported(candidate)
                    and not candidate.name.startswith("._")
                )
            )
        else:
            logger.warning(f"Skipping missing path: {path}")
    return files


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invpa",
        description="Extract invoices and deduplicated counterparties from scanned documents.",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        type=Path,
        help="Invoice files or directories (default: current directory)",
    )
    parser.add_argument("--config", type=Path, help="JSON config file (default: ./config.json)")
    parser.add_argument(
        "--output", "-o", type=Path, help="Write JSON result here (default: stdout)"
    )
    parser.add_argument("--workers", type=_positive_int, help="Documents processed concurrently")
    parser.add_argument(
        "--recursive", "-r", action="store_true", help="Scan directories recursively"
    )
    parser.add_argument("--metrics-file", type=Path, help="Write Prometheus metrics to this file")
    return parser


def print_summary(batch: BatchResult) -> None:
    invoices = sum(len(document.invoices) for document in batch.documents)
    print(
        f"\nProcessed {len(batch.documents)} file(s):\n"
        f"- {invoices} invoice(s) extracted\n"
        f"- {batch.succeeded} file(s) fully processed, {batch.partial} partially\n"
        f"- {len(batch.counterparties)} unique counterparties found\n"
        f"- {batch.failed} file(s) with errors",
        file=sys.stderr,
    )
    if batch.cancelled:
        print("Batch was interrupted, results above are incomplete", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    """Run a batch from the command line.

    Returns:
        Exit code: 0 on a clean run, 2 on configuration errors and 1 otherwise
    """
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings(args.config)
    except (FileNotFoundError, ValidationError) as e:
        print(f"Could not load configuration: {e}", file=sys.stderr)
        return 2

    if args.workers:
        settings = settings.model_copy(update={"max_workers": args.workers})
    configure_logging(settings.log_level)

    client = create_vision_client(settings)
    if not client.is_available():
        logger.error(f"Vision provider '{settings.inference_provider}' is not configured")
        return 2

    files = find_invoice_files(args.paths or [Path(".")], recursive=args.recursive)
    if not files:
        extensions = ", ".join(SUPPORTED_EXTENSIONS)
        logger.error(f"No invoice files ({extensions}) found")
        return 1

    logger.info(f"Found {len(files)} files to process. Starting analysis...")
    orchestrator = PipelineOrchestrator.from_settings(settings, client=client)
    batch = orchestrator.run_batch(files)

    payload = batch.model_dump_json(by_alias=True, indent=2)
    if args.output:
        args.output.write_text(payload, encoding="utf-8")
        logger.info(f"Result written to {args.output}")
    else:
        print(payload)

    if args.metrics_file:
        write_metrics(args.metrics_file)

    print_summary(batch)
    return 1 if batch.failed or batch.cancelled else 0


if __name__ == "__main__":
    sys.exit(main())
