"""Pipeline orchestration: documents in, invoices and counterparties out.

Per document:
1. Render the file into page images
2. Group pages by invoice (degrades to a single invoice on failure)
3. For every group: select pages, extract the invoice, resolve its counterparty

Documents of a batch run concurrently on a thread pool, one task per document.
Component failures are turned into per-document results here; nothing a single
document does can abort the batch.
"""

import logging
import threading
from collections.abc import Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from invpa.extraction.extractor import InvoiceExtractor
from invpa.extraction.grouping import InvoiceGrouper
from invpa.extraction.schema import Counterparty, Invoice, PageImage
from invpa.extraction.selection import select_pages_for_analysis
from invpa.inference.base import VisionClient
from invpa.inference.factory import create_vision_client
from invpa.matching.matcher import CounterpartyMatcher
from invpa.matching.registry import CounterpartyRegistry, RegistryEntry
from invpa.rendering.service import PageRenderer
from invpa.shared import metrics
from invpa.shared.config import Settings
from invpa.shared.errors import (
    ExtractionError,
    InvoicePipelineError,
    MatchingUnavailableError,
    PipelineCancelledError,
)

logger = logging.getLogger(__name__)


class DocumentStatus(str, Enum):
    """Final status of one document."""

    SUCCESS = "success"  # every invoice group extracted
    PARTIAL = "partial"  # some groups extracted, some failed
    FAILED = "failed"  # nothing extracted


class DocumentResult(BaseModel):
    """Result of processing one document.

    Attributes:
        source_file: Path of the processed document
        status: Final document status
        invoices: Extracted invoices, counterparties resolved against the registry
        errors: Error messages (document-level, or per group prefixed by its token)
        grouping_degraded: True if pages were treated as one invoice after a grouping failure
        unassigned_pages: Page ordinals the grouping left out of every invoice (not extracted)
    """

    source_file: str
    status: DocumentStatus
    invoices: list[Invoice] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    grouping_degraded: bool = False
    unassigned_pages: list[int] = Field(default_factory=list)


class BatchResult(BaseModel):
    """Result of a batch run.

    Attributes:
        documents: Per-document results in completion order
        counterparties: Deduplicated counterparties with the file each was first seen in
        cancelled: True if the batch stopped early (interrupt, cancel() or deadline)
    """

    documents: list[DocumentResult]
    counterparties: list[RegistryEntry]
    cancelled: bool = False

    def count(self, status: DocumentStatus) -> int:
        return sum(1 for document in self.documents if document.status == status)

    @property
    def succeeded(self) -> int:
        return self.count(DocumentStatus.SUCCESS)

    @property
    def partial(self) -> int:
        return self.count(DocumentStatus.PARTIAL)

    @property
    def failed(self) -> int:
        return self.count(DocumentStatus.FAILED)


class PipelineOrchestrator:
    """Drives documents through rendering, grouping, extraction and matching."""

    def __init__(
        self,
        settings: Settings,
        renderer: PageRenderer,
        grouper: InvoiceGrouper,
        extractor: InvoiceExtractor,
        matcher: CounterpartyMatcher,
    ) -> None:
        self.settings = settings
        self.renderer = renderer
        self.grouper = grouper
        self.extractor = extractor
        self.matcher = matcher
        self._cancelled = threading.Event()

    @classmethod
    def from_settings(
        cls, settings: Settings, client: VisionClient | None = None
    ) -> "PipelineOrchestrator":
        """Build an orchestrator whose components share one vision client.

        Args:
            settings: Application settings
            client: Vision client to use instead of the configured provider

        Returns:
            Configured orchestrator
        """
        client = client or create_vision_client(settings)
        return cls(
            settings,
            renderer=PageRenderer(settings),
            grouper=InvoiceGrouper(client, settings),
            extractor=InvoiceExtractor(client, settings),
            matcher=CounterpartyMatcher(client, settings),
        )

    def cancel(self) -> None:
        """Ask running workers to stop at their next stage boundary."""
        self._cancelled.set()

    def run_batch(
        self, paths: Sequence[Path], registry: CounterpartyRegistry | None = None
    ) -> BatchResult:
        """Process documents concurrently and deduplicate their counterparties.

        Args:
            paths: Documents to process
            registry: Registry to match against (a fresh one by default)

        Returns:
            BatchResult with one entry per document and the final registry
        """
        registry = registry if registry is not None else CounterpartyRegistry()
        if not paths:
            return BatchResult(documents=[], counterparties=registry.entries())

        self._cancelled.clear()
        workers = min(self.settings.max_workers, len(paths))
        logger.info(f"Processing {len(paths)} documents with {workers} workers")

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="invpa-worker")
        futures: dict[Future[DocumentResult], Path] = {
            executor.submit(self.process_document, path, registry): path for path in paths
        }
        results: list[DocumentResult] = []
        collected: set[Future[DocumentResult]] = set()
        try:
            for future in as_completed(futures, timeout=self.settings.batch_timeout_seconds):
                collected.add(future)
                results.append(self._collect(future, futures[future]))
        except TimeoutError:
            logger.error(
                f"Batch deadline of {self.settings.batch_timeout_seconds}s exceeded, "
                f"cancelling remaining documents"
            )
            self.cancel()
        except KeyboardInterrupt:
            logger.warning("Interrupted, cancelling remaining documents")
            self.cancel()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        results.extend(self._collect_remaining(futures, collected))

        batch = BatchResult(
            documents=results,
            counterparties=registry.entries(),
            cancelled=self._cancelled.is_set(),
        )
        logger.info(
            f"Batch complete: {batch.succeeded} succeeded, {batch.partial} partial, "
            f"{batch.failed} failed, {len(batch.counterparties)} unique counterparties"
        )
        return batch

    def process_document(self, path: Path, registry: CounterpartyRegistry) -> DocumentResult:
        """Run the full pipeline for one document.

        Args:
            path: Document to process
            registry: Shared counterparty registry

        Returns:
            DocumentResult; failures are reported in it, not raised
        """
        source_file = str(path)
        logger.info(f"Processing {source_file}")

        try:
            self._check_cancelled()
            pages = self.renderer.render(path)
            self._check_cancelled()
            grouping = self.grouper.group(pages)
        except InvoicePipelineError as e:
            logger.error(f"Failed to process {source_file}: {e}")
            return self._record(
                DocumentResult(
                    source_file=source_file, status=DocumentStatus.FAILED, errors=[str(e)]
                )
            )

        pages_by_ordinal = {page.ordinal: page for page in pages}
        invoices: list[Invoice] = []
        errors: list[str] = []

        for token, ordinals in sorted(grouping.groups.items(), key=lambda item: min(item[1])):
            try:
                self._check_cancelled()
                invoices.append(
                    self._process_group(source_file, token, ordinals, pages_by_ordinal, registry)
                )
            except PipelineCancelledError as e:
                errors.append(f"{token}: {e}")
                break
            except InvoicePipelineError as e:
                logger.error(f"Error analyzing invoice '{token}' in {source_file}: {e}")
                errors.append(f"{token}: {e}")

        if not invoices:
            status = DocumentStatus.FAILED
        elif len(invoices) < len(grouping.groups):
            status = DocumentStatus.PARTIAL
        else:
            status = DocumentStatus.SUCCESS

        return self._record(
            DocumentResult(
                source_file=source_file,
                status=status,
                invoices=invoices,
                errors=errors,
                grouping_degraded=grouping.degraded,
                unassigned_pages=grouping.unassigned,
            )
        )

    def _process_group(
        self,
        source_file: str,
        token: str,
        ordinals: list[int],
        pages_by_ordinal: Mapping[int, PageImage],
        registry: CounterpartyRegistry,
    ) -> Invoice:
        selected = select_pages_for_analysis(ordinals)
        logger.info(
            f"Analyzing invoice '{token}' with {len(ordinals)} pages "
            f"({len(selected)} selected for detailed analysis)"
        )

        try:
            invoice = self.extractor.extract(
                [pages_by_ordinal[ordinal] for ordinal in selected], self.settings.my_company
            )
        except ExtractionError:
            metrics.invoices_extracted_total.labels(status="failed").inc()
            raise
        metrics.invoices_extracted_total.labels(status="success").inc()

        counterparty = self._resolve_counterparty(invoice.counterparty, source_file, registry)
        return invoice.model_copy(update={"counterparty": counterparty})

    def _resolve_counterparty(
        self, counterparty: Counterparty, source_file: str, registry: CounterpartyRegistry
    ) -> Counterparty:
        """Match a counterparty against the registry, registering it if it is new.

        The whole match-or-register sequence holds the registry lock.

        Raises:
            MatchInconsistencyError: If the matcher names an unregistered id
        """
        with registry.transaction():
            try:
                matched = self.matcher.find_match(registry.counterparties(), counterparty)
            except MatchingUnavailableError as e:
                logger.warning(f"Could not match counterparty for {source_file}: {e}")
                metrics.counterparty_resolutions_total.labels(outcome="unavailable").inc()
                return registry.register(counterparty, source_file)

            if matched is None:
                metrics.counterparty_resolutions_total.labels(outcome="new").inc()
                return registry.register(counterparty, source_file)

            registry.update(matched)
            metrics.counterparty_resolutions_total.labels(outcome="matched").inc()
            return matched

    def _check_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise PipelineCancelledError("Batch was cancelled")

    def _collect(self, future: Future[DocumentResult], path: Path) -> DocumentResult:
        try:
            return future.result()
        except Exception as e:
            logger.exception(f"Unexpected error while processing {path}: {e}")
            return self._record(
                DocumentResult(
                    source_file=str(path),
                    status=DocumentStatus.FAILED,
                    errors=[f"Unexpected error: {e}"],
                )
            )

    def _collect_remaining(
        self,
        futures: Mapping[Future[DocumentResult], Path],
        collected: set[Future[DocumentResult]],
    ) -> list[DocumentResult]:
        results = []
        for future, path in futures.items():
            if future in collected:
                continue
            if future.cancelled():
                results.append(
                    self._record(
                        DocumentResult(
                            source_file=str(path),
                            status=DocumentStatus.FAILED,
                            errors=["Cancelled before processing"],
                        )
                    )
                )
            else:
                results.append(self._collect(future, path))
        return results

    def _record(self, result: DocumentResult) -> DocumentResult:
        metrics.documents_processed_total.labels(status=result.status.value).inc()
        logger.info(
            f"Finished {result.source_file}: {result.status.value}, "
            f"{len(result.invoices)} invoice(s)"
        )
        return result
