"""
Sync orchestration.

Responsibilities:
- Empty the destination collection in bounded delete batches.
- Run the source query and fetch every row.
- Write rows back in bounded BulkWriter chunks, in fetch order.

Non-Responsibilities:
- No retries beyond the write retry policy.
- No rollback; a failed run leaves the collection as it was at the failure.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .config import SyncConfig
from .docstore import DocumentStoreClient
from .documents import chunked, iter_documents
from .logger import StructuredLogger, get_logger
from .warehouse import WarehouseClient


@dataclass
class SyncResult:
    state: str
    documents_deleted: int = 0
    delete_batches: int = 0
    rows_fetched: int = 0
    documents_written: int = 0
    write_chunks: int = 0
    dry_run: bool = False


class SyncOrchestrator:
    """
    Runs clear -> query -> write once.

    States:
    - IDLE: Not started
    - CLEARING: Deleting existing documents
    - QUERYING: Waiting on the warehouse query
    - WRITING: Bulk-writing rows
    - DONE: Finished, including the no-rows case
    - FAILED: An error stopped the run
    """

    IDLE = "idle"
    CLEARING = "clearing"
    QUERYING = "querying"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"

    def __init__(
        self,
        config: SyncConfig,
        warehouse: WarehouseClient,
        docstore: DocumentStoreClient,
        logger: Optional[StructuredLogger] = None,
        dry_run: bool = False,
    ):
        self.config = config
        self.warehouse = warehouse
        self.docstore = docstore
        self.logger = logger or get_logger()
        self.dry_run = dry_run
        self.state = self.IDLE
        self.result = SyncResult(state=self.IDLE, dry_run=dry_run)

    def run(self) -> SyncResult:
        """
        Execute the sync.

        Raises:
            RuntimeError: If this orchestrator has already run
            Exception: Whatever stopped the run, after it is logged
        """
        if self.state != self.IDLE:
            raise RuntimeError(f"Sync already ran (state: {self.state})")

        try:
            self._set_state(self.CLEARING)
            self._clear()

            self._set_state(self.QUERYING)
            rows = self._query()
            if not rows:
                self.logger.info("No data to write.")
                self._set_state(self.DONE)
                return self.result

            self._set_state(self.WRITING)
            self._write(rows)
        except Exception as e:
            phase = self.state
            self._set_state(self.FAILED)
            self.logger.record_error(type(e).__name__)
            self.logger.error(
                f"Sync failed during {phase}: {e}",
                phase=phase,
                error_type=type(e).__name__,
                collection=self.config.collection,
            )
            raise

        self._set_state(self.DONE)
        if self.dry_run:
            self.logger.info("Dry run complete, no documents were changed.")
        else:
            self.logger.info("All data synced to Firestore successfully!")
        return self.result

    def _set_state(self, state: str):
        self.logger.debug("Sync state change", previous=self.state, state=state)
        self.state = state
        self.result.state = state

    def _clear(self):
        collection = self.config.collection
        self.logger.info(f"Clearing all documents from \"{collection}\"...")
        refs = self.docstore.list_all_document_refs(collection)

        if self.dry_run:
            self.logger.info(f"[DRY RUN] Would delete {len(refs)} documents.")
            self.result.documents_deleted = len(refs)
            return

        for offset, batch in chunked(refs, self.config.delete_batch_size):
            self.docstore.delete_batch(batch)
            batch_no = offset // self.config.delete_batch_size + 1
            self.result.delete_batches += 1
            self.result.documents_deleted += len(batch)
            self.logger.record_delete_batch(len(batch))
            self.logger.info(f"  Deleted batch {batch_no} ({len(batch)} docs)")

        self.logger.info(f"Cleared {len(refs)} documents.")

    def _query(self) -> List[Dict[str, Any]]:
        sql = self.config.query
        self.logger.info(f"Querying BigQuery: {sql}")
        job = self.warehouse.run_query(sql)
        rows = self.warehouse.fetch_results(job)
        self.result.rows_fetched = len(rows)
        self.logger.record_rows_fetched(len(rows))
        self.logger.info(f"Retrieved {len(rows)} rows from BigQuery")
        return rows

    def _write(self, rows: List[Dict[str, Any]]):
        chunk_size = self.config.chunk_size
        collection = self.config.collection

        if self.dry_run:
            chunks = (len(rows) + chunk_size - 1) // chunk_size
            self.logger.info(
                f"[DRY RUN] Would write {len(rows)} documents in {chunks} chunks of up to {chunk_size}."
            )
            self.result.documents_written = len(rows)
            self.result.write_chunks = chunks
            return

        self.logger.info(f"Writing to Firestore in chunks of {chunk_size}...")
        for offset, chunk in chunked(rows, chunk_size):
            written = self.docstore.bulk_write(
                collection,
                iter_documents(chunk, offset),
                self.config.write_retry,
            )
            chunk_no = offset // chunk_size + 1
            self.result.write_chunks += 1
            self.result.documents_written += written
            self.logger.record_write_chunk(written)
            self.logger.info(f"  Chunk {chunk_no} ({written} docs) written")
