"""
Firestore access for the sync job.

Wraps google-cloud-firestore for the three things the job does to the
destination collection: list every document, delete references in
batched writes, and upsert documents through a BulkWriter session.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from google.cloud import firestore
from google.cloud.firestore_v1.bulk_writer import BulkWriterOptions

from .config import MAX_BATCH_SIZE
from .logger import StructuredLogger, get_logger
from .retry import RetryError, RetryPolicy


class DocumentStoreClient:
    def __init__(
        self,
        client: firestore.Client,
        logger: Optional[StructuredLogger] = None,
        batch_limit: int = MAX_BATCH_SIZE,
    ):
        self.client = client
        self.logger = logger or get_logger()
        self.batch_limit = batch_limit

    @classmethod
    def from_config(cls, config, logger: Optional[StructuredLogger] = None) -> "DocumentStoreClient":
        """Create a client bound to the service account's project."""
        client = firestore.Client(
            project=config.project_id,
            credentials=config.service_account.credentials(),
        )
        return cls(client, logger=logger, batch_limit=config.delete_batch_size)

    def list_all_document_refs(self, collection: str) -> list:
        """Return a reference to every document currently in `collection`."""
        return list(self.client.collection(collection).list_documents())

    def delete_batch(self, refs: Sequence) -> None:
        """
        Delete `refs` in a single batched write.

        The batch commits atomically: either every reference is deleted
        or none is, and the commit error propagates.

        Raises:
            ValueError: If more references are given than one batch allows
        """
        if len(refs) > self.batch_limit:
            raise ValueError(
                f"Delete batch of {len(refs)} refs exceeds the limit of {self.batch_limit}"
            )
        if not refs:
            return
        batch = self.client.batch()
        for ref in refs:
            batch.delete(ref)
        batch.commit()

    def bulk_write(
        self,
        collection: str,
        documents: Iterable[Tuple[str, Dict[str, Any]]],
        retry_policy: RetryPolicy,
    ) -> int:
        """
        Upsert `documents` through one BulkWriter session.

        Each (doc_id, body) pair is queued as a `set`, creating the document
        or overwriting it entirely. Failed writes are retried by the writer
        while `retry_policy` allows; flush() blocks until every write has
        settled, then the session is closed.

        Returns:
            Number of documents queued

        Raises:
            RetryError: If any write was still failing when the policy gave up
        """
        coll_ref = self.client.collection(collection)
        writer = self.client.bulk_writer(options=BulkWriterOptions(retry=retry_policy.bulk_retry))
        exhausted: List[str] = []

        def on_write_error(failure, bulk_writer) -> bool:
            doc_id = failure.operation.reference.id
            # failure.attempts counts earlier retries only; the failed send is one more
            attempts = failure.attempts + 1
            if retry_policy.should_retry(attempts):
                self.logger.warning(
                    "BulkWriter error, retrying",
                    doc_id=doc_id,
                    attempts=attempts,
                    code=failure.code,
                    error=failure.message,
                )
                self.logger.record_write_retry()
                if retry_policy.on_retry:
                    retry_policy.on_retry(attempts, doc_id, failure.message)
                return True

            self.logger.error(
                "BulkWriter error, giving up",
                doc_id=doc_id,
                attempts=attempts,
                code=failure.code,
                error=failure.message,
            )
            self.logger.record_write_failure(f"WriteError_{failure.code}")
            exhausted.append(doc_id)
            return False

        writer.on_write_error(on_write_error)

        queued = 0
        try:
            for doc_id, body in documents:
                writer.set(coll_ref.document(doc_id), body)
                queued += 1
        finally:
            # Retries are re-queued through set(), which a closed writer rejects,
            # so drain while still open and only then close.
            writer.flush()
            writer.close()

        if exhausted:
            preview = ", ".join(exhausted[:10])
            more = f" and {len(exhausted) - 10} more" if len(exhausted) > 10 else ""
            raise RetryError(
                f"{len(exhausted)} of {queued} writes failed after "
                f"{retry_policy.max_attempts} attempts: {preview}{more}"
            )
        return queued
