"""
BigQuery access for the sync job.

Thin wrapper over google-cloud-bigquery: submit a query job, then block
until it finishes and pull the whole result set into memory. No retries
at this layer; errors from the client propagate unchanged.
"""

from typing import Any, Dict, List, Optional

from google.cloud import bigquery

from .logger import StructuredLogger, get_logger


class WarehouseClient:
    def __init__(self, client: bigquery.Client, logger: Optional[StructuredLogger] = None):
        self.client = client
        self.logger = logger or get_logger()

    @classmethod
    def from_config(cls, config, logger: Optional[StructuredLogger] = None) -> "WarehouseClient":
        """Create a client bound to the service account's project."""
        client = bigquery.Client(
            project=config.project_id,
            credentials=config.service_account.credentials(),
        )
        return cls(client, logger=logger)

    def run_query(self, sql: str) -> bigquery.QueryJob:
        """Submit `sql` for asynchronous execution and return the job."""
        job = self.client.query(sql)
        self.logger.debug("Submitted query job", job_id=getattr(job, "job_id", None))
        return job

    def fetch_results(self, job: bigquery.QueryJob) -> List[Dict[str, Any]]:
        """
        Wait for `job` to finish and return every row as a dict.

        The full result set is materialized; it must fit in memory.
        """
        return [dict(row.items()) for row in job.result()]
