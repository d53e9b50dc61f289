"""BigQuery to Firestore bulk sync job."""

__version__ = "0.1.0"
