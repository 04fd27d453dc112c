"""
AgroSync - local-first synchronization agent for farm records.

Records are written to a local SQLite store, tracked with a per-record sync
status, and uploaded in per-entity batches to the cloud reconciliation API.
"""

__version__ = "0.1.0"
