"""Local stand-in for the cloud reconciliation API."""

from .server import MockAPIServer, ReconciliationBackend, run_server

__all__ = ['MockAPIServer', 'ReconciliationBackend', 'run_server']
