"""
Best-effort reporting export.

Advisory backup path to a user-configured spreadsheet script; never the
authoritative sync path and shares none of its error handling.
"""

from .notifier import ReportNotifier
from .exporter import ReportExporter

__all__ = ['ReportNotifier', 'ReportExporter']
