"""Small shared helpers."""

from .clock import EPOCH_ISO, epoch_millis, to_iso, utc_now_iso
from .ids import generate_id

__all__ = ['EPOCH_ISO', 'epoch_millis', 'to_iso', 'utc_now_iso', 'generate_id']
