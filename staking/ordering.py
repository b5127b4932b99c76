"""Deterministic ordering of fetched stake history."""
from typing import Iterable, List

from .models import PaymentRecord


def sort_by_time_desc(records: Iterable[PaymentRecord]) -> List[PaymentRecord]:
    """Return the records newest first.

    The sort is stable: records sharing a timestamp keep the order the
    ledger returned them in. Nothing is dropped or duplicated.
    """
    return sorted(records, key=lambda record: record.time, reverse=True)
