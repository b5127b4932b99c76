"""Windowing of a cached, already sorted stake history."""
from typing import Sequence

from .models import PageKind, PageRequest, PageResult, PaymentRecord


def paginate(records: Sequence[PaymentRecord], request: PageRequest) -> PageResult:
    """Slice one page out of the full sorted sequence.

    An empty sequence yields ``NO_DATA`` and a page starting past the end
    yields ``PAGE_OUT_OF_RANGE``; neither is an error. The last page is
    clamped to the records that exist.
    """
    total = len(records)
    start = request.start_index

    if total == 0:
        kind = PageKind.NO_DATA
        window = ()
    elif start >= total:
        kind = PageKind.PAGE_OUT_OF_RANGE
        window = ()
    else:
        kind = PageKind.SUCCESS
        window = tuple(records[start:min(request.end_index, total)])

    return PageResult(
        kind=kind,
        page=request.page,
        page_size=request.page_size,
        total_records=total,
        records=window,
    )
