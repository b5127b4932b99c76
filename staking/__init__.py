"""
Stake history domain: records, ordering, pagination and the read-through
service, plus the ledger and payment provider clients it talks to.
"""

from .ledger import ContractLedgerClient, LedgerError, LedgerQuery
from .models import PageKind, PageRequest, PageResult, PaymentRecord, normalize_address
from .ordering import sort_by_time_desc
from .pagination import paginate
from .payments import CryptApiPaymentLinks, PaymentLinkGenerator
from .service import HISTORY_CACHE_TTL, StakeHistoryService

__all__ = [
    'ContractLedgerClient',
    'CryptApiPaymentLinks',
    'HISTORY_CACHE_TTL',
    'LedgerError',
    'LedgerQuery',
    'PageKind',
    'PageRequest',
    'PageResult',
    'PaymentLinkGenerator',
    'PaymentRecord',
    'StakeHistoryService',
    'normalize_address',
    'paginate',
    'sort_by_time_desc',
]
