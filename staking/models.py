"""Domain types for stake history queries."""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple

from error_handling.errors import InvalidParameterError

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_address(address: str) -> str:
    """Validate a hex wallet address and return its lower-case form.

    Raises:
        InvalidParameterError: If the address is not ``0x`` + 40 hex digits
    """
    if not isinstance(address, str) or not _ADDRESS_RE.match(address.strip()):
        raise InvalidParameterError(f"Invalid address: {address!r}")
    return address.strip().lower()


@dataclass(frozen=True)
class PaymentRecord:
    """One stake payment made to the contract."""
    sender: str
    amount: int
    time: int

    def to_dict(self) -> Dict[str, Any]:
        return {"sender": self.sender, "amount": self.amount, "time": self.time}


@dataclass(frozen=True)
class PageRequest:
    """A validated request for one page of an address's stake history."""
    address: str
    page: int
    page_size: int

    def __post_init__(self):
        if not isinstance(self.page, int) or self.page < 1:
            raise InvalidParameterError("Invalid page number")
        if not isinstance(self.page_size, int) or self.page_size < 1:
            raise InvalidParameterError("Invalid page size")
        object.__setattr__(self, "address", normalize_address(self.address))

    @property
    def start_index(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def end_index(self) -> int:
        return self.page * self.page_size


class PageKind(Enum):
    """Outcome of a page request that did not fail."""
    SUCCESS = "success"
    NO_DATA = "no_data"
    PAGE_OUT_OF_RANGE = "page_out_of_range"


@dataclass(frozen=True)
class PageResult:
    kind: PageKind
    page: int
    page_size: int
    total_records: int
    records: Tuple[PaymentRecord, ...] = field(default_factory=tuple)

    @property
    def is_success(self) -> bool:
        return self.kind is PageKind.SUCCESS
