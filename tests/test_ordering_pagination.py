import pytest

from error_handling.errors import InvalidParameterError
from staking.models import PageKind, PageRequest, PaymentRecord, normalize_address
from staking.ordering import sort_by_time_desc
from staking.pagination import paginate

from tests.conftest import ADDRESS, make_records


def test_sort_is_descending_and_stable():
    a = PaymentRecord(sender="a", amount=1, time=5)
    b = PaymentRecord(sender="b", amount=2, time=10)
    c = PaymentRecord(sender="c", amount=3, time=5)

    assert sort_by_time_desc([a, b, c]) == [b, a, c]


def test_sort_keeps_every_record():
    records = make_records([3, 1, 2, 3, 1])
    ordered = sort_by_time_desc(records)

    assert [r.time for r in ordered] == [3, 3, 2, 1, 1]
    assert sorted(ordered, key=id) == sorted(records, key=id)


def test_sort_empty():
    assert sort_by_time_desc([]) == []


def test_sort_handles_uint256_times():
    big = 2**255
    records = make_records([1, big, big - 1])
    assert [r.time for r in sort_by_time_desc(records)] == [big, big - 1, 1]


@pytest.fixture
def sorted_records():
    return tuple(sort_by_time_desc(make_records(range(25))))


def test_pagination_window(sorted_records):
    result = paginate(sorted_records, PageRequest(ADDRESS, page=2, page_size=10))

    assert result.kind is PageKind.SUCCESS
    assert result.records == sorted_records[10:20]
    assert result.total_records == 25


def test_last_page_is_clamped(sorted_records):
    result = paginate(sorted_records, PageRequest(ADDRESS, page=3, page_size=10))

    assert result.kind is PageKind.SUCCESS
    assert len(result.records) == 5
    assert result.records == sorted_records[20:25]


def test_page_past_the_end(sorted_records):
    result = paginate(sorted_records, PageRequest(ADDRESS, page=4, page_size=10))

    assert result.kind is PageKind.PAGE_OUT_OF_RANGE
    assert result.records == ()
    assert not result.is_success


def test_no_data():
    result = paginate((), PageRequest(ADDRESS, page=1, page_size=10))

    assert result.kind is PageKind.NO_DATA
    assert result.records == ()


def test_no_data_wins_over_out_of_range():
    result = paginate((), PageRequest(ADDRESS, page=5, page_size=10))
    assert result.kind is PageKind.NO_DATA


@pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0), (-1, 10), (1, -5)])
def test_invalid_page_request(page, page_size):
    with pytest.raises(InvalidParameterError):
        PageRequest(ADDRESS, page=page, page_size=page_size)


def test_page_request_normalizes_address():
    request = PageRequest("0x" + "AB" * 20, page=1, page_size=1)
    assert request.address == ADDRESS


@pytest.mark.parametrize("address", ["", "0x123", "ab" * 20, "0x" + "zz" * 20, None])
def test_invalid_address(address):
    with pytest.raises(InvalidParameterError):
        normalize_address(address)


def test_payment_record_to_dict():
    record = PaymentRecord(sender="0xabc", amount=10**30, time=1700000000)
    assert record.to_dict() == {"sender": "0xabc", "amount": 10**30, "time": 1700000000}
