import pytest

from staking.abi import (
    AbiDecodingError,
    decode_payments,
    decode_uint256,
    encode_address,
    encode_call,
    function_selector,
    keccak256,
    to_checksum_address,
)


def word(value: int) -> str:
    return value.to_bytes(32, "big").hex()


def address_word(address: str) -> str:
    return "00" * 12 + address[2:].lower()


SENDER_A = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
SENDER_B = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"


def encoded_payments(*payments) -> str:
    body = word(32) + word(len(payments))
    for sender, amount, time in payments:
        body += address_word(sender) + word(amount) + word(time)
    return "0x" + body


def test_keccak_is_not_sha3():
    assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def test_function_selector():
    assert function_selector("transfer(address,uint256)").hex() == "a9059cbb"
    assert function_selector("balanceOf(address)").hex() == "70a08231"


def test_encode_call_with_address():
    address = "0x" + "ab" * 20
    assert encode_call("balanceOf(address)", address) == "0x70a08231" + "00" * 12 + "ab" * 20


def test_encode_address_rejects_wrong_length():
    with pytest.raises(ValueError):
        encode_address("0x1234")


@pytest.mark.parametrize("address", [
    "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
    "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359",
    "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB",
    "0xD1220A0cf47c7B9Be7A2E6BA89F429762e7b9aDb",
])
def test_checksum_address(address):
    assert to_checksum_address(address.lower()) == address


def test_decode_uint256():
    assert decode_uint256("0x" + word(10**24)) == 10**24
    assert decode_uint256("0x" + word(2**256 - 1)) == 2**256 - 1


def test_decode_uint256_too_short():
    with pytest.raises(AbiDecodingError):
        decode_uint256("0x1234")


def test_decode_payments():
    data = encoded_payments(
        (SENDER_A, 5 * 10**18, 1700000000),
        (SENDER_B, 1, 1600000000),
    )

    records = decode_payments(data)

    assert len(records) == 2
    assert records[0].sender == SENDER_A
    assert records[0].amount == 5 * 10**18
    assert records[0].time == 1700000000
    assert records[1].sender == SENDER_B
    assert records[1].time == 1600000000


def test_decode_empty_payments():
    assert decode_payments(encoded_payments()) == []


def test_decode_payments_truncated():
    data = encoded_payments((SENDER_A, 1, 2))
    with pytest.raises(AbiDecodingError):
        decode_payments(data[:-64])


def test_decode_payments_dirty_address_padding():
    data = "0x" + word(32) + word(1) + "ff" * 12 + SENDER_A[2:] + word(1) + word(2)
    with pytest.raises(AbiDecodingError):
        decode_payments(data)


@pytest.mark.parametrize("data", ["0x", "0xzz", None, "0x" + word(33) + word(0)])
def test_decode_payments_garbage(data):
    with pytest.raises(AbiDecodingError):
        decode_payments(data)
