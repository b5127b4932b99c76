"""
Minimal Solidity ABI support for the staking contract's read calls.

Only what the two view functions need is implemented: encoding a single
``address`` argument, and decoding either a ``uint256`` or a dynamic array
of ``(address, uint256, uint256)`` tuples.
"""
from typing import List

from Crypto.Hash import keccak

from .models import PaymentRecord

WORD_SIZE = 32


class AbiDecodingError(ValueError):
    """Raised when call data returned by the node does not fit the ABI."""
    pass


def keccak256(data: bytes) -> bytes:
    """Keccak-256 digest as used by Ethereum (not NIST SHA3-256)."""
    hasher = keccak.new(digest_bits=256)
    hasher.update(data)
    return hasher.digest()


def function_selector(signature: str) -> bytes:
    """First four bytes of the keccak hash of a canonical function signature."""
    return keccak256(signature.encode("ascii"))[:4]


def encode_address(address: str) -> bytes:
    """Left-pad a 20-byte address into one ABI word."""
    raw = bytes.fromhex(address[2:] if address.startswith("0x") else address)
    if len(raw) != 20:
        raise ValueError(f"Address must be 20 bytes, got {len(raw)}")
    return raw.rjust(WORD_SIZE, b"\x00")


def encode_call(signature: str, address: str) -> str:
    """Build hex call data for a function taking a single address."""
    return "0x" + (function_selector(signature) + encode_address(address)).hex()


def to_checksum_address(address: str) -> str:
    """Render an address in EIP-55 mixed-case checksum form."""
    lowered = address.lower()
    if lowered.startswith("0x"):
        lowered = lowered[2:]
    digest = keccak256(lowered.encode("ascii")).hex()
    return "0x" + "".join(
        ch.upper() if ch.isalpha() and int(digest[i], 16) >= 8 else ch
        for i, ch in enumerate(lowered)
    )


def _hex_to_bytes(data: str) -> bytes:
    if not isinstance(data, str):
        raise AbiDecodingError(f"Expected hex string, got {type(data).__name__}")
    body = data[2:] if data.startswith("0x") else data
    try:
        return bytes.fromhex(body)
    except ValueError as e:
        raise AbiDecodingError(f"Invalid hex data: {e}") from e


def _word(raw: bytes, index: int) -> bytes:
    start = index * WORD_SIZE
    end = start + WORD_SIZE
    if end > len(raw):
        raise AbiDecodingError(
            f"Result too short: need {end} bytes, have {len(raw)}"
        )
    return raw[start:end]


def _uint(word: bytes) -> int:
    return int.from_bytes(word, "big")


def decode_uint256(data: str) -> int:
    """Decode a single ``uint256`` return value."""
    return _uint(_word(_hex_to_bytes(data), 0))


def decode_payments(data: str) -> List[PaymentRecord]:
    """Decode a ``tuple(address,uint256,uint256)[]`` return value.

    Layout: an offset word pointing at the array, the array length, then
    three words per element since the tuple is fully static.
    """
    raw = _hex_to_bytes(data)
    offset = _uint(_word(raw, 0))
    if offset % WORD_SIZE:
        raise AbiDecodingError(f"Unaligned array offset {offset}")

    base = offset // WORD_SIZE
    length = _uint(_word(raw, base))
    if (base + 1 + length * 3) * WORD_SIZE > len(raw):
        raise AbiDecodingError(f"Array of {length} payments overruns result")

    records = []
    for i in range(length):
        first = base + 1 + i * 3
        sender_word = _word(raw, first)
        if any(sender_word[:12]):
            raise AbiDecodingError("Address word has non-zero padding")
        records.append(PaymentRecord(
            sender=to_checksum_address("0x" + sender_word[12:].hex()),
            amount=_uint(_word(raw, first + 1)),
            time=_uint(_word(raw, first + 2)),
        ))
    return records
