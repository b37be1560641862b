import pytest

from skillswap.errors import DecodeFailure
from skillswap.lib import fingerprint as fp


def _word(raw: bytes) -> str:
    return "0x" + raw.ljust(fp.WORD_SIZE, b"\x00").hex()


def test_canonical_lowercases_hex():
    assert fp.canonical("0XABCDEF") == "0xabcdef"
    assert fp.canonical(" 0xAbCd ") == "0xabcd"


def test_canonical_renders_bytes_as_hex():
    assert fp.canonical(b"\x01\x02") == "0x0102"


def test_canonical_empty_is_zero_word():
    assert fp.canonical(None) == fp.ZERO_WORD
    assert fp.canonical("") == fp.ZERO_WORD
    assert fp.canonical(b"") == fp.ZERO_WORD


def test_packed_string_decodes():
    word = fp.encode_bytes32_string("Guitar")

    assert len(word) == 2 + 2 * fp.WORD_SIZE
    assert fp.decode_bytes32_string(word) == "Guitar"
    assert fp.decode_bytes32_string(fp.to_word(word)) == "Guitar"


def test_encode_rejects_32_bytes():
    with pytest.raises(ValueError):
        fp.encode_bytes32_string("x" * 32)


@pytest.mark.parametrize(
    "word",
    [
        "0x" + "ff" * 32,
        fp.ZERO_WORD,
        _word(b"ab\x00c"),
        _word(b"\xff\xfe"),
        _word(b"a\x01"),
        "0x1234",
        "not hex at all",
    ],
)
def test_decode_rejects_non_string_words(word):
    with pytest.raises(DecodeFailure):
        fp.decode_bytes32_string(word)


def test_fingerprint_text_packs_short_text():
    assert fp.fingerprint_text("Guitar") == fp.encode_bytes32_string("Guitar")
    assert fp.fingerprint_text("  Guitar  ") == fp.encode_bytes32_string("Guitar")


def test_fingerprint_text_hashes_long_text():
    text = "Advanced fingerstyle guitar for jazz standards"

    assert fp.fingerprint_text(text) == fp.sha256_word(text)
    assert len(fp.sha256_word(text)) == 66


def test_fingerprint_text_hashed_mode():
    assert fp.fingerprint_text("Guitar", packed=False) == fp.sha256_word("Guitar")


def test_fingerprint_is_case_sensitive():
    assert fp.fingerprint_text("Guitar") != fp.fingerprint_text("guitar")
    assert fp.fingerprint_text("Guitar", packed=False) != fp.fingerprint_text(
        "guitar", packed=False
    )
