import pytest

from potongos.strings import (
    atoi,
    istrncmp,
    itoa,
    itoa_hex,
    strncmp,
    strnlen_terminator,
    tokens,
    tolower,
)


@pytest.mark.parametrize("upper,lower", [("A", "a"), ("Z", "z"), ("M", "m")])
def test_tolower_letters(upper, lower):
    assert tolower(upper) == lower


@pytest.mark.parametrize("ch", ["a", "1", "[", "@", " "])
def test_tolower_leaves_others(ch):
    assert tolower(ch) == ch


def test_strncmp_equal():
    assert strncmp("0:/shell.elf", "0:/shell.elf", 20) == 0


def test_strncmp_order():
    assert strncmp("abc", "abd", 3) < 0
    assert strncmp("abd", "abc", 3) > 0


def test_strncmp_limited_length():
    assert strncmp("abc", "abd", 2) == 0


def test_strncmp_stops_at_nul():
    assert strncmp("ab", "ab\0x", 10) == 0


def test_strncmp_zero_length():
    assert strncmp("a", "b", 0) == 0


def test_istrncmp_ignores_case():
    assert istrncmp("HELLO.TXT", "hello.txt", 108) == 0


def test_istrncmp_still_orders_different():
    assert istrncmp("r", "w", 1) < 0
    assert istrncmp("abc", "ab", 3) > 0


def test_strnlen_terminator_stops_at_terminator():
    assert strnlen_terminator("0:/bin", 10, "/") == 2


def test_strnlen_terminator_respects_maximum():
    text = "abcdefgh"
    assert strnlen_terminator(text, 3, "/") == 3
    assert strnlen_terminator(text, 100, "/") == len(text)


def test_itoa_zero():
    assert itoa(0) == "0"


@pytest.mark.parametrize("value", [0, 7, -7, 123456, -2147483648, 2147483647])
def test_itoa_round_trip(value):
    assert int(itoa(value)) == value


@pytest.mark.parametrize("value", [0, 1, 9, 10, 4096, 2147483647])
def test_atoi_inverts_itoa(value):
    assert atoi(itoa(value)) == value


def test_atoi_stops_at_nul():
    assert atoi("12\x0099") == atoi("12")


def test_itoa_hex_uppercase():
    assert itoa_hex(255, 16) == "FF"


@pytest.mark.parametrize("value", [0, 1, 15, 16, 0xB8000, -0x7E00])
@pytest.mark.parametrize("base", [2, 8, 16])
def test_itoa_hex_round_trip(value, base):
    assert int(itoa_hex(value, base), base) == value


@pytest.mark.parametrize("base", [0, 1, 37])
def test_itoa_hex_bad_base(base):
    with pytest.raises(ValueError):
        itoa_hex(10, base)


def test_tokens_skip_repeated_delimiters():
    assert list(tokens("  blank.elf   abc  def ", " ")) == ["blank.elf", "abc", "def"]


def test_tokens_only_delimiters():
    assert list(tokens("     ", " ")) == []


def test_tokens_multiple_delimiters():
    assert list(tokens("a,b;;c", ",;")) == ["a", "b", "c"]


def test_tokens_stop_at_nul():
    assert list(tokens("one two\0three", " ")) == ["one", "two"]