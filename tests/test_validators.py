"""
Tests for order number validation (Luhn checksum).

These tests verify:
  - Known valid and invalid numbers
  - Whitespace trimming and rejection of signs, separators, non-ASCII digits
  - Property: appending the correct check digit always validates, any other
    check digit never does
"""

from hypothesis import given, strategies as st

from loyalty.validators import is_valid_order_number


def luhn_number(payload: str) -> str:
    """Append the Luhn check digit to a digit string."""
    total = 0
    for position, char in enumerate(reversed(payload)):
        digit = int(char)
        if position % 2 == 0:
            digit = digit * 2 - 9 if digit > 4 else digit * 2
        total += digit
    return payload + str((10 - total % 10) % 10)


class TestKnownNumbers:

    def test_valid_numbers(self):
        for number in ["12345678903", "79927398713", "2377225624", "4561261212345467", "0"]:
            assert is_valid_order_number(number), number

    def test_invalid_checksum(self):
        assert not is_valid_order_number("12345678904")
        assert not is_valid_order_number("79927398710")

    def test_not_a_number(self):
        assert not is_valid_order_number("non int")
        assert not is_valid_order_number("")
        assert not is_valid_order_number("   ")

    def test_surrounding_whitespace_is_ignored(self):
        assert is_valid_order_number("  12345678903\n")

    def test_sign_and_separators_rejected(self):
        assert not is_valid_order_number("+12345678903")
        assert not is_valid_order_number("-12345678903")
        assert not is_valid_order_number("1234 5678 903")
        assert not is_valid_order_number("12345678903a")

    def test_non_ascii_digits_rejected(self):
        # Arabic-Indic digits satisfy str.isdigit() but are not order numbers
        assert not is_valid_order_number("١٢٣")

    def test_longer_than_64_bits(self):
        assert is_valid_order_number(luhn_number("9" * 30))


class TestLuhnProperty:

    @given(st.text(alphabet="0123456789", min_size=1, max_size=40))
    def test_correct_check_digit_validates(self, payload):
        assert is_valid_order_number(luhn_number(payload))

    @given(
        st.text(alphabet="0123456789", min_size=1, max_size=40),
        st.integers(min_value=1, max_value=9),
    )
    def test_wrong_check_digit_rejected(self, payload, offset):
        valid = luhn_number(payload)
        wrong_digit = (int(valid[-1]) + offset) % 10
        assert not is_valid_order_number(valid[:-1] + str(wrong_digit))
