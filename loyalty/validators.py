"""Order number validation."""


def is_valid_order_number(value: str) -> bool:
    """
    Check an order number against the Luhn checksum.

    Surrounding whitespace is ignored; what remains must be a non-empty run of
    ASCII digits. Starting from the check digit and moving left, every second
    digit is doubled (minus 9 when that exceeds 9) and the total of all digits
    must be divisible by 10.

    >>> is_valid_order_number("12345678903")
    True
    >>> is_valid_order_number("12345678904")
    False
    """
    digits = value.strip()
    if not digits or not (digits.isascii() and digits.isdigit()):
        return False

    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit

    return total % 10 == 0
