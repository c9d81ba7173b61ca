from moms.utils.phone import format_phone, is_valid_phone, normalize_phone, phone_to_identifier


def test_normalize_phone_keeps_digits_only():
    assert normalize_phone("+91 98765-43210") == "919876543210"
    assert normalize_phone("(987) 654 3210") == "9876543210"
    assert normalize_phone(None) == ""


def test_phone_to_identifier_uses_normalized_digits():
    assert phone_to_identifier("98765 43210", "moms.app") == "9876543210@moms.app"


def test_is_valid_phone():
    assert is_valid_phone("9876543210")
    assert is_valid_phone("+91 98765 43210")
    assert not is_valid_phone("12345")
    assert not is_valid_phone("0987654321")


def test_format_phone():
    assert format_phone("9876543210") == "987 654 3210"
    assert format_phone("+919876543210") == "987 654 3210"
    assert format_phone("12345") == "12345"
    assert format_phone(None) == ""
