import re

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

_NON_DIGITS = re.compile(r"\D")


def only_digits(value: str | None) -> str:
    return _NON_DIGITS.sub("", str(value or ""))


def is_valid_cpf(value: str | None) -> bool:
    """CPF check digits (mod 11). Repeated-digit sequences are rejected."""
    s = only_digits(value)
    if len(s) != 11 or len(set(s)) == 1:
        return False

    def check_digit(base: str) -> str:
        total = sum(int(ch) * (len(base) + 1 - i) for i, ch in enumerate(base))
        mod = (total * 10) % 11
        return "0" if mod == 10 else str(mod)

    d1 = check_digit(s[:9])
    d2 = check_digit(s[:9] + d1)
    return s == s[:9] + d1 + d2


def normalize_phone(value: str | None, default_country: str = "55") -> str | None:
    """E.164 digits without the leading '+', or None when the number is not valid.

    Numbers without a country code are read in the region of ``default_country``
    (a calling code, "55" is Brazil).
    """
    region = phonenumbers.region_code_for_country_code(int(default_country))
    try:
        parsed = phonenumbers.parse(str(value or ""), region)
    except NumberParseException:
        return None
    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, PhoneNumberFormat.E164).lstrip("+")
