"""Address helpers."""

import re

ADDRESS_NOT_PROVIDED = "Address Not Provided"

_LEADING_NUMBER = re.compile(r"^\s*\d+[\s-]*")
_UNIT_SUFFIX = re.compile(r"\b(apt|apartment|unit)\s*\w+$|#\s*\w+$", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^a-z0-9 ]+")
_SPACES = re.compile(r"\s+")


def extract_street_name(full_address: str | None) -> str:
    """
    Street part of an address, without house number or unit.

    Example:
        >>> extract_street_name("1234 N Main St Apt 5, Boca Raton, FL")
        'N Main St'
    """
    if not full_address:
        return ""
    first_segment = full_address.split(",")[0] or full_address
    no_number = _LEADING_NUMBER.sub("", first_segment).strip()
    cleaned = _UNIT_SUFFIX.sub("", no_number).strip()
    return cleaned or first_segment.strip()


def normalize_address_locally(address: str) -> str:
    """Lowercased, punctuation-free, single-spaced address (fallback for the normalize_address RPC)."""
    lowered = _NON_ALNUM.sub(" ", address.lower())
    return _SPACES.sub(" ", lowered).strip()


def is_usable_address(address: str | None) -> bool:
    return bool(address and address.strip() and address.strip() != ADDRESS_NOT_PROVIDED)


def starts_with_house_number(address: str) -> bool:
    return bool(re.match(r"^\s*\d", address))
