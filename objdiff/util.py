"""Small formatting helpers shared across the package."""

_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1


def signed_hex(value: int, *, upper: bool = False, prefix: bool = True) -> str:
    """Format an integer as sign-aware hexadecimal, e.g. ``-0x10`` rather than ``0xfff0``.

    The value must fit in a signed 32-bit integer.
    """
    if not _I32_MIN < value <= _I32_MAX:
        raise ValueError(f"value {value} does not fit in a signed 32-bit integer")
    digits = f"{abs(value):X}" if upper else f"{abs(value):x}"
    sign = "-" if value < 0 else ""
    lead = "0x" if prefix else ""
    return f"{sign}{lead}{digits}"