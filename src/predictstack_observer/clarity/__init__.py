"""Clarity value decoding and fixed-point amount helpers."""

from predictstack_observer.clarity.amounts import MICRO, format_amount, to_display
from predictstack_observer.clarity.decoder import Principal, decode_repr, decode_value

__all__ = [
    "MICRO", "format_amount", "to_display",
    "Principal", "decode_repr", "decode_value",
]
