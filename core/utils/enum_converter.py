"""
Enum conversion utilities.

Provides standardized methods for converting between enums and strings,
with support for case-insensitive parsing and fallback defaults.
"""

from typing import Any, Optional, Type, TypeVar

T = TypeVar("T")


def parse_enum(value: Any, enum_class: Type[T], default: Optional[T], normalize: bool = False) -> Optional[T]:
    """
    Parse value to enum with fallback to default.

    Args:
        value: Value to parse (string, enum, or None)
        enum_class: Enum class to parse to
        default: Default enum value if parsing fails
        normalize: Whether to lowercase and strip the string before parsing
            (for case-insensitive matching)

    Returns:
        Parsed enum value or default

    Example:
        >>> position = parse_enum(
        ...     "Top-Left", WatermarkPosition, WatermarkPosition.BOTTOM_RIGHT, normalize=True
        ... )
        >>> # Returns WatermarkPosition.TOP_LEFT
    """
    # Already an enum instance
    if isinstance(value, enum_class):
        return value

    # None or missing value
    if value is None:
        return default

    # String value - try to parse
    try:
        str_value = value.strip().lower() if normalize else value
        return enum_class(str_value)
    except (ValueError, AttributeError):
        return default

