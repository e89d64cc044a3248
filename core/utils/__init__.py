"""
Utility modules for core functionality.

This package contains reusable helpers shared by the engine layers.

Modules:
- decorators: Timing helpers (timer)
- enum_converter: Enum parsing and conversion
- params_processor: Option model preparation and merging
"""

from .decorators import timer
from .enum_converter import parse_enum
from .params_processor import merge_params, prepare_params

__all__ = [
    "timer",
    "parse_enum",
    "prepare_params",
    "merge_params",
]
