"""
Parameter processing utilities.

Handles preparation and merging of option models, providing unified
handling of dict and Pydantic inputs across the service layer.
"""

from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


def prepare_params(params: Optional[Union[T, Dict[str, Any]]], params_class: Type[T]) -> T:
    """
    Prepare option parameters with default initialization.

    If params is None, creates a new instance with defaults.
    If params is a dict, validates it into params_class.
    If params is already an instance, returns it unchanged.

    Args:
        params: Parameters instance, dict or None
        params_class: Pydantic parameter class for defaults

    Returns:
        Initialized parameters instance

    Example:
        >>> options = prepare_params({"quality": 90}, TransformOptions)
        >>> # Returns TransformOptions(quality=90, ...) with other defaults
    """
    if params is None:
        return params_class()
    if isinstance(params, dict):
        return params_class.model_validate(params)
    return params


def merge_params(base_params: Dict[str, Any], override_params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge two parameter dictionaries, recursing into nested dicts.

    Override params take precedence over base params.

    Args:
        base_params: Base parameters dictionary
        override_params: Override parameters (takes precedence)

    Returns:
        Merged parameters dictionary

    Example:
        >>> base = {"quality": 80, "watermark": {"opacity": 60, "margin": 10}}
        >>> override = {"watermark": {"opacity": 30}}
        >>> merge_params(base, override)
        >>> # Returns {"quality": 80, "watermark": {"opacity": 30, "margin": 10}}
    """
    result = base_params.copy()
    for key, value in override_params.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_params(result[key], value)
        else:
            result[key] = value
    return result
