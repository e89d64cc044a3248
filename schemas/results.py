"""
Transformation result models.

This module contains the values returned by the orchestrator:
- Per-derivative outcomes
- Whole-request summary
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from core.enums import DriverKind, ImageFormat


class DerivativeResult(BaseModel):
    """Outcome of one named size derivative"""

    name: str
    path: str
    width: int
    height: int
    success: bool
    error: Optional[str] = Field(None, description="Failure reason when success is False")


class TransformResult(BaseModel):
    """Outcome of a full transformation request"""

    source: str
    destination: str
    driver: DriverKind
    output_format: ImageFormat
    width: int = 0
    height: int = 0
    derivatives: List[DerivativeResult] = Field(default_factory=list)
    processing_time_ms: int = 0

    @property
    def failed_derivatives(self) -> List[DerivativeResult]:
        return [d for d in self.derivatives if not d.success]

    @property
    def success(self) -> bool:
        return not self.failed_derivatives
