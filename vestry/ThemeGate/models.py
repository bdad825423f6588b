"""
ThemeGate Pydantic models.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from vestry.shared.errors import ErrorKind


class Theme(BaseModel):
    """A named editor color scheme."""
    name: str
    colors: Dict[str, str] = Field(default_factory=dict)


class ThemeListResponse(BaseModel):
    themes: List[str] = Field(default_factory=list)


class ThemeResponse(BaseModel):
    """Result of a theme operation."""
    success: bool
    message: str
    theme: Optional[Theme] = None
    error_kind: Optional[ErrorKind] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def fail(cls, message: str, kind: ErrorKind) -> "ThemeResponse":
        return cls(success=False, message=message, error_kind=kind)
