"""
Pydantic schemas for import summaries.

These are the serializable views of an ImportReport, used for JSON output.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class SheetSummary(BaseModel):
    """Counts and diagnostics for one worksheet."""

    sheet_name: str = Field(..., description="Worksheet title")
    kind: str = Field(..., description="Worksheet bucket: objects, vertices or links")
    rows_read: int = Field(0, ge=0, description="Data rows attempted (header excluded)")
    added: int = Field(0, ge=0, description="Objects or links created")
    updated: int = Field(0, ge=0, description="Objects updated or links replaced")
    skipped: int = Field(0, ge=0, description="Rows skipped")
    aborted_at_row: Optional[int] = Field(None, description="Row that stopped the sheet, if any")
    diagnostics: List[str] = Field(default_factory=list, description="Skip and abort reasons")


class ImportSummary(BaseModel):
    """Summary of a full workbook import."""

    source: Optional[str] = Field(None, description="Workbook path or label")
    added: int = Field(0, ge=0)
    updated: int = Field(0, ge=0)
    skipped: int = Field(0, ge=0)
    vertices_staged: int = Field(0, ge=0)
    sheets: List[SheetSummary] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "source": "layout.xlsx",
                "added": 12,
                "updated": 3,
                "skipped": 1,
                "vertices_staged": 6,
                "sheets": [{
                    "sheet_name": "Objects",
                    "kind": "objects",
                    "rows_read": 10,
                    "added": 8,
                    "updated": 2,
                    "skipped": 0,
                    "aborted_at_row": None,
                    "diagnostics": []
                }]
            }
        }
