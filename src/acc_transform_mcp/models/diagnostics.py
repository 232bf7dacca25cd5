"""Failure diagnostics of a Design Automation job."""

from pydantic import BaseModel, Field
from typing import List, Optional


class DiagnosticEntry(BaseModel):
    """A text file extracted from the debug archive."""

    name: str
    size: int
    content: str
    truncated: bool = False


class SkippedEntry(BaseModel):
    """An archive entry that could not be shown."""

    name: str
    size: int
    reason: str


class JobDiagnostics(BaseModel):
    """Report text plus whatever could be read from the debug archive."""

    report: Optional[str] = None
    report_url: Optional[str] = None
    debug_info_url: Optional[str] = None
    entries: List[DiagnosticEntry] = Field(default_factory=list)
    skipped: List[SkippedEntry] = Field(default_factory=list)
    other_files: List[str] = Field(default_factory=list)
    archive_error: Optional[str] = None

    @property
    def has_content(self) -> bool:
        return bool(self.report or self.entries)
