"""Debug archive extraction and the plain-text debug report."""

import io
import json
import zipfile
import zlib
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..logging import get_logger
from ..models import DiagnosticEntry, JobDiagnostics, SkippedEntry


logger = get_logger(__name__)

TEXT_SUFFIXES = (".txt", ".log", ".jrn", ".json", ".xml", ".csv")
JOURNAL_SUFFIX = ".jrn"
TRUNCATION_MARKER = "...[truncated]...\n"


def extract_archive(
    data: bytes,
    max_entry_bytes: int = 500 * 1024,
    journal_tail_chars: int = 100_000,
) -> JobDiagnostics:
    """Read the text files out of a Design Automation debug ZIP.

    Oversized or undecodable entries are listed as skipped; binaries are
    listed by name only. Journals keep only their last
    ``journal_tail_chars`` characters. A broken archive never raises: the
    result carries ``archive_error`` instead.
    """
    diagnostics = JobDiagnostics()
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, ValueError) as e:
        logger.warning("Debug archive unreadable", error=str(e))
        diagnostics.archive_error = f"Unreadable archive: {e}"
        return diagnostics

    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            name = info.filename
            if not name.lower().endswith(TEXT_SUFFIXES):
                diagnostics.other_files.append(name)
                continue
            if info.file_size > max_entry_bytes:
                diagnostics.skipped.append(
                    SkippedEntry(name=name, size=info.file_size,
                                 reason=f"larger than {max_entry_bytes} bytes")
                )
                continue
            try:
                content = archive.read(info).decode("utf-8")
            except (UnicodeDecodeError, zipfile.BadZipFile, zlib.error, EOFError, OSError, RuntimeError) as e:
                logger.warning("Archive entry unreadable", entry=name, error=str(e))
                diagnostics.skipped.append(
                    SkippedEntry(name=name, size=info.file_size, reason=f"unreadable: {e}")
                )
                continue

            truncated = False
            if name.lower().endswith(JOURNAL_SUFFIX) and len(content) > journal_tail_chars:
                content = TRUNCATION_MARKER + content[-journal_tail_chars:]
                truncated = True
            diagnostics.entries.append(
                DiagnosticEntry(name=name, size=info.file_size, content=content, truncated=truncated)
            )

    logger.info(
        "Debug archive extracted",
        entries=len(diagnostics.entries),
        skipped=len(diagnostics.skipped),
        other_files=len(diagnostics.other_files),
    )
    return diagnostics


def render_debug_report(
    job_id: str,
    status: str,
    manifest_payload: Optional[Dict[str, Any]] = None,
    status_data: Optional[Dict[str, Any]] = None,
    diagnostics: Optional[JobDiagnostics] = None,
    error: Optional[str] = None,
    version: str = "",
) -> str:
    """Render the downloadable plain-text report of a failed job."""
    major = "=" * 80
    minor = "-" * 40
    entry_rule = "=" * 60
    lines = [
        major,
        "DESIGN AUTOMATION DEBUG REPORT",
        major,
        f"Generated: {datetime.now(timezone.utc).isoformat()}",
        f"Server Version: {version or 'unknown'}",
        "",
    ]

    def section(title: str) -> None:
        lines.extend([minor, title, minor])

    section("WORK ITEM INFO")
    lines.extend([f"WorkItem ID: {job_id}", f"Status: {status}", ""])

    section("TRANSFORMS SENT")
    lines.extend([json.dumps(manifest_payload or {}, indent=2), ""])

    section("FULL STATUS DATA")
    lines.extend([json.dumps(status_data or {}, indent=2, default=str), ""])

    if diagnostics is not None and diagnostics.report:
        section("REPORT CONTENT (from Design Automation)")
        lines.extend([diagnostics.report, ""])

    if diagnostics is not None and (diagnostics.entries or diagnostics.other_files
                                    or diagnostics.skipped or diagnostics.archive_error):
        section("DEBUG ZIP CONTENTS")
        if diagnostics.archive_error:
            lines.append(f"Archive error: {diagnostics.archive_error}")
        journals = [e for e in diagnostics.entries if e.name.lower().endswith(JOURNAL_SUFFIX)]
        texts = [e for e in diagnostics.entries if not e.name.lower().endswith(JOURNAL_SUFFIX)]
        if texts:
            lines.append("\n--- TEXT FILE CONTENTS ---")
            for entry in texts:
                lines.extend([f"\n{entry_rule}", f"FILE: {entry.name} ({entry.size} bytes)",
                              entry_rule, entry.content])
        if journals:
            lines.append("\n--- JOURNAL FILE CONTENTS ---")
            for entry in journals:
                lines.extend([f"\n{entry_rule}", f"JOURNAL: {entry.name} ({entry.size} bytes)",
                              entry_rule, entry.content])
        if diagnostics.skipped:
            lines.append("\n--- SKIPPED FILES ---")
            lines.extend(f"  - {s.name} ({s.size} bytes): {s.reason}" for s in diagnostics.skipped)
        if diagnostics.other_files:
            lines.append("\n--- OTHER FILES (not extracted) ---")
            lines.extend(f"  - {name}" for name in diagnostics.other_files)
        lines.append("")

    if error:
        section("ERROR DETAILS")
        lines.append(f"Message: {error}")

    lines.extend(["", major, "END OF DEBUG REPORT", major])
    return "\n".join(lines)
