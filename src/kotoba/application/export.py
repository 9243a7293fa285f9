"""Export learning history for spreadsheets and Anki import."""

import csv
import io
from collections.abc import Iterable
from datetime import datetime, timezone

from kotoba.domain.models import HistoryRecord

CSV_HEADERS = ["Type", "Japanese", "Reading", "Meaning", "Explanation", "JLPT", "NextReview"]


def _format_date(ms: int | None) -> str:
    if not ms:
        return ""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).date().isoformat()


def export_csv(records: Iterable[HistoryRecord]) -> str:
    """Render records as CSV with a header row. Explanation is not stored, so it stays blank."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for r in records:
        writer.writerow(
            [
                r.type.value if r.type else "",
                r.text or "",
                r.reading or "",
                r.meaning or "",
                "",
                r.jlpt.value if r.jlpt else "",
                _format_date(r.next_review_date),
            ]
        )
    return buf.getvalue()


def export_anki(records: Iterable[HistoryRecord]) -> str:
    """
    Render records as a semicolon-separated Anki import file.

    Front: the item text. Back: meaning plus the JLPT level in small print.
    """
    lines = []
    for r in records:
        front = r.text or ""
        jlpt = r.jlpt.value if r.jlpt else ""
        back = f"{r.meaning or ''} <br><small>{jlpt}</small>"
        lines.append(f"{front};{back}")
    return "\n".join(lines)
