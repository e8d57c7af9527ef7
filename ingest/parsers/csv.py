from __future__ import annotations

import csv
import io


def parse_csv_records(data: bytes) -> list[dict]:
    text = data.decode("utf-8", errors="replace").strip()
    if not text:
        return []
    reader = csv.DictReader(io.StringIO(text))
    return [
        {str(k).strip().casefold(): (v or "").strip() for k, v in row.items() if k}
        for row in reader
    ]
