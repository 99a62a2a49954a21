from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ethview.io.csv_export import CSV_LINE_END
from ethview.io.schemas import to_jsonable


def write_view_json(view: Any, out_dir: str, filename: str = "view.json") -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(to_jsonable(view), f, indent=2)

    return str(out_path)


def write_csv(text: str, out_dir: str, filename: str = "operations.csv") -> str:
    """
    Writes an export produced by OperationsCsvExporter. Line endings are
    already part of the text.
    """
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8", newline="") as f:
        f.write(text if text.endswith(CSV_LINE_END) or not text else text + CSV_LINE_END)

    return str(out_path)
