# export.py
from __future__ import annotations
from pathlib import Path
import pandas as pd
from history import HistoryBuffer

COLUMNS = ["timestamp", "temperature", "humidity"]


def history_to_frame(history: HistoryBuffer) -> pd.DataFrame:
    # El histórico va de más reciente a más antigua; el fichero, en orden cronológico
    rows = [
        (r.timestamp, r.temperature, r.humidity)
        for r in reversed(history.to_list())
    ]
    return pd.DataFrame(rows, columns=COLUMNS)


def export_history(history: HistoryBuffer, output_file: Path) -> None:
    df = history_to_frame(history)
    suffix = output_file.suffix.lower()
    if suffix == ".xlsx":
        df.to_excel(output_file, index=False)
    elif suffix == ".csv":
        df.to_csv(output_file, index=False)
    else:
        raise ValueError(f"Formato no soportado: {suffix or '(sin extensión)'}")
