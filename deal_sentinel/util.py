from __future__ import annotations
import os, json, tempfile, datetime as dt, pytz
from typing import Any
from .config import cfg

def now_ts() -> str:
    tz = pytz.timezone(cfg.timezone)
    return dt.datetime.now(tz).isoformat(timespec="seconds")

def ensure_data_dir() -> str:
    os.makedirs(cfg.data_dir, exist_ok=True)
    return cfg.data_dir

def load_json(path: str, default: Any) -> Any:
    if not os.path.exists(path):
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

def save_json(path: str, obj: Any) -> None:
    # temp file + os.replace: the old file stays intact until the swap
    folder = os.path.dirname(os.path.abspath(path))
    os.makedirs(folder, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=folder, prefix=".tmp-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise

def rolling_csv_append(path: str, row_dict: dict[str, Any]) -> None:
    exists = os.path.exists(path)
    with open(path, "a", encoding="utf-8") as f:
        if not exists:
            f.write(",".join(row_dict.keys()) + "\n")
        f.write(",".join(_csv_cell(v) for v in row_dict.values()) + "\n")

def _csv_cell(value: Any) -> str:
    text = "" if value is None else str(value)
    if any(c in text for c in ',"\n'):
        text = '"' + text.replace('"', '""') + '"'
    return text

def money(value: float) -> str:
    return f"${value:.2f}"
