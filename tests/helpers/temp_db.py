from __future__ import annotations

import os
import shutil
import sqlite3
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path


_REPO_ROOT = Path(__file__).resolve().parents[2]
_TEMP_ROOT = Path(tempfile.gettempdir()).resolve()


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def assert_safe_temp_db_path(db_path: str) -> None:
    resolved = Path(db_path).resolve()
    if not _is_within(resolved, _TEMP_ROOT):
        raise ValueError(f"Temporary DB must live under TEMP: {resolved}")
    if _is_within(resolved, _REPO_ROOT):
        raise ValueError(f"Temporary DB cannot live inside repository: {resolved}")
    if resolved.name == "controle_pedidos.db":
        raise ValueError(f"Temporary DB cannot reuse the application DB name: {resolved}")


def ensure_temp_db_file(db_path: str) -> None:
    assert_safe_temp_db_path(db_path)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=30.0, isolation_level=None)
    conn.execute("PRAGMA journal_mode=DELETE")
    conn.close()


def _remove_file_with_retry(path: Path, attempts: int = 8, base_delay: float = 0.05) -> None:
    for attempt in range(attempts):
        try:
            path.unlink(missing_ok=True)
            return
        except PermissionError:
            time.sleep(base_delay * (2**attempt))


def remove_tree_with_retry(path: str, attempts: int = 8, base_delay: float = 0.05) -> None:
    root = Path(path)
    for attempt in range(attempts):
        if not root.exists():
            return
        try:
            shutil.rmtree(root)
            return
        except OSError:
            for current_root, _dirnames, _filenames in os.walk(root, topdown=False):
                try:
                    os.chmod(current_root, 0o700)
                except OSError:
                    continue
            time.sleep(base_delay * (2**attempt))


@dataclass
class TempDbSandbox:
    prefix: str = "controle_pedidos_tests"
    db_name: str = "controle_pedidos_test.db"

    def __post_init__(self) -> None:
        folder = _TEMP_ROOT / f"{self.prefix}_{uuid.uuid4().hex}"
        folder.mkdir(parents=True, exist_ok=False)
        self.temp_dir = str(folder)
        self.db_path = str(folder / self.db_name)
        ensure_temp_db_file(self.db_path)

    def make_config(self, base_config, **overrides):
        attrs = {
            "DATABASE_DIR": self.temp_dir,
            "DB_PATH": self.db_path,
            "TESTING": True,
            "LOG_JSON": False,
            "RATE_LIMIT_ENABLED": False,
        }
        attrs.update(overrides)
        return type("TempConfig", (base_config,), attrs)

    def cleanup(self) -> None:
        db_file = Path(self.db_path)
        _remove_file_with_retry(db_file)
        _remove_file_with_retry(db_file.with_suffix(db_file.suffix + "-journal"))
        remove_tree_with_retry(self.temp_dir)
