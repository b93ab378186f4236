import sqlite3
import time
import json
import logging
from typing import Any, Optional, Tuple
from contextlib import contextmanager
from mission_control import config
from mission_control.core.utils import get_now_iso

logger = logging.getLogger("core.database")

MAX_RETRIES = 5
RETRY_DELAY = 1.0

@contextmanager
def get_db_cursor(commit: bool = False, db_path: Optional[str] = None):
    """DB接続コンテキストマネージャ"""
    conn = sqlite3.connect(db_path or config.SQLITE_DB_PATH, timeout=30.0)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        yield conn.cursor()
        if commit:
            conn.commit()
    except Exception as e:
        logger.error(f"データベース操作エラー: {e}")
        conn.rollback()
        raise
    finally:
        conn.close()

def execute_with_retry(query: str, params: tuple = (), commit: bool = False,
                       db_path: Optional[str] = None) -> list:
    """SQLを実行する (ロック時はリトライ)"""
    for attempt in range(MAX_RETRIES):
        try:
            with get_db_cursor(commit=commit, db_path=db_path) as cur:
                cur.execute(query, params)
                return cur.fetchall()
        except sqlite3.OperationalError as e:
            if "locked" not in str(e) or attempt == MAX_RETRIES - 1:
                raise
            logger.warning(f"⚠️ DB is locked. Retrying... ({attempt+1}/{MAX_RETRIES})")
            time.sleep(RETRY_DELAY)
    return []

def init_store_table(db_path: Optional[str] = None) -> None:
    """ローカルストア用テーブルを作成"""
    execute_with_retry(f'''CREATE TABLE IF NOT EXISTS {config.SQLITE_TABLE_STORE} (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TEXT)''', commit=True, db_path=db_path)


class LocalStorage:
    """
    文字列キー → JSON blob のローカル永続化層。
    読み書きは常にコレクション単位 (部分更新なし)。
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or config.SQLITE_DB_PATH
        init_store_table(self.db_path)

    def get_data(self, key: str) -> Any:
        """キーの値を返す。存在しない・壊れている場合は None"""
        try:
            rows = execute_with_retry(
                f"SELECT value FROM {config.SQLITE_TABLE_STORE} WHERE key = ?",
                (key,), db_path=self.db_path)
        except sqlite3.Error as e:
            logger.error(f"データ読込失敗 ({key}): {e}")
            return None
        if not rows:
            return None
        try:
            return json.loads(rows[0]["value"])
        except (TypeError, ValueError) as e:
            logger.warning(f"⚠️ 壊れたデータを無視します ({key}): {e}")
            return None

    def set_data(self, key: str, value: Any) -> bool:
        """値を丸ごと書き込む。失敗時は False"""
        try:
            payload = json.dumps(value, ensure_ascii=False)
            execute_with_retry(f"""
                INSERT INTO {config.SQLITE_TABLE_STORE} (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """, (key, payload, get_now_iso()), commit=True, db_path=self.db_path)
            return True
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"データ保存失敗 ({key}): {e}")
            return False

    def remove_data(self, key: str) -> bool:
        try:
            execute_with_retry(f"DELETE FROM {config.SQLITE_TABLE_STORE} WHERE key = ?",
                               (key,), commit=True, db_path=self.db_path)
            return True
        except sqlite3.Error as e:
            logger.error(f"データ削除失敗 ({key}): {e}")
            return False

    def keys(self) -> Tuple[str, ...]:
        rows = execute_with_retry(f"SELECT key FROM {config.SQLITE_TABLE_STORE} ORDER BY key",
                                  db_path=self.db_path)
        return tuple(r["key"] for r in rows)
