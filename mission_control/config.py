# MISSION_CONTROL/config.py
import os
from typing import List, Optional
from dotenv import load_dotenv

# .envファイルのロード
load_dotenv()

# ==========================================
# 1. システム・パス設定
# ==========================================
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# ローカルストア (key/value JSON blob) はSQLiteに保存
SQLITE_DB_PATH: str = os.getenv("MISSION_DB_PATH", os.path.join(BASE_DIR, "mission_control.db"))
SQLITE_TABLE_STORE = "local_store"

# ログ出力先
LOG_DIR: str = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))

# タイムゾーン (pytz名)
TIMEZONE: str = os.getenv("TIMEZONE", "Asia/Jakarta")

# ==========================================
# 2. サイクル設定 (30日固定)
# ==========================================
# サイクル1日目の日付 (Ramadan 1447H 目安)
CYCLE_START_DATE: str = os.getenv("CYCLE_START_DATE", "2026-02-28")
CYCLE_DAYS = 30

# partial型ミッションの目標値が壊れていた場合の既定値
DEFAULT_PARTIAL_TARGET: int = int(os.getenv("DEFAULT_PARTIAL_TARGET", "20"))

# ==========================================
# 3. リモート同期設定
# ==========================================
# 未設定ならリモート同期は無効 (ローカルのみで動作)
REMOTE_SYNC_URL: Optional[str] = os.getenv("REMOTE_SYNC_URL")
REMOTE_COLLECTION: str = os.getenv("REMOTE_COLLECTION", "mission_control_data")
REMOTE_API_KEY: Optional[str] = os.getenv("REMOTE_API_KEY")
REMOTE_TIMEOUT: float = float(os.getenv("REMOTE_TIMEOUT", "10"))

# ローカル変更後、pushまで待つ秒数 (デバウンス)
SYNC_DEBOUNCE_SECONDS: float = float(os.getenv("SYNC_DEBOUNCE_SECONDS", "2.0"))

# ==========================================
# 4. 通知設定
# ==========================================
# エラー通知用 Discord Webhook
DISCORD_WEBHOOK_ERROR: Optional[str] = os.getenv("DISCORD_WEBHOOK_ERROR")

# ==========================================
# 5. Network & Security Settings
# ==========================================
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

CORS_ORIGINS: List[str] = [
    "http://localhost:5173",      # ローカル開発用 (Viteデフォルト)
    "http://127.0.0.1:5173",
    FRONTEND_URL,
]

# "*" を許可するかどうか (開発中以外はFalse推奨)
ALLOW_ALL_ORIGINS = os.getenv("ALLOW_ALL_ORIGINS", "False").lower() == "true"
if ALLOW_ALL_ORIGINS:
    CORS_ORIGINS = ["*"]

SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
