# MISSION_CONTROL/services/sync_service.py
import asyncio
import secrets
import string
from typing import Any, Callable, Dict, Optional
import requests
from mission_control import config
from mission_control.core.logger import setup_logging
from mission_control.core.database import LocalStorage
from mission_control.core.network import get_retry_session
from mission_control.core.utils import get_now_iso, get_now_ms, parse_timestamp
from mission_control.services.store import MissionStore, COLLECTION_KEYS

logger = setup_logging("sync_service")

KEY_DEVICE_ID = "device_id"

# pull の結果
SOURCE_REMOTE = "remote"      # リモートで上書きした
SOURCE_LOCAL = "local"        # ローカルの方が新しい/同じ → 何もしない
SOURCE_NONE = "none"          # リモートにデータなし
SOURCE_DISABLED = "disabled"  # リモート同期が未設定
SOURCE_ERROR = "error"        # 通信失敗

def get_device_id(storage: LocalStorage) -> str:
    """端末IDを取得 (無ければ生成して一度だけ保存)"""
    device_id = storage.get_data(KEY_DEVICE_ID)
    if isinstance(device_id, str) and device_id:
        return device_id
    alphabet = string.ascii_lowercase + string.digits
    device_id = "device_" + "".join(secrets.choice(alphabet) for _ in range(9)) + str(get_now_ms())
    if not storage.set_data(KEY_DEVICE_ID, device_id):
        logger.warning("⚠️ 端末IDを保存できませんでした (今回のみ有効)")
    return device_id

def resolve_conflict(local_last_sync: Any, remote: Dict[str, Any]) -> str:
    """スナップショット単位の後勝ち: リモートが厳密に新しい場合のみ remote"""
    local_time = parse_timestamp(local_last_sync)
    remote_time = parse_timestamp(remote.get("updatedAt"))
    return SOURCE_REMOTE if remote_time > local_time else SOURCE_LOCAL


class RemoteDocumentClient:
    """
    リモートのJSONドキュメント (端末ごとに1件) を読み書きするクライアント。
    GET で取得 (404 = 未作成)、PATCH でマージupsert。updatedAt はサーバー側で付与される。
    """

    def __init__(self, device_id: str, base_url: Optional[str] = None, collection: Optional[str] = None,
                 api_key: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.device_id = device_id
        self.base_url = (base_url if base_url is not None else config.REMOTE_SYNC_URL) or ""
        self.collection = collection or config.REMOTE_COLLECTION
        self.api_key = api_key if api_key is not None else config.REMOTE_API_KEY
        self.timeout = timeout if timeout is not None else config.REMOTE_TIMEOUT
        self.session = session or get_retry_session()

    def is_ready(self) -> bool:
        return bool(self.base_url)

    @property
    def document_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.collection}/{self.device_id}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def fetch(self) -> Optional[Dict[str, Any]]:
        """ドキュメントを取得。存在しなければ None"""
        if not self.is_ready():
            return None
        res = self.session.get(self.document_url, headers=self._headers(), timeout=self.timeout)
        if res.status_code == 404:
            return None
        res.raise_for_status()
        data = res.json()
        return data if isinstance(data, dict) else None

    def push(self, data: Dict[str, Any]) -> bool:
        if not self.is_ready():
            return False
        payload = {**data, "deviceId": self.device_id}
        res = self.session.patch(self.document_url, json=payload, headers=self._headers(), timeout=self.timeout)
        res.raise_for_status()
        return True


class SyncEngine:
    """
    ローカルストアとリモートドキュメントの同期を担当。

    - 起動時: リモートが厳密に新しければローカルを丸ごと上書き
    - ローカル変更時: デバウンス後に全状態をpush (ウィンドウ内の変更はまとめて1回)
    - 通信失敗はログに残すだけで、ローカルの読み書きには影響しない
    """

    def __init__(self, store: MissionStore, client: RemoteDocumentClient,
                 debounce_seconds: Optional[float] = None,
                 now_fn: Callable[[], str] = get_now_iso):
        self.store = store
        self.client = client
        self.debounce_seconds = config.SYNC_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self.now_fn = now_fn
        self.pending = False
        self._change_seq = 0
        self._timer_task: Optional[asyncio.Task] = None
        self._push_lock: Optional[asyncio.Lock] = None
        store.subscribe(self._on_local_change)

    def _on_local_change(self, key: str) -> None:
        if key in COLLECTION_KEYS:
            self.schedule_push()

    # ------------------------------------------
    # Pull (remote → local)
    # ------------------------------------------
    def apply_remote(self, remote: Optional[Dict[str, Any]]) -> str:
        if not remote:
            logger.info("Remote snapshot not found; local stays authoritative")
            return SOURCE_NONE

        source = resolve_conflict(self.store.last_sync, remote)
        if source == SOURCE_REMOTE:
            self.store.replace_all(remote, self.now_fn())
            logger.info("🔄 Synced from remote (remote newer)")
        else:
            logger.info("Local data is newer or same age; no overwrite")
        return source

    def pull(self) -> str:
        if not self.client.is_ready():
            return SOURCE_DISABLED
        try:
            remote = self.client.fetch()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"⚠️ Sync from remote failed: {e}")
            return SOURCE_ERROR
        return self.apply_remote(remote)

    async def async_pull(self) -> str:
        """取得のみExecutorで行い、ストアの更新はイベントループ上で行う"""
        if not self.client.is_ready():
            return SOURCE_DISABLED
        loop = asyncio.get_running_loop()
        try:
            remote = await loop.run_in_executor(None, self.client.fetch)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"⚠️ Sync from remote failed: {e}")
            return SOURCE_ERROR
        return self.apply_remote(remote)

    # ------------------------------------------
    # Push (local → remote)
    # ------------------------------------------
    def _after_push(self, ok: bool, seq: int) -> bool:
        """成功時のみ未送信フラグを下ろす (送信中に新しい変更が来ていれば残す)"""
        if ok:
            self.store.mark_synced(self.now_fn())
            if seq == self._change_seq:
                self.pending = False
            logger.info("✅ Data synced to remote")
        return ok

    def push(self) -> bool:
        if not self.client.is_ready():
            return False
        seq = self._change_seq
        try:
            ok = self.client.push(self.store.export_snapshot())
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"⚠️ Sync to remote failed: {e}")
            return False
        return self._after_push(ok, seq)

    async def async_push(self) -> bool:
        """pushは直列化する。スナップショットは実行時点の最新状態"""
        if not self.client.is_ready():
            return False
        if self._push_lock is None:
            self._push_lock = asyncio.Lock()
        async with self._push_lock:
            seq = self._change_seq
            snapshot = self.store.export_snapshot()
            loop = asyncio.get_running_loop()
            try:
                ok = await loop.run_in_executor(None, self.client.push, snapshot)
            except (requests.RequestException, ValueError) as e:
                logger.warning(f"⚠️ Sync to remote failed: {e}")
                return False
            return self._after_push(ok, seq)

    # ------------------------------------------
    # デバウンス
    # ------------------------------------------
    def schedule_push(self) -> None:
        """pushを予約する。ウィンドウ内の再呼び出しはタイマーを張り直す"""
        if not self.client.is_ready():
            return
        self.pending = True
        self._change_seq += 1
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # イベントループ外 (CLI/テスト等) では flush() で送る
            return

        if self._timer_task and not self._timer_task.done():
            self._timer_task.cancel()
        self._timer_task = loop.create_task(self._debounced_push())

    async def _debounced_push(self) -> None:
        try:
            await asyncio.sleep(self.debounce_seconds)
        except asyncio.CancelledError:
            # 新しい変更が来た = タイマー張り直し
            return
        # 発火後はキャンセル対象から外す (送信中のpushは中断しない)
        self._timer_task = None
        await self.async_push()

    @property
    def timer_armed(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def flush(self) -> bool:
        """予約中のpushがあれば即時送信"""
        self.cancel_timer()
        if not self.pending:
            return True
        return self.push()

    def cancel_timer(self) -> None:
        if self._timer_task and not self._timer_task.done():
            self._timer_task.cancel()
        self._timer_task = None

    def shutdown(self) -> None:
        self.cancel_timer()
        if self.pending:
            logger.info("Unsynced local changes remain; they will be pushed on the next change")
