# MISSION_CONTROL/services/store.py
import re
import secrets
import string
from typing import Any, Callable, Collection, Dict, List, Optional, Union
from pydantic import ValidationError
from mission_control import config
from mission_control import mission_data
from mission_control.core.logger import setup_logging
from mission_control.core.database import LocalStorage
from mission_control.core.utils import get_now_iso, get_now_ms
from mission_control.models.mission import CrewMember, DayLogEntry, Mission, Settings

logger = setup_logging("mission_store")

# 同期対象のコレクション (ストレージキー)
KEY_CREW = "crew"
KEY_LOGS = "logs"
KEY_SETTINGS = "settings"
KEY_CUSTOM = "custom_missions"
KEY_LAST_SYNC = "last_sync"
COLLECTION_KEYS = (KEY_CREW, KEY_LOGS, KEY_SETTINGS, KEY_CUSTOM)

DayLog = Dict[int, DayLogEntry]

def create_empty_log() -> DayLog:
    """30日分の空ログを作成"""
    return {day: DayLogEntry() for day in range(1, config.CYCLE_DAYS + 1)}

def parse_log(raw: Any) -> DayLog:
    """保存済みログを読み込む。欠けた日・壊れた日は空エントリで埋める"""
    log = create_empty_log()
    if not isinstance(raw, dict):
        return log
    for key, entry in raw.items():
        try:
            day = int(key)
        except (TypeError, ValueError):
            continue
        if day not in log:
            continue
        try:
            log[day] = DayLogEntry.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"⚠️ Day {day} のログが壊れているため空にします: {e.error_count()} errors")
    return log

def slugify(name: str) -> str:
    slug = re.sub(r"\s+", "_", name.strip().lower())
    return re.sub(r"[^a-z0-9_]", "", slug)

def unique_id(prefix: str, taken: Collection[str]) -> str:
    """`<prefix>_<epoch ms>` を基本に、使用済みなら乱数サフィックスを付けて衝突を避ける"""
    candidate = f"{prefix}_{get_now_ms()}"
    alphabet = string.ascii_lowercase + string.digits
    while candidate in taken:
        candidate = f"{prefix}_{get_now_ms()}_" + "".join(secrets.choice(alphabet) for _ in range(4))
    return candidate


class MissionStore:
    """
    ローカル状態 (クルー・ログ・設定・カスタムミッション) を保持する唯一のストア。
    読み取りは常にコピーを返し、変更は専用メソッド経由でのみ行う。
    変更のたびに該当コレクションを丸ごと永続化し、リスナーへ通知する。
    """

    def __init__(self, storage: Optional[LocalStorage] = None):
        self.storage = storage or LocalStorage()
        self._listeners: List[Callable[[str], None]] = []
        self._unsaved: set = set()
        self.load()

    # ------------------------------------------
    # 読み込み・初期化
    # ------------------------------------------
    def load(self) -> None:
        self._crew = self._parse_crew(self.storage.get_data(KEY_CREW))
        self._logs = self._parse_logs(self.storage.get_data(KEY_LOGS))
        self._settings = self._parse_settings(self.storage.get_data(KEY_SETTINGS))
        self._custom = self._parse_custom(self.storage.get_data(KEY_CUSTOM))
        self._last_sync = self.storage.get_data(KEY_LAST_SYNC)

        if not self._crew:
            self._seed_defaults()

    def _seed_defaults(self) -> None:
        logger.info("🚀 初回起動: デフォルトプロフィールを作成します")
        profile = CrewMember(**mission_data.DEFAULT_PROFILE, created_at=get_now_iso())
        self._crew = [profile]
        self._logs = {profile.id: create_empty_log()}
        self._settings = Settings()
        self._custom = []
        self._last_sync = None
        self._persist(KEY_CREW, KEY_LOGS, KEY_SETTINGS, KEY_CUSTOM, KEY_LAST_SYNC)

    @staticmethod
    def _parse_crew(raw: Any) -> List[CrewMember]:
        crew = []
        for item in raw or []:
            try:
                crew.append(CrewMember.model_validate(item))
            except ValidationError as e:
                logger.warning(f"⚠️ 不正なクルーデータをスキップ: {e.error_count()} errors")
        return crew

    @staticmethod
    def _parse_logs(raw: Any) -> Dict[str, DayLog]:
        if not isinstance(raw, dict):
            return {}
        return {str(member_id): parse_log(log) for member_id, log in raw.items()}

    @staticmethod
    def _parse_settings(raw: Any) -> Settings:
        try:
            return Settings.model_validate(raw or {})
        except ValidationError as e:
            logger.warning(f"⚠️ 設定が壊れているため初期化します: {e.error_count()} errors")
            return Settings()

    @staticmethod
    def _parse_custom(raw: Any) -> List[Mission]:
        missions = []
        for item in raw or []:
            try:
                missions.append(Mission.model_validate(item))
            except ValidationError as e:
                logger.warning(f"⚠️ 不正なカスタムミッションをスキップ: {e.error_count()} errors")
        return missions

    # ------------------------------------------
    # 永続化・通知
    # ------------------------------------------
    def subscribe(self, callback: Callable[[str], None]) -> None:
        """変更通知を受け取るコールバックを登録"""
        self._listeners.append(callback)

    def _serialize(self, key: str) -> Any:
        if key == KEY_CREW:
            return [m.model_dump(mode="json") for m in self._crew]
        if key == KEY_LOGS:
            return {
                member_id: {str(day): entry.model_dump(mode="json") for day, entry in log.items()}
                for member_id, log in self._logs.items()
            }
        if key == KEY_SETTINGS:
            return self._settings.model_dump(mode="json")
        if key == KEY_CUSTOM:
            return [m.model_dump(mode="json") for m in self._custom]
        if key == KEY_LAST_SYNC:
            return self._last_sync
        raise KeyError(key)

    def _persist(self, *keys: str) -> bool:
        """指定キー (と前回失敗したキー) を書き込む。全て成功したら True"""
        ok = True
        for key in list(dict.fromkeys(keys + tuple(self._unsaved))):
            if self.storage.set_data(key, self._serialize(key)):
                self._unsaved.discard(key)
            else:
                self._unsaved.add(key)
                ok = False
        if not ok:
            logger.warning(f"⚠️ ローカル保存に失敗したキーがあります: {sorted(self._unsaved)}")
        return ok

    def _commit(self, *keys: str) -> bool:
        ok = self._persist(*keys)
        self._notify(*keys)
        return ok

    def _notify(self, *keys: str) -> None:
        for key in keys:
            for callback in self._listeners:
                try:
                    callback(key)
                except Exception as e:
                    logger.error(f"変更通知エラー ({key}): {e}")

    @property
    def unsaved_keys(self) -> List[str]:
        return sorted(self._unsaved)

    # ------------------------------------------
    # 読み取り (コピーを返す)
    # ------------------------------------------
    def crew(self) -> List[CrewMember]:
        return [m.model_copy(deep=True) for m in self._crew]

    def get_member(self, member_id: str) -> Optional[CrewMember]:
        member = self._find_member(member_id)
        return member.model_copy(deep=True) if member else None

    def active_member(self) -> Optional[CrewMember]:
        member = self._find_member(self._settings.active_member) if self._settings.active_member else None
        member = member or (self._crew[0] if self._crew else None)
        return member.model_copy(deep=True) if member else None

    def settings(self) -> Settings:
        return self._settings.model_copy(deep=True)

    def custom_missions(self) -> List[Mission]:
        return [m.model_copy(deep=True) for m in self._custom]

    def get_log(self, member_id: str) -> DayLog:
        """メンバーのログを返す。初回アクセス時は空ログを作成して保存する"""
        if member_id not in self._logs:
            self._logs[member_id] = create_empty_log()
            self._persist(KEY_LOGS)
        return {day: entry.model_copy(deep=True) for day, entry in self._logs[member_id].items()}

    @property
    def last_sync(self) -> Optional[str]:
        return self._last_sync

    def _find_member(self, member_id: Optional[str]) -> Optional[CrewMember]:
        return next((m for m in self._crew if m.id == member_id), None)

    # ------------------------------------------
    # クルー操作
    # ------------------------------------------
    def add_member(self, member: Union[CrewMember, Dict[str, Any], str]) -> Optional[CrewMember]:
        """メンバー追加。ID重複時は None を返し何もしない"""
        if isinstance(member, str):
            member = CrewMember(
                id=unique_id(slugify(member), {m.id for m in self._crew}),
                callsign=member.strip(),
                created_at=get_now_iso(),
            )
        elif isinstance(member, dict):
            member = CrewMember.model_validate({"created_at": get_now_iso(), **member})
        else:
            member = member.model_copy(deep=True)

        if self._find_member(member.id):
            logger.info(f"Duplicate crew id ignored: {member.id}")
            return None

        self._crew.append(member)
        self._logs[member.id] = create_empty_log()
        self._commit(KEY_CREW, KEY_LOGS)
        logger.info(f"👨‍🚀 Crew added: {member.callsign} ({member.id})")
        return member.model_copy(deep=True)

    def update_member(self, member_id: str, updates: Dict[str, Any]) -> bool:
        member = self._find_member(member_id)
        if not member:
            raise KeyError(member_id)
        data = {**member.model_dump(), **updates, "id": member_id}
        updated = CrewMember.model_validate(data)
        self._crew = [updated if m.id == member_id else m for m in self._crew]
        return self._commit(KEY_CREW)

    def remove_member(self, member_id: str) -> bool:
        """メンバー削除 (ログも削除)"""
        if not self._find_member(member_id):
            return False
        self._crew = [m for m in self._crew if m.id != member_id]
        self._logs.pop(member_id, None)
        keys = [KEY_CREW, KEY_LOGS]
        if self._settings.active_member == member_id:
            self._settings = self._settings.model_copy(update={"active_member": None})
            keys.append(KEY_SETTINGS)
        logger.info(f"Crew removed: {member_id}")
        return self._commit(*keys)

    def set_active_member(self, member_id: str) -> bool:
        if not self._find_member(member_id):
            raise KeyError(member_id)
        self._settings = self._settings.model_copy(update={"active_member": member_id})
        return self._commit(KEY_SETTINGS)

    # ------------------------------------------
    # 設定・オーバーライド
    # ------------------------------------------
    def update_settings(self, updates: Dict[str, Any]) -> bool:
        data = {**self._settings.model_dump(), **updates}
        self._settings = Settings.model_validate(data)
        return self._commit(KEY_SETTINGS)

    def set_override(self, mission_id: str, patch: Dict[str, Any]) -> bool:
        """組み込みミッションへのパッチを既存パッチにマージする"""
        overrides = dict(self._settings.mission_overrides)
        merged = {**overrides.get(mission_id, {}), **patch}
        merged.pop("id", None)
        if isinstance(merged.get("assigned_to"), list) and not merged["assigned_to"]:
            merged["assigned_to"] = None
        overrides[mission_id] = merged
        self._settings = self._settings.model_copy(update={"mission_overrides": overrides})
        return self._commit(KEY_SETTINGS)

    def clear_override(self, mission_id: str) -> bool:
        overrides = dict(self._settings.mission_overrides)
        if overrides.pop(mission_id, None) is None:
            return False
        self._settings = self._settings.model_copy(update={"mission_overrides": overrides})
        return self._commit(KEY_SETTINGS)

    # ------------------------------------------
    # カスタムミッション
    # ------------------------------------------
    def add_custom_mission(self, mission: Union[Mission, Dict[str, Any]],
                           reserved: Collection[str] = ()) -> Mission:
        """
        カスタムミッション追加。
        指定IDが既存カスタム/予約済み (組み込み) IDと重複する場合は ValueError。
        """
        data = mission.model_dump() if isinstance(mission, Mission) else dict(mission)
        taken = set(reserved) | {m.id for m in self._custom}
        if not data.get("id"):
            data["id"] = unique_id("custom", taken)
        elif data["id"] in taken:
            raise ValueError(f"mission id already exists: {data['id']}")
        if isinstance(data.get("assigned_to"), list) and not data["assigned_to"]:
            data["assigned_to"] = None
        created = Mission.model_validate(data)
        self._custom.append(created)
        self._commit(KEY_CUSTOM)
        return created.model_copy(deep=True)

    def update_custom_mission(self, mission_id: str, updates: Dict[str, Any]) -> bool:
        idx = next((i for i, m in enumerate(self._custom) if m.id == mission_id), None)
        if idx is None:
            return False
        data = {**self._custom[idx].model_dump(), **updates, "id": mission_id}
        if isinstance(data.get("assigned_to"), list) and not data["assigned_to"]:
            data["assigned_to"] = None
        self._custom[idx] = Mission.model_validate(data)
        return self._commit(KEY_CUSTOM)

    def remove_custom_mission(self, mission_id: str) -> bool:
        before = len(self._custom)
        self._custom = [m for m in self._custom if m.id != mission_id]
        if len(self._custom) == before:
            return False
        return self._commit(KEY_CUSTOM)

    # ------------------------------------------
    # ログ
    # ------------------------------------------
    def write_day(self, member_id: str, day: int, entry: DayLogEntry) -> bool:
        log = self._logs.setdefault(member_id, create_empty_log())
        log[day] = entry.model_copy(deep=True)
        return self._commit(KEY_LOGS)

    # ------------------------------------------
    # 同期用
    # ------------------------------------------
    def export_snapshot(self) -> Dict[str, Any]:
        """リモートへ送るスナップショット (JSON化可能なdict)"""
        return {
            "crew": self._serialize(KEY_CREW),
            "logs": self._serialize(KEY_LOGS),
            "settings": self._serialize(KEY_SETTINGS),
            "customMissions": self._serialize(KEY_CUSTOM),
        }

    def replace_all(self, snapshot: Dict[str, Any], synced_at: str) -> bool:
        """リモートのスナップショットで全コレクションを上書きする (通知なし)"""
        self._crew = self._parse_crew(snapshot.get("crew"))
        self._logs = self._parse_logs(snapshot.get("logs"))
        self._settings = self._parse_settings(snapshot.get("settings"))
        self._custom = self._parse_custom(snapshot.get("customMissions"))
        for member in self._crew:
            self._logs.setdefault(member.id, create_empty_log())
        self._last_sync = synced_at
        return self._persist(KEY_CREW, KEY_LOGS, KEY_SETTINGS, KEY_CUSTOM, KEY_LAST_SYNC)

    def mark_synced(self, synced_at: str) -> bool:
        self._last_sync = synced_at
        return self._persist(KEY_LAST_SYNC)

    def reset_all(self) -> None:
        """全データ削除 → デフォルト再作成"""
        for key in COLLECTION_KEYS + (KEY_LAST_SYNC,):
            self.storage.remove_data(key)
        self._unsaved.clear()
        self._seed_defaults()
        self._notify(*COLLECTION_KEYS)
