# MISSION_CONTROL/services/daylog_service.py
from typing import Any, Dict, List, Optional
from mission_control import config
from mission_control.core.logger import setup_logging
from mission_control.core.utils import get_now_iso
from mission_control.game_logic import XPCalculator, read_partial
from mission_control.models.mission import DayLogEntry, Mission, MissionResult
from mission_control.services.store import MissionStore, DayLog
from mission_control.services.catalog_service import MissionCatalog, with_member_overrides
from mission_control.services.scheduler import Scheduler

logger = setup_logging("daylog_service")

def _tidy_number(value: float):
    return int(value) if float(value).is_integer() else value

def fallback_target(mission: Mission) -> float:
    """ミッションの現在の既定目標値 (不正なら設定値)"""
    target = mission.default_target
    if target is not None and target > 0:
        return target
    return config.DEFAULT_PARTIAL_TARGET

def normalize_value(mission: Mission, raw: Any) -> Any:
    """
    記録値を型ごとに正規化する。
    partial型で target が欠けている・0以下の場合は、捨てずにミッションの既定目標値に置き換える。
    """
    if mission.type == 'boolean':
        return bool(raw)
    if mission.type == 'partial':
        achieved, target = read_partial(raw)
        if target is None or target <= 0:
            target = fallback_target(mission)
        if achieved is None or achieved < 0:
            achieved = 0
        return {"achieved": _tidy_number(achieved), "target": _tidy_number(target)}
    return raw

def validate_day(day: int) -> int:
    if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= config.CYCLE_DAYS:
        raise ValueError(f"day must be 1..{config.CYCLE_DAYS}: {day!r}")
    return day


class DayLogStore:
    """メンバーごとの30日ログの読み書きと、日次XPの再計算を担当"""

    def __init__(self, store: MissionStore, catalog: MissionCatalog, scheduler: Scheduler):
        self.store = store
        self.catalog = catalog
        self.scheduler = scheduler

    def get_log(self, member_id: str) -> DayLog:
        return self.store.get_log(member_id)

    def day_missions(self, member_id: str, day: int) -> List[Mission]:
        """(メンバー, 日) に適用されるミッション (個別目標値反映済み)"""
        validate_day(day)
        applicable = self.scheduler.applicable_missions(self.catalog.effective_missions(), member_id, day)
        return [with_member_overrides(m, member_id) for m in applicable]

    def initial_values(self, member_id: str, day: int) -> Dict[str, Any]:
        """入力フォーム用の初期値 (保存済みの値 or 既定値)"""
        entry = self.get_log(member_id)[validate_day(day)]
        values = {}
        for m in self.day_missions(member_id, day):
            saved = entry.missions.get(m.id)
            if saved is not None and saved.value is not None:
                values[m.id] = normalize_value(m, saved.value)
            elif m.type == 'partial':
                values[m.id] = {"achieved": 0, "target": _tidy_number(fallback_target(m))}
            else:
                values[m.id] = False
        return values

    def save_day(self, member_id: str, day: int, values: Optional[Dict[str, Any]]) -> DayLogEntry:
        """
        1日分の記録を保存し、XPを全て再計算する。

        適用中のミッションだけを書き込み、適用外になったミッションの過去記録は残す。
        xp_earned は今回書き込んだミッションのXP合計。
        """
        validate_day(day)
        member = self.store.get_member(member_id)
        if member is None:
            raise KeyError(member_id)
        values = values or {}

        written: Dict[str, MissionResult] = {}
        for mission in self.day_missions(member_id, day):
            value = normalize_value(mission, values.get(mission.id))
            xp = XPCalculator.calculate_mission_xp(mission, value, member.difficulty)
            written[mission.id] = MissionResult(value=value, xp=xp)

        previous = self.get_log(member_id)[day]
        entry = DayLogEntry(
            completed=True,
            missions={**previous.missions, **written},
            xp_earned=sum(r.xp for r in written.values()),
            saved_at=get_now_iso(),
        )
        if not self.store.write_day(member_id, day, entry):
            logger.warning(f"⚠️ Day {day} for {member_id} kept in memory only (local write failed)")

        logger.info(f"📝 Day saved: member={member_id}, day={day}, xp={entry.xp_earned}")
        return entry
