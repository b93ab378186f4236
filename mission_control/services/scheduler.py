# MISSION_CONTROL/services/scheduler.py
from typing import List, Optional
from mission_control.models.mission import Mission
from mission_control.services.store import MissionStore
from mission_control.services.catalog_service import sort_missions

def is_enabled(mission: Mission, enabled_missions: Optional[List[str]]) -> bool:
    """許可リストが無ければ全ミッション有効"""
    return enabled_missions is None or mission.id in enabled_missions

def is_active_on_day(mission: Mission, day: int) -> bool:
    """active_days が未設定/空なら毎日"""
    if not mission.active_days:
        return True
    return day in mission.active_days

def is_assigned_to(mission: Mission, member_id: str) -> bool:
    """assigned_to が None なら全員"""
    if mission.assigned_to is None:
        return True
    return member_id in mission.assigned_to


class Scheduler:
    """ミッションが (メンバー, 日) に適用されるかを判定する"""

    def __init__(self, store: MissionStore):
        self.store = store

    def is_applicable(self, mission: Mission, member_id: str, day: int) -> bool:
        return self._check(mission, member_id, day, self.store.settings().enabled_missions)

    @staticmethod
    def _check(mission: Mission, member_id: str, day: int, enabled_missions: Optional[List[str]]) -> bool:
        return (is_enabled(mission, enabled_missions)
                and is_active_on_day(mission, day)
                and is_assigned_to(mission, member_id))

    def applicable_missions(self, missions: List[Mission], member_id: str, day: int) -> List[Mission]:
        """適用対象のミッションを表示順で返す"""
        enabled = self.store.settings().enabled_missions
        return sort_missions([
            m for m in missions
            if self._check(m, member_id, day, enabled)
        ])
