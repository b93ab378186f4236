# MISSION_CONTROL/services/mission_system.py
from typing import Any, Dict, List, Optional
from mission_control import mission_data
from mission_control.core.database import LocalStorage
from mission_control.core.utils import get_cycle_day
from mission_control.game_logic import XPCalculator
from mission_control.services.store import MissionStore
from mission_control.services.catalog_service import MissionCatalog, sort_missions
from mission_control.services.scheduler import Scheduler
from mission_control.services.daylog_service import DayLogStore
from mission_control.services.stats_service import StatsEngine
from mission_control.services.sync_service import SyncEngine, RemoteDocumentClient, get_device_id


class MissionControl:
    """ストア・カタログ・スケジューラ・ログ・統計・同期をまとめるファサード"""

    def __init__(self, storage: Optional[LocalStorage] = None,
                 client: Optional[RemoteDocumentClient] = None,
                 debounce_seconds: Optional[float] = None,
                 builtin: Optional[List[Dict[str, Any]]] = None):
        self.storage = storage or LocalStorage()
        self.store = MissionStore(self.storage)
        self.catalog = MissionCatalog(self.store, builtin)
        self.scheduler = Scheduler(self.store)
        self.daylog = DayLogStore(self.store, self.catalog, self.scheduler)
        self.stats = StatsEngine(self.store, self.catalog, self.scheduler)
        self.client = client or RemoteDocumentClient(device_id=get_device_id(self.storage))
        self.sync = SyncEngine(self.store, self.client, debounce_seconds=debounce_seconds)

    def get_all_view_data(self) -> Dict[str, Any]:
        """画面表示用の一括データ"""
        active = self.store.active_member()
        crew = []
        for m in self.store.crew():
            total = self.stats.total_stars(m.id)
            crew.append({
                **m.model_dump(),
                "totalStars": total,
                "streak": self.stats.perfect_streak(m.id),
                "completion": self.stats.completion_percent(m.id),
                "rank": XPCalculator.get_rank(total)["name"],
            })

        return {
            "today": get_cycle_day(),
            "activeMember": active.id if active else None,
            "crew": crew,
            "missions": [m.model_dump() for m in sort_missions(self.catalog.effective_missions())],
            "settings": self.store.settings().model_dump(),
            "difficultyLevels": mission_data.DIFFICULTY_LEVELS,
            "avatars": mission_data.AVATARS,
            "team": {
                "totalStars": self.stats.team_total_stars(),
                "maxStars": self.stats.team_max_stars(),
                "progress": self.stats.team_progress_percent(),
                "rewardGoals": self.stats.reward_goals(),
                "phases": self.stats.phase_stats(),
            },
            "lastSync": self.store.last_sync,
        }
