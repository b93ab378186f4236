# MISSION_CONTROL/services/stats_service.py
from typing import Any, Dict, List, Optional
from mission_control import config
from mission_control import mission_data
from mission_control.core.utils import get_cycle_day
from mission_control.game_logic import XPCalculator, round_half_up
from mission_control.models.mission import CrewMember
from mission_control.services.store import MissionStore
from mission_control.services.catalog_service import MissionCatalog, with_member_overrides
from mission_control.services.scheduler import Scheduler
from mission_control.services.daylog_service import validate_day


class StatsEngine:
    """ログから累計・連続記録・チーム集計を算出する (読み取り専用)"""

    def __init__(self, store: MissionStore, catalog: MissionCatalog, scheduler: Scheduler):
        self.store = store
        self.catalog = catalog
        self.scheduler = scheduler

    def total_stars(self, member_id: str) -> int:
        log = self.store.get_log(member_id)
        return sum(max(0, log[day].xp_earned or 0) for day in range(1, config.CYCLE_DAYS + 1) if day in log)

    def perfect_streak(self, member_id: str) -> int:
        """最後に保存した日から遡って、完了かつXP>0の日が続く日数"""
        log = self.store.get_log(member_id)
        last_saved_day = next(
            (day for day in range(config.CYCLE_DAYS, 0, -1) if day in log and log[day].saved_at),
            None,
        )
        if last_saved_day is None:
            return 0

        streak = 0
        for day in range(last_saved_day, 0, -1):
            entry = log.get(day)
            if entry and entry.completed and entry.xp_earned > 0:
                streak += 1
                continue
            break
        return streak

    def completion_percent(self, member_id: str) -> int:
        log = self.store.get_log(member_id)
        saved = [entry for entry in log.values() if entry.saved_at]
        if not saved:
            return 0
        completed = sum(1 for entry in saved if entry.completed)
        return round_half_up(completed / len(saved) * 100)

    def day_max_stars(self, member: CrewMember, day: int) -> int:
        missions = self.scheduler.applicable_missions(self.catalog.effective_missions(), member.id, day)
        return sum(
            XPCalculator.max_mission_xp(with_member_overrides(m, member.id), member.difficulty)
            for m in missions
        )

    def member_max_stars(self, member: CrewMember) -> int:
        return sum(self.day_max_stars(member, day) for day in range(1, config.CYCLE_DAYS + 1))

    def day_progress(self, member_id: str, day: int) -> Dict[str, Any]:
        member = self.store.get_member(member_id)
        if member is None:
            raise KeyError(member_id)
        earned = self.store.get_log(member_id)[validate_day(day)].xp_earned
        max_xp = self.day_max_stars(member, day)
        return {
            "day": day,
            "earned": earned,
            "max": max_xp,
            "stars": XPCalculator.stars_from_xp(earned, max_xp),
            "phase": XPCalculator.get_phase_for_day(day)["name"],
        }

    # --- チーム集計 ---
    def team_total_stars(self) -> int:
        return sum(self.total_stars(m.id) for m in self.store.crew())

    def team_max_stars(self) -> int:
        """現在のルールで全員が獲得し得る最大XP (チーム進捗バーの分母)"""
        return sum(self.member_max_stars(m) for m in self.store.crew())

    def team_progress_percent(self) -> float:
        """設定変更後は100%を超えることがある"""
        max_stars = self.team_max_stars()
        if max_stars == 0:
            return 0.0
        return round(self.team_total_stars() / max_stars * 100, 1)

    def leaderboard(self) -> List[Dict[str, Any]]:
        board = []
        for m in self.store.crew():
            total = self.total_stars(m.id)
            board.append({
                "member_id": m.id,
                "callsign": m.callsign,
                "avatar": m.avatar,
                "total": total,
                "streak": self.perfect_streak(m.id),
                "rank": XPCalculator.get_rank(total)["name"],
            })
        return sorted(board, key=lambda item: item["total"], reverse=True)

    def reward_goals(self) -> List[Dict[str, Any]]:
        team_total = self.team_total_stars()
        return [{**goal, "reached": team_total >= goal["target"]} for goal in mission_data.REWARD_GOALS]

    def phase_stats(self, current_day: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        フェーズ (10日単位) ごとの獲得XP / 最大XP。
        メンバー別の内訳とチーム達成率、現在のフェーズかどうかを返す。
        """
        current_day = current_day or get_cycle_day()
        crew = self.store.crew()
        result = []
        for phase in mission_data.PHASES:
            start_day, end_day = phase['days']
            members = {}
            for m in crew:
                log = self.store.get_log(m.id)
                members[m.id] = {
                    "earned": sum(max(0, log[day].xp_earned) for day in range(start_day, end_day + 1)),
                    "max": sum(self.day_max_stars(m, day) for day in range(start_day, end_day + 1)),
                }
            earned = sum(s["earned"] for s in members.values())
            max_xp = sum(s["max"] for s in members.values())
            result.append({
                "id": phase['id'],
                "name": phase['name'],
                "subtitle": phase['subtitle'],
                "start_day": start_day,
                "end_day": end_day,
                "members": members,
                "earned": earned,
                "max": max_xp,
                "percent": round_half_up(earned / max_xp * 100) if max_xp > 0 else 0,
                "is_active": start_day <= current_day <= end_day,
            })
        return result
