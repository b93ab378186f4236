import math
from typing import Any, Dict, Optional, Tuple
from mission_control import mission_data
from mission_control.models.mission import Mission, PartialValue

def round_half_up(value: float) -> int:
    """四捨五入 (Python標準の round は偶数丸めのため使わない)"""
    return int(math.floor(value + 0.5))

def _as_number(value: Any) -> Optional[float]:
    """有限の数値なら float を返す。bool や NaN/inf は None"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)

def read_partial(value: Any) -> Tuple[Optional[float], Optional[float]]:
    """partial値から (achieved, target) を取り出す。取り出せない項目は None"""
    if isinstance(value, PartialValue):
        return _as_number(value.achieved), _as_number(value.target)
    if isinstance(value, dict):
        return _as_number(value.get('achieved')), _as_number(value.get('target'))
    return None, None


class XPCalculator:
    """
    XP計算ロジックを担当するクラス
    ストア接続は行わず、純粋な入出力のみを扱う。例外は投げない。
    """

    @staticmethod
    def get_multiplier(difficulty: Optional[str]) -> float:
        level = mission_data.DIFFICULTY_LEVELS.get(difficulty or '')
        if not level:
            return 1.0
        return level.get('multiplier') or 1.0

    @classmethod
    def calculate_mission_xp(cls, mission: Mission, value: Any, difficulty: Optional[str] = 'cadet') -> int:
        """記録値をXPに変換する (丸めは最終積に1回だけ)"""
        multiplier = cls.get_multiplier(difficulty)

        if mission.type == 'boolean':
            return max(0, round_half_up(mission.base_xp * multiplier)) if value else 0

        if mission.type == 'partial':
            achieved, target = read_partial(value)
            achieved = max(0.0, achieved or 0.0)
            if target is None or target <= 0:
                target = 1.0
            ratio = min(achieved / target, 1.0)
            return max(0, round_half_up(mission.base_xp * ratio * multiplier))

        return 0

    @classmethod
    def max_mission_xp(cls, mission: Mission, difficulty: Optional[str] = 'cadet') -> int:
        """達成率100%時のXP"""
        if mission.type not in ('boolean', 'partial'):
            return 0
        return max(0, round_half_up(mission.base_xp * cls.get_multiplier(difficulty)))

    @staticmethod
    def stars_from_xp(xp: int, max_xp: int) -> int:
        if max_xp <= 0:
            return 0
        ratio = xp / max_xp
        if ratio >= 1:
            return 3
        if ratio >= 0.66:
            return 2
        if ratio >= 0.33:
            return 1
        return 0

    @staticmethod
    def get_rank(total_stars: int) -> Dict[str, Any]:
        rank = mission_data.RANKS[0]
        for r in mission_data.RANKS:
            if total_stars >= r['min_stars']:
                rank = r
        return rank

    @staticmethod
    def get_phase_for_day(day: int) -> Dict[str, Any]:
        if day <= 10:
            return mission_data.PHASES[0]
        if day <= 20:
            return mission_data.PHASES[1]
        return mission_data.PHASES[2]
