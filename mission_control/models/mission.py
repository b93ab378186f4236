# MISSION_CONTROL/models/mission.py
from pydantic import BaseModel, Field
from typing import Any, Optional, List, Dict

# ==========================================
# Domain Models (Pydantic)
# ==========================================

class CrewMember(BaseModel):
    id: str
    callsign: str
    avatar: str = 'rocket'
    avatar_color: str = '#25aff4'
    difficulty: str = 'cadet'
    created_at: Optional[str] = None

class CrewTarget(BaseModel):
    """メンバー個別の目標値/単位 (未設定ならミッション側の値を使う)"""
    default_target: Optional[float] = None
    unit: Optional[str] = None

class Mission(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    icon: str = '⭐'
    type: str = 'boolean'           # 'boolean' / 'partial' (それ以外は0XP扱い)
    base_xp: int = 0
    category: Optional[str] = None
    default_target: Optional[float] = None
    unit: Optional[str] = None
    max_stars: Optional[int] = None
    per_crew: Dict[str, CrewTarget] = Field(default_factory=dict)
    assigned_to: Optional[List[str]] = None    # None = 全員
    active_days: Optional[List[int]] = None    # None / [] = 毎日
    order: Optional[int] = None

class PartialValue(BaseModel):
    achieved: float = 0
    target: float

class MissionResult(BaseModel):
    value: Any = None    # bool (boolean型) / {"achieved", "target"} (partial型)
    xp: int = 0

class DayLogEntry(BaseModel):
    completed: bool = False
    missions: Dict[str, MissionResult] = Field(default_factory=dict)
    xp_earned: int = 0
    saved_at: Optional[str] = None

class Settings(BaseModel):
    active_member: Optional[str] = None
    enabled_missions: Optional[List[str]] = None    # None = 全ミッション有効
    mission_overrides: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

# ==========================================
# Request Models
# ==========================================

class MemberAction(BaseModel):
    member_id: str

class AddMemberAction(BaseModel):
    callsign: str
    id: Optional[str] = None
    avatar: Optional[str] = None
    difficulty: Optional[str] = None

class UpdateMemberAction(BaseModel):
    member_id: str
    updates: Dict[str, Any]

class SaveDayAction(BaseModel):
    member_id: str
    day: int
    values: Dict[str, Any] = Field(default_factory=dict)

class OverrideAction(BaseModel):
    mission_id: str
    patch: Dict[str, Any] = Field(default_factory=dict)

class MissionAction(BaseModel):
    mission_id: str

class CustomMissionAction(BaseModel):
    mission: Dict[str, Any]

class UpdateCustomMissionAction(BaseModel):
    mission_id: str
    updates: Dict[str, Any]

class SettingsAction(BaseModel):
    updates: Dict[str, Any]

# ==========================================
# Response Models
# ==========================================

class SaveDayResponse(BaseModel):
    status: str
    day: int
    xpEarned: int
    completed: bool
    missions: Dict[str, MissionResult]

class StatusResponse(BaseModel):
    status: str
    message: Optional[str] = None

class SyncResponse(BaseModel):
    status: str
    source: Optional[str] = None

class LeaderboardItem(BaseModel):
    member_id: str
    callsign: str
    avatar: str
    total: int
    streak: int
    rank: str
