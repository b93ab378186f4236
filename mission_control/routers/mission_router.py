# MISSION_CONTROL/routers/mission_router.py
from fastapi import APIRouter, HTTPException
from typing import Any, Dict, List, Optional
from mission_control.core.logger import setup_logging
from mission_control.models.mission import (
    AddMemberAction, CustomMissionAction, LeaderboardItem, MemberAction, MissionAction,
    OverrideAction, SaveDayAction, SaveDayResponse, SettingsAction, StatusResponse,
    SyncResponse, UpdateCustomMissionAction, UpdateMemberAction,
)
from mission_control.services.mission_system import MissionControl
from mission_control.services.sync_service import SOURCE_ERROR

router = APIRouter()
logger = setup_logging("mission_router")

# ==========================================
# システムインスタンス (プロセス内で1つ)
# ==========================================
_system: Optional[MissionControl] = None

def get_system() -> MissionControl:
    global _system
    if _system is None:
        _system = MissionControl()
    return _system

def set_system(system: Optional[MissionControl]) -> None:
    global _system
    _system = system

def _not_found(what: str, key: Any) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} not found: {key}")

# ==========================================
# API Endpoints
# ==========================================
# ストア操作はイベントループ上で直列に行うため async def で定義する

@router.get("/data")
async def get_all_data() -> Dict[str, Any]:
    try:
        return get_system().get_all_view_data()
    except Exception as e:
        logger.error(f"Data Fetch Error: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch data")

@router.get("/log/{member_id}")
async def get_member_log(member_id: str) -> Dict[str, Any]:
    system = get_system()
    if system.store.get_member(member_id) is None:
        raise _not_found("Member", member_id)
    log = system.daylog.get_log(member_id)
    return {str(day): entry.model_dump() for day, entry in log.items()}

@router.get("/day/{member_id}/{day}")
async def get_day_form(member_id: str, day: int) -> Dict[str, Any]:
    system = get_system()
    if system.store.get_member(member_id) is None:
        raise _not_found("Member", member_id)
    try:
        return {
            "missions": [m.model_dump() for m in system.daylog.day_missions(member_id, day)],
            "values": system.daylog.initial_values(member_id, day),
            "progress": system.stats.day_progress(member_id, day),
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/day/save", response_model=SaveDayResponse)
async def save_day(action: SaveDayAction):
    try:
        entry = get_system().daylog.save_day(action.member_id, action.day, action.values)
    except KeyError:
        raise _not_found("Member", action.member_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "status": "saved", "day": action.day, "xpEarned": entry.xp_earned,
        "completed": entry.completed, "missions": entry.missions,
    }

# --- Crew ---
@router.post("/crew/add")
async def add_member(action: AddMemberAction) -> Dict[str, Any]:
    store = get_system().store
    try:
        if action.id:
            payload = {k: v for k, v in action.model_dump().items() if v is not None}
            member = store.add_member(payload)
        else:
            member = store.add_member(action.callsign)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if member is None:
        return {"status": "exists", "member": None}
    return {"status": "added", "member": member.model_dump()}

@router.post("/crew/update", response_model=StatusResponse)
async def update_member(action: UpdateMemberAction):
    try:
        ok = get_system().store.update_member(action.member_id, action.updates)
    except KeyError:
        raise _not_found("Member", action.member_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "updated" if ok else "unsaved"}

@router.post("/crew/remove", response_model=StatusResponse)
async def remove_member(action: MemberAction):
    if not get_system().store.remove_member(action.member_id):
        raise _not_found("Member", action.member_id)
    return {"status": "removed"}

@router.post("/crew/active", response_model=StatusResponse)
async def set_active_member(action: MemberAction):
    try:
        get_system().store.set_active_member(action.member_id)
    except KeyError:
        raise _not_found("Member", action.member_id)
    return {"status": "updated"}

# --- Missions ---
@router.post("/override/set", response_model=StatusResponse)
async def set_override(action: OverrideAction):
    try:
        ok = get_system().catalog.set_override(action.mission_id, action.patch)
    except KeyError:
        raise _not_found("Built-in mission", action.mission_id)
    return {"status": "updated" if ok else "unsaved"}

@router.post("/override/clear", response_model=StatusResponse)
async def clear_override(action: MissionAction):
    cleared = get_system().catalog.clear_override(action.mission_id)
    return {"status": "cleared" if cleared else "unchanged"}

@router.post("/custom/add")
async def add_custom_mission(action: CustomMissionAction) -> Dict[str, Any]:
    try:
        mission = get_system().catalog.add_custom(action.mission)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "added", "mission": mission.model_dump()}

@router.post("/custom/update", response_model=StatusResponse)
async def update_custom_mission(action: UpdateCustomMissionAction):
    try:
        ok = get_system().catalog.update_custom(action.mission_id, action.updates)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not ok:
        raise _not_found("Custom mission", action.mission_id)
    return {"status": "updated"}

@router.post("/custom/remove", response_model=StatusResponse)
async def remove_custom_mission(action: MissionAction):
    if not get_system().catalog.remove_custom(action.mission_id):
        raise _not_found("Custom mission", action.mission_id)
    return {"status": "removed"}

@router.post("/settings", response_model=StatusResponse)
async def update_settings(action: SettingsAction):
    try:
        ok = get_system().store.update_settings(action.updates)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "updated" if ok else "unsaved"}

# --- Stats ---
@router.get("/stats")
async def get_stats() -> Dict[str, Any]:
    stats = get_system().stats
    return {
        "teamTotalStars": stats.team_total_stars(),
        "teamMaxStars": stats.team_max_stars(),
        "teamProgress": stats.team_progress_percent(),
        "rewardGoals": stats.reward_goals(),
        "phaseStats": stats.phase_stats(),
    }

@router.get("/leaderboard", response_model=List[LeaderboardItem])
async def get_leaderboard():
    return get_system().stats.leaderboard()

# --- Sync ---
@router.post("/sync/pull", response_model=SyncResponse)
async def sync_pull():
    source = await get_system().sync.async_pull()
    return {"status": "failed" if source == SOURCE_ERROR else "ok", "source": source}

@router.post("/sync/push", response_model=SyncResponse)
async def sync_push():
    system = get_system()
    system.sync.cancel_timer()
    ok = await system.sync.async_push()
    return {"status": "ok" if ok else "failed"}
