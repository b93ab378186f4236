import pytest
from fastapi import HTTPException
from mission_control.models.mission import (
    AddMemberAction, CustomMissionAction, MemberAction, MissionAction, OverrideAction,
    SaveDayAction, SettingsAction, UpdateCustomMissionAction, UpdateMemberAction,
)
from mission_control.routers import mission_router
from helpers import TempStorage, make_system


@pytest.fixture
def system():
    temp = TempStorage()
    system = make_system(temp)
    mission_router.set_system(system)
    yield system
    mission_router.set_system(None)
    temp.cleanup()

@pytest.mark.asyncio
async def test_save_day_and_log(system):
    res = await mission_router.save_day(SaveDayAction(
        member_id="cadet", day=1, values={"fajr": True, "tilawah": {"achieved": 10, "target": 20}},
    ))
    assert res["status"] == "saved"
    assert res["xpEarned"] == 100
    assert res["completed"] is True

    log = await mission_router.get_member_log("cadet")
    assert len(log) == 30
    assert log["1"]["xp_earned"] == 100

@pytest.mark.asyncio
async def test_save_day_errors(system):
    with pytest.raises(HTTPException) as exc:
        await mission_router.save_day(SaveDayAction(member_id="nobody", day=1))
    assert exc.value.status_code == 404

    with pytest.raises(HTTPException) as exc:
        await mission_router.save_day(SaveDayAction(member_id="cadet", day=40))
    assert exc.value.status_code == 400

@pytest.mark.asyncio
async def test_day_form(system):
    form = await mission_router.get_day_form("cadet", 2)
    assert [m["id"] for m in form["missions"]] == ["fajr", "tilawah"]
    assert form["values"]["tilawah"] == {"achieved": 0, "target": 20}
    assert form["progress"]["max"] == 150

    with pytest.raises(HTTPException) as exc:
        await mission_router.get_day_form("cadet", 0)
    assert exc.value.status_code == 400

@pytest.mark.asyncio
async def test_crew_endpoints(system):
    res = await mission_router.add_member(AddMemberAction(callsign="Umi", id="umi", difficulty="officer"))
    assert res["status"] == "added"
    assert res["member"]["difficulty"] == "officer"

    res = await mission_router.add_member(AddMemberAction(callsign="Umi again", id="umi"))
    assert res["status"] == "exists"

    res = await mission_router.update_member(UpdateMemberAction(member_id="umi", updates={"callsign": "Mama"}))
    assert res["status"] == "updated"
    assert system.store.get_member("umi").callsign == "Mama"

    await mission_router.set_active_member(MemberAction(member_id="umi"))
    assert system.store.active_member().id == "umi"

    await mission_router.remove_member(MemberAction(member_id="umi"))
    assert system.store.get_member("umi") is None

    for call in (
        mission_router.remove_member(MemberAction(member_id="umi")),
        mission_router.set_active_member(MemberAction(member_id="umi")),
        mission_router.update_member(UpdateMemberAction(member_id="umi", updates={})),
        mission_router.get_member_log("umi"),
    ):
        with pytest.raises(HTTPException) as exc:
            await call
        assert exc.value.status_code == 404

@pytest.mark.asyncio
async def test_mission_endpoints(system):
    res = await mission_router.set_override(OverrideAction(mission_id="fajr", patch={"base_xp": 80}))
    assert res["status"] == "updated"
    assert system.catalog.get_mission("fajr").base_xp == 80

    res = await mission_router.clear_override(MissionAction(mission_id="fajr"))
    assert res["status"] == "cleared"

    with pytest.raises(HTTPException) as exc:
        await mission_router.set_override(OverrideAction(mission_id="custom_x", patch={}))
    assert exc.value.status_code == 404

    res = await mission_router.add_custom_mission(CustomMissionAction(mission={"name": "Walk", "base_xp": 20}))
    mission_id = res["mission"]["id"]
    res = await mission_router.update_custom_mission(UpdateCustomMissionAction(mission_id=mission_id, updates={"base_xp": 25}))
    assert res["status"] == "updated"
    await mission_router.remove_custom_mission(MissionAction(mission_id=mission_id))

    with pytest.raises(HTTPException) as exc:
        await mission_router.add_custom_mission(CustomMissionAction(mission={"id": "fajr", "name": "Fake"}))
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        await mission_router.remove_custom_mission(MissionAction(mission_id=mission_id))
    assert exc.value.status_code == 404

@pytest.mark.asyncio
async def test_settings_and_stats(system):
    await mission_router.save_day(SaveDayAction(member_id="cadet", day=1, values={"fajr": True}))
    res = await mission_router.update_settings(SettingsAction(updates={"enabled_missions": ["fajr"]}))
    assert res["status"] == "updated"

    stats = await mission_router.get_stats()
    assert stats["teamTotalStars"] == 50
    assert stats["teamMaxStars"] == 1500
    assert [p["earned"] for p in stats["phaseStats"]] == [50, 0, 0]

    board = await mission_router.get_leaderboard()
    assert board[0]["member_id"] == "cadet"

    data = await mission_router.get_all_data()
    assert data["activeMember"] == "cadet"
    assert data["crew"][0]["totalStars"] == 50
    assert data["team"]["maxStars"] == 1500
    assert len(data["team"]["phases"]) == 3
    assert 1 <= data["today"] <= 30

@pytest.mark.asyncio
async def test_sync_endpoints_when_disabled(system):
    res = await mission_router.sync_pull()
    assert res == {"status": "ok", "source": "disabled"}
    res = await mission_router.sync_push()
    assert res["status"] == "failed"
