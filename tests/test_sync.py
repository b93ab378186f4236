import asyncio
import time
import unittest
from unittest.mock import MagicMock
import pytest
import requests
from mission_control.services.sync_service import (
    RemoteDocumentClient, get_device_id, resolve_conflict,
    SOURCE_REMOTE, SOURCE_LOCAL, SOURCE_NONE, SOURCE_DISABLED, SOURCE_ERROR,
)
from helpers import TempStorage, make_system

SYNCED_AT = "2026-03-05T12:00:00+07:00"


class FakeClient:
    """リモートの代わりにメモリ上で送受信を記録する"""

    def __init__(self, remote=None, fetch_error=None, push_error=None, push_delay=0.0):
        self.device_id = "test_device"
        self.remote = remote
        self.fetch_error = fetch_error
        self.push_error = push_error
        self.push_delay = push_delay
        self.pushes = []

    def is_ready(self):
        return True

    def fetch(self):
        if self.fetch_error:
            raise self.fetch_error
        return self.remote

    def push(self, data):
        if self.push_delay:
            time.sleep(self.push_delay)
        if self.push_error:
            raise self.push_error
        self.pushes.append(data)
        return True


def _remote_snapshot(updated_at):
    return {
        "crew": [{"id": "remote", "callsign": "Remote", "difficulty": "officer"}],
        "logs": {},
        "settings": {"enabled_missions": ["fajr"]},
        "customMissions": [],
        "updatedAt": updated_at,
    }


class TestResolveConflict(unittest.TestCase):

    def test_strictly_newer_remote_wins(self):
        local = "2026-03-01T07:00:00+07:00"
        self.assertEqual(resolve_conflict(local, {"updatedAt": "2026-03-01T00:00:01Z"}), SOURCE_REMOTE)

    def test_equal_or_older_remote_keeps_local(self):
        local = "2026-03-01T07:00:00+07:00"
        self.assertEqual(resolve_conflict(local, {"updatedAt": "2026-03-01T00:00:00Z"}), SOURCE_LOCAL)
        self.assertEqual(resolve_conflict(local, {"updatedAt": "2026-02-28T00:00:00Z"}), SOURCE_LOCAL)

    def test_never_synced_local(self):
        self.assertEqual(resolve_conflict(None, {"updatedAt": 1700000000000}), SOURCE_REMOTE)
        # 解釈できないリモート時刻は EPOCH 扱い
        self.assertEqual(resolve_conflict(None, {"updatedAt": "garbage"}), SOURCE_LOCAL)


class TestSyncEngine(unittest.TestCase):

    def setUp(self):
        self.temp = TempStorage()

    def tearDown(self):
        self.temp.cleanup()

    def _system(self, client):
        system = make_system(self.temp, client=client)
        system.sync.now_fn = lambda: SYNCED_AT
        system.sync.flush()
        if isinstance(client, FakeClient):
            client.pushes.clear()
        return system

    def test_pull_overwrites_when_remote_newer(self):
        client = FakeClient(remote=_remote_snapshot("2026-03-05T00:00:00Z"))
        system = self._system(client)
        system.store.mark_synced("2026-03-04T00:00:00+07:00")
        listener = MagicMock()
        system.store.subscribe(listener)

        self.assertEqual(system.sync.pull(), SOURCE_REMOTE)
        self.assertEqual([m.id for m in system.store.crew()], ["remote"])
        self.assertEqual(system.store.settings().enabled_missions, ["fajr"])
        self.assertEqual(system.store.last_sync, SYNCED_AT)
        # 上書きは通知もpush予約もしない
        listener.assert_not_called()
        self.assertFalse(system.sync.pending)

    def test_pull_keeps_local_when_not_newer(self):
        client = FakeClient(remote=_remote_snapshot("2026-03-04T00:00:00+07:00"))
        system = self._system(client)
        system.store.mark_synced("2026-03-04T00:00:00+07:00")

        self.assertEqual(system.sync.pull(), SOURCE_LOCAL)
        self.assertEqual([m.id for m in system.store.crew()], ["cadet"])

    def test_pull_without_remote_document(self):
        system = self._system(FakeClient(remote=None))
        self.assertEqual(system.sync.pull(), SOURCE_NONE)
        self.assertEqual([m.id for m in system.store.crew()], ["cadet"])

    def test_pull_failure_leaves_local_untouched(self):
        system = self._system(FakeClient(fetch_error=requests.ConnectionError("offline")))
        system.daylog.save_day("cadet", 1, {"fajr": True})

        self.assertEqual(system.sync.pull(), SOURCE_ERROR)
        self.assertEqual(system.daylog.get_log("cadet")[1].xp_earned, 50)

    def test_disabled_remote(self):
        system = make_system(self.temp)
        system.daylog.save_day("cadet", 1, {"fajr": True})
        self.assertEqual(system.sync.pull(), SOURCE_DISABLED)
        self.assertFalse(system.sync.pending)
        self.assertFalse(system.sync.push())

    def test_changes_outside_loop_wait_for_flush(self):
        client = FakeClient()
        system = self._system(client)
        system.daylog.save_day("cadet", 1, {"fajr": True})
        system.store.update_member("cadet", {"callsign": "Kid"})

        self.assertTrue(system.sync.pending)
        self.assertEqual(client.pushes, [])

        self.assertTrue(system.sync.flush())
        self.assertEqual(len(client.pushes), 1)
        pushed = client.pushes[0]
        self.assertEqual(pushed["crew"][0]["callsign"], "Kid")
        self.assertEqual(pushed["logs"]["cadet"]["1"]["xp_earned"], 50)
        self.assertFalse(system.sync.pending)
        self.assertEqual(system.store.last_sync, SYNCED_AT)

    def test_push_failure_keeps_last_sync(self):
        client = FakeClient(push_error=requests.HTTPError("500"))
        system = self._system(client)
        system.store.update_member("cadet", {"callsign": "Kid"})

        self.assertFalse(system.sync.flush())
        self.assertIsNone(system.store.last_sync)
        # ローカルは影響を受けない
        self.assertEqual(system.store.get_member("cadet").callsign, "Kid")

    def test_failed_push_stays_pending_and_flush_retries(self):
        client = FakeClient(push_error=requests.ConnectionError("offline"))
        system = self._system(client)
        system.store.update_member("cadet", {"callsign": "Kid"})

        self.assertFalse(system.sync.flush())
        self.assertTrue(system.sync.pending)

        client.push_error = None
        self.assertTrue(system.sync.flush())
        self.assertEqual(len(client.pushes), 1)
        self.assertEqual(client.pushes[0]["crew"][0]["callsign"], "Kid")
        self.assertFalse(system.sync.pending)
        self.assertEqual(system.store.last_sync, SYNCED_AT)

    def test_last_sync_change_does_not_trigger_push(self):
        system = self._system(FakeClient())
        system.store.mark_synced("2026-03-01T00:00:00+07:00")
        self.assertFalse(system.sync.pending)


class TestRemoteDocumentClient(unittest.TestCase):

    def _client(self, **kwargs):
        session = MagicMock()
        client = RemoteDocumentClient(
            device_id="device_abc", base_url="https://sync.example.com/api/",
            collection="mission_control_data", api_key="secret", timeout=3, session=session, **kwargs,
        )
        return client, session

    def test_document_url(self):
        client, _ = self._client()
        self.assertEqual(client.document_url, "https://sync.example.com/api/mission_control_data/device_abc")
        self.assertTrue(client.is_ready())

    def test_fetch_missing_document(self):
        client, session = self._client()
        session.get.return_value = MagicMock(status_code=404)
        self.assertIsNone(client.fetch())

    def test_fetch_document(self):
        client, session = self._client()
        session.get.return_value = MagicMock(status_code=200)
        session.get.return_value.json.return_value = {"crew": [], "updatedAt": "2026-03-01T00:00:00Z"}
        self.assertEqual(client.fetch()["updatedAt"], "2026-03-01T00:00:00Z")
        _, kwargs = session.get.call_args
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer secret")
        self.assertEqual(kwargs["timeout"], 3)

    def test_push_sends_device_id(self):
        client, session = self._client()
        session.patch.return_value = MagicMock(status_code=200)
        self.assertTrue(client.push({"crew": []}))
        _, kwargs = session.patch.call_args
        self.assertEqual(kwargs["json"], {"crew": [], "deviceId": "device_abc"})

    def test_push_error_propagates(self):
        client, session = self._client()
        session.patch.return_value.raise_for_status.side_effect = requests.HTTPError("503")
        with self.assertRaises(requests.HTTPError):
            client.push({})

    def test_empty_url_disables(self):
        client = RemoteDocumentClient(device_id="d", base_url="", session=MagicMock())
        self.assertFalse(client.is_ready())
        self.assertIsNone(client.fetch())
        self.assertFalse(client.push({}))


class TestDeviceId(unittest.TestCase):

    def setUp(self):
        self.temp = TempStorage()

    def tearDown(self):
        self.temp.cleanup()

    def test_generated_once_and_persisted(self):
        first = get_device_id(self.temp.storage)
        self.assertTrue(first.startswith("device_"))
        self.assertEqual(get_device_id(self.temp.storage), first)
        self.assertEqual(get_device_id(self.temp.reopen()), first)


# ==========================================
# デバウンス (イベントループ上)
# ==========================================

def _async_system(temp, client, debounce_seconds=0.05):
    system = make_system(temp, client=client, debounce_seconds=debounce_seconds)
    system.sync.now_fn = lambda: SYNCED_AT
    system.sync.cancel_timer()
    system.sync.pending = False
    return system

@pytest.mark.asyncio
async def test_debounce_coalesces_changes():
    temp = TempStorage()
    client = FakeClient()
    system = _async_system(temp, client)
    try:

        system.store.update_member("cadet", {"callsign": "One"})
        system.daylog.save_day("cadet", 1, {"fajr": True})
        system.store.update_member("cadet", {"callsign": "Three"})
        assert system.sync.timer_armed
        assert client.pushes == []

        await asyncio.sleep(0.3)

        assert len(client.pushes) == 1
        assert client.pushes[0]["crew"][0]["callsign"] == "Three"
        assert client.pushes[0]["logs"]["cadet"]["1"]["xp_earned"] == 50
        assert system.store.last_sync == SYNCED_AT
        assert not system.sync.pending
    finally:
        system.sync.shutdown()
        temp.cleanup()

@pytest.mark.asyncio
async def test_change_during_push_schedules_another():
    temp = TempStorage()
    client = FakeClient(push_delay=0.15)
    system = _async_system(temp, client)
    try:

        system.store.update_member("cadet", {"callsign": "Before"})
        await asyncio.sleep(0.1)
        # 1回目のpushは送信中
        system.store.update_member("cadet", {"callsign": "After"})
        assert system.sync.pending

        await asyncio.sleep(0.6)

        assert [p["crew"][0]["callsign"] for p in client.pushes] == ["Before", "After"]
        assert not system.sync.pending
    finally:
        system.sync.shutdown()
        temp.cleanup()

@pytest.mark.asyncio
async def test_async_pull_and_failure():
    temp = TempStorage()
    client = FakeClient(remote=_remote_snapshot("2026-03-05T00:00:00Z"))
    system = _async_system(temp, client)
    try:
        assert await system.sync.async_pull() == SOURCE_REMOTE
        assert [m.id for m in system.store.crew()] == ["remote"]

        client.fetch_error = requests.Timeout("slow")
        assert await system.sync.async_pull() == SOURCE_ERROR
        assert [m.id for m in system.store.crew()] == ["remote"]
    finally:
        system.sync.shutdown()
        temp.cleanup()

if __name__ == '__main__':
    unittest.main()
