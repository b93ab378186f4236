import os
import shutil
import tempfile
from mission_control.core.database import LocalStorage
from mission_control.services.mission_system import MissionControl
from mission_control.services.sync_service import RemoteDocumentClient

# テスト用の最小ミッション (boolean 1件 + partial 1件)
TEST_MISSIONS = [
    {'id': 'fajr', 'name': 'Fajr Prayer', 'type': 'boolean', 'base_xp': 50},
    {'id': 'tilawah', 'name': 'Tilawah', 'type': 'partial', 'base_xp': 100, 'default_target': 20, 'unit': 'pages'},
]

class TempStorage:
    """一時ディレクトリ上のローカルストア"""

    def __init__(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.tmp_dir, "test_mission_control.db")
        self.storage = LocalStorage(self.db_path)

    def reopen(self) -> LocalStorage:
        return LocalStorage(self.db_path)

    def cleanup(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

def make_system(temp: TempStorage, client=None, builtin=None, debounce_seconds=0.05,
                crew=(("cadet", "Cadet", "cadet"),)) -> MissionControl:
    """
    テスト用システムを作成する。
    デフォルトメンバーは削除し、crew で指定したメンバーだけにする。
    """
    client = client or RemoteDocumentClient(device_id="test_device", base_url="")
    system = MissionControl(
        storage=temp.storage,
        client=client,
        debounce_seconds=debounce_seconds,
        builtin=TEST_MISSIONS if builtin is None else builtin,
    )
    for member_id, callsign, difficulty in crew:
        system.store.add_member({"id": member_id, "callsign": callsign, "difficulty": difficulty})
    if crew:
        system.store.remove_member("abah")
    return system
