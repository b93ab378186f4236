# MISSION_CONTROL/services/catalog_service.py
from typing import Any, Dict, List, Optional
from pydantic import ValidationError
from mission_control import mission_data
from mission_control.core.logger import setup_logging
from mission_control.models.mission import Mission
from mission_control.services.store import MissionStore

logger = setup_logging("mission_catalog")

MISSION_FIELDS = set(Mission.model_fields)

def merge_mission(base: Mission, patch: Optional[Dict[str, Any]]) -> Mission:
    """
    組み込みミッションにオーバーライドを重ねる (浅いマージ)。

    - patch に含まれるフィールドは base より優先される (値が None でも上書き)
    - patch に含まれないフィールドは base の値をそのまま使う
    - id は常に base のもの。未知のフィールドは無視する
    - マージ結果が不正な場合は base をそのまま返す
    """
    if not patch:
        return base.model_copy(deep=True)

    data = base.model_dump()
    for key, value in patch.items():
        if key == "id" or key not in MISSION_FIELDS:
            continue
        data[key] = value

    try:
        return Mission.model_validate(data)
    except ValidationError as e:
        logger.warning(f"⚠️ Override for '{base.id}' is invalid, using built-in: {e.error_count()} errors")
        return base.model_copy(deep=True)

def with_member_overrides(mission: Mission, member_id: Optional[str]) -> Mission:
    """メンバー個別の目標値/単位を反映したミッションを返す"""
    per = mission.per_crew.get(member_id) if member_id else None
    if not per:
        return mission
    return mission.model_copy(update={
        "default_target": per.default_target if per.default_target is not None else mission.default_target,
        "unit": per.unit if per.unit is not None else mission.unit,
    })

def sort_missions(missions: List[Mission]) -> List[Mission]:
    """表示順: order (未設定は999) → 名前"""
    return sorted(missions, key=lambda m: (m.order if m.order is not None else 999, m.name or ""))


class MissionCatalog:
    """組み込み定義 + オーバーライド + カスタムミッションを1つのリストにまとめる"""

    def __init__(self, store: MissionStore, builtin: Optional[List[Dict[str, Any]]] = None):
        self.store = store
        self.builtin = [Mission.model_validate(m) for m in (builtin if builtin is not None else mission_data.MISSIONS)]

    def effective_missions(self) -> List[Mission]:
        overrides = self.store.settings().mission_overrides
        merged = [merge_mission(m, overrides.get(m.id)) for m in self.builtin]
        builtin_ids = {m.id for m in self.builtin}
        custom = []
        for m in self.store.custom_missions():
            # 同期データ等で組み込みIDと衝突したカスタムは無視
            if m.id in builtin_ids:
                logger.warning(f"⚠️ Custom mission shadows built-in id, ignored: {m.id}")
                continue
            custom.append(m)
        return merged + custom

    def get_mission(self, mission_id: str) -> Optional[Mission]:
        return next((m for m in self.effective_missions() if m.id == mission_id), None)

    def is_builtin(self, mission_id: str) -> bool:
        return any(m.id == mission_id for m in self.builtin)

    # --- 変更操作 (全てパッチマージ、ストア経由で同期対象になる) ---
    def set_override(self, mission_id: str, patch: Dict[str, Any]) -> bool:
        if not self.is_builtin(mission_id):
            raise KeyError(mission_id)
        return self.store.set_override(mission_id, patch)

    def clear_override(self, mission_id: str) -> bool:
        return self.store.clear_override(mission_id)

    def add_custom(self, mission: Dict[str, Any]) -> Mission:
        created = self.store.add_custom_mission(mission, reserved={m.id for m in self.builtin})
        logger.info(f"✨ Custom mission added: {created.name} ({created.id})")
        return created

    def update_custom(self, mission_id: str, updates: Dict[str, Any]) -> bool:
        return self.store.update_custom_mission(mission_id, updates)

    def remove_custom(self, mission_id: str) -> bool:
        return self.store.remove_custom_mission(mission_id)
