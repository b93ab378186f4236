import datetime
import pytz
import logging
from typing import Any, Optional
from mission_control import config

logger = logging.getLogger("core")

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=pytz.utc)

def get_tz():
    return pytz.timezone(config.TIMEZONE)

def get_now_iso() -> str:
    return datetime.datetime.now(get_tz()).isoformat()

def get_now_ms() -> int:
    return int(datetime.datetime.now(pytz.utc).timestamp() * 1000)

def get_today_date_str() -> str:
    return datetime.datetime.now(get_tz()).strftime("%Y-%m-%d")

def parse_timestamp(value: Any) -> datetime.datetime:
    """
    タイムスタンプを aware datetime に変換する。
    ISO文字列 / epoch数値 (秒 or ミリ秒) / {seconds, nanoseconds} 形式に対応。
    解釈できない値・None は EPOCH として扱う。
    """
    if value is None or value == "":
        return EPOCH
    try:
        if isinstance(value, datetime.datetime):
            dt = value
        elif isinstance(value, bool):
            return EPOCH
        elif isinstance(value, (int, float)):
            # 1e11 を超える値はミリ秒とみなす
            seconds = value / 1000 if value > 1e11 else value
            dt = datetime.datetime.fromtimestamp(seconds, tz=pytz.utc)
        elif isinstance(value, dict) and "seconds" in value:
            seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0)) / 1e9
            dt = datetime.datetime.fromtimestamp(seconds, tz=pytz.utc)
        elif isinstance(value, str):
            dt = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
        else:
            return EPOCH
    except (ValueError, TypeError, OverflowError, OSError) as e:
        logger.warning(f"⚠️ タイムスタンプを解釈できません ({value!r}): {e}")
        return EPOCH

    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt

def get_cycle_day(date_str: Optional[str] = None) -> int:
    """日付からサイクル日 (1..30) を求める。範囲外はクランプ"""
    date_str = date_str or get_today_date_str()
    start = datetime.date.fromisoformat(config.CYCLE_START_DATE)
    current = datetime.date.fromisoformat(date_str[:10])
    diff_days = (current - start).days + 1
    return max(1, min(diff_days, config.CYCLE_DAYS))
