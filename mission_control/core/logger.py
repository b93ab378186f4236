import logging
import os
import traceback
from logging.handlers import TimedRotatingFileHandler
from typing import Optional
import requests
from mission_control import config

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_FILE_NAME = "mission_control.log"

# Discordの1メッセージ上限 (2000文字) に収める
DISCORD_MSG_LIMIT = 1500
DISCORD_TRACE_LIMIT = 400


class DiscordErrorHandler(logging.Handler):
    """ERROR以上のログをDiscord Webhookへ送る。送信失敗はログ処理に影響させない"""

    def __init__(self, webhook_url: str):
        super().__init__(level=logging.ERROR)
        self.webhook_url = webhook_url

    def build_content(self, record: logging.LogRecord) -> str:
        content = f"🛰️ **Mission Control エラー** ({record.name})\n```\n{self.format(record)[:DISCORD_MSG_LIMIT]}\n```"
        if record.exc_info:
            trace = "".join(traceback.format_exception(*record.exc_info))
            content += f"\n```python\n{trace[-DISCORD_TRACE_LIMIT:]}```"
        return content

    def emit(self, record: logging.LogRecord) -> None:
        try:
            requests.post(self.webhook_url, json={"content": self.build_content(record)}, timeout=5)
        except requests.RequestException:
            # 通知経路の障害は握りつぶす (ここでログを出すと再帰する)
            pass


def _file_handler(formatter: logging.Formatter) -> Optional[logging.Handler]:
    """日次ローテーションのファイル出力。ログ先を作れない環境ではコンソールのみ"""
    try:
        os.makedirs(config.LOG_DIR, exist_ok=True)
        handler = TimedRotatingFileHandler(
            filename=os.path.join(config.LOG_DIR, LOG_FILE_NAME),
            when='midnight',
            backupCount=7,
            encoding='utf-8',
        )
    except OSError:
        return None
    handler.setFormatter(formatter)
    return handler

def setup_logging(name: str, webhook_url: Optional[str] = None) -> logging.Logger:
    """
    サービスごとのロガーを返す。
    コンソール + ファイル、Webhookが設定されていればエラー通知も追加する。
    """
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.handlers.clear()
    logger.setLevel(logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    file_handler = _file_handler(formatter)
    if file_handler:
        logger.addHandler(file_handler)
    else:
        logger.warning(f"⚠️ ログファイルを開けません ({config.LOG_DIR}), コンソールのみ出力")

    target_url = webhook_url or config.DISCORD_WEBHOOK_ERROR
    if target_url:
        discord = DiscordErrorHandler(target_url)
        discord.setFormatter(formatter)
        logger.addHandler(discord)

    return logger
