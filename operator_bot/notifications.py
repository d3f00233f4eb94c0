"""Notification dispatchers for finalized signals."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

import requests

logger = logging.getLogger(__name__)


def send_telegram_message(token: str, chat_id: str, text: str) -> bool:
    """Send a Telegram message.

    Args:
        token: Bot token obtained from @BotFather.
        chat_id: ID of the chat to send the message to.
        text: Message text.

    Returns:
        True if the request succeeded, False otherwise.
    """
    url = f"https://api.telegram.org/bot{token}/sendMessage"
    payload = {"chat_id": chat_id, "text": text}
    try:
        resp = requests.post(url, data=payload, timeout=10)
    except requests.RequestException as e:
        logger.error("Telegram request error: %s", e)
        return False

    if resp.ok:
        return True

    # Try to log Telegram error details if present
    try:
        desc = resp.json().get('description')
    except ValueError:
        desc = resp.text[:200]
    logger.warning("Telegram send failed: status=%s, detail=%s", resp.status_code, desc)
    return False


def format_signal_message(signal: Dict[str, Any], recipients: int) -> str:
    """Plain-text summary of a persisted signal"""
    direction = signal.get('signal_type', 'BUY')
    icon = '📈' if direction == 'BUY' else '📉'
    lines = [
        f"{icon} New {direction} Signal: {signal.get('symbol', 'Unknown')}",
        f"Timeframe: {signal.get('timeframe', '-')} ({signal.get('trade_type', '-')})",
        f"Entry: {signal.get('entry_price')}",
        f"SL: {signal.get('stop_loss', 'N/A')} | TP: {signal.get('take_profit', 'N/A')}",
        f"R:R {signal.get('risk_reward_ratio', '-')} | Confidence {signal.get('confidence_score', '-')}%",
        f"Recipients: {recipients}",
    ]
    reasoning = signal.get('ai_reasoning')
    if reasoning:
        lines.append('')
        lines.append(reasoning)
    return "\n".join(lines)


class NotificationDispatcher(ABC):
    """Fire-and-forget delivery of a signal to a set of users"""

    @abstractmethod
    def dispatch(self, signal: Dict[str, Any], user_ids: List[str]) -> bool:
        """Deliver `signal`; returns False when delivery failed"""
        pass


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Default dispatcher that only records deliveries in the log"""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    def dispatch(self, signal: Dict[str, Any], user_ids: List[str]) -> bool:
        logger.info(f"Notify {len(user_ids)} users: {signal.get('symbol')} {signal.get('signal_type')}")
        self.sent.append({'signal': signal, 'userIds': list(user_ids)})
        return True


class WebhookNotificationDispatcher(NotificationDispatcher):
    """POSTs {signal, userIds} to a downstream notification service"""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def dispatch(self, signal: Dict[str, Any], user_ids: List[str]) -> bool:
        try:
            resp = requests.post(self.url, json={'signal': signal, 'userIds': list(user_ids)},
                                 timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Webhook request error: %s", e)
            return False

        if not resp.ok:
            logger.warning("Webhook send failed: status=%s, detail=%s", resp.status_code, resp.text[:200])
        return resp.ok


class TelegramNotificationDispatcher(NotificationDispatcher):
    """Posts a formatted signal summary to a Telegram channel"""

    def __init__(self, token: str, chat_id: str):
        self.token = token
        self.chat_id = chat_id

    def dispatch(self, signal: Dict[str, Any], user_ids: List[str]) -> bool:
        return send_telegram_message(self.token, self.chat_id, format_signal_message(signal, len(user_ids)))
