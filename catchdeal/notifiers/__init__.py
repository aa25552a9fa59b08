"""Notification backends."""

from catchdeal.notifiers.telegram import TelegramEventSink, send_telegram_message

__all__ = ["TelegramEventSink", "send_telegram_message"]
