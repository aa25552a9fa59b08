import asyncio
import threading

from catchdeal.events import EventSink, FanoutEventSink
from catchdeal.models import DissectedProduct, EngineStatus, ExtractedLink
from catchdeal.notifiers import telegram
from catchdeal.notifiers.telegram import TelegramEventSink, format_deal, send_telegram_message
from tests.fakes import RecordingSink


class ExplodingSink(EventSink):
    def log(self, line):
        raise RuntimeError("sink down")


def test_fanout_isolates_failing_sinks():
    recorder = RecordingSink()
    fanout = FanoutEventSink(ExplodingSink(), recorder)
    fanout.log("hello")
    fanout.status(EngineStatus.SCANNING)
    assert recorder.events == [("log", "hello"), ("status", EngineStatus.SCANNING)]


def _dissected_link():
    link = ExtractedLink(url="https://link.coupang.com/a/abc", post_title="Big deal today")
    link.mark_success(DissectedProduct(name="Robot Vacuum", price=139000, discount_rate=50, original_price=279000))
    return link


def test_format_deal():
    text = format_deal(_dissected_link())
    assert "Robot Vacuum" in text
    assert "139,000원 (-50%)" in text
    assert "Big deal today" in text
    assert text.endswith("https://link.coupang.com/a/abc")


def test_telegram_is_skipped_without_credentials(monkeypatch):
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)
    assert send_telegram_message("hi") is False


def test_telegram_sink_sends_only_successes(monkeypatch):
    sent = []
    monkeypatch.setattr(telegram, "send_telegram_message", lambda text: sent.append(text) or True)
    sink = TelegramEventSink()

    sink.extracted_link_updated(ExtractedLink(url="https://link.coupang.com/a/pending"))
    failed = ExtractedLink(url="https://link.coupang.com/a/failed")
    failed.mark_failed("gone")
    sink.extracted_link_updated(failed)
    sink.extracted_link_updated(_dissected_link())

    assert len(sent) == 1
    assert "Robot Vacuum" in sent[0]


def test_format_deal_escapes_scraped_text():
    link = ExtractedLink(url="https://www.coupang.com/np/products/1?a=1&b=2", post_title="<Hot> deal")
    link.mark_success(DissectedProduct(name="Salt & Pepper <Set>", price=12000))
    text = format_deal(link)
    assert "Salt &amp; Pepper &lt;Set&gt;" in text
    assert "&lt;Hot&gt; deal" in text
    assert text.endswith("a=1&amp;b=2")
    assert "<Set>" not in text


def test_telegram_sink_sends_off_the_event_loop(monkeypatch):
    threads = []

    def fake_send(text):
        threads.append(threading.get_ident())
        return True

    monkeypatch.setattr(telegram, "send_telegram_message", fake_send)
    sink = TelegramEventSink()

    async def go():
        sink.extracted_link_updated(_dissected_link())
        await sink.flush()
        return threading.get_ident()

    loop_thread = asyncio.run(go())
    assert len(threads) == 1
    assert threads[0] != loop_thread


def test_telegram_sink_logs_delivery_errors(monkeypatch, caplog):
    def broken_send(text):
        raise RuntimeError("bot api exploded")

    monkeypatch.setattr(telegram, "send_telegram_message", broken_send)
    sink = TelegramEventSink()

    async def go():
        sink.extracted_link_updated(_dissected_link())
        await sink.flush()
        await asyncio.sleep(0)

    asyncio.run(go())
    assert "bot api exploded" in caplog.text
