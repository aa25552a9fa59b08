"""Event sinks: how the engine reports to its host."""

import logging

from catchdeal.models import EngineStatus, ExtractedLink, LinkStatus

logger = logging.getLogger(__name__)


class EventSink:
    """Receives log lines, status changes and link lifecycle events. Default: ignore."""

    def log(self, line: str) -> None:
        pass

    def status(self, status: EngineStatus) -> None:
        pass

    def extracted_link(self, link: ExtractedLink) -> None:
        pass

    def extracted_link_updated(self, link: ExtractedLink) -> None:
        pass


class LoggingEventSink(EventSink):
    """Mirror every event into the ``catchdeal.events`` logger."""

    def log(self, line: str) -> None:
        logger.info(line)

    def status(self, status: EngineStatus) -> None:
        logger.info("Status → %s", status.value)

    def extracted_link(self, link: ExtractedLink) -> None:
        logger.debug("Extracted %s (post: %s)", link.url, link.post_title)

    def extracted_link_updated(self, link: ExtractedLink) -> None:
        if link.status == LinkStatus.SUCCESS:
            logger.info("Dissected %s: %s @ %s", link.url, link.product_name, link.price)
        elif link.status == LinkStatus.FAILED:
            logger.warning("Gave up on %s after %d attempts: %s", link.url, link.retry_count, link.error_message)


class FanoutEventSink(EventSink):
    """Forward events to several sinks; a failing sink does not silence the others."""

    def __init__(self, *sinks: EventSink):
        self.sinks = list(sinks)

    def _emit(self, method: str, *args) -> None:
        for sink in self.sinks:
            try:
                getattr(sink, method)(*args)
            except Exception as e:
                logger.exception("Event sink %s.%s failed: %s", type(sink).__name__, method, e)

    def log(self, line: str) -> None:
        self._emit("log", line)

    def status(self, status: EngineStatus) -> None:
        self._emit("status", status)

    def extracted_link(self, link: ExtractedLink) -> None:
        self._emit("extracted_link", link)

    def extracted_link_updated(self, link: ExtractedLink) -> None:
        self._emit("extracted_link_updated", link)
