"""Credential bundle and cookie set handed over by the login collaborator."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from catchdeal.config import COMMERCE_DOMAIN

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Authenticated session; the engine only passes it through."""

    user_id: str
    access_token: str


def load_credentials() -> Credentials | None:
    """Read the session from CATCHDEAL_USER_ID / CATCHDEAL_ACCESS_TOKEN."""
    user_id = os.environ.get("CATCHDEAL_USER_ID", "").strip()
    token = os.environ.get("CATCHDEAL_ACCESS_TOKEN", "").strip()
    if not user_id or not token:
        return None
    return Credentials(user_id=user_id, access_token=token)


def parse_cookies(text: str) -> list[dict]:
    """
    Parse an exported cookie array (EditThisCookie / Cookie-Editor format).

    Entries without a name or value are dropped; unparseable text yields [].
    Each cookie gets the commerce domain when none is given.
    """
    try:
        raw = json.loads(text)
    except (TypeError, ValueError):
        logger.warning("Cookie set is not valid JSON; ignoring it")
        return []
    if not isinstance(raw, list):
        return []

    cookies = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("name") or item.get("value") is None:
            logger.debug("Dropping malformed cookie entry: %r", item)
            continue
        cookies.append(
            {
                "name": str(item["name"]),
                "value": str(item["value"]),
                "domain": item.get("domain") or f".{COMMERCE_DOMAIN}",
                "path": item.get("path") or "/",
            }
        )
    return cookies


def load_cookies(path: Path) -> list[dict]:
    try:
        return parse_cookies(path.read_text(encoding="utf-8"))
    except OSError:
        logger.debug("No cookie file at %s", path)
        return []
