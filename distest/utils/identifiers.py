import random
import time
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlencode, urlsplit, urlunsplit

from distest.config.loader import get_meeting_link_settings

ROLE_ADMIN = "admin"
ROLE_VOTER = "voter"

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_NAME_RANDOM_RANGE = 1000000


def _format_base36(number: int) -> str:
    if number < 0:
        raise ValueError("number must be non-negative")
    if number == 0:
        return "0"
    result = []
    while number:
        number, remainder = divmod(number, 36)
        result.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(result))


def generate_participant_name(
    now_ms: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Build a participant name from the current time and a random suffix.
    Both components are rendered in lowercase base36.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    rng = rng or random.Random()
    suffix = round(rng.random() * _NAME_RANDOM_RANGE)
    return _format_base36(now_ms) + _format_base36(suffix)


def next_item_key(
    contributor: str,
    sequence: int,
    exists: Callable[[str], bool],
) -> Tuple[str, int]:
    """
    Return the first unused ``<contributor><n>`` key with n >= sequence,
    together with the sequence value to use for the following submission.
    """
    while True:
        key = f"{contributor}{sequence}"
        sequence += 1
        if not exists(key):
            return key, sequence


def split_item_text(text: str) -> Tuple[str, str]:
    """Split a submission on its first colon into (bold label, body)."""
    colon_index = text.find(":")
    if colon_index < 0:
        return "", text
    return text[: colon_index + 1], text[colon_index + 1 :]


def split_submission(raw: str) -> List[str]:
    """Split a multi-item submission on blank lines, dropping empty blocks."""
    if not raw:
        return []
    normalized = raw.replace("\r\n", "\n")
    return [block.strip() for block in normalized.split("\n\n") if block.strip()]


def build_meeting_id(peer_id: str, role: str) -> str:
    settings = get_meeting_link_settings()
    prefix = settings["admin_prefix"] if role == ROLE_ADMIN else settings["voter_prefix"]
    return f"{prefix}{peer_id}"


def build_meeting_link(peer_id: str, role: str, base_url: Optional[str] = None) -> str:
    """Return the shareable link that opens the session hosted by ``peer_id``."""
    settings = get_meeting_link_settings()
    base = (base_url or settings["base_url"]).split("?")[0]
    parts = urlsplit(base)
    query = urlencode({settings["meeting_param"]: build_meeting_id(peer_id, role)})
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))


def parse_meeting_id(meeting_id: Optional[str]) -> Optional[Tuple[str, str]]:
    """Return ``(role, peer_id)`` for a prefixed meeting id, or None."""
    if not isinstance(meeting_id, str):
        return None
    settings = get_meeting_link_settings()
    for role, prefix in (
        (ROLE_ADMIN, settings["admin_prefix"]),
        (ROLE_VOTER, settings["voter_prefix"]),
    ):
        if meeting_id.startswith(prefix):
            peer_id = meeting_id[len(prefix) :]
            return (role, peer_id) if peer_id else None
    return None
