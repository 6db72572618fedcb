import datetime
import math
from time import time

# 9999-12-31T23:59:59Z, the last second datetime can represent
MAX_EPOCH = 253402300799


def now_epoch() -> int:
    return int(time())


def parse_timestamp(value) -> int:
    """
    Accept epoch seconds, epoch milliseconds or an ISO-8601 string and
    return epoch seconds. Naive ISO strings are treated as UTC.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        # Browser clients send Date.now() in milliseconds
        seconds = int(value // 1000) if value > 10**11 else int(value)
        if abs(seconds) > MAX_EPOCH:
            raise ValueError(f"Timestamp out of range: {value!r}")
        return seconds
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return parse_timestamp(int(text))
    parsed = datetime.datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return int(parsed.timestamp())


def format_timestamp(epoch: int | None) -> str | None:
    if epoch is None:
        return None
    return datetime.datetime.fromtimestamp(epoch, tz=datetime.timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
