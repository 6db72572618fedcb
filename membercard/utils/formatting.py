import datetime
from decimal import ROUND_HALF_UP, Decimal

from membercard.utils.time_utils import now_epoch

CURRENCY_SYMBOL = "฿"


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_currency(amount) -> str:
    return f"{CURRENCY_SYMBOL}{float(amount or 0):,.2f}"


def format_points(points) -> str:
    return f"{int(points or 0):,}"


def relative_time(epoch: int | None, now: int = None) -> str:
    """Human readable 'time since' for the last sync of an account."""
    if epoch is None:
        return "never"
    now = now_epoch() if now is None else now
    minutes = max(now - epoch, 0) // 60
    hours = minutes // 60
    days = hours // 24

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    if days < 30:
        return f"{days} day{'s' if days != 1 else ''} ago"
    return datetime.datetime.fromtimestamp(epoch, tz=datetime.timezone.utc).strftime("%d %B %Y")
