import random
import string
import time

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_id(rng=random):
    """Opaque player id: an underscore followed by 9 base-36 characters."""
    return '_' + ''.join(rng.choice(_ID_ALPHABET) for _ in range(9))


def now_ms() -> int:
    return int(time.time() * 1000)


def format_elapsed(ms) -> str:
    """Format a duration in milliseconds as HH:MM:SS, clamping None/negative to zero."""
    if ms is None or ms < 0:
        return '00:00:00'
    total_seconds = int(ms // 1000)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f'{hours:02d}:{minutes:02d}:{seconds:02d}'


def elapsed_since(start_time, now=None) -> str:
    if start_time is None:
        return format_elapsed(None)
    now = now_ms() if now is None else now
    return format_elapsed(now - start_time)
