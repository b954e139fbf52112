"""Time utilities."""
import time


def epoch_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)
