# _utils/backoff.py

import random

# upper bound on any single pause, in seconds
MAX_PAUSE = 16.0


def retry_pauses(
    retries: int,
    *,
    base: float = 1.0,
    jitter: float = 0.0,
    rng: random.Random | None = None,
) -> list[float]:
    """
    Pause to take before each call of a request retried ``retries`` times.

    The first call goes out immediately. Each retry waits twice as long as
    the previous one, starting from ``base`` and bounded by ``MAX_PAUSE``, so
    three retries from a one-second base wait 1s, 2s and 4s. Jitter shifts a
    pause by up to that fraction of itself in either direction.

    Args:
        retries (int): Extra attempts after the first call.
        base (float): First retry pause in seconds.
        jitter (float): Relative spread applied to each retry pause.
        rng (random.Random | None): Source of the jitter.

    Returns:
        list[float]: ``retries + 1`` pauses in seconds, the first always 0.
    """
    source = rng or random.Random()
    pauses = [0.0]

    for retry in range(retries):
        pause = min(base * 2**retry, MAX_PAUSE)
        spread = pause * jitter * source.uniform(-1.0, 1.0) if jitter else 0.0
        pauses.append(min(max(pause + spread, 0.0), MAX_PAUSE))

    return pauses
