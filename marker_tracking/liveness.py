"""
Liveness classification for tracked entities.

Maps the age of an entity's latest fix, and how long its speed has stayed
below the stationary threshold, to exactly one LivenessState. Thresholds
compare with >= on the lower bound and < on the upper bound so that each
age falls into a single band.
"""

from typing import Optional

from marker_tracking.data_models import LivenessState, TrackingConfiguration


def classify_liveness(
    age_ms: float,
    config: TrackingConfiguration,
    low_speed_duration_ms: Optional[float] = None,
) -> LivenessState:
    """Classify an entity from the age of its last fix.

    Args:
        age_ms: now - current_fix.timestamp_ms (negative ages count as fresh)
        config: Thresholds to apply
        low_speed_duration_ms: How long speed has continuously been below
            config.stationary_speed_threshold, or None if it is not

    Returns:
        The LivenessState for this age
    """
    expired = config.expired_threshold_ms
    if expired is not None and age_ms >= expired:
        return LivenessState.EXPIRED
    if age_ms >= config.offline_threshold_ms:
        return LivenessState.OFFLINE
    if age_ms >= config.stale_threshold_ms:
        return LivenessState.STALE
    if low_speed_duration_ms is not None and low_speed_duration_ms >= config.stationary_duration_ms:
        return LivenessState.STATIONARY
    return LivenessState.TRACKING


def low_speed_duration(now_ms: float, low_speed_since_ms: Optional[int]) -> Optional[float]:
    """Duration of the current below-threshold speed run, or None if not running."""
    if low_speed_since_ms is None:
        return None
    return max(0.0, now_ms - low_speed_since_ms)


def next_low_speed_since(
    low_speed_since_ms: Optional[int],
    speed: Optional[float],
    timestamp_ms: int,
    config: TrackingConfiguration,
) -> Optional[int]:
    """Advance the stationary counter for a newly accepted fix.

    A fix below the threshold starts a run if none is active; any fix at
    or above the threshold resets it; a fix without speed leaves it as is.
    """
    if speed is None:
        return low_speed_since_ms
    if speed < config.stationary_speed_threshold:
        return low_speed_since_ms if low_speed_since_ms is not None else timestamp_ms
    return None


class LivenessClassifier:
    """Classifier bound to one configuration.

    Example:
        classifier = LivenessClassifier(config)
        state = classifier.classify(age_ms=12000)  # LivenessState.STALE
    """

    def __init__(self, config: Optional[TrackingConfiguration] = None):
        self.config = config if config is not None else TrackingConfiguration()

    def classify(self, age_ms: float, low_speed_duration_ms: Optional[float] = None) -> LivenessState:
        return classify_liveness(age_ms, self.config, low_speed_duration_ms)
