# linework/llm/aspect.py
"""Snapping requested page dimensions to the image service's aspect-ratio buckets."""

import math

# Order matters: on an exact tie the first bucket wins.
SUPPORTED_ASPECT_RATIOS: tuple[tuple[str, float], ...] = (
    ("1:1", 1.0),
    ("3:4", 0.75),
    ("4:3", 1.333),
    ("9:16", 0.5625),
    ("16:9", 1.777),
)


def closest_aspect_ratio(width: float, height: float) -> str:
    """
    Return the id of the supported bucket nearest to width / height.

    Args:
        width: Requested output width (any unit)
        height: Requested output height (same unit as width)

    Returns:
        Bucket id such as "3:4"

    Raises:
        ValueError: If either dimension is non-positive or not finite
    """
    if not (math.isfinite(width) and math.isfinite(height)) or width <= 0 or height <= 0:
        raise ValueError(f"Dimensions must be positive and finite, got {width}x{height}")

    requested = width / height
    best_id, best_value = SUPPORTED_ASPECT_RATIOS[0]
    for ratio_id, value in SUPPORTED_ASPECT_RATIOS[1:]:
        if abs(value - requested) < abs(best_value - requested):
            best_id, best_value = ratio_id, value
    return best_id
