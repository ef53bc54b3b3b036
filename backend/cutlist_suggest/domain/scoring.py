"""All scoring formulas — frequency, recency, context match, confidence, quantity.

Pure functions, no I/O. Every place that scores a pattern imports from here.

Confidence is a 0-100 blend of three signals:

    frequency (0-40) + recency (0-30) + context match (0-30)

Usage:
    from cutlist_suggest.domain.scoring import confidence_score, predict_quantity

    score = confidence_score(pattern, ContextInfo(product_name="DOOR", size="100X200"), max_frequency=8)
    prediction = predict_quantity(pattern, order_quantity=10, confidence=score.total)
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional, Sequence

from rapidfuzz.distance import Levenshtein

from cutlist_suggest.domain.normalization import normalize, split_context_key
from cutlist_suggest.schemas.pattern import Pattern
from cutlist_suggest.schemas.suggestion import ConfidenceScore, ContextInfo, QuantityPrediction

logger = logging.getLogger(__name__)

# Signal weights (sum to 100)
FREQUENCY_WEIGHT = 40.0
RECENCY_WEIGHT = 30.0
CONTEXT_WEIGHT = 30.0

RECENCY_HALF_LIFE_DAYS = 90.0

# Context match weights (sum to 1)
PRODUCT_MATCH_WEIGHT = 0.4
SIZE_MATCH_WEIGHT = 0.3
COLOR_MATCH_WEIGHT = 0.15
VERSION_MATCH_WEIGHT = 0.15
# Color/version earn half credit for being supplied at all; they are not compared.
PRESENCE_CREDIT = 0.5

# Quantity interval: ±20% at confidence 0 down to ±5% at confidence 100
MAX_UNCERTAINTY = 0.20
MIN_UNCERTAINTY = 0.05

SECONDS_PER_DAY = 86_400


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (``round()`` would go to even).

    Examples:
        >>> round_half_up(2.5)
        3
        >>> round_half_up(20.0)
        20
    """
    return int(math.floor(value + 0.5))


def frequency_score(frequency: float, max_frequency: float) -> float:
    """Min-max normalized frequency on a 0-40 scale.

    Returns 0 when either argument is non-positive.

    Examples:
        >>> frequency_score(5, 10)
        20.0
        >>> frequency_score(10, 10)
        40.0
        >>> frequency_score(0, 10)
        0.0
    """
    if max_frequency <= 0 or frequency <= 0:
        return 0.0
    score = (frequency / max_frequency) * FREQUENCY_WEIGHT
    return round(score, 2)


def days_since(moment: datetime, now: Optional[datetime] = None) -> float:
    """Fractional days from ``moment`` to ``now``; naive datetimes are read as UTC."""
    now = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - moment).total_seconds() / SECONDS_PER_DAY


def recency_score(
    last_used: datetime,
    now: Optional[datetime] = None,
    half_life_days: float = RECENCY_HALF_LIFE_DAYS,
) -> float:
    """Exponential decay on a 0-30 scale with a 90-day half-life.

    Formula::

        score = 30 * 0.5 ** (days / half_life)

    - 0 days   → 30.00
    - 90 days  → 15.00
    - 180 days → 7.50
    - 365 days → ≈1.8

    Future timestamps are treated as "today".
    """
    days = max(0.0, days_since(last_used, now))
    decay = math.pow(0.5, days / half_life_days)
    score = RECENCY_WEIGHT * decay
    logger.debug("recency score days=%.1f decay=%.3f score=%.2f", days, decay, score)
    return round(score, 2)


def context_match_score(contexts: Sequence[str], context: ContextInfo) -> float:
    """Best weighted match of the query context against stored contexts, 0-30.

    Each stored context is ``PRODUCT|SIZE|...``. Product and size must match
    exactly after normalization; color and version only earn half credit for
    being present in the query.
    """
    if not contexts:
        return 0.0

    product = normalize(context.product_name)
    size = normalize(context.size)

    best = 0.0
    for stored in contexts:
        stored_product, stored_size = split_context_key(stored)
        match = 0.0
        if normalize(stored_product) == product:
            match += PRODUCT_MATCH_WEIGHT
        if normalize(stored_size) == size:
            match += SIZE_MATCH_WEIGHT
        if context.color:
            match += COLOR_MATCH_WEIGHT * PRESENCE_CREDIT
        if context.version:
            match += VERSION_MATCH_WEIGHT * PRESENCE_CREDIT
        best = max(best, match)

    return round(best * CONTEXT_WEIGHT, 2)


def confidence_score(
    pattern: Pattern,
    context: ContextInfo,
    max_frequency: float,
    now: Optional[datetime] = None,
    half_life_days: float = RECENCY_HALF_LIFE_DAYS,
) -> ConfidenceScore:
    """Combine the three signals into a 0-100 score with a readable breakdown."""
    freq = frequency_score(pattern.frequency, max_frequency)
    recency = recency_score(pattern.last_used, now=now, half_life_days=half_life_days)
    ctx = context_match_score(pattern.contexts, context)
    total = freq + recency + ctx

    breakdown = ", ".join([
        f"Frequency: {freq:.1f}/{FREQUENCY_WEIGHT:.0f}",
        f"Recency: {recency:.1f}/{RECENCY_WEIGHT:.0f}",
        f"Context: {ctx:.1f}/{CONTEXT_WEIGHT:.0f}",
    ])
    logger.debug("confidence %s total=%.2f (%s)", pattern.pattern_key, total, breakdown)

    return ConfidenceScore(
        total=round(total, 2),
        frequency=freq,
        recency=recency,
        context_match=ctx,
        breakdown=breakdown,
    )


def uncertainty_factor(confidence: float) -> float:
    """Linear interpolation from ±20% (confidence 0) to ±5% (confidence 100)."""
    c = max(0.0, min(1.0, confidence / 100))
    return MAX_UNCERTAINTY * (1 - c) + MIN_UNCERTAINTY * c


def predict_quantity(pattern: Pattern, order_quantity: float, confidence: float) -> QuantityPrediction:
    """Predict a cut quantity with a confidence interval.

    With a known order quantity the pattern's ratio (running average, else
    the first-observation ratio, else 1.0) scales it; without one the
    historical average quantity is returned as-is.
    """
    if order_quantity > 0:
        ratio = pattern.effective_ratio or 1.0
        predicted = round_half_up(order_quantity * ratio)
        reasoning = f"Scaled by order quantity ({order_quantity:g}) using historical ratio {ratio:.3f}"
    else:
        predicted = round_half_up(pattern.average_quantity)
        reasoning = "Based on historical average"

    u = uncertainty_factor(confidence)
    low = max(1, math.floor(predicted * (1 - u)))
    high = math.ceil(predicted * (1 + u))

    return QuantityPrediction(
        predicted=predicted,
        confidence=round(confidence, 2),
        min=low,
        max=high,
        reasoning=reasoning,
    )


def string_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Levenshtein similarity in [0, 1]: ``1 - distance / max_length``.

    Examples:
        >>> string_similarity("frame", "FRAME ")
        1.0
        >>> round(string_similarity("FRAME", "FRAME A"), 3)
        0.714
        >>> string_similarity("FRAME", "")
        0.0
    """
    s1 = (a or "").upper().strip()
    s2 = (b or "").upper().strip()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    return max(0.0, min(1.0, Levenshtein.normalized_similarity(s1, s2)))


def diversity_confidence(
    pattern: Pattern,
    max_frequency: float,
    now: Optional[datetime] = None,
    half_life_days: float = RECENCY_HALF_LIFE_DAYS,
) -> float:
    """Stored-confidence formula used by the bulk refresh.

    Same frequency and recency signals, but the context signal rewards how
    many distinct contexts the pattern was seen under (10 points each, max 30)
    instead of matching a query.
    """
    freq = frequency_score(pattern.frequency, max_frequency)
    recency = recency_score(pattern.last_used, now=now, half_life_days=half_life_days)
    diversity = min(len(set(pattern.contexts)) * 10.0, CONTEXT_WEIGHT)
    return round(min(100.0, freq + recency + diversity), 2)
