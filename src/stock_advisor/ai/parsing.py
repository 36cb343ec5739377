"""
Normalize sentiment-model responses into one SentimentReading.

Inference endpoints answer in several shapes depending on model and
pipeline version:

    [[{"label": "positive", "score": 0.91}, ...]]   nested label scores
    [{"label": "positive", "score": 0.91}, ...]     flat label scores
    {"label": "positive", "score": 0.91}            single label
    {"positive": 0.91, "negative": 0.02, ...}       score mapping
    {"sentiment": "positive", "confidence": 0.91}   already normalized

Everything past this module only sees SentimentReading.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

SENTIMENTS = ("positive", "negative", "neutral")

# cardiffnlp/twitter-roberta style index labels
_LABEL_ALIASES = {
    "label_0": "negative",
    "label_1": "neutral",
    "label_2": "positive",
    "pos": "positive",
    "neg": "negative",
    "neu": "neutral",
    "bullish": "positive",
    "bearish": "negative",
}


class ResponseParseError(ValueError):
    """Raised when a provider payload matches no known response shape."""


class ResponseShape(str, Enum):
    NESTED_LABEL_SCORES = "nested_label_scores"
    LABEL_SCORES = "label_scores"
    SINGLE_LABEL = "single_label"
    SCORE_MAPPING = "score_mapping"
    NORMALIZED = "normalized"


@dataclass(frozen=True)
class SentimentReading:
    """Canonical sentiment: label in SENTIMENTS and confidence in [0, 1]."""

    sentiment: str
    confidence: float
    scores: dict[str, float] = field(default_factory=dict)
    shape: ResponseShape | None = None


def _normalize_label(label: Any) -> str | None:
    if not isinstance(label, str):
        return None
    lowered = label.strip().lower()
    lowered = _LABEL_ALIASES.get(lowered, lowered)
    return lowered if lowered in SENTIMENTS else None


def _score(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return max(0.0, min(1.0, result))


def _is_label_entry(item: Any) -> bool:
    return isinstance(item, dict) and "label" in item and "score" in item


def classify_response(payload: Any) -> ResponseShape:
    """Identify which known shape a raw payload has."""
    if isinstance(payload, list) and payload:
        first = payload[0]
        if isinstance(first, list) and first and all(_is_label_entry(i) for i in first):
            return ResponseShape.NESTED_LABEL_SCORES
        if all(_is_label_entry(i) for i in payload):
            return ResponseShape.LABEL_SCORES
    elif isinstance(payload, dict):
        if "sentiment" in payload and "confidence" in payload:
            return ResponseShape.NORMALIZED
        if _is_label_entry(payload):
            return ResponseShape.SINGLE_LABEL
        if any(_normalize_label(k) for k in payload):
            return ResponseShape.SCORE_MAPPING
    raise ResponseParseError(f"Unrecognized sentiment payload: {str(payload)[:200]}")


def _label_scores(entries: list[dict[str, Any]]) -> dict[str, float]:
    scores: dict[str, float] = {}
    for entry in entries:
        label = _normalize_label(entry.get("label"))
        score = _score(entry.get("score"))
        if label is not None and score is not None:
            scores[label] = max(score, scores.get(label, 0.0))
    return scores


def _pick(scores: dict[str, float]) -> tuple[str, float]:
    """Positive/negative must strictly beat both others, else neutral."""
    positive = scores.get("positive", 0.0)
    negative = scores.get("negative", 0.0)
    neutral = scores.get("neutral", 0.0)
    if positive > negative and positive > neutral:
        return "positive", positive
    if negative > positive and negative > neutral:
        return "negative", negative
    return "neutral", neutral


def parse_sentiment_response(payload: Any) -> SentimentReading:
    """
    Convert any supported payload into a SentimentReading.

    Raises:
        ResponseParseError: If the payload shape is unknown or carries no
            usable label scores
    """
    shape = classify_response(payload)

    if shape is ResponseShape.NORMALIZED:
        label = _normalize_label(payload.get("sentiment"))
        confidence = _score(payload.get("confidence"))
        if label is None or confidence is None:
            raise ResponseParseError(f"Malformed normalized payload: {payload!r}")
        return SentimentReading(label, confidence, {label: confidence}, shape)

    if shape is ResponseShape.NESTED_LABEL_SCORES:
        scores = _label_scores(payload[0])
    elif shape is ResponseShape.LABEL_SCORES:
        scores = _label_scores(payload)
    elif shape is ResponseShape.SINGLE_LABEL:
        scores = _label_scores([payload])
    else:
        scores = {}
        for key, value in payload.items():
            label = _normalize_label(key)
            score = _score(value)
            if label is not None and score is not None:
                scores[label] = score

    if not scores:
        raise ResponseParseError(f"No usable label scores in payload ({shape.value})")

    sentiment, confidence = _pick(scores)
    return SentimentReading(sentiment, confidence, scores, shape)
