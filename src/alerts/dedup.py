"""DedupFilter — exact, fuzzy and rate-based suppression of candidate insights."""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable

import structlog

from src.alerts.repository import AlertRepository
from src.alerts.store import AlertRegistry
from src.core.config import DedupConfig
from src.core.types import Alert, DedupDecision, Insight

logger = structlog.stdlib.get_logger()

_NON_WORD = re.compile(r"[^\w\s]", re.ASCII)
_HOUR = 3600.0

REASON_EXACT = "exact_duplicate"
REASON_SIMILAR = "similar_content"
REASON_RATE = "rate_limited"
REASON_CHECK_FAILED = "dedup_check_failed"


def extract_keywords(
    text: str, max_keywords: int = 10, min_length: int = 4,
) -> list[str]:
    """Lower-case, strip punctuation, keep the first *max_keywords* long words."""
    words = _NON_WORD.sub(" ", text.lower()).split()
    return [w for w in words if len(w) >= min_length][:max_keywords]


def jaccard_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """``|A ∩ B| / |A ∪ B|``; 0.0 when both are empty."""
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def dedup_key(title: str, producer_id: str) -> str:
    """Exact-match identity for an insight or insight-derived alert."""
    return f"{title}|{producer_id}"


def find_duplicate_groups(alerts: Iterable[Alert]) -> list[str]:
    """Ids of redundant alerts sharing a title/producer with an earlier one.

    Alerts are considered oldest first; the first of each group is kept.
    """
    seen: set[str] = set()
    redundant: list[str] = []
    for alert in sorted(alerts, key=lambda a: a.created_at):
        key = dedup_key(alert.title, alert.producer_id)
        if key in seen:
            redundant.append(alert.id)
        else:
            seen.add(key)
    return redundant


class DedupFilter:
    """Decides whether a candidate insight duplicates a recent alert.

    Checks run in order: exact ``(title, producer_id)`` match, keyword
    Jaccard similarity against the producer's recent alerts, then the
    per-producer rate guard. Any storage error fails open.

    With a *registry*, the exact check also covers active alerts that never
    reached the repository.
    """

    def __init__(
        self,
        repository: AlertRepository,
        config: DedupConfig | None = None,
        clock: Callable[[], float] = time.time,
        registry: AlertRegistry | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or DedupConfig()
        self._clock = clock
        self._registry = registry

    @property
    def config(self) -> DedupConfig:
        return self._config

    def keywords(self, text: str) -> list[str]:
        return extract_keywords(
            text,
            max_keywords=self._config.max_keywords,
            min_length=self._config.min_keyword_length,
        )

    async def accept(self, insight: Insight) -> DedupDecision:
        """Return whether *insight* may become an alert. Never raises."""
        try:
            return await self._check(insight)
        except Exception as exc:
            logger.exception(
                "dedup_check_failed",
                producer_id=insight.producer_id,
                title=insight.title,
            )
            return DedupDecision(
                accepted=True,
                reason=f"{REASON_CHECK_FAILED}: {type(exc).__name__}",
            )

    async def is_duplicate(self, title: str, producer_id: str) -> bool:
        """Exact check: same title and producer within ``hours_back``."""
        since = self._clock() - self._config.hours_back * _HOUR
        existing = self._active_match(title, producer_id, since)
        if existing is None:
            found = await self._repository.find_recent(
                producer_id, since, title=title, limit=1,
            )
            existing = found[0] if found else None
        if existing is not None:
            logger.warning(
                "duplicate_insight_blocked",
                title=title,
                producer_id=producer_id,
                hours_back=self._config.hours_back,
                existing_alert=existing.id,
            )
        return existing is not None

    async def most_similar(
        self, description: str, producer_id: str,
    ) -> tuple[float, Alert | None]:
        """Highest keyword similarity among the producer's recent alerts."""
        since = self._clock() - self._config.fuzzy_hours_back * _HOUR
        recent = await self._repository.find_recent(
            producer_id, since, limit=self._config.recent_limit,
        )
        words = self.keywords(description)
        best_score, best_alert = 0.0, None
        for alert in recent:
            score = jaccard_similarity(words, self.keywords(alert.description))
            if score > best_score:
                best_score, best_alert = score, alert
        return best_score, best_alert

    async def recent_count(self, producer_id: str) -> int:
        since = self._clock() - self._config.rate_window_hours * _HOUR
        return await self._repository.count_since(producer_id, since)

    def _active_match(
        self, title: str, producer_id: str, since: float,
    ) -> Alert | None:
        if self._registry is None:
            return None
        key = dedup_key(title, producer_id)
        for alert in self._registry.active_alerts():
            if (
                alert.created_at >= since
                and dedup_key(alert.title, alert.producer_id) == key
            ):
                return alert
        return None

    async def _check(self, insight: Insight) -> DedupDecision:
        if await self.is_duplicate(insight.title, insight.producer_id):
            return DedupDecision(accepted=False, reason=REASON_EXACT)

        score, similar = await self.most_similar(
            insight.description, insight.producer_id,
        )
        if similar is not None and score >= self._config.similarity_threshold:
            logger.warning(
                "similar_insight_blocked",
                producer_id=insight.producer_id,
                description=insight.description[:100],
                similar_alert=similar.title,
                similarity=round(score, 3),
            )
            return DedupDecision(
                accepted=False, reason=REASON_SIMILAR, similarity=score,
            )

        count = await self.recent_count(insight.producer_id)
        if count >= self._config.max_alerts_per_window:
            logger.warning(
                "producer_rate_exceeded",
                producer_id=insight.producer_id,
                recent_alerts=count,
                limit=self._config.max_alerts_per_window,
                mode=self._config.rate_limit_mode,
            )
            if self._config.rate_limit_mode == "reject":
                return DedupDecision(
                    accepted=False, reason=REASON_RATE, similarity=score,
                )
            return DedupDecision(
                accepted=True, reason=REASON_RATE, similarity=score, flagged=True,
            )

        return DedupDecision(accepted=True, similarity=score)
