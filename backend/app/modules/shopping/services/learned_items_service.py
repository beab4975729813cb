"""Per-store memory of previously added item names, used for autocomplete.

Rows are only written as a side effect of adding list items. Ranking is a
pure function over the store's full set of learned items, which stays small
(tens to low hundreds of rows), so no search index is involved.
"""

import logging
import uuid

from rapidfuzz import fuzz
from sqlalchemy.orm import Session

from app.modules.auth.deps import NowUtc
from app.modules.shopping.models import LearnedItem

logger = logging.getLogger("shopping.learned_items")

# Scores are 0-100; 60 admits roughly 40% character divergence.
MATCH_THRESHOLD = 60.0
# Width of a score band; matches in the same band are ordered by frequency.
SCORE_BAND_WIDTH = 10.0
MAX_SUGGESTIONS = 8
MAX_POPULAR_SUGGESTIONS = 5


def NormalizeLearnedName(name: str) -> str:
    return (name or "").strip().lower()


def _FindLearnedItem(db: Session, store_id: str, normalized_name: str) -> LearnedItem | None:
    return (
        db.query(LearnedItem)
        .filter(LearnedItem.StoreId == store_id, LearnedItem.Name == normalized_name)
        .order_by(LearnedItem.CreatedAt.asc(), LearnedItem.Id.asc())
        .first()
    )


def UpsertLearnedItem(
    db: Session,
    store_id: str,
    name: str,
    section_id: str,
    actor_id: int,
) -> LearnedItem:
    """Record one more use of ``name`` in ``store_id``.

    The latest section wins. The row is flushed but not committed; the
    caller commits together with the list write that triggered it.
    """
    normalized = NormalizeLearnedName(name)
    now = NowUtc()
    existing = _FindLearnedItem(db, store_id, normalized)
    if existing:
        existing.Frequency = (existing.Frequency or 0) + 1
        existing.LastUsed = now
        existing.SectionId = section_id
        db.add(existing)
        db.flush()
        logger.debug(
            "learned item bumped store_id=%s name=%s frequency=%s",
            store_id,
            normalized,
            existing.Frequency,
        )
        return existing

    record = LearnedItem(
        Id=str(uuid.uuid4()),
        StoreId=store_id,
        Name=normalized,
        SectionId=section_id,
        Frequency=1,
        LastUsed=now,
        CreatedByUserId=actor_id,
        CreatedAt=now,
    )
    db.add(record)
    db.flush()
    logger.debug("learned item created store_id=%s name=%s", store_id, normalized)
    return record


def ListLearnedItems(db: Session, store_id: str) -> list[LearnedItem]:
    return (
        db.query(LearnedItem)
        .filter(LearnedItem.StoreId == store_id)
        .order_by(LearnedItem.Frequency.desc(), LearnedItem.Name.asc())
        .all()
    )


def ScoreLearnedName(needle: str, name: str) -> float:
    # The query is the pattern searched inside the name. A name shorter than
    # the query is scored whole, so "k" or "tea" never fully match "steak".
    if len(needle) <= len(name):
        return fuzz.partial_ratio(needle, name)
    return fuzz.ratio(needle, name)


def _MatchSortKey(match: tuple) -> tuple:
    item, score, exact = match
    band = int(score // SCORE_BAND_WIDTH)
    return (not exact, -band, -(item.Frequency or 0))


def SuggestLearnedItems(items: list, query: str) -> list:
    """Rank learned items for a partial query.

    An empty query returns the most frequently used items. Otherwise items
    are fuzzy matched on name: exact (case-insensitive) matches always come
    first, then better matches by score band, with popularity ordering
    matches inside a band.
    """
    needle = NormalizeLearnedName(query)
    if not needle:
        ranked = sorted(items, key=lambda item: item.Frequency or 0, reverse=True)
        return ranked[:MAX_POPULAR_SUGGESTIONS]

    matches = []
    for item in items:
        name = NormalizeLearnedName(item.Name)
        exact = name == needle
        score = 100.0 if exact else ScoreLearnedName(needle, name)
        if exact or score >= MATCH_THRESHOLD:
            matches.append((item, score, exact))

    matches.sort(key=_MatchSortKey)
    return [item for item, _score, _exact in matches[:MAX_SUGGESTIONS]]


def FindExactMatch(suggestions: list, query: str):
    needle = NormalizeLearnedName(query)
    if not needle:
        return None
    for item in suggestions:
        if NormalizeLearnedName(item.Name) == needle:
            return item
    return None
