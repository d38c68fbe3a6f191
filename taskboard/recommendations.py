"""Rule-based card analysis: due dates, list movement and related cards.

Everything here is synchronous and side-effect free. Callers hand in plain
card/list views loaded from the board and get an AnalysisResult back.
"""
import re
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from taskboard.models import (
    AnalysisResult,
    CardSummary,
    CardView,
    DateSuggestion,
    ListSuggestion,
    ListView,
    RelatedCard,
    SmartTip,
)

STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
        "has", "he", "in", "is", "it", "its", "of", "on", "that", "the",
        "to", "was", "will", "with", "this", "but", "they", "have", "had",
        "what", "when", "where", "who", "which", "why", "how",
    }
)

LIST_PATTERNS = [
    {
        "keywords": ["started", "working on", "in progress", "doing", "currently"],
        "list_titles": ["in progress", "doing", "work in progress", "wip"],
        "reason": "Keywords suggest work has started",
    },
    {
        "keywords": ["done", "completed", "finished", "complete"],
        "list_titles": ["done", "completed", "finished"],
        "reason": "Keywords suggest task is completed",
    },
    {
        "keywords": ["testing", "test", "review", "qa"],
        "list_titles": ["testing", "review", "qa", "quality assurance"],
        "reason": "Keywords suggest task needs testing/review",
    },
    {
        "keywords": ["blocked", "waiting", "stuck", "pending"],
        "list_titles": ["blocked", "waiting", "on hold"],
        "reason": "Keywords suggest task is blocked",
    },
]

SMART_TIPS = [
    (
        "💡",
        'Add time keywords like "tomorrow", "next week", or "in 3 days" to get due date suggestions',
    ),
    (
        "🎯",
        'Use keywords like "started working", "completed", or "testing" to get list movement suggestions',
    ),
    (
        "🔗",
        "Create similar cards with related topics to see related card recommendations",
    ),
]

DEFAULT_RELATED_LIMIT = 5
DEFAULT_SIMILARITY_THRESHOLD = 0.2

_NON_WORD_RE = re.compile(r"[^\w\s]")
_IN_DAYS_RE = re.compile(r"in (\d+) days?")
_IN_WEEKS_RE = re.compile(r"in (\d+) weeks?")
_FRIDAY = 4


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def extract_words(text: str | None) -> set[str]:
    """Lowercased tokens longer than two characters, minus stop words."""
    if not text:
        return set()
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    return {w for w in cleaned.split() if len(w) > 2 and w not in STOP_WORDS}


def jaccard_similarity(first: set[str], second: set[str]) -> float:
    union = first | second
    if not union:
        return 0.0
    return len(first & second) / len(union)


def _card_text(card: CardView) -> str:
    return f"{card.title or ''} {card.description or ''}"


# ---------------------------------------------------------------------------
# Due dates
# ---------------------------------------------------------------------------


def _end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999000)


def _add_month(moment: datetime) -> datetime:
    # Day overflow carries into the following month (Jan 31 -> Mar 3).
    year, month = divmod(moment.year * 12 + moment.month, 12)
    first = moment.replace(year=year, month=month + 1, day=1)
    return first + timedelta(days=moment.day - 1)


def _match_date_phrase(text: str | None, now: datetime) -> tuple[datetime, str] | None:
    """Return (due date, matched phrase) for the first rule that fires."""
    if not text:
        return None
    lower = text.lower()
    today = _end_of_day(now)

    if "today" in lower:
        return today, "today"
    if "tomorrow" in lower:
        return today + timedelta(days=1), "tomorrow"
    if "next week" in lower:
        return today + timedelta(days=7), "next week"
    if "this week" in lower or "end of week" in lower or "eow" in lower:
        days_until_friday = (_FRIDAY - today.weekday()) % 7 or 7
        return today + timedelta(days=days_until_friday), "this week"
    if "next month" in lower:
        return _add_month(today), "next month"

    # Offsets past the datetime range give no suggestion.
    match = _IN_DAYS_RE.search(lower)
    if match:
        try:
            days = int(match.group(1))
            return today + timedelta(days=days), f"in {days} days"
        except (OverflowError, ValueError):
            pass

    match = _IN_WEEKS_RE.search(lower)
    if match:
        try:
            weeks = int(match.group(1))
            return today + timedelta(weeks=weeks), f"in {weeks} weeks"
        except (OverflowError, ValueError):
            return None

    return None


def parse_date_keywords(text: str | None, now: datetime | None = None) -> datetime | None:
    """Turn a relative date phrase into an end-of-day datetime.

    Rules are checked in a fixed order (today, tomorrow, next week, this
    week / end of week / eow, next month, "in N days", "in N weeks") and the
    first one found in the text wins. "This week" means the coming Friday;
    on a Friday it is the Friday after.
    """
    matched = _match_date_phrase(text, now or datetime.now())
    return matched[0] if matched else None


# ---------------------------------------------------------------------------
# List movement
# ---------------------------------------------------------------------------


def suggest_list_movement(card: CardView, lists: Sequence[ListView]) -> ListSuggestion | None:
    if not lists:
        return None

    text = _card_text(card).lower()

    for pattern in LIST_PATTERNS:
        if not any(keyword in text for keyword in pattern["keywords"]):
            continue
        target = next(
            (
                lst
                for lst in lists
                if any(title in lst.title.lower() for title in pattern["list_titles"])
            ),
            None,
        )
        if target is not None and str(target.id) != str(card.list_id):
            return ListSuggestion(
                list_id=target.id,
                list_title=target.title,
                reason=pattern["reason"],
            )

    return None


# ---------------------------------------------------------------------------
# Related cards
# ---------------------------------------------------------------------------


def find_related_cards(
    card: CardView,
    cards: Iterable[CardView],
    limit: int = DEFAULT_RELATED_LIMIT,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[RelatedCard]:
    """Rank the other cards of a board by word overlap with ``card``."""
    current_words = extract_words(_card_text(card))
    if not current_words:
        return []

    related = []
    for other in cards:
        if str(other.id) == str(card.id):
            continue
        similarity = jaccard_similarity(current_words, extract_words(_card_text(other)))
        if similarity < threshold:
            continue
        related.append(
            RelatedCard(
                card=CardSummary(
                    id=other.id,
                    title=other.title,
                    list_id=other.list_id,
                    due_date=other.due_date,
                ),
                similarity=similarity,
            )
        )

    related.sort(key=lambda item: item.similarity, reverse=True)
    return related[:limit]


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------


def analyze_card(
    card: CardView,
    board_cards: Sequence[CardView] = (),
    board_lists: Sequence[ListView] = (),
    now: datetime | None = None,
) -> AnalysisResult:
    now = now or datetime.now()
    result = AnalysisResult()

    title_match = _match_date_phrase(card.title, now)
    description_match = _match_date_phrase(card.description, now)

    if title_match:
        date, phrase = title_match
        result.suggested_due_dates.append(
            DateSuggestion(
                date=date,
                source="title",
                confidence="high",
                reason=f'Mentioned "{phrase}"',
            )
        )

    if description_match and (not title_match or description_match[0] != title_match[0]):
        date, phrase = description_match
        result.suggested_due_dates.append(
            DateSuggestion(
                date=date,
                source="description",
                confidence="medium",
                reason=f'Mentioned "{phrase}"',
            )
        )

    result.suggested_list_movement = suggest_list_movement(card, board_lists)
    result.related_cards = find_related_cards(card, board_cards)

    if not (result.suggested_due_dates or result.suggested_list_movement or result.related_cards):
        result.smart_tips = [SmartTip(icon=icon, tip=tip) for icon, tip in SMART_TIPS]

    return result
