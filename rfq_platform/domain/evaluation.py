"""Multi-criteria scoring and ranking of the open quotes of an RFQ.

The composite score of a quote is the weighted sum of one sub-score per
selection criterion, each in [0, 100]:

* price: 100 when every open quote has the same total, otherwise
  ``100 * (max - amount) / (max - min)``;
* every other criterion: the supplier's directory signal clamped to [0, 100],
  or the neutral 50 when the directory has none.

Ranking orders by the unrounded composite (highest first), then by earlier
``submitted_at``, then by supplier id. The score stored on the quote is the
composite rounded half-up to two places. Evaluating the same state twice gives
the same result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping

from rfq_platform.domain.rfq import CRITERIA, Quote, RequestForQuote
from rfq_platform.domain.values import format_datetime, format_decimal, parse_decimal


HUNDRED = Decimal(100)
NEUTRAL_SCORE = Decimal(50)
SCORE_QUANTUM = Decimal("0.01")

SupplierSignals = Mapping[str, Mapping[str, Any]]


def clamp_score(value: Decimal) -> Decimal:
    if value < 0:
        return Decimal(0)
    if value > HUNDRED:
        return HUNDRED
    return value


def round_score(value: Decimal) -> Decimal:
    return value.quantize(SCORE_QUANTUM, rounding=ROUND_HALF_UP)


class ScoringPolicy:
    """Default policy: relative price plus directory signals for the rest."""

    def __init__(self, signals: SupplierSignals | None = None) -> None:
        self._signals = signals or {}

    def price_scores(self, quotes: List[Quote]) -> Dict[str, Decimal]:
        amounts = [quote.total_amount for quote in quotes]
        highest = max(amounts)
        lowest = min(amounts)
        if highest == lowest:
            return {quote.id: HUNDRED for quote in quotes}
        spread = highest - lowest
        return {quote.id: HUNDRED * (highest - quote.total_amount) / spread for quote in quotes}

    def criterion_score(self, criterion: str, quote: Quote) -> Decimal:
        supplier_signals = self._signals.get(quote.supplier_id) or {}
        value = parse_decimal(supplier_signals.get(criterion))
        if value is None:
            return NEUTRAL_SCORE
        return clamp_score(value)


@dataclass(frozen=True)
class RankedQuote:
    quote_id: str
    supplier_id: str
    ranking: int
    score: Decimal
    total_amount: Decimal
    currency: str
    status: str
    submitted_at: Any = None
    sub_scores: Dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quote_id": self.quote_id,
            "supplier_id": self.supplier_id,
            "ranking": self.ranking,
            "score": format_decimal(self.score),
            "total_amount": format_decimal(self.total_amount),
            "currency": self.currency,
            "status": self.status,
            "submitted_at": format_datetime(self.submitted_at),
            "sub_scores": {name: format_decimal(round_score(value)) for name, value in self.sub_scores.items()},
        }


@dataclass(frozen=True)
class EvaluationResult:
    ranking: List[RankedQuote]
    changed: bool


def composite_score(sub_scores: Mapping[str, Decimal], rfq: RequestForQuote) -> Decimal:
    total = Decimal(0)
    for criterion in CRITERIA:
        total += sub_scores[criterion] * rfq.selection_criteria.weight(criterion) / HUNDRED
    return total


def score_quotes(rfq: RequestForQuote, policy: ScoringPolicy) -> List[RankedQuote]:
    """Compute the ranking of the open quotes without touching the RFQ."""
    quotes = rfq.open_quotes()
    if not quotes:
        return []

    price_scores = policy.price_scores(quotes)
    scored = []
    for quote in quotes:
        sub_scores = {"price": price_scores[quote.id]}
        for criterion in CRITERIA[1:]:
            sub_scores[criterion] = policy.criterion_score(criterion, quote)
        scored.append((composite_score(sub_scores, rfq), quote, sub_scores))

    scored.sort(key=lambda row: (-row[0], row[1].submitted_at, row[1].supplier_id))
    return [
        RankedQuote(
            quote_id=quote.id,
            supplier_id=quote.supplier_id,
            ranking=position,
            score=round_score(composite),
            total_amount=quote.total_amount,
            currency=quote.currency,
            status=quote.status,
            submitted_at=quote.submitted_at,
            sub_scores=sub_scores,
        )
        for position, (composite, quote, sub_scores) in enumerate(scored, start=1)
    ]


def evaluate_quotes(rfq: RequestForQuote, policy: ScoringPolicy | None = None) -> EvaluationResult:
    """Store score and ranking on the open quotes.

    Quotes that left the open set since the last run lose their stale score.
    ``changed`` is False when the stored values already matched.
    """
    ranking = score_quotes(rfq, policy or ScoringPolicy())
    by_quote = {row.quote_id: row for row in ranking}
    changed = False
    for quote in rfq.quotes:
        row = by_quote.get(quote.id)
        score = row.score if row else None
        position = row.ranking if row else None
        if quote.score != score or quote.ranking != position:
            quote.score = score
            quote.ranking = position
            changed = True
    return EvaluationResult(ranking=ranking, changed=changed)


def ranked_list(rfq: RequestForQuote) -> List[Dict[str, Any]]:
    """Stored ranking, read only. Advisory once the RFQ left ``published``."""
    ranked = [quote for quote in rfq.quotes if quote.ranking is not None]
    ranked.sort(key=lambda quote: quote.ranking)
    return [
        {
            "quote_id": quote.id,
            "supplier_id": quote.supplier_id,
            "ranking": quote.ranking,
            "score": format_decimal(quote.score),
            "total_amount": format_decimal(quote.total_amount),
            "currency": quote.currency,
            "status": quote.status,
            "submitted_at": format_datetime(quote.submitted_at),
        }
        for quote in ranked
    ]
