"""
Peer-ranking parsing and aggregation.

Rankings arrive as anonymized labels ("Model A", ...). Parsing keeps only the
labels a rater was actually shown; aggregation maps labels back to model ids
and averages the 1-based positions each model received.
"""

import re
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

from decoding import decode
from schemas.council import AggregateRanking, StageTwoResult

_LABEL_PATTERN = re.compile(r"\b(?:Model|Response)\s+([A-Z]{1,2})\b")
_NUMBERED_PATTERN = re.compile(r"\d+\.\s*\**\s*(?:Model|Response)\s+([A-Z]{1,2})\b")

FINAL_RANKING_MARKER = "FINAL RANKING:"


def _canonical(letters: str) -> str:
    return f"Model {letters}"


def parse_ranking_from_text(ranking_text: str) -> List[str]:
    """Parse a ranking from a model response.

    A JSON object ``{"ranking": [...]}`` wins. Otherwise the text after
    ``FINAL RANKING:`` (or the whole text) is scanned for a numbered list of
    labels, then for any labels in order. "Response X" is read as "Model X".

    Args:
        ranking_text: The full text response from the model

    Returns:
        Labels in ranked order, best first (may contain duplicates or labels
        the rater was not shown; see ``filter_ranking``)
    """
    text = str(ranking_text or "")

    data = decode(text, required=("ranking",))
    if data is not None and isinstance(data.get("ranking"), list):
        labels = []
        for item in data["ranking"]:
            match = _LABEL_PATTERN.search(str(item))
            if match:
                labels.append(_canonical(match.group(1)))
        if labels:
            return labels

    if FINAL_RANKING_MARKER in text:
        text = text.split(FINAL_RANKING_MARKER, 1)[1]

    numbered = _NUMBERED_PATTERN.findall(text)
    if numbered:
        return [_canonical(letters) for letters in numbered]

    return [_canonical(letters) for letters in _LABEL_PATTERN.findall(text)]


def filter_ranking(labels: Iterable[str], allowed: Iterable[str]) -> List[str]:
    """Drop labels outside ``allowed`` and repeated labels, keeping order."""
    allowed_set = set(allowed)
    seen = set()
    result = []
    for label in labels:
        if label in allowed_set and label not in seen:
            seen.add(label)
            result.append(label)
    return result


def aggregate_rankings(
    stage2_results: Sequence[StageTwoResult],
    label_to_model: Dict[str, str],
    models: Optional[Iterable[str]] = None,
) -> List[AggregateRanking]:
    """Calculate aggregate rankings across all models.

    A model's average only counts the submissions that ranked it; omissions
    are not penalized. Models never ranked get ``average_rank=None`` and sort
    last.

    Args:
        stage2_results: Parsed peer rankings
        label_to_model: Mapping from anonymized labels to model ids
        models: Models to report even if never ranked (defaults to every
            model in ``label_to_model``)

    Returns:
        AggregateRanking list, best first; ties go to the model ranked more
        often, then to the lexically smaller id
    """
    model_positions: Dict[str, List[int]] = defaultdict(list)

    for result in stage2_results:
        for position, label in enumerate(result.parsed_ranking, start=1):
            model = label_to_model.get(label)
            if model is not None:
                model_positions[model].append(position)

    universe = set(label_to_model.values() if models is None else models)
    universe.update(model_positions.keys())

    aggregate = []
    for model in universe:
        positions = model_positions.get(model, [])
        if positions:
            avg_rank = round(sum(positions) / len(positions), 2)
        else:
            avg_rank = None
        aggregate.append(AggregateRanking(
            model=model,
            average_rank=avg_rank,
            rankings_count=len(positions),
        ))

    aggregate.sort(key=lambda r: (
        r.rankings_count == 0,
        r.average_rank if r.average_rank is not None else 0.0,
        -r.rankings_count,
        r.model,
    ))
    return aggregate
