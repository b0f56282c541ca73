"""Citation extraction from the passages used to ground an answer."""

from ..core.errors import InvalidArgumentError
from ..schemas.answer import Citation
from ..schemas.passage import Passage

STACKOVERFLOW_URL_TEMPLATE = "https://stackoverflow.com/questions/{source_id}"


def source_url(source_id: int, template: str = STACKOVERFLOW_URL_TEMPLATE) -> str:
    return template.format(source_id=source_id)


def extract_citations(
    passages: list[Passage],
    max_citations: int = 5,
    url_template: str = STACKOVERFLOW_URL_TEMPLATE,
) -> list[Citation]:
    """
    Collapse passages into at most ``max_citations`` per-source citations.

    Passages are grouped by source id; each group keeps the first title seen
    and its highest score. Groups are ordered by that score, highest first,
    with ties kept in first-appearance order.

    Args:
        passages: The passages included in the prompt
        max_citations: Upper bound on returned citations
        url_template: Format string with a ``{source_id}`` field

    Returns:
        Citations sorted by descending relevance
    """
    if max_citations < 0:
        raise InvalidArgumentError("max_citations must not be negative.")

    if not passages:
        return []

    groups: dict[int, tuple[str, float]] = {}
    for passage in passages:
        title, best = groups.get(passage.source_id, (passage.title, passage.score))
        groups[passage.source_id] = (title, max(best, passage.score))

    ranked = sorted(groups.items(), key=lambda item: item[1][1], reverse=True)

    return [
        Citation(
            source_id=source_id,
            title=title,
            url=source_url(source_id, url_template),
            relevance_score=score,
        )
        for source_id, (title, score) in ranked[:max_citations]
    ]
