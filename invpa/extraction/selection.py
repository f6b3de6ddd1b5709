"""Page selection for detailed analysis.

Invoice totals and identifying headers/footers normally sit on the first and
last pages, so long groups are cut down to their two leading and two trailing
pages. This bounds the cost of an extraction request regardless of document
length; totals printed only on interior pages will be missed.
"""

from collections.abc import Iterable

HEAD_PAGES = 2
TAIL_PAGES = 2
MAX_ANALYSIS_PAGES = HEAD_PAGES + TAIL_PAGES


def select_pages_for_analysis(ordinals: Iterable[int]) -> list[int]:
    """Select at most four pages of a group: the first two and the last two.

    Args:
        ordinals: Page ordinals of one invoice group, in any order

    Returns:
        Selected ordinals in ascending order
    """
    pages = sorted(set(ordinals))
    if len(pages) <= MAX_ANALYSIS_PAGES:
        return pages
    return pages[:HEAD_PAGES] + pages[-TAIL_PAGES:]
