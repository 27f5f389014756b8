"""
Text search over the document — backs the labeler's search box.

Modes:
    plain (default) – case-insensitive substring
    exact_match     – case-sensitive, whole words only
    regex           – Python ``re`` pattern, case-sensitive

Matches are non-overlapping, left to right, as (start, end) spans.
"""
import logging
import re
from typing import List, Tuple

from annotator.labeling.errors import ValidationError

logger = logging.getLogger(__name__)


def find_matches(
    text: str,
    query: str,
    regex: bool = False,
    exact_match: bool = False,
) -> List[Tuple[int, int]]:
    """
    Find every occurrence of *query* in *text*.

    Raises:
        ValidationError: *regex* is set and *query* does not compile.
    """
    if not query:
        return []

    if regex:
        try:
            pattern = re.compile(query)
        except re.error as e:
            logger.warning("Invalid search pattern '%s': %s", query, e)
            raise ValidationError("query", "is not a valid pattern") from e
    elif exact_match:
        pattern = re.compile(rf"(?<!\w){re.escape(query)}(?!\w)")
    else:
        pattern = re.compile(re.escape(query), re.IGNORECASE)

    # Zero-width regex hits can't be labeled; drop them.
    return [(m.start(), m.end()) for m in pattern.finditer(text) if m.end() > m.start()]
