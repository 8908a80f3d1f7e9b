"""Filter and sort evaluation for ticket listings.

A listing is driven by a flat list of tokens. Tokens of the form ``+field``
or ``-field`` are sort directives; everything else is a filter value.
Filter values naming a configured status restrict the listing to those
statuses. Other filter values are ignored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tixfile.constants import SORTABLE_FIELDS

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tixfile.models import Ticket

logger = logging.getLogger(__name__)

SORT_TOKEN = re.compile(r"^[+-]\w+$")


@dataclass(frozen=True)
class SortKey:
    """A single sort directive."""

    field: str
    descending: bool = False

    @classmethod
    def parse(cls, token: str) -> SortKey:
        """Parse ``+field`` / ``-field`` into a SortKey.

        Raises:
            ValueError: If the field is not sortable
        """
        name = token[1:]
        if name not in SORTABLE_FIELDS:
            valid = ", ".join(sorted(SORTABLE_FIELDS))
            msg = f"Cannot sort by '{name}'. Sortable fields: {valid}"
            raise ValueError(msg)
        return cls(field=name, descending=token.startswith("-"))


@dataclass
class Query:
    """A parsed listing query."""

    statuses: list[str] = field(default_factory=list[str])
    sort: SortKey | None = None
    ignored: list[str] = field(default_factory=list[str])
    extra_sorts: list[str] = field(default_factory=list[str])


def is_sort_token(token: str) -> bool:
    """Check if a token is a ``+field`` / ``-field`` sort directive."""
    return bool(SORT_TOKEN.match(token))


def parse_query(tokens: Iterable[str], statuses: Iterable[str]) -> Query:
    """Split raw tokens into status filters and a sort directive.

    Only the first sort directive is honoured; later ones are kept in
    ``extra_sorts``. Filter tokens that are not known statuses end up in
    ``ignored``.

    Args:
        tokens: Raw listing tokens, in command-line order
        statuses: The configured status values

    Returns:
        The parsed query

    Raises:
        ValueError: If the first sort directive names an unsortable field
    """
    known = set(statuses)
    sort_tokens: list[str] = []
    query = Query()

    for token in tokens:
        if is_sort_token(token):
            sort_tokens.append(token)
        elif token in known:
            query.statuses.append(token)
        else:
            query.ignored.append(token)

    if sort_tokens:
        query.sort = SortKey.parse(sort_tokens[0])
        query.extra_sorts = sort_tokens[1:]

    if query.ignored:
        logger.debug("Ignoring unrecognized filter tokens: %s", query.ignored)
    return query


def _sort_value(ticket: Ticket, name: str) -> Any:
    value = getattr(ticket, name)
    # created_by and id may be unset; keep them comparable with strings
    return "" if value is None else value


def apply_query(query: Query, tickets: Iterable[Ticket]) -> list[Ticket]:
    """Filter and sort tickets according to a query.

    The sort is stable, so tickets with equal keys keep their index order.
    """
    if query.statuses:
        wanted = set(query.statuses)
        result = [t for t in tickets if t.status in wanted]
    else:
        result = list(tickets)

    if query.sort is not None:
        name = query.sort.field
        result.sort(
            key=lambda t: _sort_value(t, name),
            reverse=query.sort.descending,
        )
    return result
