"""Equality filter expressions for index queries."""
from typing import List, Optional, Tuple, Union

from qdrant_client.http import models

FilterValue = Union[str, int]


def escape_odata(value: str) -> str:
    """Double single quotes so the value is safe inside an OData string literal."""
    return value.replace("'", "''")


class FilterExpression:
    """
    Conjunction of `field eq value` clauses.

    Values are stored raw and escaped once, when rendered. The same clauses
    compile to a Qdrant filter for execution, so the rendered text is what
    actually runs.
    """

    def __init__(self):
        self._clauses: List[Tuple[str, FilterValue]] = []

    def eq(self, field: str, value: Optional[FilterValue]) -> "FilterExpression":
        """Add `field eq value`; None and empty strings are ignored."""
        if value is None or value == "":
            return self
        self._clauses.append((field, value))
        return self

    @property
    def clauses(self) -> List[Tuple[str, FilterValue]]:
        return list(self._clauses)

    def __bool__(self) -> bool:
        return bool(self._clauses)

    def __str__(self) -> str:
        parts = []
        for field, value in self._clauses:
            if isinstance(value, str):
                parts.append(f"{field} eq '{escape_odata(value)}'")
            else:
                parts.append(f"{field} eq {value}")
        return " and ".join(parts)

    def __repr__(self) -> str:
        return f"FilterExpression({str(self)!r})"

    def to_qdrant(self) -> Optional[models.Filter]:
        """Compile to a Qdrant filter, or None when there are no clauses."""
        if not self._clauses:
            return None
        return models.Filter(
            must=[
                models.FieldCondition(key=field, match=models.MatchValue(value=value))
                for field, value in self._clauses
            ]
        )
