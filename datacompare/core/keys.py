"""
Composite key construction.
Single responsibility: turn a row's key-column values into a join key.
"""

from typing import List, Optional, Sequence

from .rows import Row, to_text


KEY_SEPARATOR = "|"


class CompositeKeyBuilder:
    """
    Build composite keys over an ordered set of key columns.

    A key whose segments are all empty or whitespace-only is the empty key;
    rows producing it cannot be joined.
    """

    def __init__(self, key_columns: Sequence[str],
                 separator: str = KEY_SEPARATOR):
        """
        Args:
            key_columns: Ordered key column names
            separator: Text placed between segments
        """
        self.key_columns = list(key_columns)
        self.separator = separator

    def segments(self, row: Row) -> List[str]:
        """Text form of each key-column value, in key-column order."""
        return [to_text(row.get(col)) for col in self.key_columns]

    def build(self, row: Row) -> str:
        """Composite key for row, including empty keys."""
        return self.separator.join(self.segments(row))

    def valid_key(self, row: Row) -> Optional[str]:
        """
        Composite key for row, or None when the row has the empty key.

        Args:
            row: Source row

        Returns:
            Key text or None for invalid rows
        """
        if not row:
            return None
        segments = self.segments(row)
        if all(not segment.strip() for segment in segments):
            return None
        return self.separator.join(segments)

    def is_valid(self, row: Row) -> bool:
        """True when the row can take part in the join."""
        return self.valid_key(row) is not None
