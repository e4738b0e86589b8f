"""Sequence management for business id generation.

Provides sequential ids with format: {PREFIX}-{SEQUENCE}
Example: mbc-0000001, mbc-0000042

One sequence per table, shared by all tenants, so business ids are
globally unique.
"""

import sqlite3


class SequenceService:
    """Manages sequences for business id generation."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._ensure_table()

    def _ensure_table(self) -> None:
        """Create the sequences table if it doesn't exist."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS _sequences (
                name TEXT PRIMARY KEY,
                next_value INTEGER NOT NULL DEFAULT 1
            )
        """)
        self.conn.commit()

    def next_id(self, name: str, prefix: str, digits: int = 7) -> str:
        """Generate the next id for a sequence.

        Args:
            name: Sequence key (the table name)
            prefix: Prefix used in the id format
            digits: Zero-padded width of the number

        Returns:
            Formatted id like "mbc-0000001"
        """
        value = self._get_and_increment(name)
        return f"{prefix}-{value:0{digits}d}"

    def _get_and_increment(self, name: str) -> int:
        """SELECT + UPDATE/INSERT; callers serialize access to the connection."""
        row = self.conn.execute(
            "SELECT next_value FROM _sequences WHERE name = ?",
            [name],
        ).fetchone()

        if row:
            current_value = row[0]
            self.conn.execute(
                "UPDATE _sequences SET next_value = next_value + 1 WHERE name = ?",
                [name],
            )
        else:
            current_value = 1
            self.conn.execute(
                "INSERT INTO _sequences (name, next_value) VALUES (?, 2)",
                [name],
            )

        # Committed together with the insert that consumes the value
        return current_value

    def current_value(self, name: str) -> int:
        """Get the last issued value without incrementing. Returns 0 if unused."""
        row = self.conn.execute(
            "SELECT next_value - 1 FROM _sequences WHERE name = ?",
            [name],
        ).fetchone()
        if row is None:
            return 0
        return row[0]
