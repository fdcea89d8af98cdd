"""SQL dialect labels.

A dialect only steers prompt content and mock-executor branching; nothing in
the package parses SQL per dialect.
"""

from enum import StrEnum


class SqlDialect(StrEnum):
    """Supported SQL dialect labels."""

    POSTGRESQL = "PostgreSQL"
    MYSQL = "MySQL"
    SQLITE = "SQLite"
    SNOWFLAKE = "Snowflake"
    BIGQUERY = "BigQuery"
    REDSHIFT = "Redshift"

    @classmethod
    def parse(cls, value: "str | SqlDialect") -> "SqlDialect":
        """Resolve a dialect from its label, case-insensitively.

        Raises:
            ValueError: If the label is not a supported dialect
        """
        if isinstance(value, cls):
            return value
        for dialect in cls:
            if dialect.value.lower() == str(value).strip().lower():
                return dialect
        supported = ", ".join(d.value for d in cls)
        raise ValueError(f"Unknown SQL dialect: {value}. Supported dialects: {supported}")
