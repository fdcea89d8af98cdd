from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class QueryResult(BaseModel):
    """Result of one (mock) query execution.

    Replaced wholesale on every execution. Serialises with the camelCase
    wire names (``executionTime``) when dumped ``by_alias``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    columns: list[str] = Field(description="Column names in display order")
    rows: list[dict[str, Any]] = Field(description="One column-name to value mapping per row")
    execution_time: int = Field(
        alias="executionTime",
        ge=0,
        description="Measured execution time in milliseconds"
    )
    status: Literal["success", "error"] = Field(default="success")
    message: str = Field(default="", description="Human-readable outcome message")
