"""Response models and JSON schemas for the LLM gateway.

Field aliases are the wire names the external provider is asked to produce;
they must not change. Python code uses the snake_case attribute names.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TagSuggestion(BaseModel):
    """Tags and grouping category proposed for a snippet."""

    model_config = ConfigDict(frozen=True)

    tags: list[str] = Field(default_factory=list)
    category: str = Field(description="Logical file-like grouping name")


class SafetyCheck(BaseModel):
    """Risk assessment for a SQL statement."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_safe: bool = Field(alias="isSafe")
    warnings: list[str] = Field(default_factory=list)
    suggestions: str = Field(default="")

    @property
    def requires_approval(self) -> bool:
        """Whether execution must wait for explicit user confirmation."""
        return not self.is_safe or bool(self.warnings)


class LintResult(BaseModel):
    """Lint findings plus the reformatted statement."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_valid: bool = Field(alias="isValid")
    errors: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    formatted_code: str = Field(alias="formattedCode")


class DbtModel(BaseModel):
    """A dbt model file and its schema.yml companion."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, protected_namespaces=())

    model_sql: str = Field(alias="modelSql")
    schema_yaml: str = Field(alias="schemaYaml")


TAG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "tags": {"type": "array", "items": {"type": "string"}},
        "category": {
            "type": "string",
            "description": "A logical file-like grouping name, e.g., 'User Management', 'Financial Reports'",
        },
    },
    "required": ["tags", "category"],
}

SAFETY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "isSafe": {"type": "boolean"},
        "warnings": {"type": "array", "items": {"type": "string"}},
        "suggestions": {"type": "string"},
    },
    "required": ["isSafe", "warnings", "suggestions"],
}

LINT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "isValid": {"type": "boolean"},
        "errors": {"type": "array", "items": {"type": "string"}},
        "suggestions": {"type": "array", "items": {"type": "string"}},
        "formattedCode": {"type": "string"},
    },
    "required": ["isValid", "errors", "suggestions", "formattedCode"],
}

SEARCH_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {"type": "string"},
}

DBT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "modelSql": {"type": "string", "description": "dbt model SQL including a Jinja config block"},
        "schemaYaml": {"type": "string", "description": "schema.yml content (version: 2)"},
    },
    "required": ["modelSql", "schemaYaml"],
}
