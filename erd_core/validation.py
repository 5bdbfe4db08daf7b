"""
Schema validation - Check schema documents for structural issues.

Provides validation used by the store (to keep referential integrity after
every command) and by the backend and MCP tools (to report problems).
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SchemaDocument


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a schema."""
    severity: IssueSeverity
    message: str
    table_id: str | None = None
    relationship_id: str | None = None
    bookmark_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.table_id:
            result["table_id"] = self.table_id
        if self.relationship_id:
            result["relationship_id"] = self.relationship_id
        if self.bookmark_id:
            result["bookmark_id"] = self.bookmark_id
        return result


def validate_schema(document: "SchemaDocument") -> list[ValidationIssue]:
    """
    Validate a schema document and return a list of issues.

    Checks for:
    - Empty schema - INFO
    - Duplicate table ids, duplicate column ids within a table - ERROR
    - Relationship endpoints that do not resolve - ERROR
    - Table membership in a bookmark that does not exist - ERROR
    - Empty or duplicate table names - WARNING
    - Tables without a primary key - WARNING
    - Duplicate relationships (same four endpoints) - WARNING
    - Relationships from a table to itself - INFO

    Args:
        document: The schema to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    if not document.tables:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Schema has no tables"
        ))
        return issues

    seen_table_ids: set[str] = set()
    seen_names: dict[str, str] = {}
    bookmark_ids = {b.id for b in document.bookmarks}

    for table in document.tables:
        if table.id in seen_table_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate table id: {table.id}",
                table_id=table.id
            ))
        seen_table_ids.add(table.id)

        column_ids: set[str] = set()
        for column in table.columns:
            if column.id in column_ids:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Duplicate column id {column.id} in table {table.name}",
                    table_id=table.id
                ))
            column_ids.add(column.id)

        name = table.name.strip()
        if not name:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Table has an empty name",
                table_id=table.id
            ))
        elif name.lower() in seen_names:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Duplicate table name: {name}",
                table_id=table.id
            ))
        else:
            seen_names[name.lower()] = table.id

        if not any(c.is_pk for c in table.columns):
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Table {table.name} has no primary key",
                table_id=table.id
            ))

        if table.bookmark_id is not None and table.bookmark_id not in bookmark_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Table references non-existent bookmark: {table.bookmark_id}",
                table_id=table.id,
                bookmark_id=table.bookmark_id
            ))

    seen_links: set[tuple[str, str, str, str]] = set()
    for rel in document.relationships:
        if not document.resolves(rel):
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=(
                    f"Relationship references a missing table or column: "
                    f"{rel.from_table}.{rel.from_col} -> {rel.to_table}.{rel.to_col}"
                ),
                relationship_id=rel.id
            ))
            continue

        link = (rel.from_table, rel.from_col, rel.to_table, rel.to_col)
        if link in seen_links:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Duplicate relationship between the same columns",
                relationship_id=rel.id
            ))
        else:
            seen_links.add(link)

        if rel.from_table == rel.to_table:
            issues.append(ValidationIssue(
                severity=IssueSeverity.INFO,
                message="Self-referencing relationship",
                relationship_id=rel.id,
                table_id=rel.from_table
            ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }


def prune_dangling(document: "SchemaDocument") -> int:
    """
    Drop relationships whose endpoints do not resolve and clear bookmark
    memberships that point at missing bookmarks. Mutates the document.

    Returns:
        Number of references removed
    """
    removed = 0

    kept = [r for r in document.relationships if document.resolves(r)]
    removed += len(document.relationships) - len(kept)
    document.relationships = kept

    bookmark_ids = {b.id for b in document.bookmarks}
    for table in document.tables:
        if table.bookmark_id is not None and table.bookmark_id not in bookmark_ids:
            table.bookmark_id = None
            removed += 1

    return removed
