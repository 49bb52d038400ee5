"""
String utility functions for schemaforge.

Naming conversions shared by the mapper, resolver and formatter.
"""

from __future__ import annotations

import re

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snake_case(name: str) -> str:
    """
    Convert PascalCase or camelCase to snake_case.

    Examples:
        >>> snake_case("authorId")
        'author_id'
        >>> snake_case("AuthUserRole")
        'auth_user_role'
        >>> snake_case("HTTPLog")
        'http_log'
    """
    if not name:
        return name
    return _CAMEL_BOUNDARY.sub("_", name).replace("-", "_").lower()


def lower_first(name: str) -> str:
    """Lower-case the first character: ``AuthUser`` -> ``authUser``."""
    return name[:1].lower() + name[1:]


def needs_column_map(name: str) -> bool:
    """True when the field name differs from its snake_case column name."""
    return snake_case(name) != name


def foreign_key_name(relation_name: str) -> str:
    """Conventional foreign key field for a belongsTo relation: ``author`` -> ``authorId``."""
    return f"{relation_name}Id"
