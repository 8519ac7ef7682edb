"""Label taxonomy model, templates and composition.

Usage:
    from labelforge.schema import compose_for_business, iter_nodes

    tree = compose_for_business("HVAC", team)
"""

from .composer import (
    compose,
    compose_for_business,
    iter_nodes,
    placeholder_paths,
    render_tree,
    validate_schema_integrity,
)
from .models import Role, SchemaNode, Supplier, TeamMember, TeamSnapshot
from .templates import BASE_TEMPLATE, get_business_types, get_extension

__all__ = [
    "BASE_TEMPLATE",
    "Role",
    "SchemaNode",
    "Supplier",
    "TeamMember",
    "TeamSnapshot",
    "compose",
    "compose_for_business",
    "get_business_types",
    "get_extension",
    "iter_nodes",
    "placeholder_paths",
    "render_tree",
    "validate_schema_integrity",
]
