"""Schema composition: template + extension + team data -> canonical tree.

compose() is a pure function. Identical inputs always produce an equal
tree, which is what lets the sync engine skip every node on a re-run.

Example:
    tree = compose(BASE_TEMPLATE, get_extension("HVAC"), managers, suppliers)
    for path, node in iter_nodes(tree):
        print("/".join(path))
"""

import dataclasses
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from labelforge.errors import CompositionError

from .models import (
    BusinessExtension,
    PlaceholderKind,
    SchemaNode,
    Supplier,
    TeamMember,
    TeamSnapshot,
)
from .templates import BASE_TEMPLATE, get_extension

Path = tuple[str, ...]


def _index_of(categories: list[SchemaNode], name: str) -> int:
    key = name.casefold()
    for idx, category in enumerate(categories):
        if category.name.casefold() == key:
            return idx
    return -1


def _require(categories: list[SchemaNode], name: str, what: str) -> int:
    idx = _index_of(categories, name)
    if idx == -1:
        raise CompositionError(f"{what} targets unknown category '{name}'")
    return idx


def _apply_extension(
    base: SchemaNode, extension: BusinessExtension
) -> list[SchemaNode]:
    """Apply renames, overrides, additions and ordering to top-level categories."""
    categories = list(base.children)

    for old_name, new_name in extension.renames.items():
        idx = _require(categories, old_name, "Rename")
        categories[idx] = dataclasses.replace(categories[idx], name=new_name)

    for name, override in extension.overrides.items():
        idx = _require(categories, name, "Override")
        changes = {
            f.name: getattr(override, f.name)
            for f in dataclasses.fields(override)
            if getattr(override, f.name) is not None
        }
        categories[idx] = dataclasses.replace(categories[idx], **changes)

    for name, extra in extension.extra_subcategories.items():
        idx = _require(categories, name, "Subcategory addition")
        category = categories[idx]
        categories[idx] = dataclasses.replace(
            category, children=category.children + tuple(extra)
        )

    for addition in extension.additions:
        if _index_of(categories, addition.node.name) != -1:
            raise CompositionError(
                f"Addition '{addition.node.name}' duplicates an existing category"
            )
        if addition.before is None:
            categories.append(addition.node)
        else:
            idx = _require(categories, addition.before, "Addition anchor")
            categories.insert(idx, addition.node)

    if extension.order:
        ranked = {name.casefold(): pos for pos, name in enumerate(extension.order)}
        unranked = len(ranked)
        # sorted() is stable: unnamed categories keep their relative order
        categories.sort(key=lambda c: ranked.get(c.name.casefold(), unranked))

    return categories


def _name_of(item: TeamMember | Supplier | str) -> str:
    name = item if isinstance(item, str) else item.name
    return name.strip()


def _inject(
    current: SchemaNode,
    names: dict[PlaceholderKind, list[str]],
    found: set[PlaceholderKind],
) -> SchemaNode:
    children = tuple(_inject(child, names, found) for child in current.children)

    if current.placeholder is not None:
        found.add(current.placeholder)
        present = {child.name.casefold() for child in children}
        injected = []
        for name in names.get(current.placeholder, []):
            if not name or name.casefold() in present:
                continue
            present.add(name.casefold())
            injected.append(
                SchemaNode(
                    name=name,
                    color=current.color,
                    intent=current.intent,
                    dynamic=True,
                )
            )
        children = children + tuple(injected)

    if children == current.children:
        return current
    return dataclasses.replace(current, children=children)


def _check_siblings(current: SchemaNode, path: Path) -> None:
    seen: dict[str, str] = {}
    for child in current.children:
        key = child.name.casefold()
        if key in seen:
            where = "/".join(path) or "<root>"
            raise CompositionError(
                f"Duplicate category '{child.name}' under {where}"
            )
        seen[key] = child.name
        _check_siblings(child, path + (child.name,))


def compose(
    base: SchemaNode,
    extension: BusinessExtension,
    managers: Sequence[TeamMember | str] = (),
    suppliers: Sequence[Supplier | str] = (),
) -> SchemaNode:
    """Compose the canonical label tree for one provisioning run.

    Args:
        base: Base template (a nameless root node).
        extension: Business-vertical customizations.
        managers: Team members, injected under the "managers" placeholder.
        suppliers: Suppliers, injected under the "suppliers" placeholder.

    Returns:
        Root node of the canonical tree.

    Raises:
        CompositionError: If an extension targets a missing category, a
            placeholder parent needed for injection is absent, or two
            siblings share a name.
    """
    categories = _apply_extension(base, extension)
    root = dataclasses.replace(base, children=tuple(categories))

    names: dict[PlaceholderKind, list[str]] = {
        "managers": [_name_of(m) for m in managers],
        "suppliers": [_name_of(s) for s in suppliers],
    }
    found: set[PlaceholderKind] = set()
    root = _inject(root, names, found)

    for kind, kind_names in names.items():
        if any(kind_names) and kind not in found:
            raise CompositionError(
                f"Business type '{extension.business_type}' has no "
                f"placeholder category for {kind}"
            )

    _check_siblings(root, ())
    return root


def compose_for_business(business_type: str, team: TeamSnapshot) -> SchemaNode:
    """Compose the tree for a registered business type and team."""
    return compose(BASE_TEMPLATE, get_extension(business_type), team.managers, team.suppliers)


def iter_nodes(tree: SchemaNode, prefix: Path = ()) -> Iterator[tuple[Path, SchemaNode]]:
    """Yield (logical path, node) for every node below the root, pre-order."""
    for child in tree.children:
        path = prefix + (child.name,)
        yield path, child
        yield from iter_nodes(child, path)


def placeholder_paths(tree: SchemaNode) -> dict[PlaceholderKind, Path]:
    """Map each placeholder kind to the path of its parent node."""
    return {
        node.placeholder: path
        for path, node in iter_nodes(tree)
        if node.placeholder is not None
    }


def render_tree(tree: SchemaNode) -> str:
    """Render the tree as an indented outline."""
    lines = []
    for path, node in iter_nodes(tree):
        marker = " *" if node.dynamic else ""
        lines.append(f"{'  ' * (len(path) - 1)}{node.name}{marker}")
    return "\n".join(lines)


@dataclass
class IntegrityReport:
    """Result of validate_schema_integrity()."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_schema_integrity(
    extension: BusinessExtension, base: SchemaNode = BASE_TEMPLATE
) -> IntegrityReport:
    """Check that an extension composes cleanly onto the base template.

    Errors: composition failures, missing placeholder parents, critical
    categories dropped by the extension's ordering. Warnings: duplicate
    intents across top-level categories.
    """
    report = IntegrityReport()

    try:
        tree = compose(base, extension)
    except CompositionError as e:
        report.errors.append(str(e))
        return report

    kinds = placeholder_paths(tree)
    for kind in ("managers", "suppliers"):
        if kind not in kinds:
            report.errors.append(f"Missing placeholder category for {kind}")

    names = {child.name for child in tree.children}
    for category in base.children:
        if category.critical and category.name not in names:
            if category.name not in extension.renames:
                report.errors.append(f"Critical category '{category.name}' is missing")

    intents = [child.intent for child in tree.children if child.intent]
    duplicates = sorted({i for i in intents if intents.count(i) > 1})
    if duplicates:
        report.warnings.append(f"Duplicate intents: {', '.join(duplicates)}")

    return report
