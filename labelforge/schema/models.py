"""Data model for label taxonomies and team data.

SchemaNode trees are immutable (frozen dataclasses with tuple children),
so composing a taxonomy never mutates the templates it starts from.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

PlaceholderKind = Literal["managers", "suppliers"]

MANAGERS: PlaceholderKind = "managers"
SUPPLIERS: PlaceholderKind = "suppliers"


@dataclass(frozen=True)
class ColorSpec:
    """Label color as accepted by Gmail's label palette.

    Attributes:
        background: Background hex color (e.g., "#16a766").
        text: Text hex color (e.g., "#ffffff").
    """

    background: str
    text: str

    def to_gmail(self) -> dict:
        return {"backgroundColor": self.background, "textColor": self.text}


@dataclass(frozen=True)
class SchemaNode:
    """A node of the label taxonomy.

    Attributes:
        name: Display name, one segment of the logical path.
        color: Optional color; ignored by providers without color support.
        intent: Semantic intent tag used by the classifier (e.g., "ai.hr").
        critical: Category must never be dropped by an extension.
        children: Ordered child nodes.
        placeholder: Marks a parent that receives injected team or
                     supplier leaves ("managers" or "suppliers").
        description: Human-readable purpose of the category.
        dynamic: True for leaves injected from team/supplier data.
    """

    name: str
    color: ColorSpec | None = None
    intent: str | None = None
    critical: bool = False
    children: tuple["SchemaNode", ...] = ()
    placeholder: PlaceholderKind | None = None
    description: str | None = None
    dynamic: bool = False

    def child(self, name: str) -> "SchemaNode | None":
        """Return the direct child with this name (case-insensitive)."""
        key = name.casefold()
        for node in self.children:
            if node.name.casefold() == key:
                return node
        return None


def node(name: str, *children: SchemaNode, **kwargs) -> SchemaNode:
    """Shorthand constructor used by the template tables."""
    return SchemaNode(name=name, children=tuple(children), **kwargs)


def leaves(*names: str) -> tuple[SchemaNode, ...]:
    """Build a tuple of childless nodes."""
    return tuple(SchemaNode(name=n) for n in names)


@dataclass(frozen=True)
class CategoryOverride:
    """Replacement values for one top-level category.

    Fields left as None keep the base template's value.
    """

    children: tuple[SchemaNode, ...] | None = None
    color: ColorSpec | None = None
    intent: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class Addition:
    """A new top-level category contributed by an extension.

    Attributes:
        node: The category subtree.
        before: Insert before this top-level category; append if None.
    """

    node: SchemaNode
    before: str | None = None


@dataclass(frozen=True)
class BusinessExtension:
    """Per-vertical customization of the base template.

    Attributes:
        business_type: Display name of the vertical (e.g., "HVAC").
        renames: Top-level category renames, old name -> new name.
        overrides: Category name -> replacement values.
        additions: New top-level categories.
        extra_subcategories: Category name -> nodes appended to it.
        intent_keywords: Category name -> classifier keywords. Travels
                         with the extension; not used for provisioning.
        order: Optional explicit order of top-level categories.
    """

    business_type: str
    renames: dict[str, str] = field(default_factory=dict)
    overrides: dict[str, CategoryOverride] = field(default_factory=dict)
    additions: tuple[Addition, ...] = ()
    extra_subcategories: dict[str, tuple[SchemaNode, ...]] = field(default_factory=dict)
    intent_keywords: dict[str, tuple[str, ...]] = field(default_factory=dict)
    order: tuple[str, ...] | None = None


class Role(str, Enum):
    """Manager roles selectable during team setup."""

    sales_manager = "sales_manager"
    service_manager = "service_manager"
    operations_manager = "operations_manager"
    support_lead = "support_lead"
    owner = "owner"


@dataclass(frozen=True)
class TeamMember:
    """A manager who gets a routing label under MANAGER.

    Attributes:
        name: Display name, unique within a run.
        email: Optional address for forwarding.
        forward: Whether routed mail is forwarded to `email`.
        role: Optional role tag.
    """

    name: str
    email: str | None = None
    forward: bool = False
    role: Role | None = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Team member name is required")
        object.__setattr__(self, "name", self.name.strip())
        if self.email is not None:
            object.__setattr__(self, "email", self.email.strip().lower() or None)
        if self.role is not None and not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))

    def to_dict(self) -> dict:
        data = {"name": self.name, "forward": self.forward}
        if self.email:
            data["email"] = self.email
        if self.role:
            data["role"] = self.role.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TeamMember":
        return cls(
            name=data.get("name", ""),
            email=data.get("email"),
            forward=bool(data.get("forward", False)),
            role=data.get("role") or None,
        )


def normalize_domains(domains) -> tuple[str, ...]:
    """Lower-case, strip and de-@ supplier domains, keeping first occurrence."""
    seen: list[str] = []
    for raw in domains or ():
        domain = raw.strip().lower().lstrip("@")
        if domain and domain not in seen:
            seen.append(domain)
    return tuple(seen)


@dataclass(frozen=True)
class Supplier:
    """A vendor that gets a routing label under SUPPLIERS.

    Attributes:
        name: Display name, the supplier's identity.
        domains: Normalized sender domains (e.g., ("lennox.com",)).
    """

    name: str
    domains: tuple[str, ...] = ()

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Supplier name is required")
        object.__setattr__(self, "name", self.name.strip())
        object.__setattr__(self, "domains", normalize_domains(self.domains))

    def to_dict(self) -> dict:
        return {"name": self.name, "domains": list(self.domains)}

    @classmethod
    def from_dict(cls, data: dict) -> "Supplier":
        return cls(name=data.get("name", ""), domains=tuple(data.get("domains", ())))


def _check_unique(names: list[str], what: str) -> None:
    seen: set[str] = set()
    for name in names:
        key = name.casefold()
        if key in seen:
            raise ValueError(f"Duplicate {what} name: {name}")
        seen.add(key)


@dataclass(frozen=True)
class TeamSnapshot:
    """Managers and suppliers as configured for one provisioning run."""

    managers: tuple[TeamMember, ...] = ()
    suppliers: tuple[Supplier, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "managers", tuple(self.managers))
        object.__setattr__(self, "suppliers", tuple(self.suppliers))
        _check_unique([m.name for m in self.managers], "manager")
        _check_unique([s.name for s in self.suppliers], "supplier")

    def to_dict(self) -> dict:
        return {
            "managers": [m.to_dict() for m in self.managers],
            "suppliers": [s.to_dict() for s in self.suppliers],
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "TeamSnapshot":
        data = data or {}
        return cls(
            managers=tuple(TeamMember.from_dict(m) for m in data.get("managers", [])),
            suppliers=tuple(Supplier.from_dict(s) for s in data.get("suppliers", [])),
        )
