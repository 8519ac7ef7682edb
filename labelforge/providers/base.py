"""Provider adapter interface.

Every mailbox backend is driven through ProviderAdapter. Adapters hide
how the backend models hierarchy (flat "/"-joined label names vs. a
real folder tree) and translate backend failures into the error
taxonomy in labelforge.errors.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from labelforge.errors import CapabilityViolation
from labelforge.schema.models import ColorSpec


class ProviderType(str, Enum):
    """Supported mailbox providers."""

    gmail = "gmail"
    outlook = "outlook"


@dataclass(frozen=True)
class Capabilities:
    """What a provider allows when creating nodes.

    Attributes:
        supports_color: Whether create_node honours a color.
        max_depth: Deepest allowed nesting level, None if unlimited.
        path_separator: Separator for flat providers, None for folder trees.
        reserved_names: Names that may not be used at the top level.
        case_sensitive: Whether sibling names differing only in case
                        are distinct.
        max_name_length: Longest accepted name (full name for flat providers).
    """

    supports_color: bool
    max_depth: int | None
    path_separator: str | None
    reserved_names: frozenset[str]
    case_sensitive: bool
    max_name_length: int

    def is_reserved(self, name: str) -> bool:
        key = name.strip().casefold()
        for reserved in self.reserved_names:
            reserved = reserved.casefold()
            if reserved.endswith("*"):
                if key.startswith(reserved[:-1]):
                    return True
            elif key == reserved:
                return True
        return False

    def same_name(self, a: str, b: str) -> bool:
        if self.case_sensitive:
            return a == b
        return a.casefold() == b.casefold()


@dataclass(frozen=True)
class RemoteNode:
    """A label or folder as reported by the provider."""

    name: str
    id: str


class ProviderAdapter(ABC):
    """Uniform interface over one mailbox backend.

    All methods may raise ProviderError subclasses. They are called from
    worker threads, so implementations must be thread-safe.
    """

    provider: ProviderType

    @abstractmethod
    def capabilities(self) -> Capabilities:
        """Describe what this provider accepts."""

    @abstractmethod
    def list_children(self, parent_id: str | None) -> list[RemoteNode]:
        """List direct children of a node; None lists top-level nodes."""

    @abstractmethod
    def create_node(
        self,
        name: str,
        parent_id: str | None,
        color: ColorSpec | None = None,
    ) -> str:
        """Create a node under parent_id and return its provider id."""

    @abstractmethod
    def move_node(
        self,
        node_id: str,
        new_parent_id: str | None,
        new_name: str | None = None,
    ) -> str:
        """Move (and optionally rename) a node; returns its possibly new id."""

    @abstractmethod
    def delete_node(self, node_id: str) -> None:
        """Delete a node."""

    @abstractmethod
    def count_items(self, node_id: str) -> int:
        """Number of messages carrying the label or stored in the folder."""

    def find_child(self, parent_id: str | None, name: str) -> RemoteNode | None:
        """Find a direct child by name using the provider's case rule."""
        caps = self.capabilities()
        for child in self.list_children(parent_id):
            if caps.same_name(child.name, name):
                return child
        return None

    def check_name(self, name: str, depth: int | None) -> None:
        """Check one name that would be created at the given depth.

        Args:
            name: The node name (a single path segment).
            depth: 1 for top-level nodes. None when the depth is unknown,
                   which skips the depth and reserved-name checks.

        Raises:
            CapabilityViolation: If the name is not acceptable.
        """
        caps = self.capabilities()

        if not name.strip():
            raise CapabilityViolation("Blank name")
        if caps.path_separator and caps.path_separator in name:
            raise CapabilityViolation(
                f"Name '{name}' contains the path separator '{caps.path_separator}'"
            )
        if len(name) > caps.max_name_length:
            raise CapabilityViolation(
                f"Name '{name[:40]}...' is longer than {caps.max_name_length} characters"
            )
        if depth is None:
            return
        if caps.max_depth is not None and depth > caps.max_depth:
            raise CapabilityViolation(
                f"'{name}' at depth {depth} exceeds {self.provider.value} "
                f"maximum depth of {caps.max_depth}"
            )
        if depth == 1 and caps.is_reserved(name):
            raise CapabilityViolation(f"'{name}' is a reserved {self.provider.value} name")

    def validate_path(self, path: tuple[str, ...]) -> None:
        """Check a logical path against this provider's capabilities.

        Raises:
            CapabilityViolation: If the path is empty, too deep, a segment
                is blank or contains the path separator, the encoded name
                is too long, or the top-level name is reserved.
        """
        if not path:
            raise CapabilityViolation("Empty path")

        for depth, segment in enumerate(path, start=1):
            self.check_name(segment, depth)

        caps = self.capabilities()
        if caps.path_separator:
            full_name = caps.path_separator.join(path)
            if len(full_name) > caps.max_name_length:
                raise CapabilityViolation(
                    f"Label '{full_name[:40]}...' is longer than "
                    f"{caps.max_name_length} characters"
                )
