"""Configuration schema definitions.

Uses TypedDict for type safety without runtime overhead.
These types match the structure of config.toml and team files.
"""

from typing import TypedDict


class DefaultsConfig(TypedDict, total=False):
    """Default settings applied to all provisioning runs.

    Attributes:
        max_workers: Size of the label creation worker pool.
        max_attempts: Attempts per provider call for retryable errors.
        base_delay: Initial backoff for transient errors, in seconds.
        max_delay: Upper bound for a single backoff, in seconds.
        rate_limit_delay: Initial backoff for rate limits, in seconds.
        lock_timeout: Seconds to wait for another run on the same account.
        removal_policy: "archive" or "delete_if_empty".
        archive_root: Top-level label that receives archived labels.
        detection_ttl: Seconds a provider detection result stays cached.
    """

    max_workers: int
    max_attempts: int
    base_delay: float
    max_delay: float
    rate_limit_delay: float
    lock_timeout: float
    removal_policy: str
    archive_root: str
    detection_ttl: int


class AccountConfig(TypedDict, total=False):
    """Single mailbox account configuration.

    Attributes:
        provider: Mailbox provider ("gmail" or "outlook").
        client_id: OAuth client/application ID.
        tenant_id: Microsoft 365 tenant/directory ID (outlook only).
        client_secret: Optional client secret (prefer env var).
        business_type: Business vertical (e.g., "HVAC").
        team_file: Path to the team TOML file.
        email: Mailbox address, used as the identifier map key.
    """

    provider: str
    client_id: str
    tenant_id: str
    client_secret: str
    business_type: str
    team_file: str
    email: str


class LabelforgeConfig(TypedDict, total=False):
    """Root configuration structure.

    Attributes:
        defaults: Default settings for all runs.
        accounts: Dict mapping account names to their configurations.
    """

    defaults: DefaultsConfig
    accounts: dict[str, AccountConfig]


class ManagerEntry(TypedDict, total=False):
    """One [[managers]] table of a team file."""

    name: str
    email: str
    forward: bool
    role: str


class SupplierEntry(TypedDict, total=False):
    """One [[suppliers]] table of a team file."""

    name: str
    domains: list[str]


class TeamFile(TypedDict, total=False):
    """Root structure of a team file."""

    managers: list[ManagerEntry]
    suppliers: list[SupplierEntry]
