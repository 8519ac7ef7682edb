"""Configuration management module.

Handles loading, saving, and accessing the labelforge configuration.
Config is stored at ~/.config/labelforge/config.toml

Usage:
    from labelforge.config import load_config, get_account, get_defaults

    config = load_config()
    account = get_account(config, "shop")
    defaults = get_defaults(config)
"""

import tomllib
from pathlib import Path

import tomli_w

from labelforge.schema.models import Supplier, TeamMember, TeamSnapshot

from .paths import CONFIG_FILE, ensure_config_dir
from .schema import AccountConfig, DefaultsConfig, LabelforgeConfig
from .template import CONFIG_TEMPLATE

# Re-export for convenience
__all__ = [
    "load_config",
    "save_config",
    "init_config",
    "get_account",
    "get_account_names",
    "get_defaults",
    "set_config_value",
    "load_team",
    "CONFIG_FILE",
    "DEFAULTS",
]

# Values used when [defaults] omits a key
DEFAULTS: DefaultsConfig = {
    "max_workers": 4,
    "max_attempts": 5,
    "base_delay": 0.5,
    "max_delay": 30.0,
    "rate_limit_delay": 2.0,
    "lock_timeout": 0.0,
    "removal_policy": "archive",
    "archive_root": "ARCHIVED",
    "detection_ttl": 86400,
}

# Module-level cache for loaded config.
# Avoids repeated disk reads during a single CLI invocation.
_cached_config: LabelforgeConfig | None = None


def load_config(*, force_reload: bool = False) -> LabelforgeConfig:
    """Load configuration from disk.

    Returns empty dict if config file doesn't exist.
    Uses module-level caching to avoid repeated disk reads.

    Args:
        force_reload: Bypass cache and read from disk (useful after saving).

    Returns:
        The configuration dictionary.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    if not CONFIG_FILE.exists():
        _cached_config = {}
        return _cached_config

    with open(CONFIG_FILE, "rb") as f:
        _cached_config = tomllib.load(f)

    return _cached_config


def save_config(config: LabelforgeConfig) -> None:
    """Save configuration to disk.

    Creates config directory if needed. Updates the module cache.

    Args:
        config: The configuration dictionary to save.
    """
    global _cached_config

    ensure_config_dir()

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(config, f)

    # Keep cache in sync with disk
    _cached_config = config


def init_config(*, overwrite: bool = False) -> bool:
    """Initialize config directory and create template config file.

    Args:
        overwrite: If True, overwrite existing config file.

    Returns:
        True if config was created, False if it already existed.

    Raises:
        FileExistsError: If config exists and overwrite=False.
    """
    ensure_config_dir()

    if CONFIG_FILE.exists() and not overwrite:
        return False

    CONFIG_FILE.write_text(CONFIG_TEMPLATE)
    return True


def get_account(
    config: LabelforgeConfig, name: str | None = None
) -> AccountConfig | None:
    """Get account configuration by name.

    Args:
        config: The loaded configuration dictionary.
        name: Account name to retrieve. If None, returns the first account.

    Returns:
        The account configuration, or None if not found.
    """
    accounts = config.get("accounts", {})

    if not accounts:
        return None

    if name is None:
        # Return first account as default
        return next(iter(accounts.values()))

    return accounts.get(name)


def get_account_names(config: LabelforgeConfig) -> list[str]:
    """Get list of configured account names.

    Args:
        config: The loaded configuration dictionary.

    Returns:
        List of account names, may be empty.
    """
    return list(config.get("accounts", {}).keys())


def set_config_value(key: str, value: str) -> None:
    """Set a configuration value using dot notation.

    Examples:
        set_config_value("defaults.max_workers", "8")
        set_config_value("accounts.shop.business_type", "HVAC")

    Args:
        key: Dot-separated key path (e.g., "defaults.max_workers").
        value: Value to set (will be type-converted for known fields).

    Raises:
        ValueError: If value cannot be converted to expected type.
    """
    config = load_config(force_reload=True)

    parts = key.split(".")

    # Navigate to parent dict, creating intermediate dicts as needed
    current: dict = config
    for part in parts[:-1]:
        if part not in current:
            current[part] = {}
        current = current[part]

    # Set the final value with type conversion
    final_key = parts[-1]
    converted_value = _convert_value(final_key, value)
    current[final_key] = converted_value

    save_config(config)


def get_defaults(config: LabelforgeConfig) -> DefaultsConfig:
    """Get [defaults] merged over the built-in DEFAULTS.

    Args:
        config: The loaded configuration dictionary.

    Returns:
        A complete defaults dictionary.
    """
    return {**DEFAULTS, **config.get("defaults", {})}


def _convert_value(key: str, value: str) -> str | int | float:
    """Convert string value to appropriate type based on field name.

    Known numeric fields are converted, everything else stays str.

    Args:
        key: The field name (last part of dot notation key).
        value: The string value from CLI.

    Returns:
        Converted value (int or float for known numeric fields, str otherwise).

    Raises:
        ValueError: If value cannot be converted to expected type.
    """
    int_fields = {"max_workers", "max_attempts", "detection_ttl"}
    float_fields = {"base_delay", "max_delay", "rate_limit_delay", "lock_timeout"}

    if key in int_fields:
        return int(value)
    if key in float_fields:
        return float(value)

    return value


def load_team(path: Path | str) -> TeamSnapshot:
    """Load managers and suppliers from a team TOML file.

    The file holds [[managers]] and [[suppliers]] tables, see
    labelforge.config.template.TEAM_TEMPLATE.

    Args:
        path: Path to the team file ("~" is expanded).

    Returns:
        The team snapshot.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If an entry is invalid or names are duplicated.
    """
    with open(Path(path).expanduser(), "rb") as f:
        data = tomllib.load(f)

    return TeamSnapshot(
        managers=tuple(TeamMember.from_dict(m) for m in data.get("managers", [])),
        suppliers=tuple(Supplier.from_dict(s) for s in data.get("suppliers", [])),
    )
