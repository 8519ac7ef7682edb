"""Default configuration templates.

CONFIG_TEMPLATE is written to ~/.config/labelforge/config.toml
when running `labelforge config init`. TEAM_TEMPLATE documents the
team file format.
"""

CONFIG_TEMPLATE = """\
# labelforge configuration

[defaults]
max_workers = 4
max_attempts = 5
base_delay = 0.5
max_delay = 30.0
rate_limit_delay = 2.0
lock_timeout = 0.0
removal_policy = "archive"
archive_root = "ARCHIVED"
detection_ttl = 86400

# Add your mailbox accounts below.
# Example Gmail account:
#
# [accounts.shop]
# provider = "gmail"
# client_id = "xxxxxx.apps.googleusercontent.com"
# email = "ops@acme-hvac.com"
# business_type = "HVAC"
# team_file = "~/.config/labelforge/team.toml"
#
# For client_secret, use the LABELFORGE_GMAIL_CLIENT_SECRET environment variable.
#
# Example Outlook (Microsoft 365) account:
#
# [accounts.office]
# provider = "outlook"
# tenant_id = "xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx"
# client_id = "xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx"
# email = "office@acme-pools.com"
# business_type = "Pools & Spas"
# team_file = "~/.config/labelforge/team.toml"
#
# After adding an account, authenticate with:
#   labelforge config auth --account shop
"""

TEAM_TEMPLATE = """\
# Managers get a label under MANAGER, suppliers under SUPPLIERS.

[[managers]]
name = "Hailey"
email = "hailey@example.com"
forward = false
role = "sales_manager"

[[suppliers]]
name = "Lennox"
domains = ["lennox.com"]
"""
