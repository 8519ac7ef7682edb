"""labelforge - provision and synchronize mailbox label taxonomies."""

__version__ = "0.1.0"
