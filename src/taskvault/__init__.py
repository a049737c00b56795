"""taskvault — local, file-backed task vaults with a consistent dependency core."""

__version__ = "0.4.0"
