"""
backupctl - integrity-verified directory backups with tiered retention.

Archives a source directory, checksums and self-tests the archive, then
rotates older archives under a daily/weekly/monthly keep policy.
"""

try:
    from importlib.metadata import version

    __version__ = version("backupctl")
except Exception:
    __version__ = "0.0.0"  # Fallback for development
