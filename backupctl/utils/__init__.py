"""Shared utilities for backupctl."""
