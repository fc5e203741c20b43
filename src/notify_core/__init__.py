"""Shared building blocks for the notification pipeline: errors, logging, utilities."""
