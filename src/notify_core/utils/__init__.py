"""Core utility functions."""

from notify_core.utils.json_serializers import json_serializer
from notify_core.utils.worker_id import generate_worker_id

__all__ = ["json_serializer", "generate_worker_id"]
