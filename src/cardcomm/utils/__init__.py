"""Helpers shared by the card API: argument validation and JSON tracing."""

from cardcomm.utils.assertion import Assert
from cardcomm.utils.json_util import to_json

__all__ = ["Assert", "to_json"]
