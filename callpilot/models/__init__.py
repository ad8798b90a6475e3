from callpilot.models.base import Base  # noqa: F401

from callpilot.models.kv_entry import KeyValueEntry  # noqa: F401
