"""Item and membership registries."""

from .items import ItemRegistry, ItemStatus, build_scan_url, generate_scan_token
from .members import MemberRegistry, normalize_email

__all__ = [
    "ItemRegistry",
    "ItemStatus",
    "build_scan_url",
    "generate_scan_token",
    "MemberRegistry",
    "normalize_email",
]
