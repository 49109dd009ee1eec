"""Supplier Info value object."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)  # Value objects are immutable
class SupplierInfo:
    """Who a lot was bought from. Descriptive only, carries no invariants."""

    name: Optional[str] = None
    contact: Optional[str] = None
    address: Optional[str] = None

    def to_dict(self) -> dict:
        return {"name": self.name, "contact": self.contact, "address": self.address}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["SupplierInfo"]:
        if not data:
            return None
        return cls(name=data.get("name"), contact=data.get("contact"), address=data.get("address"))
