"""Actor identity primitive.

An actor is whoever performs a mutation: a role plus an identity.  Actors are
always supplied by the caller (``--actor manager:alice`` on the command line);
the engine never looks one up from ambient session state.

String form is ``role:identifier``:
    manager:alice   – a manager whose id is ``alice``
    employee:bob    – an employee whose id is ``bob``
"""

from __future__ import annotations

from dataclasses import dataclass

from taskgate.core.ids import validate_actor


@dataclass(frozen=True)
class Actor:
    """Structured actor identity."""

    id: str
    role: str  # "manager" or "employee"
    name: str | None = None  # display name, defaults to id

    @property
    def is_manager(self) -> bool:
        return self.role == "manager"

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def to_dict(self) -> dict:
        """Serialize to a dict for event storage / JSON output."""
        d: dict = {"id": self.id, "role": self.role}
        if self.name is not None:
            d["name"] = self.name
        return d

    def to_actor_string(self) -> str:
        """Return the ``role:identifier`` form."""
        return f"{self.role}:{self.id}"

    @classmethod
    def from_dict(cls, d: dict) -> Actor:
        return cls(id=d["id"], role=d["role"], name=d.get("name"))


def parse_actor(actor_str: str, *, name: str | None = None) -> Actor:
    """Parse a ``role:identifier`` string into an :class:`Actor`.

    Raises ``ValueError`` if the string is not a valid actor.
    """
    if not validate_actor(actor_str):
        raise ValueError(
            f"Invalid actor format: '{actor_str}'. "
            "Expected role:identifier (e.g., manager:alice, employee:bob)."
        )
    role, identifier = actor_str.split(":", maxsplit=1)
    return Actor(id=identifier, role=role, name=name)
