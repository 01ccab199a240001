"""Fixed role-to-role routing cycle."""

from collections.abc import Mapping, Sequence

from deliberation.errors import ConfigurationError, UnknownRole
from deliberation.models import REQUESTER_ROLE


class RoutingGraph:
    """Maps each role to the single role that speaks after it.

    The mapping must form one cycle over all of its roles: following it
    ``len(graph)`` times from any role returns to that role and visits every
    other role on the way.
    """

    def __init__(self, edges: Mapping[str, str]) -> None:
        if not edges:
            raise ConfigurationError("Routing graph is empty")
        if REQUESTER_ROLE in edges or REQUESTER_ROLE in edges.values():
            raise ConfigurationError(f"{REQUESTER_ROLE!r} is reserved for the seed turn")
        self._edges: dict[str, str] = dict(edges)

        dangling = [dst for dst in self._edges.values() if dst not in self._edges]
        if dangling:
            raise ConfigurationError(f"Routing graph points at undeclared roles: {dangling}")

        start = next(iter(self._edges))
        if len(self.cycle_from(start)) != len(self._edges):
            raise ConfigurationError(
                f"Routing graph is not a single cycle over {sorted(self._edges)}"
            )

    @classmethod
    def ring(cls, roles: Sequence[str]) -> "RoutingGraph":
        """Build the cycle roles[0] -> roles[1] -> ... -> roles[0]."""
        return cls({role: roles[(i + 1) % len(roles)] for i, role in enumerate(roles)})

    def __len__(self) -> int:
        return len(self._edges)

    def __contains__(self, role: object) -> bool:
        return role in self._edges

    @property
    def roles(self) -> frozenset[str]:
        return frozenset(self._edges)

    def successor(self, role: str) -> str:
        try:
            return self._edges[role]
        except KeyError:
            raise UnknownRole(role) from None

    def cycle_from(self, role: str) -> tuple[str, ...]:
        """Roles in speaking order starting at ``role``, each listed once."""
        order = [role]
        current = self.successor(role)
        while current != role and len(order) <= len(self._edges):
            order.append(current)
            current = self.successor(current)
        return tuple(order)
