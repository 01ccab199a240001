"""Build an Orchestrator from a configured topology and live providers."""

import logging
from collections.abc import Mapping

from config.config_loader import TopologyConfig
from deliberation.errors import ConfigurationError
from deliberation.orchestrator import Orchestrator
from deliberation.participants import Participant, ProviderResponder
from deliberation.providers.base import AIProvider
from deliberation.routing import RoutingGraph
from deliberation.selection import ClassifierSelection, SelectionStrategy, StructuralSelection
from deliberation.termination import TerminationStrategy
from deliberation.vocabulary import Vocabulary

logger = logging.getLogger(__name__)


def required_providers(topology: TopologyConfig, default_provider: str) -> list[str]:
    """Provider names the topology's participants run on, in first-use order."""
    names: list[str] = []
    for p in topology.participants:
        name = p.provider or default_provider
        if name not in names:
            names.append(name)
    return names


def routing_graph_for(topology: TopologyConfig) -> RoutingGraph:
    """The configured routing, or a ring in participant declaration order."""
    if topology.routing:
        return RoutingGraph(topology.routing)
    return RoutingGraph.ring(topology.roles)


def build_participants(
    topology: TopologyConfig,
    providers: Mapping[str, AIProvider],
    default_provider: str,
) -> list[Participant]:
    participants: list[Participant] = []
    for p in topology.participants:
        provider_name = p.provider or default_provider
        if provider_name not in providers:
            raise ConfigurationError(
                f"Role '{p.role}' needs provider '{provider_name}', which is not available"
            )
        vocabulary = Vocabulary(tuple(p.tokens), p.fallback) if p.fallback is not None else None
        participants.append(
            Participant(
                role=p.role,
                responder=ProviderResponder(providers[provider_name], p.instructions),
                vocabulary=vocabulary,
                color=p.color,
            )
        )
    return participants


def build_orchestrator(
    topology: TopologyConfig,
    providers: Mapping[str, AIProvider],
    default_provider: str,
    max_iterations: int,
    selection: str = "structural",
    turn_timeout_sec: float | None = None,
) -> Orchestrator:
    """Wire participants, strategies and guard for one topology.

    Raises:
        ConfigurationError: Unknown selection, missing provider, broken routing
            or token mismatch.
    """
    if selection not in ("structural", "classifier"):
        raise ConfigurationError(f"Unknown selection strategy: {selection}")
    participants = build_participants(topology, providers, default_provider)

    strategy: SelectionStrategy
    if selection == "classifier":
        strategy = ClassifierSelection(
            classifier=providers[required_providers(topology, default_provider)[0]],
            roles=topology.roles,
            initial_role=topology.initial_role,
            rules=topology.selection_rules,
        )
    else:
        strategy = StructuralSelection(routing_graph_for(topology), topology.initial_role)

    logger.info(
        "Topology %s: %s, arbiter %s, max %d turns, %s selection",
        topology.name,
        " -> ".join(topology.roles),
        topology.arbiter_role,
        max_iterations,
        selection,
    )
    return Orchestrator(
        participants=participants,
        selection=strategy,
        termination=TerminationStrategy(
            arbiter_role=topology.arbiter_role,
            max_iterations=max_iterations,
            approve_token=topology.approve_token,
            reject_token=topology.reject_token,
        ),
        turn_timeout_sec=turn_timeout_sec,
    )
