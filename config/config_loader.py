"""Load settings.yaml into typed dataclasses. Validates API keys and topologies at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    api_version: str | None = None


@dataclass
class ParticipantConfig:
    role: str
    instructions: str
    provider: str | None = None            # None -> defaults.provider
    tokens: list[str] = field(default_factory=list)
    fallback: str | None = None
    color: str = "white"


@dataclass
class TopologyConfig:
    name: str
    seed_template: str                     # must contain {request}
    prompt_label: str
    initial_role: str
    arbiter_role: str
    approve_token: str
    reject_token: str
    participants: list[ParticipantConfig]
    routing: dict[str, str] = field(default_factory=dict)
    max_iterations: int | None = None      # None -> defaults.max_iterations
    selection_rules: list[str] = field(default_factory=list)

    @property
    def roles(self) -> list[str]:
        return [p.role for p in self.participants]

    def seed(self, request: str) -> str:
        return self.seed_template.format(request=request)


@dataclass
class DefaultsConfig:
    topology: str
    max_iterations: int
    output_dir: Path
    provider: str
    selection: str = "structural"          # "structural" or "classifier"
    turn_timeout_sec: float | None = None


@dataclass
class InboxConfig:
    dir: Path = Path("./inbox")
    archive_dir: Path = Path("./inbox/archive")


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    topologies: dict[str, TopologyConfig]
    inbox: InboxConfig = field(default_factory=InboxConfig)
    available_providers: set[str] = field(default_factory=set)


def _parse_participant(raw: dict) -> ParticipantConfig:
    return ParticipantConfig(
        role=str(raw["role"]),
        instructions=str(raw.get("instructions", "")),
        provider=raw.get("provider"),
        tokens=[str(t) for t in raw.get("tokens", [])],
        fallback=raw.get("fallback"),
        color=str(raw.get("color", "white")),
    )


def _parse_topology(name: str, raw: dict) -> TopologyConfig:
    arbiter_raw = raw["arbiter"]
    participants = [_parse_participant(p) for p in raw["participants"]]
    topology = TopologyConfig(
        name=name,
        seed_template=str(raw.get("seed_template", "{request}")),
        prompt_label=str(raw.get("prompt_label", "What is your request")),
        initial_role=str(raw.get("initial_role", participants[0].role if participants else "")),
        arbiter_role=str(arbiter_raw["role"]),
        approve_token=str(arbiter_raw["approve"]),
        reject_token=str(arbiter_raw["reject"]),
        participants=participants,
        routing={str(k): str(v) for k, v in raw.get("routing", {}).items()},
        max_iterations=int(raw["max_iterations"]) if "max_iterations" in raw else None,
        selection_rules=[str(r) for r in raw.get("selection_rules", [])],
    )
    _validate_topology(topology)
    return topology


def _validate_topology(topology: TopologyConfig) -> None:
    """Raise ValueError when a topology's roles, vocabularies or tokens disagree."""
    roles = topology.roles
    where = f"topology '{topology.name}'"
    if not roles:
        raise ValueError(f"{where}: no participants")
    if len(set(roles)) != len(roles):
        raise ValueError(f"{where}: duplicate participant roles {roles}")
    for role_ref, label in ((topology.initial_role, "initial_role"), (topology.arbiter_role, "arbiter")):
        if role_ref not in roles:
            raise ValueError(f"{where}: {label} '{role_ref}' is not a participant")
    if topology.routing and set(topology.routing) != set(roles):
        raise ValueError(f"{where}: routing must list every participant role exactly once")
    if "{request}" not in topology.seed_template:
        raise ValueError(f"{where}: seed_template must contain {{request}}")

    for p in topology.participants:
        if bool(p.tokens) != (p.fallback is not None):
            raise ValueError(f"{where}: role '{p.role}' needs both tokens and fallback, or neither")
        if p.fallback is not None and p.fallback not in p.tokens:
            raise ValueError(f"{where}: fallback '{p.fallback}' of role '{p.role}' is not one of its tokens")

    arbiter = next(p for p in topology.participants if p.role == topology.arbiter_role)
    if arbiter.tokens and not {topology.approve_token, topology.reject_token} <= set(arbiter.tokens):
        raise ValueError(f"{where}: arbiter approve/reject tokens must be among its tokens")


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError for an
    inconsistent topology. Logs missing API keys but does not raise; callers
    check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    turn_timeout = defaults_raw.get("turn_timeout_sec")
    defaults = DefaultsConfig(
        topology=str(defaults_raw["topology"]),
        max_iterations=int(defaults_raw["max_iterations"]),
        output_dir=Path(defaults_raw["output_dir"]),
        provider=str(defaults_raw["provider"]),
        selection=str(defaults_raw.get("selection", "structural")),
        turn_timeout_sec=float(turn_timeout) if turn_timeout is not None else None,
    )
    if defaults.selection not in ("structural", "classifier"):
        raise ValueError(f"Unknown selection strategy: {defaults.selection}")

    inbox_raw = raw.get("inbox", {})
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    topologies = {name: _parse_topology(name, t) for name, t in raw["topologies"].items()}
    if defaults.topology not in topologies:
        raise ValueError(f"Default topology '{defaults.topology}' is not defined")

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        models[provider_name] = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
            api_version=model_raw.get("api_version"),
        )

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        topologies=topologies,
        inbox=inbox,
        available_providers=available_providers,
    )
