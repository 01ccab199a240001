"""Click CLI: run one request, a request file, or the inbox through a topology."""

import asyncio
import logging
import signal
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, TopologyConfig, load_config
from deliberation.errors import DeliberationError
from deliberation.healthcheck import run_health_checks
from deliberation.inbox import archive_file, ensure_dirs, parse_file, scan_inbox
from deliberation.models import Request
from deliberation.output import print_outcome, print_turn, save_to_file
from deliberation.providers.anthropic import AnthropicProvider
from deliberation.providers.base import AIProvider
from deliberation.providers.gemini import GeminiProvider
from deliberation.providers.openai_provider import AzureOpenAIProvider, OpenAIProvider, XAIProvider
from deliberation.topology import build_orchestrator, required_providers

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

# Keyed by the ``sdk`` field of a model entry in settings.yaml.
PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openai": OpenAIProvider,
    "azure": AzureOpenAIProvider,
    "anthropic": AnthropicProvider,
    "google-genai": GeminiProvider,
    "xai": XAIProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _resolve_run_settings(
    config: AppConfig,
    topology_name: str | None,
    max_iterations: int | None,
    provider_name: str | None,
) -> tuple[TopologyConfig, int, str]:
    """Returns (topology, max_iterations, provider). CLI value > topology > defaults."""
    name = topology_name or config.defaults.topology
    if name not in config.topologies:
        raise click.BadParameter(
            f"unknown topology '{name}' (choose from {', '.join(sorted(config.topologies))})",
            param_hint="--topology",
        )
    topology = config.topologies[name]
    effective_max = (
        max_iterations if max_iterations is not None
        else topology.max_iterations if topology.max_iterations is not None
        else config.defaults.max_iterations
    )
    if effective_max < 1:
        raise click.BadParameter("must be at least 1", param_hint="--max-iterations")
    return topology, effective_max, provider_name or config.defaults.provider


def _require_healthy_providers(
    all_providers: dict[str, AIProvider],
    needed: list[str],
) -> None:
    """Ping the providers a run needs. Exits when any of them is missing or down."""
    console.print("\n[bold]Checking providers...[/bold]")
    results = asyncio.run(run_health_checks(all_providers, only=needed))

    failed_names: list[str] = []
    for name in needed:
        if name not in all_providers:
            console.print(f"  [red]FAIL[/red] {name}: not configured or missing API key")
            failed_names.append(name)
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if failed_names:
        console.print(
            f"\n[bold red]Error:[/bold red] required provider(s) failed: {', '.join(failed_names)}"
        )
        sys.exit(1)

    console.print()


async def _run_single(
    request: Request,
    config: AppConfig,
    all_providers: dict[str, AIProvider],
    topology: TopologyConfig,
    max_iterations: int,
    provider_name: str,
    selection: str,
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Run one deliberation, streaming turns to the console. Returns the saved transcript path.

    Raises:
        DeliberationError: Configuration defect or responder failure.
    """
    orchestrator = build_orchestrator(
        topology,
        all_providers,
        default_provider=provider_name,
        max_iterations=max_iterations,
        selection=selection,
        turn_timeout_sec=config.defaults.turn_timeout_sec,
    )
    colors = {p.role: p.color for p in topology.participants}

    console.print(
        f"\n[bold cyan]Deliberation[/bold cyan] [{topology.name}] "
        f"{' -> '.join(topology.roles)}, arbiter {topology.arbiter_role}, max {max_iterations} turns"
    )
    console.print(f"Request: [italic]{escape(request.text[:80])}{'...' if len(request.text) > 80 else ''}[/italic]\n")

    run = orchestrator.start_run(topology.seed(request.text))

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, run.cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False  # Windows: Ctrl+C falls back to KeyboardInterrupt

    try:
        async for turn in run:
            print_turn(turn, colors.get(turn.role, "white"))
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)

    outcome = await run.result()
    print_outcome(outcome)

    saved_path = save_to_file(outcome, request, topology.name, output_dir, slug_override=slug_override)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return saved_path


async def _run_inbox(
    config: AppConfig,
    all_providers: dict[str, AIProvider],
    inbox_dir: Path,
    archive_dir: Path,
    topology_cli: str | None,
    max_iterations_cli: int | None,
    provider_cli: str | None,
    selection_cli: str | None,
    output_dir: Path,
) -> None:
    """Process all .md files in the inbox folder.

    Precedence for per-file settings: CLI flag > frontmatter > config default.
    """
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    for file_path in files:
        try:
            request, overrides = parse_file(file_path)
            if not request.text:
                raise ValueError("request file is empty")
            topology, max_iterations, provider_name = _resolve_run_settings(
                config,
                topology_cli if topology_cli is not None else overrides.get("topology"),
                max_iterations_cli if max_iterations_cli is not None else overrides.get("max_iterations"),
                provider_cli if provider_cli is not None else overrides.get("provider"),
            )
            selection = selection_cli or overrides.get("selection") or config.defaults.selection
            saved = await _run_single(
                request=request,
                config=config,
                all_providers=all_providers,
                topology=topology,
                max_iterations=max_iterations,
                provider_name=provider_name,
                selection=selection,
                output_dir=output_dir,
                slug_override=file_path.stem,
            )
            archived = archive_file(file_path, archive_dir)
            click.echo(f"Processed: {file_path.name} -> {saved} (archived: {archived.name})")
        except Exception as e:
            logger.error("Failed: %s -- %s", file_path.name, e)
            archive_file(file_path, archive_dir, failed=True)


@click.command()
@click.argument("request", required=False)
@click.option("--topology", default=None, help="Topology from settings.yaml (default: from config)")
@click.option("--file", "request_file", type=click.Path(exists=True), help="Read the request from a .md file")
@click.option("--max-iterations", default=None, type=int, help="Turn budget (default: topology, then config)")
@click.option("--provider", default=None, help="Provider for participants without their own (default: from config)")
@click.option("--selection", type=click.Choice(["structural", "classifier"]), default=None,
              help="Next-speaker strategy (default: from config)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--inbox", "use_inbox", is_flag=True, default=False,
              help="Process all .md files in inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    request: str | None,
    topology: str | None,
    request_file: str | None,
    max_iterations: int | None,
    provider: str | None,
    selection: str | None,
    output_path: str | None,
    verbose: bool,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
) -> None:
    """Deliberate -- run participants in turn until the arbiter approves.

    \b
    Examples:
      deliberate "a cat who paints"
      deliberate --topology qa "What is Azure AI Search?"
      deliberate --topology poem --max-iterations 6 --provider claude
      deliberate --file request.md
      deliberate --inbox --inbox-dir ./my_queue
    """
    # Reconfigure stdout/stderr to UTF-8 on Windows so model output with
    # non-ASCII characters does not crash the ANSI render path.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    effective_output = Path(output_path) if output_path else config.defaults.output_dir

    all_providers = _build_all_providers(config)
    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if use_inbox:
        if not skip_health_check:
            _require_healthy_providers(all_providers, sorted(all_providers))
        inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
        asyncio.run(
            _run_inbox(
                config=config,
                all_providers=all_providers,
                inbox_dir=inbox_dir,
                archive_dir=config.inbox.archive_dir,
                topology_cli=topology,
                max_iterations_cli=max_iterations,
                provider_cli=provider,
                selection_cli=selection,
                output_dir=effective_output,
            )
        )
        return

    overrides: dict = {}
    request_obj: Request | None = None
    if request_file:
        request_obj, overrides = parse_file(Path(request_file))
    elif request:
        request_obj = Request(text=request, source="cli")

    topology_cfg, effective_max, provider_name = _resolve_run_settings(
        config,
        topology if topology is not None else overrides.get("topology"),
        max_iterations if max_iterations is not None else overrides.get("max_iterations"),
        provider if provider is not None else overrides.get("provider"),
    )
    effective_selection = selection or overrides.get("selection") or config.defaults.selection

    if request_obj is None:
        request_obj = Request(text=click.prompt(topology_cfg.prompt_label).strip(), source="prompt")

    if not request_obj.text:
        console.print("[bold red]Error:[/bold red] The request is empty.")
        sys.exit(1)

    if not skip_health_check:
        _require_healthy_providers(all_providers, required_providers(topology_cfg, provider_name))

    try:
        asyncio.run(
            _run_single(
                request=request_obj,
                config=config,
                all_providers=all_providers,
                topology=topology_cfg,
                max_iterations=effective_max,
                provider_name=provider_name,
                selection=effective_selection,
                output_dir=effective_output,
            )
        )
    except DeliberationError as exc:
        console.print(f"[bold red]Run aborted:[/bold red] {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
