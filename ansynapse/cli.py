#!/usr/bin/env python3
"""
Command line front-end for the auditory-nerve synapse model.

    ansynapse run --config run.yaml [--stimulus stim.npy] [--output out.npz]
    ansynapse constants --cf 1000 --fiber medium
"""

import argparse
import sys
from pathlib import Path

import numpy as np
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .config import ModelConfig, RunConfig, StimulusConfig, load_config
from .errors import InvalidParameterError
from .model import run_auditory_nerve, setup_synapse_logger
from .parameters import FiberType, PowerLawMode, derive_synapse_constants, resolve_spont

EXIT_OK = 0
EXIT_INVALID = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ansynapse",
        description="Inner-hair-cell / auditory-nerve synapse model with spike generation.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the model on a receptor-potential trace.")
    run.add_argument("--config", type=str, help="Path to the run configuration YAML file.")
    run.add_argument("--stimulus", type=str, help="Stimulus .npy/.npz file (overrides config).")
    run.add_argument("--key", type=str, help="Array name inside an .npz stimulus.")
    run.add_argument("--output", type=str, help="Output .npz file (overrides config).")
    run.add_argument("--cf", type=float, help="Characteristic frequency in Hz.")
    run.add_argument("--nrep", type=int, help="Number of stimulus repetitions.")
    run.add_argument("--tdres", type=float, help="Sampling period in seconds.")
    run.add_argument("--fiber", choices=[f.value for f in FiberType], help="Fiber class.")
    run.add_argument("--mode", choices=[m.value for m in PowerLawMode], help="Power-law implementation.")
    run.add_argument("--seed", type=int, help="Random seed.")
    run.add_argument("--fgn-noise", action="store_true", default=None, help="Enable fGn noise.")
    run.add_argument("--log-level", type=str, help="Log level (DEBUG, INFO, WARNING, ...).")

    const = sub.add_parser("constants", help="Print the derived synapse constants.")
    const.add_argument("--cf", type=float, default=1000.0, help="Characteristic frequency in Hz.")
    const.add_argument("--fiber", type=str, default=FiberType.HIGH.value,
                       help="Fiber class (low/medium/high) or a spontaneous rate.")
    return parser


def _apply_overrides(config: RunConfig, args: argparse.Namespace) -> RunConfig:
    overrides = {
        "cf": args.cf,
        "nrep": args.nrep,
        "tdres": args.tdres,
        "fiber_type": args.fiber,
        "power_law": args.mode,
        "seed": args.seed,
        "fgn_noise": args.fgn_noise,
        "log_level": args.log_level,
    }
    model = config.model.model_dump()
    model.update({k: v for k, v in overrides.items() if v is not None})
    # an explicit class replaces a custom spontaneous rate from the config
    if args.fiber is not None:
        model["spont"] = None

    stimulus = config.stimulus
    if args.stimulus:
        stimulus = StimulusConfig(path=args.stimulus, key=args.key)

    return RunConfig(
        model=ModelConfig(**model),
        stimulus=stimulus,
        output=args.output or config.output,
    )


def cmd_run(args: argparse.Namespace, console: Console) -> int:
    base_dir = None
    if args.config:
        config = load_config(args.config)
        base_dir = Path(args.config).parent
    else:
        config = RunConfig()
    config = _apply_overrides(config, args)

    setup_synapse_logger(config.model.log_level)

    if config.stimulus is None:
        console.print("[red]No stimulus given (use --stimulus or the config 'stimulus' section)[/red]")
        return EXIT_INVALID

    stimulus_base = None if args.stimulus else base_dir
    stimulus = config.stimulus.load(stimulus_base)
    model = config.model
    rng = model.make_rng()

    response = run_auditory_nerve(
        stimulus,
        model.cf,
        model.nrep,
        model.tdres,
        model.fiber,
        impl_mode=model.power_law,
        rng=rng,
        noise=model.make_noise(rng),
    )

    table = Table(title="Auditory nerve response")
    table.add_column("Quantity", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Samples per repetition", str(response.totalstim))
    table.add_row("Repetitions", str(model.nrep))
    table.add_row("Spikes", str(len(response.spike_times)))
    table.add_row("Mean rate (spikes/s)", f"{response.rate.mean():.2f}")
    table.add_row("Peak rate (spikes/s)", f"{response.rate.max():.2f}")
    table.add_row("Clamped samples", str(response.clamped_samples))
    console.print(table)

    if config.output:
        np.savez(
            config.output,
            rate=response.rate,
            psth=response.psth,
            spike_times=response.spike_times,
        )
        console.print(f"[green]Saved results to {config.output}[/green]")
    return EXIT_OK


def cmd_constants(args: argparse.Namespace, console: Console) -> int:
    try:
        fiber = float(args.fiber)
    except ValueError:
        fiber = args.fiber
    constants = derive_synapse_constants(args.cf, resolve_spont(fiber))

    table = Table(title=f"Synapse constants (cf={constants.cf:.1f} Hz, spont={constants.spont:g})")
    table.add_column("Constant", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in constants.as_dict().items():
        table.add_row(name, f"{value:.6g}")
    console.print(table)
    return EXIT_OK


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console()

    commands = {"run": cmd_run, "constants": cmd_constants}
    try:
        return commands[args.command](args, console)
    except (InvalidParameterError, ValidationError) as e:
        console.print(f"[red]Invalid parameters:[/red] {e}")
        return EXIT_INVALID
    except (FileNotFoundError, KeyError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        return EXIT_INVALID


if __name__ == "__main__":
    sys.exit(main())
