from __future__ import annotations
import argparse
import os

DEFAULT_TOML = "examples/cavity.toml"


def resolve_input_path(ref: str | None) -> str:
    """Map a case name or path to the TOML file to load.

    ``None`` selects the bundled cavity case. An existing file is used as
    given; a bare case name such as ``plane_wave`` is tried as
    ``plane_wave.toml`` in the working directory and then under
    ``examples/``. Anything else is returned unchanged so that ``read_toml``
    reports the missing file.
    """
    if not ref:
        return DEFAULT_TOML
    if os.path.isfile(ref) or ref.endswith(".toml"):
        return ref
    for cand in (f"{ref}.toml", os.path.join("examples", f"{ref}.toml")):
        if os.path.isfile(cand):
            return cand
    return ref


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Run a maxwellx time-domain simulation from a TOML config")
    p.add_argument(
        "input",
        nargs="?",
        help="TOML path or base name (e.g. 'cavity' or 'path/to/case.toml')",
    )
    p.add_argument(
        "--input",
        dest="input_flag",
        help="Optional: TOML path or base name (same as positional)",
    )
    p.add_argument(
        "-n", "--dry-run",
        action="store_true",
        help="Print preflight info and exit without running the simulation",
    )
    p.add_argument(
        "--no-rich",
        action="store_true",
        help="Force plain text output",
    )
    p.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Override [sim].max_steps (iteration cap)",
    )
    p.add_argument(
        "--order",
        type=int,
        choices=(1, 2, 3, 4),
        default=None,
        help="Override [sim].order (symplectic integration order)",
    )
    return p


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI args and attach a resolved `path` field."""
    p = build_parser()
    args = p.parse_args(argv)
    ref = args.input_flag or args.input
    args.path = resolve_input_path(ref)
    return args
