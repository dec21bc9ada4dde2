# maxwellx/pretty.py
from __future__ import annotations
import os
from typing import Any, Dict

from rich.box import ROUNDED
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Runtime switches (set by init_pretty)
_USE_RICH = False
_console = None  # type: ignore[misc]


def info_line(msg: str) -> None:
    """Print a single status line (respects Rich/NO_COLOR settings)."""
    if _USE_RICH:
        _console.print(msg, highlight=False)
    else:
        print(msg)


def warn_line(msg: str) -> None:
    if _USE_RICH:
        _console.print(f"[bold yellow]warning:[/bold yellow] {msg}", highlight=False)
    else:
        print(f"warning: {msg}")


def init_pretty(prefer_rich: bool = True) -> None:
    """Initialize pretty output.
    - Disables color if NO_COLOR is set (case-insensitive).
    - Uses Rich when preferred and NO_COLOR is not set.
    """
    global _USE_RICH, _console

    no_color_env = any(k.upper() == "NO_COLOR" for k in os.environ.keys())
    if no_color_env or not prefer_rich:
        _USE_RICH = False
        _console = None
        return

    _USE_RICH = True
    _console = Console()


def using_rich() -> bool:
    return _USE_RICH


def _sizeof_fmt(num: float) -> str:
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if abs(num) < 1024.0:
            return f"{num:3.1f} {unit}"
        num /= 1024.0
    return f"{num:.1f} PB"


def _estimate_sizes(cfg) -> dict:
    g = cfg.grid
    n_edges = g.nx * (g.ny + 1) + (g.nx + 1) * g.ny
    n_cells = g.nx * g.ny
    n_saved = cfg.sim.max_steps // max(cfg.output.save_every, 1) + 1
    out_bytes = n_saved * (n_edges + n_cells + 2) * 8
    return dict(n_edges=n_edges, n_cells=n_cells, n_saved=n_saved, out_bytes=out_bytes)


def _preflight_rows(cfg) -> list[tuple[str, str]]:
    sim, grid, src, ic = cfg.sim, cfg.grid, cfg.source, cfg.ic
    sizes = _estimate_sizes(cfg)
    out_npz = os.path.join(cfg.output.outdir, cfg.output.outfile)
    rows = [
        ("duration", f"{sim.duration} x {sim.time_scale:g} s"),
        ("order / max_steps", f"{sim.order} / {sim.max_steps}"),
        ("cfl safety", f"{sim.cfl_safety}"),
        ("grid", f"{grid.nx} x {grid.ny} on {grid.lx} x {grid.ly} m"),
        ("dirichlet sides", ", ".join(grid.dirichlet) or "none (natural)"),
        ("unknowns", f"{sizes['n_edges']} edges (E), {sizes['n_cells']} cells (B)"),
        ("materials", _materials_text(cfg.materials)),
        ("drive", f"problem {src.problem}, f = {src.frequency:g} Hz"),
        ("currents", _currents_text(src)),
        ("initial condition", f"{ic.kind} (amp={ic.amp}, mode={tuple(ic.mode)})"),
        ("est. snapshot size", _sizeof_fmt(sizes["out_bytes"])),
        ("will write (npz)", out_npz),
    ]
    if cfg.output.summary:
        rows.append(("will write (png)", os.path.splitext(out_npz)[0] + "_summary.png"))
    return rows


def _materials_text(m) -> str:
    parts = [f"eps0={m.epsilon0:g}", f"mu0={m.mu0:g}"]
    if m.dielectric_sphere is not None:
        parts.append("dielectric sphere")
    if m.magnetic_shell is not None:
        parts.append("magnetic shell")
    if m.conductive_sphere is not None:
        parts.append("conductive sphere")
    return ", ".join(parts)


def _currents_text(src) -> str:
    parts = []
    if src.voltaic_pile is not None:
        parts.append("voltaic pile")
    if src.current_ring is not None:
        parts.append("current ring")
    return ", ".join(parts) or "none"


def print_preflight(path: str, cfg) -> None:
    rows = _preflight_rows(cfg)

    if _USE_RICH:
        header = Panel.fit(
            "[bold cyan]maxwellx preflight[/bold cyan]\n"
            f"[dim]input:[/dim] {path}",
            border_style="cyan", box=ROUNDED
        )
        _console.print(header)

        t = Table(box=ROUNDED, show_lines=False)
        t.add_column("Key", style="bold dim", no_wrap=True)
        t.add_column("Value")
        for key, value in rows:
            t.add_row(key, value)
        _console.print(t)
        _console.print()
    else:
        print("\n" + "-" * 64)
        print(" maxwellx preflight")
        print("-" * 64)
        print(f" {'input file':<19}: {path}")
        for key, value in rows:
            print(f" {key:<19}: {value}")
        print("-" * 64 + "\n")


def print_plan(plan) -> None:
    info_line(f"Maximum Time Step:     {plan.max_stable_step:.6e}")
    info_line(f"Number of Time Steps:  {plan.step_count}")
    info_line(f"Time Step Size:        {plan.step_size:.6e}")


def print_summary(cfg, info: Dict[str, Any], elapsed_s: float) -> None:
    out = info.get("outfile", "<unknown>")
    png = info.get("summary", None)
    meta = info.get("meta", {})
    git = meta.get("git", None)
    rows = [("output (npz)", out)]
    if png:
        rows.append(("summary (png)", png))
    for key in ("steps_taken", "step_size", "t_final", "energy_initial", "energy_final"):
        if key in meta:
            val = meta[key]
            rows.append((key.replace("_", " "), f"{val:.6e}" if isinstance(val, float) else str(val)))
    if meta.get("capped"):
        rows.append(("capped", "yes (max_steps reached before duration)"))
    if git:
        rows.append(("git", git))
    rows.append(("wall time", f"{elapsed_s:.3f} s"))

    if _USE_RICH:
        header = Panel.fit(
            "[bold green]maxwellx run summary[/bold green]",
            border_style="green", box=ROUNDED
        )
        _console.print(header)

        t = Table(box=ROUNDED, show_lines=False)
        t.add_column("Key", style="bold dim", no_wrap=True)
        t.add_column("Value")
        for key, value in rows:
            t.add_row(key, value)
        _console.print(t)
        _console.print()
    else:
        print("\n" + "=" * 64)
        print(" maxwellx run summary")
        print("=" * 64)
        for key, value in rows:
            print(f" {key:<17}: {value}")
        print("=" * 64 + "\n")
