from __future__ import annotations

import os
import subprocess
import time
from dataclasses import asdict
from typing import Iterable

from .diagnostics import ConsoleEnergy, EnergyHistory, SnapshotWriter
from .errors import InvalidArgument
from .grid import Grid2D
from .io_config import FullConfig
from .maxwell import MaxwellSystem
from .post import save_summary
from .pretty import print_plan, warn_line
from .quantize import quantize
from .symplectic import SymplecticIntegrator
from .types import RunResult, StepPlan


def run_time_loop(integrator: SymplecticIntegrator, system, plan: StepPlan, max_steps: int,
                  sinks: Iterable = ()) -> RunResult:
    """Advance ``system.state`` by ``min(plan.step_count, max_steps)`` steps.

    Every sink sees the initial state as step 0 and then each step in order.
    Sinks are closed once the loop ends, also when a step raises.
    """
    if max_steps < 1:
        raise InvalidArgument(f"max_steps must be >= 1, got {max_steps}")
    if not integrator.is_bound:
        integrator.init(system.get_curl_operator(), system)
    sinks = tuple(sinks)
    history = EnergyHistory()
    sinks_all = (history,) + sinks

    nsteps = min(plan.step_count, int(max_steps))
    capped = nsteps < plan.step_count
    if capped:
        warn_line(f"computed number of time steps ({plan.step_count}) is too large, capped at {nsteps}")

    state = system.state
    dt = plan.step_size
    try:
        system.set_time(state.t)
        energy = system.get_energy()
        for sink in sinks_all:
            sink.record(0, state, energy)

        for it in range(1, nsteps + 1):
            integrator.step(state, dt)
            system.set_time(state.t)
            energy = system.get_energy()
            system.sync_derived_fields()
            for sink in sinks_all:
                sink.record(it, state, energy)
    finally:
        for sink in sinks_all:
            sink.close()

    return RunResult(
        steps_taken=nsteps,
        plan=plan,
        capped=capped,
        t=history.t,
        energy=history.energy,
        state=state,
    )


def build_system(cfg: FullConfig) -> MaxwellSystem:
    grid = Grid2D(nx=cfg.grid.nx, ny=cfg.grid.ny, lx=cfg.grid.lx, ly=cfg.grid.ly)
    system = MaxwellSystem(
        grid,
        materials=cfg.materials,
        source=cfg.source,
        dirichlet=cfg.grid.dirichlet,
        cfl_safety=cfg.sim.cfl_safety,
        power_tol=cfg.sim.power_tol,
        power_maxiter=cfg.sim.power_maxiter,
    )
    system.set_initial_condition(cfg.ic.kind, amp=cfg.ic.amp, mode=cfg.ic.mode)
    return system


def run_simulation(cfg: FullConfig) -> dict:
    system = build_system(cfg)

    plan = quantize(cfg.sim.duration_seconds, system.get_maximum_stable_step())
    print_plan(plan)

    integrator = SymplecticIntegrator(cfg.sim.order)
    integrator.init(system.get_curl_operator(), system)

    os.makedirs(cfg.output.outdir, exist_ok=True)
    outfile = os.path.join(cfg.output.outdir, cfg.output.outfile)
    meta = {
        "sim": cfg.sim.__dict__,
        "grid": cfg.grid.__dict__,
        "ic": cfg.ic.__dict__,
        "materials": asdict(cfg.materials),
        "source": asdict(cfg.source),
        "git": _git_hash_or_none(),
        "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        "code": "maxwellx 0.1.0",
    }
    snapshots = SnapshotWriter(outfile, save_every=cfg.output.save_every, meta=meta)
    console = ConsoleEnergy(every=cfg.output.print_every)

    res = run_time_loop(integrator, system, plan, cfg.sim.max_steps, sinks=(console, snapshots))

    meta.update(
        steps_taken=res.steps_taken,
        step_count=plan.step_count,
        step_size=plan.step_size,
        max_stable_step=plan.max_stable_step,
        capped=res.capped,
        t_final=float(res.state.t),
        energy_initial=float(res.energy[0]),
        energy_final=float(res.energy[-1]),
    )
    res.meta = meta

    summary_png = None
    if cfg.output.summary:
        base, _ = os.path.splitext(outfile)
        summary_png = save_summary(res, system.grid, base + "_summary.png")

    return {"outfile": outfile, "summary": summary_png, "meta": meta, "result": res}


def _git_hash_or_none():
    try:
        h = subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"], stderr=subprocess.DEVNULL
        )
        return h.decode().strip()
    except (OSError, subprocess.CalledProcessError):
        return None
