from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from tomllib import TOMLDecodeError

from .constants import epsilon_0, mu_0
from .errors import InvalidArgument
from .sources import (
    ConductiveSphere,
    CurrentRing,
    DielectricSphere,
    MagneticShell,
    MaterialConfig,
    SourceConfig,
    VoltaicPile,
)


@dataclass
class SimConfig:
    duration: float = 40.0        # in units of time_scale
    time_scale: float = 1e-9      # duration is given in ns by default
    max_steps: int = 100          # iteration cap; wins over the quantized step count
    order: int = 1                # symplectic order 1..4
    cfl_safety: float = 0.95      # fraction of the leapfrog stability bound
    power_tol: float = 1e-6
    power_maxiter: int = 1000

    @property
    def duration_seconds(self) -> float:
        return self.duration * self.time_scale


@dataclass
class GridConfig:
    nx: int = 32
    ny: int = 32
    lx: float = 1.0  # m
    ly: float = 1.0
    dirichlet: list[str] = field(default_factory=list)  # subset of left/right/bottom/top


@dataclass
class ICConfig:
    kind: str = "zero"  # "zero" | "cavity_mode"
    amp: float = 1.0
    mode: list[int] = field(default_factory=lambda: [1, 1])


@dataclass
class OutputConfig:
    outdir: str = "outputs"
    outfile: str = "maxwell_run.npz"
    save_every: int = 1
    print_every: int = 1
    summary: bool = True


@dataclass
class FullConfig:
    sim: SimConfig
    grid: GridConfig
    materials: MaterialConfig
    source: SourceConfig
    ic: ICConfig
    output: OutputConfig


def _vec2(v, name: str) -> tuple[float, float]:
    v = tuple(float(c) for c in v)
    if len(v) != 2:
        raise InvalidArgument(f"{name} must have 2 components, got {len(v)}")
    return v


def _profile(cls, raw: dict | None, points: tuple[str, ...]):
    if raw is None:
        return None
    raw = dict(raw)
    for key in points:
        if key in raw:
            raw[key] = _vec2(raw[key], f"{cls.__name__}.{key}")
    return cls(**raw)


def materials_from_dict(raw: dict) -> MaterialConfig:
    raw = dict(raw)
    return MaterialConfig(
        epsilon0=float(raw.pop("epsilon0", epsilon_0)),
        mu0=float(raw.pop("mu0", mu_0)),
        dielectric_sphere=_profile(DielectricSphere, raw.pop("dielectric_sphere", None), ("center",)),
        magnetic_shell=_profile(MagneticShell, raw.pop("magnetic_shell", None), ("center",)),
        conductive_sphere=_profile(ConductiveSphere, raw.pop("conductive_sphere", None), ("center",)),
        **raw,
    )


def source_from_dict(raw: dict) -> SourceConfig:
    raw = dict(raw)
    return SourceConfig(
        voltaic_pile=_profile(VoltaicPile, raw.pop("voltaic_pile", None), ("axis_start", "axis_end")),
        current_ring=_profile(CurrentRing, raw.pop("current_ring", None), ("center",)),
        **raw,
    )


def validate(cfg: FullConfig) -> FullConfig:
    if cfg.sim.order not in (1, 2, 3, 4):
        raise InvalidArgument(f"sim.order must be 1..4, got {cfg.sim.order}")
    if cfg.sim.max_steps < 1:
        raise InvalidArgument(f"sim.max_steps must be >= 1, got {cfg.sim.max_steps}")
    if not (cfg.sim.duration > 0 and cfg.sim.time_scale > 0):
        raise InvalidArgument("sim.duration and sim.time_scale must be positive")
    if cfg.ic.kind not in ("zero", "cavity_mode"):
        raise InvalidArgument(f"Unknown ic.kind: {cfg.ic.kind!r}. Valid: ['zero', 'cavity_mode']")
    if len(cfg.ic.mode) != 2:
        raise InvalidArgument("ic.mode must be a pair [m, n]")
    return cfg


def config_from_dict(raw: dict) -> FullConfig:
    sim = SimConfig(**raw.get("sim", {}))
    grid = GridConfig(**raw.get("grid", {}))
    materials = materials_from_dict(raw.get("materials", {}))
    source = source_from_dict(raw.get("source", {}))
    ic = ICConfig(**raw.get("ic", {}))
    output = OutputConfig(**raw.get("output", {}))
    return validate(FullConfig(sim=sim, grid=grid, materials=materials, source=source, ic=ic, output=output))


def read_toml(path: str) -> FullConfig:
    with open(path, "rb") as f:
        try:
            raw = tomllib.load(f)
        except TOMLDecodeError as e:
            raise SystemExit(f"TOML parse error in {path}: {e}")
    return config_from_dict(raw)
