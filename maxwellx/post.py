from __future__ import annotations

import os

import matplotlib.pyplot as plt
import numpy as np

from .diagnostics import relative_drift
from .grid import Grid2D
from .types import FieldState, RunResult


def load_snapshots(path: str) -> dict:
    data = np.load(path, allow_pickle=True)
    out = {k: data[k] for k in data.files if k != "meta"}
    out["meta"] = data["meta"].item() if "meta" in data.files else {}
    return out


# ---- panel functions ----
def panel_energy(ax: plt.Axes, res: RunResult) -> None:
    ax.plot(res.t, res.energy, linewidth=1.8)
    ax.set_xlabel("t [s]"); ax.set_ylabel("Energy [J/m]"); ax.grid(True)
    ax.set_title("Field energy vs $t$")


def panel_drift(ax: plt.Axes, res: RunResult) -> None:
    ax.plot(res.t, relative_drift(np.asarray(res.energy)), linewidth=1.6)
    ax.set_xlabel("t [s]"); ax.set_ylabel(r"$(W - W_0)/W_0$"); ax.grid(True)
    ax.set_title("Relative energy drift")


def panel_bz(ax: plt.Axes, grid: Grid2D, state: FieldState) -> None:
    im = ax.imshow(grid.as_image(state.b), origin="lower", aspect="auto",
                   extent=[0.0, grid.lx, 0.0, grid.ly], cmap="RdBu_r")
    ax.set_xlabel("x [m]"); ax.set_ylabel("y [m]"); ax.set_title(r"$B_z$ at final time")
    plt.colorbar(im, ax=ax, fraction=0.046, pad=0.04)


def panel_e_magnitude(ax: plt.Axes, grid: Grid2D, state: FieldState) -> None:
    e_cell = np.asarray(grid.cell_average_e(state.e))
    im = ax.imshow(grid.as_image(np.linalg.norm(e_cell, axis=1)), origin="lower", aspect="auto",
                   extent=[0.0, grid.lx, 0.0, grid.ly])
    ax.set_xlabel("x [m]"); ax.set_ylabel("y [m]"); ax.set_title(r"$|E|$ at final time (cell average)")
    plt.colorbar(im, ax=ax, fraction=0.046, pad=0.04)


def save_summary(res: RunResult, grid: Grid2D, out_png: str) -> str:
    """Save a 2x2 summary figure.

    Layout:
      (0,0) energy vs t        (0,1) relative energy drift
      (1,0) final Bz map       (1,1) final |E| map
    """
    fig, axs = plt.subplots(2, 2, figsize=(11, 8), constrained_layout=True)

    panel_energy(axs[0, 0], res)
    panel_drift(axs[0, 1], res)
    panel_bz(axs[1, 0], grid, res.state)
    panel_e_magnitude(axs[1, 1], grid, res.state)

    os.makedirs(os.path.dirname(out_png) or ".", exist_ok=True)
    fig.savefig(out_png, dpi=150)
    plt.close(fig)
    return out_png
