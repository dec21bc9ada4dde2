from __future__ import annotations
import time
from .args import parse_args
from .driver import run_simulation
from .io_config import read_toml, validate
from .pretty import init_pretty, print_preflight, print_summary, info_line


def main(argv: list[str] | None = None):
    args = parse_args(argv)
    init_pretty(prefer_rich=not args.no_rich)

    cfg = read_toml(args.path)
    if args.max_steps is not None:
        cfg.sim.max_steps = args.max_steps
    if args.order is not None:
        cfg.sim.order = args.order
    validate(cfg)

    # Preflight BEFORE solving
    print_preflight(args.path, cfg)
    if args.dry_run:
        return

    info_line("Starting time loop…")
    t0 = time.time()
    info = run_simulation(cfg)
    t1 = time.time()

    print_summary(cfg, info, t1 - t0)
