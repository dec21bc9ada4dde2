import pytest

from maxwellx.errors import InvalidArgument
from maxwellx.io_config import config_from_dict, read_toml

TOML_TXT = b"""
[sim]
duration = 5.0
time_scale = 1e-9
max_steps = 300
order = 3

[grid]
nx = 16
ny = 8
lx = 2.0
ly = 1.0
dirichlet = ["left"]

[materials]
epsilon0 = 1.0
mu0 = 1.0
[materials.dielectric_sphere]
center = [1.0, 0.5]
radius = 0.2
permittivity = 4.0

[source]
problem = 1
frequency = 1e8
[source.current_ring]
center = [0.5, 0.5]
inner_radius = 0.1
outer_radius = 0.2
current = 2.0
frequency = 1e8

[ic]
kind = "zero"

[output]
outdir = "outputs"
outfile = "out.npz"
"""


def test_read_toml(tmp_path):
    p = tmp_path / "case.toml"
    p.write_bytes(TOML_TXT)
    cfg = read_toml(str(p))
    assert cfg.sim.order == 3
    assert cfg.sim.duration_seconds == pytest.approx(5e-9)
    assert cfg.grid.nx == 16 and cfg.grid.dirichlet == ["left"]
    assert cfg.materials.dielectric_sphere.center == (1.0, 0.5)
    assert cfg.materials.magnetic_shell is None
    assert cfg.source.current_ring.current == 2.0
    assert cfg.source.has_current
    assert cfg.output.outfile == "out.npz"


def test_defaults():
    cfg = config_from_dict({})
    assert cfg.sim.order == 1 and cfg.sim.max_steps == 100
    assert cfg.sim.cfl_safety == 0.95
    assert cfg.grid.dirichlet == []
    assert cfg.ic.kind == "zero"


@pytest.mark.parametrize("raw", [
    {"sim": {"order": 5}},
    {"sim": {"max_steps": 0}},
    {"sim": {"duration": -1.0}},
    {"ic": {"kind": "gaussian"}},
    {"ic": {"mode": [1, 2, 3]}},
    {"materials": {"dielectric_sphere": {"center": [0.0], "radius": 1.0, "permittivity": 2.0}}},
    {"materials": {"epsilon0": 0.0}},
])
def test_invalid_values(raw):
    with pytest.raises(InvalidArgument):
        config_from_dict(raw)


def test_unknown_key_is_rejected():
    with pytest.raises(TypeError):
        config_from_dict({"sim": {"nt": 3}})


def test_parse_error_exits(tmp_path):
    p = tmp_path / "bad.toml"
    p.write_text("[sim\nduration = 1\n")
    with pytest.raises(SystemExit):
        read_toml(str(p))
