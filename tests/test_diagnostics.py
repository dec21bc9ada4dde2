import numpy as np
import pytest

from maxwellx.diagnostics import ConsoleEnergy, EnergyHistory, SnapshotWriter, relative_drift
from maxwellx.errors import InvalidArgument
from maxwellx.pretty import init_pretty
from maxwellx.types import DiagnosticsSink, FieldState


def _state(t):
    return FieldState(e=np.full(4, t), b=np.full(2, -t), t=t)


def test_relative_drift():
    assert np.allclose(relative_drift([2.0, 2.2, 1.8]), [0.0, 0.1, -0.1])
    assert np.all(relative_drift([0.0, 1.0]) == 0.0)
    assert relative_drift([]).size == 0


def test_history_records_in_order():
    h = EnergyHistory()
    for i in range(3):
        h.record(i, _state(0.1 * i), 1.0 + i)
    assert list(h.steps) == [0, 1, 2]
    assert np.allclose(h.t, [0.0, 0.1, 0.2])
    assert np.allclose(h.relative_drift(), [0.0, 1.0, 2.0])


def test_console_energy_interval(capsys):
    init_pretty(prefer_rich=False)
    sink = ConsoleEnergy(every=2)
    for i in range(5):
        sink.record(i, _state(float(i)), 0.5)
    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.startswith("Energy:")]
    assert len(lines) == 3
    assert "(step 4," in lines[-1]
    with pytest.raises(InvalidArgument):
        ConsoleEnergy(every=0)


def test_snapshot_writer_subsamples(tmp_path):
    path = tmp_path / "nested" / "snap.npz"
    w = SnapshotWriter(str(path), save_every=3)
    for i in range(7):
        w.record(i, _state(float(i)), 1.0)
    assert len(w) == 3
    assert w.written is None
    w.close()
    assert w.written == str(path)
    data = np.load(path, allow_pickle=True)
    assert list(data["step"]) == [0, 3, 6]
    assert data["E"].shape == (3, 4) and data["B"].shape == (3, 2)
    with pytest.raises(InvalidArgument):
        SnapshotWriter(str(path), save_every=0)


def test_sinks_satisfy_protocol(tmp_path):
    for sink in (EnergyHistory(), ConsoleEnergy(), SnapshotWriter(str(tmp_path / "s.npz"))):
        assert isinstance(sink, DiagnosticsSink)
