import logging

import numpy as np

from src.instrumentation import DebugImageWriter, PassEvent, chain_hooks, log_pass_timing
from src.rotation import RotationDirection


def _event(direction=RotationDirection.CLOCKWISE, ordinal=1):
    return PassEvent(
        direction=direction,
        ordinal=ordinal,
        total=1,
        elapsed=0.25,
        workers=4,
        buffer=np.zeros((4, 4), dtype=np.uint8),
    )


def test_log_pass_timing(caplog):
    caplog.set_level(logging.INFO, logger="src.instrumentation")
    log_pass_timing(_event())
    log_pass_timing(_event(RotationDirection.COUNTERCLOCKWISE))

    assert "Clockwise rotation took 0.250000 seconds with 4 threads." in caplog.messages
    assert "Counterclockwise rotation took 0.250000 seconds with 4 threads." in caplog.messages


def test_chain_hooks():
    seen = []
    assert chain_hooks(None, None) is None

    single = seen.append
    assert chain_hooks(None, single) is single

    hook = chain_hooks(lambda e: seen.append("a"), None, lambda e: seen.append("b"))
    hook(_event())
    assert seen == ["a", "b"]


def test_debug_image_writer(tmp_path):
    writer = DebugImageWriter(str(tmp_path / "dbg"))
    writer(_event(ordinal=1))
    writer(_event(RotationDirection.COUNTERCLOCKWISE, ordinal=2))

    names = sorted(p.name for p in (tmp_path / "dbg").iterdir())
    assert writer.saved == 2
    assert names[0].endswith("_001_clockwise.png")
    assert names[1].endswith("_002_counterclockwise.png")


def test_debug_image_writer_failure_is_logged(tmp_path, caplog):
    blocker = tmp_path / "file"
    blocker.write_bytes(b"not a directory")

    writer = DebugImageWriter(str(blocker / "dbg"))
    writer(_event())

    assert writer.saved == 0
    assert any("Failed to create debug directory" in m for m in caplog.messages)
