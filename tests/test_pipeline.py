import os

import numpy as np
import pytest

from src.config import HeaderMode, RotationConfig, RotationRequest
from src.errors import FormatError
from src.pipeline import rotate_file
from src.rotation import RotationDirection


def write_pgm(path, width, height, comment=b"# pipeline test"):
    header = b"P5\n" + comment + b"\n" + f"{width} {height}\n255\n".encode("ascii")
    image = (np.arange(width * height) % 200 + 1).astype(np.uint8).reshape(height, width)
    path.write_bytes(header + image.tobytes())
    return header, image


def read_samples(path, header_len, side):
    data = path.read_bytes()
    return data[:header_len], np.frombuffer(data[header_len:], dtype=np.uint8).reshape(side, side)


def test_rotate_file_clockwise(tmp_path):
    src, dst = tmp_path / "in.pgm", tmp_path / "out.pgm"
    header, image = write_pgm(src, 3, 2)

    config = RotationConfig(header_size=len(header), verify=True)
    report = rotate_file(src, dst, RotationRequest(clockwise=1), config)

    padded = np.zeros((3, 3), dtype=np.uint8)
    padded[:2, :3] = image

    out_header, samples = read_samples(dst, len(header), 3)
    assert out_header == b"P5\n# pipeline test\n3 3\n255\n"
    np.testing.assert_array_equal(samples, np.rot90(padded, k=-1))

    assert report.side == 3
    assert (report.input_width, report.input_height) == (3, 2)
    assert report.passes == [RotationDirection.CLOCKWISE]
    assert report.verified is True


def test_rotate_file_parallel_mixed_request(tmp_path):
    src, dst = tmp_path / "in.pgm", tmp_path / "out.pgm"
    header, image = write_pgm(src, 150, 200)

    config = RotationConfig(parallelism=4, header_size=len(header), reduce_turns=False, verify=True)
    report = rotate_file(src, dst, RotationRequest(clockwise=3, counterclockwise=6), config)

    padded = np.zeros((200, 200), dtype=np.uint8)
    padded[:, :150] = image

    out_header, samples = read_samples(dst, len(header), 200)
    assert out_header.endswith(b"200 200\n255\n")
    np.testing.assert_array_equal(samples, np.rot90(padded, k=3))
    assert len(report.passes) == 9
    assert report.verified is True


def test_rotate_file_no_rotation_round_trip(tmp_path):
    src, dst = tmp_path / "in.pgm", tmp_path / "out.pgm"
    header, _ = write_pgm(src, 4, 4)

    rotate_file(src, dst, RotationRequest(), RotationConfig(header_size=len(header)))

    assert dst.read_bytes() == src.read_bytes()


def test_structured_mode_handles_digit_growth(tmp_path):
    src, dst = tmp_path / "in.pgm", tmp_path / "out.pgm"
    write_pgm(src, 9, 12)

    config = RotationConfig(header_mode=HeaderMode.STRUCTURED)
    rotate_file(src, dst, RotationRequest(counterclockwise=1), config)

    expected_header = b"P5\n# pipeline test\n12 12\n255\n"
    out_header, _ = read_samples(dst, len(expected_header), 12)
    assert out_header == expected_header


def test_legacy_mode_digit_growth_fails_before_writing(tmp_path):
    src, dst = tmp_path / "in.pgm", tmp_path / "out.pgm"
    header, _ = write_pgm(src, 9, 12)

    with pytest.raises(FormatError):
        rotate_file(src, dst, RotationRequest(clockwise=1), RotationConfig(header_size=len(header)))
    assert not dst.exists()


def test_truncated_input(tmp_path):
    src, dst = tmp_path / "in.pgm", tmp_path / "out.pgm"
    header, _ = write_pgm(src, 4, 4)
    src.write_bytes(src.read_bytes()[:-3])

    with pytest.raises(FormatError):
        rotate_file(src, dst, RotationRequest(clockwise=1), RotationConfig(header_size=len(header)))


def test_missing_input(tmp_path):
    with pytest.raises(OSError):
        rotate_file(tmp_path / "nope.pgm", tmp_path / "out.pgm", RotationRequest())


def test_debug_save_writes_one_image_per_pass(tmp_path):
    src, dst = tmp_path / "in.pgm", tmp_path / "out.pgm"
    header, _ = write_pgm(src, 4, 4)
    debug_dir = tmp_path / "debug"

    config = RotationConfig(header_size=len(header), debug_save=True, debug_dir=str(debug_dir))
    rotate_file(src, dst, RotationRequest(clockwise=1, counterclockwise=1), config)

    names = sorted(os.listdir(debug_dir))
    assert len(names) == 2
    assert all(name.endswith(".png") for name in names)


def test_unwritable_output_fails_before_rotating(tmp_path):
    src = tmp_path / "in.pgm"
    header, _ = write_pgm(src, 4, 4)
    passes = []

    with pytest.raises(OSError):
        rotate_file(
            src,
            tmp_path / "no_such_dir" / "out.pgm",
            RotationRequest(clockwise=1),
            RotationConfig(header_size=len(header)),
            on_pass=passes.append,
        )
    assert passes == []
