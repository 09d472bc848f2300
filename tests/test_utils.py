import numpy as np
import pytest

from src.utils import get_buffer_stats, images_are_equal, rotate_reference, validate_buffer


def test_rotate_reference_90():
    img = np.zeros((10, 20), dtype=np.uint8)  # h=10, w=20
    rotated = rotate_reference(img, 1)
    assert rotated.shape[0] == 20 and rotated.shape[1] == 10


@pytest.mark.parametrize("turns", [0, 1, 2, 3, 5, -1])
def test_rotate_reference_matches_numpy(turns):
    img = np.arange(12, dtype=np.uint8).reshape(3, 4)
    np.testing.assert_array_equal(rotate_reference(img, turns), np.rot90(img, k=-turns))


def test_rotate_reference_returns_copy():
    img = np.ones((2, 2), dtype=np.uint8)
    out = rotate_reference(img, 4)
    out[0, 0] = 9
    assert img[0, 0] == 1


def test_images_are_equal():
    a = np.arange(4, dtype=np.uint8).reshape(2, 2)
    assert images_are_equal(a, a.copy())
    assert not images_are_equal(a, a.T)
    assert not images_are_equal(a, a.astype(np.int16))
    assert images_are_equal(None, None)


def test_validate_buffer():
    assert validate_buffer(np.zeros((3, 3), dtype=np.uint8))
    assert not validate_buffer(np.zeros((3, 4), dtype=np.uint8))
    assert not validate_buffer(np.zeros((3, 3), dtype=np.float32))
    assert not validate_buffer(None)


def test_get_buffer_stats():
    buf = np.zeros((4, 4), dtype=np.uint8)
    buf[0, :2] = 255
    stats = get_buffer_stats(buf)
    assert stats["nonzero"] == 2
    assert stats["max"] == 255.0
    assert get_buffer_stats(None)["shape"] is None
