import numpy as np
import pytest

from camera_bridge.services.camera_frame import CameraFrame, mix_channels, nv21_to_rgba


def _rgba(r, g, b, a=255, shape=(2, 2)):
    image = np.empty(shape + (4,), dtype=np.uint8)
    image[..., 0] = r
    image[..., 1] = g
    image[..., 2] = b
    image[..., 3] = a
    return image


def test_uniform_mid_gray_converts_to_uniform_gray_rgba():
    yuv = np.full((6, 4), 128, dtype=np.uint8)

    rgba = nv21_to_rgba(yuv)

    assert rgba.shape == (4, 4, 4)
    assert np.all(rgba[..., 3] == 255)
    assert np.all(rgba[..., 0] == rgba[..., 1])
    assert np.all(rgba[..., 1] == rgba[..., 2])
    assert len(np.unique(rgba[..., 0])) == 1


def test_uniform_mid_gray_channel_mix_only_changes_blue():
    yuv = np.full((6, 4), 128, dtype=np.uint8)
    frame = CameraFrame(yuv, 4, 4)

    gray_level = int(nv21_to_rgba(yuv)[0, 0, 0])
    out = frame.rgba()

    expected_blue = min(255, 2 * max(0, min(255, 2 * gray_level) - gray_level))
    assert out.shape == (4, 4, 3)
    assert np.all(out[..., 0] == gray_level)
    assert np.all(out[..., 1] == gray_level)
    assert np.all(out[..., 2] == expected_blue)


def test_mix_channels_doubles_blue_plus_green_minus_red():
    out = mix_channels(_rgba(10, 20, 30))
    assert out.shape == (2, 2, 3)
    assert tuple(out[0, 0]) == (10, 20, 80)


def test_mix_channels_saturates_each_step():
    # B + G clips at 255 before red is subtracted.
    assert tuple(mix_channels(_rgba(0, 200, 100))[0, 0]) == (0, 200, 255)
    assert tuple(mix_channels(_rgba(100, 200, 100))[0, 0]) == (100, 200, 255)
    # B + G - R clips at 0.
    assert tuple(mix_channels(_rgba(250, 0, 10))[0, 0]) == (250, 0, 0)


def test_mix_channels_drops_alpha():
    out = mix_channels(_rgba(1, 2, 3, a=7))
    assert out.shape[-1] == 3
    assert 7 not in out[0, 0]


def test_conversion_is_deterministic():
    rng = np.random.default_rng(1234)
    yuv = rng.integers(0, 256, size=(24, 16), dtype=np.uint8)

    first = CameraFrame(yuv.copy(), 16, 16).rgba()
    second = CameraFrame(yuv.copy(), 16, 16).rgba()
    frame = CameraFrame(yuv, 16, 16)
    repeated = [frame.rgba() for _ in range(3)]

    assert np.array_equal(first, second)
    for image in repeated:
        assert np.array_equal(first, image)


def test_gray_is_a_view_over_the_luma_plane():
    yuv = np.zeros((6, 4), dtype=np.uint8)
    yuv[:4] = 77
    yuv[4:] = 200
    frame = CameraFrame(yuv, 4, 4)

    gray = frame.gray()
    assert gray.shape == (4, 4)
    assert np.all(gray == 77)

    yuv[0, 0] = 5
    assert gray[0, 0] == 5


def test_frame_rejects_mismatched_plane_shape():
    with pytest.raises(ValueError):
        CameraFrame(np.zeros((4, 4), dtype=np.uint8), 4, 4)


def test_rgba_reflects_slot_updates():
    yuv = np.full((6, 4), 128, dtype=np.uint8)
    frame = CameraFrame(yuv, 4, 4)
    before = frame.rgba().copy()

    yuv[:4] = 200
    after = frame.rgba()

    assert not np.array_equal(before, after)
