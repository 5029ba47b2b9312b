"""Tests for target shape generation."""

import numpy as np
import pytest

from swarm_engine.config import FingerMessage, SwarmConfig
from swarm_engine.shapes import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    CHRISTMAS_TREE,
    MISSING_PHOTO,
    PHOTO_FRAME,
    SPECIAL_LOVE,
    TEXT_SCALE,
    VORTEX,
    ShapeLibrary,
    christmas_tree_shape,
    generate_all_shapes,
    photo_frame_shape,
    render_text,
    text_shape,
    vortex_shape,
)


def rng(seed=0):
    return np.random.default_rng(seed)


class TestTextShape:
    def test_text_produces_points(self):
        points = text_shape(["HELLO"], 150)
        assert points.ndim == 2 and points.shape[1] == 3
        assert len(points) > 100
        assert points.dtype == np.float32

    def test_flat_on_z(self):
        points = text_shape(["HI"], 120)
        assert np.all(points[:, 2] == 0)

    def test_within_canvas_bounds(self):
        points = text_shape(["WIDE TEXT LINE"], 200)
        assert np.all(np.abs(points[:, 0]) <= CANVAS_WIDTH / 2 * TEXT_SCALE)
        assert np.all(np.abs(points[:, 1]) <= CANVAS_HEIGHT / 2 * TEXT_SCALE)

    def test_centered(self):
        points = text_shape(["CENTER"], 150)
        assert abs(points[:, 0].mean()) < 10
        assert abs(points[:, 1].mean()) < 10

    def test_raster_order(self):
        points = text_shape(["AB", "CD"], 120)
        # Rows top to bottom, so y never increases along the array
        assert np.all(np.diff(points[:, 1]) <= 0)

    def test_deterministic(self):
        a = text_shape(["SAME"], 100)
        b = text_shape(["SAME"], 100)
        np.testing.assert_array_equal(a, b)

    def test_coarser_stride_fewer_points(self):
        fine = text_shape(["STRIDE"], 150, stride=2)
        coarse = text_shape(["STRIDE"], 150, stride=6)
        assert len(coarse) < len(fine)

    def test_lowercase_rendered_upper(self):
        np.testing.assert_array_equal(text_shape(["abc"], 100), text_shape(["ABC"], 100))

    def test_empty_lines(self):
        points = text_shape([], 100)
        assert points.shape == (0, 3)

    @pytest.mark.parametrize("a, b", [
        ("HELLO", "HELLP"),
        ("LOVE ❤", "LOVE ★"),  # heart vs star
        ("★", "☆"),            # filled vs outline star
        ("CAF\u00c9", "CAFE"),
    ])
    def test_one_character_changes_shape(self, a, b):
        assert not np.array_equal(text_shape([a], 110), text_shape([b], 110))

    def test_heart_drawn(self):
        heart = text_shape(["❤"], 100)
        assert len(heart) > 50
        assert abs(heart[:, 0].mean()) < 10

    def test_variation_selector_takes_no_space(self):
        np.testing.assert_array_equal(
            text_shape(["NAJMITAAA \u2764\ufe0f"], 110), text_shape(["NAJMITAAA ❤"], 110)
        )

    def test_unknown_glyph_gets_a_box(self):
        plain = text_shape(["HI"], 100)
        boxed = text_shape(["HI★"], 100)
        assert len(boxed) > len(plain)

    def test_non_ascii_space_is_a_space(self):
        np.testing.assert_array_equal(text_shape(["A\u00a0B"], 100), text_shape(["A B"], 100))

    def test_more_lines_more_points(self):
        one = text_shape(["LINE"], 100)
        two = text_shape(["LINE", "LINE"], 100)
        assert len(two) > len(one)

    def test_read_only(self):
        points = text_shape(["RO"], 100)
        with pytest.raises(ValueError):
            points[0, 0] = 1.0

    def test_render_canvas_shape(self):
        canvas = render_text(["X"], 100)
        assert canvas.shape == (CANVAS_HEIGHT, CANVAS_WIDTH, 3)
        assert canvas.dtype == np.uint8
        assert canvas[:, :, 2].max() == 255


class TestVortex:
    def test_length(self):
        assert vortex_shape(1000, rng()).shape == (1000, 3)

    def test_band_radius(self):
        points = vortex_shape(5000, rng())
        r = np.hypot(points[:, 0], points[:, 1])
        assert r.min() >= 160 - 1e-3
        assert r.max() < 260 + 1e-3

    def test_depth_jitter(self):
        points = vortex_shape(5000, rng())
        assert np.all(np.abs(points[:, 2]) <= 25 + 1e-3)

    def test_spiral_angle_order(self):
        points = vortex_shape(1000, rng())
        angles = np.arctan2(points[:, 1], points[:, 0])
        # First point sits on the positive x axis
        assert angles[0] == pytest.approx(0.0, abs=1e-6)

    def test_seeded(self):
        np.testing.assert_array_equal(vortex_shape(500, rng(3)), vortex_shape(500, rng(3)))


class TestChristmasTree:
    def test_length(self):
        assert christmas_tree_shape(2000, rng()).shape == (2000, 3)

    def test_trunk(self):
        points = christmas_tree_shape(2000, rng())
        trunk = points[:500]
        assert np.all(np.abs(trunk[:, 0]) <= 4)
        assert np.all(np.abs(trunk[:, 2]) <= 4)
        assert np.all(trunk[:, 1] <= -40 + 1e-4)
        assert np.all(trunk[:, 1] >= -55 - 1e-4)

    def test_star(self):
        points = christmas_tree_shape(2000, rng())
        star = points[500:800]
        np.testing.assert_allclose(star[:, 1], 48.0)
        assert np.all(np.hypot(star[:, 0], star[:, 2]) <= 5 + 1e-4)

    def test_canopy_height(self):
        canopy = christmas_tree_shape(5000, rng())[800:]
        assert canopy[:, 1].max() <= 45 + 1e-4
        assert canopy[:, 1].min() >= -29 - 1e-4

    def test_small_counts_truncate_trunk(self):
        points = christmas_tree_shape(100, rng())
        assert points.shape == (100, 3)
        assert np.all(points[:, 1] <= -40 + 1e-4)

    def test_partial_star(self):
        points = christmas_tree_shape(600, rng())
        np.testing.assert_allclose(points[500:, 1], 48.0)


class TestPhotoFrame:
    def test_length(self):
        assert photo_frame_shape(1000, rng()).shape == (1000, 3)

    def test_edge_points_on_border(self):
        points = photo_frame_shape(1000, rng())
        edge = points[:700]
        extent = np.maximum(np.abs(edge[:, 0]), np.abs(edge[:, 1]))
        assert extent.min() >= 36 - 1e-4
        assert extent.max() <= 44 + 1e-4

    def test_top_side_first(self):
        points = photo_frame_shape(1000, rng())
        top = points[:250]
        assert np.all(np.abs(top[:, 1] + 40) <= 4 + 1e-4)

    def test_halo(self):
        points = photo_frame_shape(1000, rng())
        halo = points[700:]
        r = np.hypot(halo[:, 0], halo[:, 1])
        assert r.min() >= 60 - 1e-3
        assert r.max() < 100 + 1e-3
        assert np.all(np.abs(halo[:, 2]) <= 15 + 1e-4)


class TestShapeLibrary:
    @pytest.fixture(scope="class")
    def library(self):
        return generate_all_shapes(SwarmConfig(particle_count=2000, seed=1))

    def test_all_names_present(self, library):
        expected = {VORTEX, CHRISTMAS_TREE, PHOTO_FRAME, SPECIAL_LOVE, MISSING_PHOTO}
        expected |= {f"finger_{i}" for i in range(1, 11)}
        assert set(library) == expected

    def test_procedural_lengths_match_particle_count(self, library):
        for name in (VORTEX, CHRISTMAS_TREE, PHOTO_FRAME):
            assert len(library[name]) == 2000

    def test_text_shapes_nonempty(self, library):
        for i in range(1, 11):
            assert len(library[f"finger_{i}"]) > 0
        assert len(library[SPECIAL_LOVE]) > 0

    def test_shapes_read_only(self, library):
        for points in library.values():
            assert not points.flags.writeable

    def test_library_is_immutable(self, library):
        with pytest.raises(TypeError):
            library["new"] = np.zeros((1, 3), dtype=np.float32)

    def test_missing_key(self, library):
        assert library.get("finger_11") is None

    def test_summary(self, library):
        summary = library.summary()
        assert summary[VORTEX]["points"] == 2000
        assert len(summary[VORTEX]["bounds"]) == 3

    def test_only_configured_messages(self):
        config = SwarmConfig(particle_count=200, messages={1: FingerMessage(("ONE",), 100)})
        library = generate_all_shapes(config)
        assert "finger_1" in library
        assert "finger_2" not in library

    def test_seeded_generation_reproducible(self):
        config = SwarmConfig(particle_count=300, seed=5)
        a = generate_all_shapes(config)
        b = generate_all_shapes(config)
        np.testing.assert_array_equal(a[VORTEX], b[VORTEX])
        np.testing.assert_array_equal(a[CHRISTMAS_TREE], b[CHRISTMAS_TREE])

    def test_wraps_plain_dict(self):
        library = ShapeLibrary({"dot": np.zeros((1, 3))})
        assert library["dot"].dtype == np.float32
        assert library.summary()["dot"]["points"] == 1

    def test_empty_shape_summary(self):
        library = ShapeLibrary({"none": np.zeros((0, 3))})
        assert library.summary()["none"] == {"points": 0, "bounds": []}
