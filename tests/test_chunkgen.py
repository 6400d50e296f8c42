"""Tests for the chunk grid rasterizer and ChunkGenerator."""
from __future__ import annotations

import logging

import numpy as np
import pytest

from meshgen import (
    ChunkGenerator,
    ComputationPanicError,
    Gradient,
    InvalidArgumentError,
    NoiseConfig,
    SizeOverflowError,
    fill_chunk,
    finite_difference_normals,
)
from meshgen import config as DEFAULTS


def _filled(gen: ChunkGenerator, offset=(0.0, 0.0, 0.0), **kwargs):
    vertices, quads, colors = gen.allocate_buffers()
    gen.fill(offset, vertices, quads, colors, **kwargs)
    return vertices, quads, colors


class TestGridLayout:
    def test_two_by_two_indices(self) -> None:
        _, quads, _ = _filled(ChunkGenerator(side_len=2))
        assert quads.shape == (4, 6)
        assert quads[0].tolist() == [3, 1, 0, 1, 3, 4]
        assert quads[1].tolist() == [6, 4, 3, 4, 6, 7]
        assert quads.min() >= 0
        assert quads.max() < 9
        assert set(quads.ravel().tolist()) == set(range(9))

    def test_every_cell_emits_two_triangles(self) -> None:
        _, quads, _ = _filled(ChunkGenerator(side_len=5))
        triangles = quads.reshape(-1, 3)
        assert triangles.shape == (50, 3)
        for tri in triangles:
            assert len(set(tri.tolist())) == 3

    @pytest.mark.parametrize("side_len", [3, 5])
    def test_vertex_quad_incidence_matches_a_regular_grid(self, side_len: int) -> None:
        _, quads, _ = _filled(ChunkGenerator(side_len=side_len))
        vert_side = side_len + 1
        counts = np.zeros(vert_side * vert_side, dtype=int)
        for quad in quads:
            for index in set(quad.tolist()):
                counts[index] += 1

        for index, count in enumerate(counts):
            row, col = divmod(index, vert_side)
            cells_by_row = (row > 0) + (row < side_len)
            cells_by_col = (col > 0) + (col < side_len)
            assert count == cells_by_row * cells_by_col

        grid = counts.reshape(vert_side, vert_side)
        assert (grid[1:-1, 1:-1] == 4).all()
        assert (grid[0, 1:-1] == 2).all() and (grid[-1, 1:-1] == 2).all()
        assert (grid[1:-1, 0] == 2).all() and (grid[1:-1, -1] == 2).all()
        assert [grid[0, 0], grid[0, -1], grid[-1, 0], grid[-1, -1]] == [1, 1, 1, 1]

    def test_triangles_split_each_cell_along_one_diagonal(self) -> None:
        side_len = 4
        vert_side = side_len + 1
        _, quads, _ = _filled(ChunkGenerator(side_len=side_len))
        for quad in quads:
            first, second = set(quad[:3].tolist()), set(quad[3:].tolist())
            corner = min(first | second)
            assert first | second == {corner, corner + 1, corner + vert_side, corner + vert_side + 1}
            assert first & second == {corner + 1, corner + vert_side}

    def test_vertex_positions_and_uvs(self) -> None:
        vertices, _, _ = _filled(ChunkGenerator(side_len=2))
        pos = vertices['pos']
        assert pos[0, 0] == -1.0 and pos[0, 2] == -1.0
        assert pos[2, 0] == 1.0 and pos[2, 2] == -1.0
        assert pos[8, 0] == 1.0 and pos[8, 2] == 1.0
        assert vertices['uv'][4].tolist() == pytest.approx([1 / 3, 1 / 3])

    def test_heights_sample_the_offset_field(self) -> None:
        noise = NoiseConfig(seed=21)
        gen = ChunkGenerator(side_len=4, height=10.0, noise=noise)
        offset = (100.0, 5.0, -40.0)
        vertices, _, _ = _filled(gen, offset)
        pos = vertices['pos']
        for i in (0, 7, 24):
            expected = noise.evaluate(pos[i, 0] + offset[0], pos[i, 2] + offset[2]) * 10.0 + 5.0
            assert pos[i, 1] == pytest.approx(expected, rel=1e-5)

    def test_neighbouring_chunks_share_their_border(self) -> None:
        gen = ChunkGenerator(side_len=4, noise=NoiseConfig(seed=2))
        left, _, _ = _filled(gen, (0.0, 0.0, 0.0))
        right, _, _ = _filled(gen, (4.0, 0.0, 0.0))
        left_edge = left['pos'].reshape(5, 5, 3)[:, -1, 1]
        right_edge = right['pos'].reshape(5, 5, 3)[:, 0, 1]
        assert np.array_equal(left_edge, right_edge)


class TestFill:
    def test_default_scenario_stays_within_height(self) -> None:
        gen = ChunkGenerator()
        vertices, quads, colors = _filled(gen)
        assert vertices.shape == (101 * 101,)
        assert quads.shape == (100 * 100, 6)
        heights = vertices['pos'][:, 1]
        assert np.isfinite(heights).all()
        assert heights.min() >= 0.0
        assert heights.max() <= DEFAULTS.DEFAULT_HEIGHT + 1e-3
        assert (colors[:, 3] == 255).all()

    def test_every_slot_is_overwritten(self) -> None:
        gen = ChunkGenerator(side_len=6)
        vertices, quads, colors = gen.allocate_buffers()
        vertices['normal'] = 9.0
        vertices['tangent'] = 9.0
        vertices['uv'] = -5.0
        quads[...] = -1
        colors[...] = 0
        gen.fill((0.0, 0.0, 0.0), vertices, quads, colors)
        assert (vertices['normal'] == 0.0).all()
        assert (vertices['tangent'] == 0.0).all()
        assert (vertices['uv'] >= 0.0).all()
        assert (quads >= 0).all()
        assert (colors[:, 3] == 255).all()

    def test_fills_are_deterministic(self) -> None:
        gen = ChunkGenerator(side_len=8, noise=NoiseConfig(seed=99, displacement=1.5))
        first = _filled(gen, (3.0, 0.0, 7.0))
        second = _filled(gen, (3.0, 0.0, 7.0))
        for a, b in zip(first, second):
            assert a.tobytes() == b.tobytes()

    def test_colors_are_optional(self) -> None:
        gen = ChunkGenerator(side_len=3)
        vertices, quads, colors = gen.allocate_buffers(with_colors=False)
        assert colors is None
        gen.fill((0.0, 0.0, 0.0), vertices, quads)
        assert np.isfinite(vertices['pos']).all()

    def test_colors_follow_the_gradient(self) -> None:
        noise = NoiseConfig(seed=4)
        gradient = Gradient.from_blend_flag([((0, 0, 255, 255), 0.0), ((0, 255, 0, 255), 1.0)], linear=False)
        vertices, quads, colors = ChunkGenerator(side_len=3).allocate_buffers()
        fill_chunk(noise, gradient, 3, 1.0, (0.0, 0.0, 0.0), vertices, quads, colors)
        assert (colors == np.array([0, 255, 0, 255], dtype=np.uint8)).all()

    def test_normal_hook_fills_unit_normals(self) -> None:
        vertices, _, _ = _filled(ChunkGenerator(side_len=6), normal_hook=finite_difference_normals)
        lengths = np.linalg.norm(vertices['normal'], axis=1)
        assert np.allclose(lengths, 1.0, atol=1e-5)
        assert (vertices['normal'][:, 1] > 0.0).all()

    def test_zero_side_length_gives_one_vertex(self) -> None:
        vertices, quads, colors = _filled(ChunkGenerator(side_len=0))
        assert vertices.shape == (1,)
        assert quads.shape == (0, 6)
        assert vertices['pos'][0, 0] == 0.0


class TestFailures:
    def test_non_finite_field_leaves_buffers_untouched(self, overflowing_noise, caplog) -> None:
        gen = ChunkGenerator(side_len=3, noise=overflowing_noise)
        vertices, quads, colors = gen.allocate_buffers()
        vertices['pos'] = 1.5
        quads[...] = 7
        colors[...] = 42
        before = (vertices.copy(), quads.copy(), colors.copy())

        with caplog.at_level(logging.ERROR), pytest.raises(ComputationPanicError):
            gen.fill((0.0, 0.0, 0.0), vertices, quads, colors)

        assert "Chunk fill failed" in caplog.text
        for original, current in zip(before, (vertices, quads, colors)):
            assert original.tobytes() == current.tobytes()

    def test_non_finite_hook_output_is_rejected(self) -> None:
        def bad_hook(positions, side_len):
            count = positions.shape[0]
            return np.full((count, 3), np.nan), np.zeros((count, 4))

        gen = ChunkGenerator(side_len=2)
        vertices, quads, colors = gen.allocate_buffers()
        with pytest.raises(ComputationPanicError):
            gen.fill((0.0, 0.0, 0.0), vertices, quads, colors, normal_hook=bad_hook)
        assert (quads == 0).all()

    def test_wrongly_shaped_hook_output_leaves_buffers_untouched(self, caplog) -> None:
        def short_tangents(positions, side_len):
            count = positions.shape[0]
            return np.zeros((count, 3)), np.zeros((count, 3))

        gen = ChunkGenerator(side_len=2)
        vertices, quads, colors = gen.allocate_buffers()
        vertices['pos'] = 7.0
        before = vertices.copy()

        with caplog.at_level(logging.ERROR), pytest.raises(InvalidArgumentError):
            gen.fill((0.0, 0.0, 0.0), vertices, quads, colors, normal_hook=short_tangents)

        assert vertices.tobytes() == before.tobytes()
        assert (quads == 0).all()
        assert "Chunk fill failed" in caplog.text

    def test_raising_hook_becomes_a_panic(self) -> None:
        def broken_hook(positions, side_len):
            raise RuntimeError("no normals today")

        gen = ChunkGenerator(side_len=2)
        vertices, quads, colors = gen.allocate_buffers()
        with pytest.raises(ComputationPanicError, match="no normals today"):
            gen.fill((0.0, 0.0, 0.0), vertices, quads, colors, normal_hook=broken_hook)
        assert (vertices['pos'] == 0.0).all()

    def test_hook_cannot_write_the_positions(self) -> None:
        def mutating_hook(positions, side_len):
            positions[:, 1] = 0.0
            count = positions.shape[0]
            return np.zeros((count, 3)), np.zeros((count, 4))

        gen = ChunkGenerator(side_len=2)
        vertices, quads, colors = gen.allocate_buffers()
        with pytest.raises(ComputationPanicError):
            gen.fill((0.0, 0.0, 0.0), vertices, quads, colors, normal_hook=mutating_hook)

    def test_mismatched_buffers_are_rejected(self) -> None:
        gen = ChunkGenerator(side_len=4)
        vertices, quads, colors = ChunkGenerator(side_len=3).allocate_buffers()
        with pytest.raises(InvalidArgumentError):
            gen.fill((0.0, 0.0, 0.0), vertices, quads, colors)

    def test_read_only_buffer_is_rejected(self) -> None:
        gen = ChunkGenerator(side_len=2)
        vertices, quads, colors = gen.allocate_buffers()
        quads.setflags(write=False)
        with pytest.raises(InvalidArgumentError):
            gen.fill((0.0, 0.0, 0.0), vertices, quads, colors)

    @pytest.mark.parametrize("offset", [(0.0, 0.0), (0.0, float('nan'), 0.0), None, "abc"])
    def test_bad_offsets_are_rejected(self, offset) -> None:
        gen = ChunkGenerator(side_len=2)
        vertices, quads, colors = gen.allocate_buffers()
        with pytest.raises(InvalidArgumentError):
            gen.fill(offset, vertices, quads, colors)

    def test_oversized_dimensions_are_rejected(self) -> None:
        gen = ChunkGenerator(side_len=2)
        with pytest.raises(SizeOverflowError):
            gen.set_dim(30000, 50.0)
        assert gen.side_len == 2

    def test_non_finite_height_is_rejected(self) -> None:
        with pytest.raises(InvalidArgumentError):
            ChunkGenerator(side_len=2, height=float('inf'))


class TestReconfiguration:
    def test_set_noise_replaces_the_whole_config(self) -> None:
        gen = ChunkGenerator(side_len=2, noise=NoiseConfig(seed=3, octaves=6))
        gen.set_noise(seed=8)
        assert gen.noise.seed == 8
        assert gen.noise.octaves == DEFAULTS.DEFAULT_OCTAVES

    def test_set_color_gradient_replaces_the_keys(self) -> None:
        gen = ChunkGenerator(side_len=2)
        gen.set_color_gradient([((10, 20, 30, 255), 0.5)], linear=False)
        assert len(gen.gradient.keys) == 1
        assert not gen.gradient.is_linear
        _, _, colors = _filled(gen)
        assert (colors == np.array([10, 20, 30, 255], dtype=np.uint8)).all()

    def test_set_dim_resizes_the_buffers(self) -> None:
        gen = ChunkGenerator(side_len=2)
        gen.set_dim(5, 12.5)
        desc = gen.geometry_desc()
        assert desc.vertex_count == 36
        assert gen.height == 12.5

    def test_from_settings(self) -> None:
        settings = {
            'side_len': 3,
            'height': 20.0,
            'seed': 17,
            'color_keys': [{'color': [0, 0, 0, 255], 't': 0.0}, {'color': [255, 0, 0, 255], 't': 1.0}],
            'blend_linear': False,
        }
        gen = ChunkGenerator.from_settings(settings)
        assert gen.side_len == 3
        assert gen.height == 20.0
        assert gen.noise.seed == 17
        assert gen.gradient.blend_mode.name == "DISCRETE"
        assert gen.gradient.keys[1].color == (255, 0, 0, 255)
