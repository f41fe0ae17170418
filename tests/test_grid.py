import numpy as np
import pytest

from uniform_grid.decimate import decimate
from uniform_grid.geometry import GridGeometry
from uniform_grid.grid import UniformGrid
from uniform_grid.kinds import INDEX, SCALAR, VECTOR, VORTON, kind_for


def _geo(shape=(4, 4, 4)) -> GridGeometry:
    return GridGeometry((0, 0, 0), tuple(n - 1 for n in shape), shape)


def test_offsets_scalar_grid_statistics():
    grid = UniformGrid(_geo())
    for off in range(grid.size()):
        grid[off] = off
    assert len(grid) == 64
    assert grid.statistics() == (0.0, 63.0)


def test_position_and_offset_access_agree():
    grid = UniformGrid(GridGeometry.from_bounds((-1, -1, -1), (1, 2, 3), 512, True), INDEX)
    geo = grid.geometry
    centres = geo.vertex_positions() + 0.5 * geo.cell_spacing
    for off, pos in enumerate(centres):
        grid.set_at_position(pos, off)
    np.testing.assert_array_equal(grid.contents, np.arange(grid.size()))
    assert grid.at_position(centres[17]) == grid[17] == 17


def test_vector_reads_are_views():
    grid = UniformGrid(_geo(), VECTOR)
    grid[5][1] = 2.5
    np.testing.assert_array_equal(grid[5], [0.0, 2.5, 0.0])
    grid.at_position((1.5, 1.5, 0.5))[:] = (1, 2, 3)
    np.testing.assert_array_equal(grid[grid.geometry.offset_from_indices((1, 1, 0))], [1, 2, 3])


def test_bad_offsets_rejected():
    grid = UniformGrid(_geo())
    with pytest.raises(ValueError):
        grid[64]
    with pytest.raises(ValueError):
        grid[-1] = 3.0
    with pytest.raises(ValueError):
        grid[1.5]


def test_vector_statistics_per_component():
    grid = UniformGrid(_geo((2, 2, 2)), VECTOR)
    grid.contents[:] = [[1, -2, 3], [-4, 5, 0], [0, 0, 9], [2, 2, 2],
                        [0, 0, 0], [0, -7, 0], [3, 0, 0], [0, 0, -1]]
    lo, hi = grid.statistics()
    np.testing.assert_array_equal(lo, [-4, -7, -1])
    np.testing.assert_array_equal(hi, [3, 5, 9])


def test_vorton_statistics_fields_independent():
    grid = UniformGrid(_geo((2, 2, 2)), VORTON)
    grid.contents["position"] = np.arange(24).reshape(8, 3)
    grid.contents["vorticity"][3] = (-1, 0, 4)
    before = grid.contents.copy()
    lo, hi = grid.statistics()
    np.testing.assert_array_equal(lo["position"], [0, 1, 2])
    np.testing.assert_array_equal(hi["position"], [21, 22, 23])
    np.testing.assert_array_equal(lo["vorticity"], [-1, 0, 0])
    np.testing.assert_array_equal(hi["vorticity"], [0, 0, 4])
    # statistics never mutate storage
    assert grid.contents.tobytes() == before.tobytes()


@pytest.mark.parametrize("kind", [SCALAR, INDEX, VECTOR, VORTON])
def test_reduce_starts_from_identity(kind):
    lo, hi = kind.reduce(kind.allocate(0))
    ident_lo, ident_hi = kind.identity()
    assert np.asarray(lo).tobytes() == np.asarray(ident_lo).tobytes()
    assert np.asarray(hi).tobytes() == np.asarray(ident_hi).tobytes()


def test_statistics_independent_of_order():
    rng = np.random.default_rng(3)
    grid = UniformGrid(_geo((5, 6, 7)), VECTOR)
    grid.contents[:] = rng.normal(size=(grid.size(), 3))
    lo, hi = grid.statistics()
    grid.contents[:] = grid.contents[rng.permutation(grid.size())]
    lo2, hi2 = grid.statistics()
    np.testing.assert_array_equal(lo, lo2)
    np.testing.assert_array_equal(hi, hi2)


def test_like_resize_and_clear():
    grid = UniformGrid(_geo(), SCALAR, fill=1.5)
    index_map = UniformGrid.like(grid, INDEX)
    assert index_map.geometry == grid.geometry
    assert index_map.contents.dtype == np.uint32

    grid.resize(_geo((3, 3, 3)))
    assert grid.size() == 27
    assert np.all(grid.contents == 0)
    np.testing.assert_array_equal(grid.geometry.cell_spacing, [1, 1, 1])

    grid.clear(4.0)
    assert grid.statistics() == (4.0, 4.0)


def test_as_volume_is_z_major():
    grid = UniformGrid(_geo((2, 3, 4)), INDEX)
    grid.contents[:] = np.arange(grid.size())
    vol = grid.as_volume()
    assert vol.shape == (4, 3, 2)
    assert vol[3, 2, 1] == grid.geometry.offset_from_indices((1, 2, 3))


@pytest.mark.parametrize("kind", [SCALAR, VECTOR, VORTON, INDEX])
def test_save_load(tmp_path, kind):
    grid = UniformGrid(_geo((3, 4, 5)), kind)
    grid.contents[...] = 1
    out = grid.save(tmp_path / "grid")
    assert out.name == "grid.npz"
    back = UniformGrid.load(out)
    assert back.kind is kind
    assert back.geometry == grid.geometry
    assert back.contents.tobytes() == grid.contents.tobytes()


def test_unknown_kind():
    with pytest.raises(ValueError):
        kind_for("tensor")


def test_decimation_ratio():
    src = UniformGrid(GridGeometry.from_bounds((-1, -1.5, -2.5), (1, 1.5, 2.5), 1024, True))
    for factor in (1, 2, 4):
        coarse = decimate(src, factor)
        np.testing.assert_array_equal(coarse.geometry.num_cells, src.geometry.num_cells // factor)
        np.testing.assert_array_equal(coarse.geometry.min_corner, src.geometry.min_corner)
        np.testing.assert_array_equal(coarse.geometry.max_corner, src.geometry.max_corner)
        assert coarse.kind is src.kind


def test_decimate_sample_policy():
    src = UniformGrid(_geo((5, 5, 5)), INDEX)
    src.contents[:] = np.arange(src.size())
    coarse = decimate(src, 2, policy="sample")
    assert coarse.geometry.shape == (3, 3, 3)
    for off in range(coarse.size()):
        idx = np.array(coarse.geometry.indices_from_offset(off))
        assert coarse[off] == src.geometry.offset_from_indices(idx * 2)

    empty = decimate(src, 2)
    assert np.all(empty.contents == 0)

    with pytest.raises(ValueError):
        decimate(src, 2, policy="average")


def test_decimate_sample_non_dividing_factor_picks_nearest_vertex():
    src = UniformGrid(_geo((6, 6, 6)), INDEX)
    src.contents[:] = np.arange(src.size())
    with pytest.warns(UserWarning):
        coarse = decimate(src, 2, policy="sample")
    assert coarse.geometry.shape == (3, 3, 3)

    last = coarse.geometry.offset_from_indices((2, 2, 2))
    assert src.geometry.indices_from_offset(int(coarse[last])) == (5, 5, 5)

    src_pos = src.geometry.vertex_positions()[coarse.contents.astype(np.int64)]
    gap = np.abs(src_pos - coarse.geometry.vertex_positions())
    assert np.all(gap <= 0.5 * src.geometry.cell_spacing)
