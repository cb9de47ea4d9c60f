import pytest

from listing_poster.layout import LayoutEngine, build_trees
from listing_poster.presets import CANVAS_HEIGHT, MAX_PHOTO_WIDTH

EPS = 1e-6


@pytest.fixture
def engine():
    return LayoutEngine()


def shapes(solution):
    return sorted((round(r.width, 3), round(r.height, 3)) for r in solution.rects)


def test_no_photos_uses_full_width(engine):
    solution = engine.solve([], 1000, 600)
    assert solution.rects == []
    assert solution.used_width == 1000


def test_single_photo_fills_height(engine):
    solution = engine.solve([1.5], 1000, 600)
    rect = solution.rects[0]
    assert (rect.x, rect.y) == (0, 0)
    assert rect.height == 600
    assert rect.width == pytest.approx(900)
    assert solution.used_width == pytest.approx(900)


def test_single_photo_width_is_clamped(engine):
    assert engine.solve([0.1], 1000, 600).rects[0].width == pytest.approx(250)
    assert engine.solve([3.0], 1000, 600).rects[0].width == pytest.approx(1000)
    # Zero ratio is treated as square
    assert engine.solve([0], 1000, 600).rects[0].width == pytest.approx(600)


def test_two_photos_beat_both_baselines(engine):
    solution = engine.solve([1.0, 1.78], 1000, 600)

    side_by_side_height = min(600, 1000 / 2.78)
    side_by_side = 2.78 * side_by_side_height ** 2
    stacked_width = min(1000, 600 / (1 + 1 / 1.78))
    stacked = stacked_width * 600

    assert len(solution.rects) == 2
    assert solution.covered_area >= side_by_side - 1
    assert solution.covered_area >= stacked - 1
    assert solution.covered_area == pytest.approx(359712, rel=1e-3)


@pytest.mark.parametrize("ratios", [
    [1.0, 1.78],
    [0.75, 1.5, 1.0],
    [0.5, 2.0, 1.0, 1.33],
])
def test_rects_stay_inside_container(engine, ratios):
    solution = engine.solve(ratios, 1000, 600)

    assert [r.index for r in solution.rects] == list(range(len(ratios)))
    assert min(r.x for r in solution.rects) == pytest.approx(0)
    assert solution.used_width <= 1000
    for rect in solution.rects:
        assert rect.width > 0 and rect.height > 0
        assert rect.x + rect.width <= solution.used_width + EPS
        assert rect.y >= -EPS
        assert rect.y + rect.height <= 600 + EPS


def test_input_order_does_not_change_result(engine):
    forward = engine.solve([1.0, 1.78], 1000, 600)
    backward = engine.solve([1.78, 1.0], 1000, 600)
    assert shapes(forward) == shapes(backward)

    a = engine.solve([0.75, 1.5, 1.0], 1000, 600)
    b = engine.solve([1.0, 0.75, 1.5], 1000, 600)
    assert a.covered_area == pytest.approx(b.covered_area)


def test_degenerate_ratio_is_floored_not_rejected(engine):
    solution = engine.solve([0.001, 1.0], 1000, 600)
    assert len(solution.rects) == 2
    assert all(r.width > 0 for r in solution.rects)


def test_more_than_four_photos_rejected(engine):
    with pytest.raises(ValueError):
        engine.solve([1.0] * 5, 1000, 600)


def test_tree_count_for_three_photos():
    # Two split points, each combined with the 2 trees of the pair, both orientations
    assert len(build_trees((0, 1, 2), [1.0, 1.0, 1.0])) == 8


def test_solve_frames_normalizes_into_photo_area(engine):
    frame_layout = engine.solve_frames([1.0, 1.78, 0.75])

    assert MAX_PHOTO_WIDTH * 0.25 <= frame_layout.photo_area_width <= MAX_PHOTO_WIDTH
    assert len(frame_layout.layouts) == 3
    for rect in frame_layout.layouts:
        assert rect.is_within_bounds()


def test_solve_frames_single_square(engine):
    frame_layout = engine.solve_frames([1.0])
    assert frame_layout.photo_area_width == pytest.approx(CANVAS_HEIGHT)
    rect = frame_layout.layouts[0]
    assert (rect.x, rect.y) == (0, 0)
    assert rect.width == pytest.approx(1)
    assert rect.height == pytest.approx(1)


@pytest.mark.parametrize("ratios", [
    [1.0, 1.78],
    [0.75, 1.5, 1.0],
    [0.5, 2.0, 1.0, 1.33],
    [3.0, 0.3],
])
def test_solved_frames_never_leave_photo_area(engine, ratios):
    frame_layout = engine.solve_frames(ratios)

    for rect in frame_layout.layouts:
        assert rect.x >= 0 and rect.y >= 0
        assert rect.right <= 1 + EPS
        assert rect.bottom <= 1 + EPS
        assert rect == rect.rounded()
