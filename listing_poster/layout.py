"""
LayoutEngine - Mosaic layout solver for the poster photo area.

Handles:
1. Exhaustive search over photo orderings and guillotine split trees
2. Area scoring against the photo container
3. Normalizing the winning layout into frame rectangles
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from .geometry import LayoutRect, NormalizedRect
from .presets import CANVAS_HEIGHT, DEFAULT_PHOTO_WIDTH, MAX_PHOTOS, MAX_PHOTO_WIDTH, MIN_PHOTO_WIDTH_RATIO

logger = logging.getLogger(__name__)


MIN_LEAF_RATIO = 0.1
SINGLE_PHOTO_MIN_WIDTH = 0.25

VERTICAL = "vertical"      # Children side by side, sharing full height
HORIZONTAL = "horizontal"  # Children stacked, sharing full width


@dataclass(frozen=True)
class LeafNode:
    """A single photo with its (floored) aspect ratio."""
    index: int
    ratio: float


@dataclass(frozen=True)
class SplitNode:
    """A guillotine cut combining two subtrees."""
    orientation: str
    left: "LayoutNode"
    right: "LayoutNode"
    ratio: float


LayoutNode = Union[LeafNode, SplitNode]


@dataclass
class LayoutSolution:
    """Best partition found and the horizontal extent it occupies."""
    rects: List[LayoutRect] = field(default_factory=list)
    used_width: float = 0.0

    @property
    def covered_area(self) -> float:
        return sum(rect.area for rect in self.rects)


def build_leaf(index: int, ratio: float) -> LeafNode:
    return LeafNode(index=index, ratio=max(ratio, MIN_LEAF_RATIO))


def build_split(orientation: str, left: LayoutNode, right: LayoutNode) -> SplitNode:
    if orientation == VERTICAL:
        ratio = left.ratio + right.ratio
    else:
        ratio = 1 / (1 / left.ratio + 1 / right.ratio)
    return SplitNode(orientation=orientation, left=left, right=right, ratio=ratio)


def build_trees(indices: Sequence[int], ratios: Sequence[float]) -> List[LayoutNode]:
    """
    Build every binary guillotine tree over an ordered index sequence.

    Each split point is chosen independently and every split is emitted in
    both orientations, vertical first.

    Args:
        indices: Ordered photo indices
        ratios: Aspect ratios indexed by photo index

    Returns:
        List of candidate trees in enumeration order
    """
    if len(indices) == 1:
        index = indices[0]
        return [build_leaf(index, ratios[index])]

    trees: List[LayoutNode] = []
    for split in range(1, len(indices)):
        left_trees = build_trees(indices[:split], ratios)
        right_trees = build_trees(indices[split:], ratios)

        for left in left_trees:
            for right in right_trees:
                trees.append(build_split(VERTICAL, left, right))
                trees.append(build_split(HORIZONTAL, left, right))

    return trees


def layout_tree(node: LayoutNode, x: float, y: float, width: float, height: float) -> List[LayoutRect]:
    """
    Lay a tree out inside a container.

    The node's ratio decides the limiting dimension; the used region is
    centered along the other axis and children split it proportionally.
    """
    if isinstance(node, LeafNode):
        return [LayoutRect(index=node.index, x=x, y=y, width=width, height=height)]

    if node.orientation == VERTICAL:
        total_ratio = node.left.ratio + node.right.ratio
        used_height = min(height, width / total_ratio)
        used_width = total_ratio * used_height
        offset_x = x + (width - used_width) / 2
        offset_y = y + (height - used_height) / 2

        left_width = used_height * node.left.ratio
        right_width = used_height * node.right.ratio

        return (
            layout_tree(node.left, offset_x, offset_y, left_width, used_height)
            + layout_tree(node.right, offset_x + left_width, offset_y, right_width, used_height)
        )

    used_width = min(width, height * node.ratio)
    used_height = used_width / node.ratio
    offset_x = x + (width - used_width) / 2
    offset_y = y + (height - used_height) / 2

    top_height = used_width / node.left.ratio
    bottom_height = used_width / node.right.ratio

    return (
        layout_tree(node.left, offset_x, offset_y, used_width, top_height)
        + layout_tree(node.right, offset_x, offset_y + top_height, used_width, bottom_height)
    )


class LayoutEngine:
    """
    Finds the mosaic arrangement that covers the most photo area.

    Features:
    - Tries every ordering of the photos (no ordering is privileged)
    - Tries every guillotine tree with vertical and horizontal cuts
    - Keeps the first best candidate, so results are deterministic
    - Left-aligns the winner and reports the width it really uses

    The search is factorial in the photo count, which is why the count is
    capped at MAX_PHOTOS.
    """

    def __init__(self, max_photos: int = MAX_PHOTOS):
        """
        Initialize layout engine.

        Args:
            max_photos: Largest photo count the exhaustive search accepts
        """
        self.max_photos = max_photos

    def solve(
        self,
        aspect_ratios: Sequence[float],
        container_width: float,
        container_height: float
    ) -> LayoutSolution:
        """
        Solve the photo mosaic for a container.

        Args:
            aspect_ratios: Width/height of each photo
            container_width: Offered width in pixels
            container_height: Offered height in pixels

        Returns:
            LayoutSolution with rects sorted by photo index

        Raises:
            ValueError: If more than max_photos ratios are given
        """
        count = len(aspect_ratios)
        if count > self.max_photos:
            raise ValueError(f"Layout supports at most {self.max_photos} photos, got {count}")

        if count == 0:
            return LayoutSolution(rects=[], used_width=container_width)

        if count == 1:
            ratio = aspect_ratios[0] or 1
            natural_width = container_height * ratio
            width = min(container_width, max(natural_width, container_width * SINGLE_PHOTO_MIN_WIDTH))
            rect = LayoutRect(index=0, x=0, y=0, width=width, height=container_height)
            return LayoutSolution(rects=[rect], used_width=width)

        best_layout: List[LayoutRect] = []
        best_score = float("-inf")
        candidates = 0

        for order in itertools.permutations(range(count)):
            for tree in build_trees(order, aspect_ratios):
                layout = layout_tree(tree, 0, 0, container_width, container_height)
                score = sum(rect.area for rect in layout)
                candidates += 1

                if score > best_score:
                    best_score = score
                    best_layout = layout

        logger.debug(f"Evaluated {candidates} layout candidates for {count} photos, best area {best_score:.1f}")

        rects = sorted(best_layout, key=lambda rect: rect.index)
        min_x = min(rect.x for rect in rects)
        max_right = max(rect.x + rect.width for rect in rects)
        bounding_width = max(max_right - min_x, 1)

        shifted = [
            LayoutRect(index=rect.index, x=rect.x - min_x, y=rect.y, width=rect.width, height=rect.height)
            for rect in rects
        ]

        return LayoutSolution(rects=shifted, used_width=min(bounding_width, container_width))

    def solve_frames(
        self,
        aspect_ratios: Sequence[float],
        max_photo_width: float = MAX_PHOTO_WIDTH,
        canvas_height: float = CANVAS_HEIGHT
    ) -> "FrameLayout":
        """
        Solve against the canonical photo column and normalize the result.

        Frames are expressed as fractions of the effective photo width,
        which is the used width clamped into
        [MIN_PHOTO_WIDTH_RATIO * max_photo_width, max_photo_width].

        Args:
            aspect_ratios: Width/height of each photo
            max_photo_width: Widest photo column allowed
            canvas_height: Height of the photo column

        Returns:
            FrameLayout with one NormalizedRect per photo, in input order
        """
        solution = self.solve(aspect_ratios, max_photo_width, canvas_height)

        used_width = solution.used_width if solution.used_width > 0 else DEFAULT_PHOTO_WIDTH
        effective_width = min(max(used_width, max_photo_width * MIN_PHOTO_WIDTH_RATIO), max_photo_width)

        by_index = {rect.index: rect for rect in solution.rects}
        layouts = []
        for index in range(len(aspect_ratios)):
            rect = by_index.get(index)
            if rect is None:
                layouts.append(NormalizedRect(0, 0, 1, 1))
                continue
            layouts.append(NormalizedRect(
                x=rect.x / effective_width,
                y=rect.y / canvas_height,
                width=rect.width / effective_width,
                height=rect.height / canvas_height,
            ).clamped())

        return FrameLayout(layouts=layouts, photo_area_width=effective_width, solution=solution)


@dataclass
class FrameLayout:
    """Normalized solver output ready to be written into photo frames."""
    layouts: List[NormalizedRect]
    photo_area_width: float
    solution: Optional[LayoutSolution] = None
