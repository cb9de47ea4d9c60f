"""
ManipulationController - direct manipulation of photo frames.

Translates pointer and touch events into new normalized rectangles:
1. Drag a frame (with snapping to edges and other frames)
2. Resize from the corner handle (width drives, height follows the photo)
3. Two-finger pinch around the frame centre

Only one gesture is active at a time. The active gesture is a single
value, so "dragging while pinching" cannot be represented.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .frames import PhotoFrame, find_frame, focus_frame
from .geometry import NormalizedRect, clamp, clamp_position

logger = logging.getLogger(__name__)


SNAP_THRESHOLD = 0.02
MIN_FRAME_WIDTH_PX = 80
MIN_WIDTH_FRACTION = 0.04
MAX_WIDTH = 1.0
PINCH_MIN_SCALE = 0.5

Point = Tuple[float, float]


@dataclass(frozen=True)
class ContainerMetrics:
    """Pixel size of the photo area the pointer positions refer to."""
    width: float
    height: float

    @property
    def aspect(self) -> float:
        return self.width / self.height

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class DragGesture:
    frame_id: str
    pointer_id: int
    start_x: float
    start_y: float
    initial_rect: NormalizedRect


@dataclass(frozen=True)
class ResizeGesture:
    frame_id: str
    pointer_id: int
    start_x: float
    start_y: float
    initial_rect: NormalizedRect


@dataclass(frozen=True)
class PinchGesture:
    frame_id: str
    initial_distance: float
    initial_width: float
    initial_height: float
    center_x: float
    center_y: float


Gesture = Union[DragGesture, ResizeGesture, PinchGesture]


def normalized_height_from_width(width: float, aspect_ratio: float, container_aspect: float) -> float:
    """Height (as a fraction) that keeps the photo's aspect for a given width fraction."""
    if not math.isfinite(width) or width < 0:
        return 0.0
    if not math.isfinite(aspect_ratio) or aspect_ratio <= 0 or not math.isfinite(container_aspect) or container_aspect <= 0:
        return clamp(width, 0, 1)
    return clamp(width * (container_aspect / aspect_ratio), 0, 1)


def snap_coordinate(value: float, size: float, axis: str, frame_id: str, frames: Sequence[PhotoFrame]) -> float:
    """
    Snap a coordinate to the nearest alignment candidate within SNAP_THRESHOLD.

    Candidates are the container edges (0 and 1 - size) and, for every other
    frame, its near edge, far edge, and both edges offset by size so the
    moving frame can butt up against it from either side. The first
    candidate in that order within range wins and is returned exactly.
    """
    candidates = [0.0, 1 - size]

    for frame in frames:
        if frame.id == frame_id:
            continue
        other = frame.layout
        if axis == "x":
            start, extent = other.x, other.width
        else:
            start, extent = other.y, other.height
        candidates.extend([start, start + extent, start - size, start + extent - size])

    for candidate in candidates:
        if abs(value - candidate) <= SNAP_THRESHOLD:
            return candidate
    return value


class ManipulationController:
    """
    Pointer/touch state machine for the photo frames of one preview.

    The controller writes straight into each frame's `layout` on every move;
    there is no separate commit step. Every write goes through `_commit`,
    which clamps into the photo area and rounds to a fixed precision.
    """

    def __init__(
        self,
        frames: List[PhotoFrame],
        metrics: Optional[ContainerMetrics] = None,
        on_change: Optional[Callable[[PhotoFrame], None]] = None,
        on_focus: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize controller.

        Args:
            frames: Frames list shared with the owner; focus reorders it in place
            metrics: Current photo area size in pixels
            on_change: Called after a frame's layout was written
            on_focus: Called with the frame id when a frame is brought to front
        """
        self.frames = frames
        self.metrics = metrics
        self.on_change = on_change
        self.on_focus = on_focus
        self.gesture: Optional[Gesture] = None
        self.active_id: Optional[str] = None

    # ---------------------------------------------------------------- helpers

    def update_metrics(self, metrics: Optional[ContainerMetrics]):
        self.metrics = metrics

    def _valid_metrics(self) -> Optional[ContainerMetrics]:
        if self.metrics is None or not self.metrics.is_valid:
            return None
        return self.metrics

    def _commit(self, frame: PhotoFrame, rect: NormalizedRect):
        frame.layout = rect.clamped()
        if self.on_change:
            self.on_change(frame)

    def focus(self, frame_id: str):
        """Bring a frame to the front of the render order."""
        self.frames[:] = focus_frame(self.frames, frame_id)
        if self.on_focus:
            self.on_focus(frame_id)

    @property
    def is_pinching(self) -> bool:
        return isinstance(self.gesture, PinchGesture)

    # ------------------------------------------------------------------- drag

    def pointer_down(self, frame_id: str, pointer_id: int, x: float, y: float, button: int = 0) -> bool:
        """
        Start dragging a frame.

        Middle and right buttons are ignored, as is any pointer-down while
        another gesture is active.

        Returns:
            True if a drag started
        """
        if button in (1, 2):
            return False
        if self.gesture is not None:
            logger.debug(f"Ignoring drag on {frame_id}: {type(self.gesture).__name__} active")
            return False
        if self._valid_metrics() is None:
            return False

        frame = find_frame(self.frames, frame_id)
        if frame is None:
            return False

        self.gesture = DragGesture(frame_id, pointer_id, x, y, frame.layout)
        self.active_id = frame_id
        self.focus(frame_id)
        return True

    def resize_handle_down(self, frame_id: str, pointer_id: int, x: float, y: float) -> bool:
        """Start resizing a frame from its handle. Returns True if started."""
        if self.gesture is not None:
            logger.debug(f"Ignoring resize on {frame_id}: {type(self.gesture).__name__} active")
            return False
        if self._valid_metrics() is None:
            return False

        frame = find_frame(self.frames, frame_id)
        if frame is None:
            return False

        self.gesture = ResizeGesture(frame_id, pointer_id, x, y, frame.layout)
        self.active_id = frame_id
        return True

    def pointer_move(self, pointer_id: int, x: float, y: float):
        """Apply a pointer move to the active drag or resize."""
        gesture = self.gesture
        if isinstance(gesture, DragGesture) and gesture.pointer_id == pointer_id:
            self._drag_to(gesture, x, y)
        elif isinstance(gesture, ResizeGesture) and gesture.pointer_id == pointer_id:
            self._resize_to(gesture, x)

    def pointer_up(self, pointer_id: int):
        """End a drag or resize owned by this pointer (also used for cancel)."""
        gesture = self.gesture
        if isinstance(gesture, (DragGesture, ResizeGesture)) and gesture.pointer_id == pointer_id:
            self.gesture = None

    pointer_cancel = pointer_up

    def _drag_to(self, gesture: DragGesture, x: float, y: float):
        metrics = self._valid_metrics()
        frame = find_frame(self.frames, gesture.frame_id)
        if metrics is None or frame is None:
            return

        size = frame.layout
        new_x = gesture.initial_rect.x + (x - gesture.start_x) / metrics.width
        new_y = gesture.initial_rect.y + (y - gesture.start_y) / metrics.height

        new_x = snap_coordinate(new_x, size.width, "x", frame.id, self.frames)
        new_y = snap_coordinate(new_y, size.height, "y", frame.id, self.frames)

        new_x = clamp_position(new_x, size.width)
        new_y = clamp_position(new_y, size.height)

        self._commit(frame, NormalizedRect(new_x, new_y, size.width, size.height))

    def _resize_to(self, gesture: ResizeGesture, x: float):
        metrics = self._valid_metrics()
        frame = find_frame(self.frames, gesture.frame_id)
        if metrics is None or frame is None:
            return

        initial = gesture.initial_rect
        delta_x = (x - gesture.start_x) / metrics.width
        min_width_normalized = max(MIN_FRAME_WIDTH_PX / metrics.width, MIN_WIDTH_FRACTION)

        candidate_width = initial.width + delta_x
        available_width = max(0.0, 1 - initial.x)
        available_height = max(0.0, 1 - initial.y)
        max_width_from_height = (
            available_height * (frame.aspect_ratio / metrics.aspect) if available_height > 0 else 0.0
        )
        max_width_bound = max(0.0, min(MAX_WIDTH, available_width, max_width_from_height))
        min_width = min(min_width_normalized, max_width_bound)
        max_width = max(min_width, max_width_bound)

        width = clamp(candidate_width, min_width, max_width)
        height = normalized_height_from_width(width, frame.aspect_ratio, metrics.aspect)

        self._commit(frame, NormalizedRect(frame.layout.x, frame.layout.y, width, height))

    # ------------------------------------------------------------------ pinch

    def touch_start(self, frame_id: str, touches: Sequence[Point]) -> bool:
        """
        Handle touches landing on a frame.

        Two touches start a pinch, preempting any drag or resize. A single
        touch only brings the frame to the front.

        Returns:
            True if a pinch started
        """
        if len(touches) == 1:
            self.focus(frame_id)
            return False
        if len(touches) != 2:
            return False

        metrics = self._valid_metrics()
        frame = find_frame(self.frames, frame_id)
        if metrics is None or frame is None:
            return False

        distance = _distance(touches[0], touches[1])
        if distance <= 0:
            return False

        rect = frame.layout
        self.gesture = PinchGesture(
            frame_id=frame_id,
            initial_distance=distance,
            initial_width=rect.width * metrics.width,
            initial_height=rect.height * metrics.height,
            center_x=(rect.x + rect.width / 2) * metrics.width,
            center_y=(rect.y + rect.height / 2) * metrics.height,
        )
        self.active_id = frame_id
        return True

    def touch_move(self, touches: Sequence[Point]):
        """Scale the pinched frame around its fixed centre."""
        pinch = self.gesture
        if not isinstance(pinch, PinchGesture) or len(touches) != 2:
            return

        metrics = self._valid_metrics()
        frame = find_frame(self.frames, pinch.frame_id)
        if metrics is None or frame is None:
            return

        scale = _distance(touches[0], touches[1]) / pinch.initial_distance
        min_width_px = max(MIN_FRAME_WIDTH_PX, frame.layout.width * metrics.width * PINCH_MIN_SCALE)

        max_width_from_width = min(pinch.center_x * 2, (metrics.width - pinch.center_x) * 2)
        max_height_px = min(pinch.center_y * 2, (metrics.height - pinch.center_y) * 2)
        max_width_from_height = max_height_px * frame.aspect_ratio
        max_width_px = max(0.0, min(max_width_from_width, max_width_from_height, metrics.width))

        width_px = clamp(pinch.initial_width * scale, min_width_px, max_width_px)
        height_px = width_px / frame.aspect_ratio

        width = width_px / metrics.width
        height = height_px / metrics.height
        new_x = (pinch.center_x - width_px / 2) / metrics.width
        new_y = (pinch.center_y - height_px / 2) / metrics.height

        new_x = snap_coordinate(new_x, width, "x", frame.id, self.frames)
        new_y = snap_coordinate(new_y, height, "y", frame.id, self.frames)

        new_x = clamp_position(new_x, width)
        new_y = clamp_position(new_y, height)

        self._commit(frame, NormalizedRect(new_x, new_y, width, height))

    def touch_end(self, remaining_touches: int = 0):
        """End the pinch once fewer than two touches remain."""
        if isinstance(self.gesture, PinchGesture) and remaining_touches < 2:
            self.gesture = None

    touch_cancel = touch_end


def _distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])
