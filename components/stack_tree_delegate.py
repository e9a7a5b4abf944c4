# stack_tree_delegate.py

from typing import Optional

from PyQt6.QtCore import QModelIndex, QPointF, QRectF, Qt
from PyQt6.QtGui import QBrush, QPainter, QPainterPath, QPen
from PyQt6.QtWidgets import QStyle, QStyledItemDelegate, QStyleOptionViewItem, QWidget

from stack_tree_data import NODE_STYLE_CURRENT, NODE_STYLE_UNCOMMITTED, ForkPoint, TreeFragment
from stack_tree_items import (
    CURRENT_COLOR,
    CURVE_RADIUS,
    DASH_PATTERN,
    HOLLOW_NODE_FILL,
    LINE_WIDTH,
    NODE_COLOR,
    NODE_RADIUS,
    NODE_RADIUS_CURRENT,
    NODE_STROKE,
    RESTACK_COLOR,
    UNCOMMITTED_COLOR,
    graph_width,
    lane_segments,
    lane_x,
    line_color,
)

# Item data role holding the row's TreeFragment
FRAGMENT_ROLE = Qt.ItemDataRole.UserRole + 1


class StackTreeDelegate(QStyledItemDelegate):
    """
    自定义委托，在分支列表的第一列绘制分支的树形连线
    """

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)

    def sizeHint(self, option: QStyleOptionViewItem, index: QModelIndex):
        size = super().sizeHint(option, index)
        fragment = index.data(FRAGMENT_ROLE)
        if isinstance(fragment, TreeFragment):
            size.setWidth(size.width() + graph_width(fragment))
        return size

    def paint(self, painter: QPainter, option: QStyleOptionViewItem, index: QModelIndex):
        fragment = index.data(FRAGMENT_ROLE)
        if not isinstance(fragment, TreeFragment):
            super().paint(painter, option, index)
            return

        # Selection background first, then the graph, then the text shifted right
        style = option.widget.style() if option.widget else None
        if style and option.state & QStyle.StateFlag.State_Selected:
            style.drawPrimitive(QStyle.PrimitiveElement.PE_PanelItemViewItem, option, painter, option.widget)

        painter.save()
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.translate(option.rect.left(), option.rect.top())
        self._draw_fragment(painter, fragment, option.rect.height())
        painter.restore()

        text_option = QStyleOptionViewItem(option)
        text_option.rect = option.rect.adjusted(graph_width(fragment), 0, 0, 0)
        super().paint(painter, text_option, index)

    def _draw_fragment(self, painter: QPainter, fragment: TreeFragment, row_height: int):
        for segment in lane_segments(fragment, row_height):
            x = lane_x(segment.lane)
            painter.setPen(self._line_pen(segment.needs_restack, segment.dashed, segment.uncommitted))
            painter.drawLine(QPointF(x, segment.y1), QPointF(x, segment.y2))

        node_y = row_height / 2
        for fork in fragment.child_fork_lanes:
            self._draw_fork(painter, fragment.node_lane, fork, node_y)

        if fragment.lanes[fragment.node_lane].has_node:
            self._draw_node(painter, fragment, lane_x(fragment.node_lane), node_y)

    def _draw_fork(self, painter: QPainter, node_lane: int, fork: ForkPoint, node_y: float):
        """从父节点水平出发，转弯后竖直向上到行顶，与子分支的竖线相接"""
        start_x = lane_x(node_lane)
        fork_x = lane_x(fork.lane)
        direction = 1 if fork_x > start_x else -1
        radius = min(CURVE_RADIUS, abs(fork_x - start_x), node_y)

        path = QPainterPath(QPointF(start_x, node_y))
        path.lineTo(QPointF(fork_x - direction * radius, node_y))
        path.quadTo(QPointF(fork_x, node_y), QPointF(fork_x, node_y - radius))
        path.lineTo(QPointF(fork_x, 0))

        dashed = fork.needs_restack or fork.is_uncommitted
        painter.setPen(self._line_pen(fork.needs_restack, dashed, fork.is_uncommitted))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawPath(path)

    def _draw_node(self, painter: QPainter, fragment: TreeFragment, x: float, y: float):
        if fragment.node_style == NODE_STYLE_CURRENT:
            pen = QPen(CURRENT_COLOR, NODE_STROKE)
            painter.setPen(pen)
            painter.setBrush(QBrush(HOLLOW_NODE_FILL))
            radius = NODE_RADIUS_CURRENT
        elif fragment.node_style == NODE_STYLE_UNCOMMITTED:
            pen = QPen(UNCOMMITTED_COLOR, NODE_STROKE)
            pen.setDashPattern([2.0, 1.5])
            painter.setPen(pen)
            painter.setBrush(QBrush(HOLLOW_NODE_FILL))
            radius = NODE_RADIUS
        else:
            color = RESTACK_COLOR if fragment.node_needs_restack else NODE_COLOR
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(QBrush(color))
            radius = NODE_RADIUS

        painter.drawEllipse(QRectF(x - radius, y - radius, radius * 2, radius * 2))

    def _line_pen(self, needs_restack: bool, dashed: bool, uncommitted: bool = False) -> QPen:
        pen = QPen(line_color(needs_restack, uncommitted), LINE_WIDTH)
        if dashed:
            pen.setDashPattern(DASH_PATTERN)
        return pen
