from __future__ import annotations

import sys

from PyQt6.QtCore import QRectF, Qt, pyqtSignal
from PyQt6.QtGui import QImage, QPainter, QPixmap, QTransform
from PyQt6.QtWidgets import (
    QApplication,
    QGraphicsPixmapItem,
    QGraphicsScene,
    QGraphicsView,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QStatusBar,
    QVBoxLayout,
    QWidget,
)

from .image_buffer import ImageBuffer


def _buffer_to_qimage(buffer: ImageBuffer) -> QImage:
    data = bytes(buffer.data)
    fmt = QImage.Format.Format_Grayscale8 if buffer.channels == 1 else QImage.Format.Format_RGB888
    image = QImage(data, buffer.width, buffer.height, buffer.width * buffer.channels, fmt)
    return image.copy()  # detach from temporary bytes


class ImageGraphicsView(QGraphicsView):
    zoomChanged = pyqtSignal(float)
    cursorMoved = pyqtSignal(int, int, object)  # object for tuple[int, ...] | None

    def __init__(self, buffer: ImageBuffer) -> None:
        super().__init__()
        self.setRenderHints(QPainter.RenderHint.SmoothPixmapTransform)
        self.setDragMode(QGraphicsView.DragMode.ScrollHandDrag)
        self.setMouseTracking(True)
        self.setBackgroundBrush(Qt.GlobalColor.black)

        self._scene = QGraphicsScene(self)
        self.setScene(self._scene)
        pixmap = QPixmap.fromImage(_buffer_to_qimage(buffer))
        self._pixmap_item: QGraphicsPixmapItem = self._scene.addPixmap(pixmap)
        self._scene.setSceneRect(QRectF(pixmap.rect()))
        self._buffer = buffer
        self._scale = 1.0

    def set_scale(self, scale: float) -> None:
        scale = max(0.1, min(16.0, scale))
        if abs(scale - self._scale) < 1e-3:
            return
        self._scale = scale
        transform = QTransform()
        transform.scale(self._scale, self._scale)
        self.setTransform(transform)
        self.zoomChanged.emit(self._scale)

    def wheelEvent(self, event) -> None:  # type: ignore[override]
        factor = 1.25 if event.angleDelta().y() > 0 else 0.8
        old_pos = self.mapToScene(event.position().toPoint())
        self.set_scale(self._scale * factor)
        self.centerOn(old_pos)

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        super().mouseMoveEvent(event)
        scene_pos = self.mapToScene(event.position().toPoint())
        x = int(scene_pos.x())
        y = int(scene_pos.y())
        if 0 <= x < self._buffer.width and 0 <= y < self._buffer.height:
            self.cursorMoved.emit(x, y, self._buffer.get_pixel(x, y))
        else:
            self.cursorMoved.emit(-1, -1, None)


class ComparisonWindow(QMainWindow):
    """Input and equalized output side by side, zoomed together."""

    def __init__(self, source: ImageBuffer, output: ImageBuffer) -> None:
        super().__init__()
        self.setWindowTitle("histeq")
        self.resize(1280, 700)

        central_widget = QWidget()
        layout = QHBoxLayout(central_widget)
        layout.setContentsMargins(8, 8, 8, 8)
        self.views = []
        for title, buffer in (("input", source), ("output", output)):
            column = QVBoxLayout()
            column.addWidget(QLabel(title))
            view = ImageGraphicsView(buffer)
            view.cursorMoved.connect(self._on_cursor_moved)
            view.zoomChanged.connect(self._on_zoom_changed)
            column.addWidget(view)
            layout.addLayout(column)
            self.views.append(view)
        self.setCentralWidget(central_widget)

        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

    def _on_zoom_changed(self, scale: float) -> None:
        for view in self.views:
            view.set_scale(scale)
        self.status_bar.showMessage(f"Zoom: {scale * 100:.0f}%", 2000)

    def _on_cursor_moved(self, x: int, y: int, value) -> None:
        if value is None:
            self.status_bar.clearMessage()
            return
        samples = ",".join(str(v) for v in value)
        self.status_bar.showMessage(f"x={x} y={y} value=({samples})")


def show_images(source: ImageBuffer, output: ImageBuffer) -> int:
    """Open the comparison window and block until it is closed."""
    app = QApplication.instance() or QApplication(sys.argv)
    window = ComparisonWindow(source, output)
    window.show()
    return app.exec()
