# src/posepointer/ui/main_window.py
import argparse, logging, sys                  # stdlib
from typing import Optional                    # type hints for clarity
import cv2                                     # BGR -> RGB conversion for Qt
from PySide6 import QtCore, QtGui, QtWidgets   # Qt UI framework (signals, widgets, etc.)
from PySide6.QtGui import QAction              # toolbar actions

from ..config import DEFAULT_PROFILE, PROFILES, WINDOW_TITLE, PipelineProfile, get_profile
from ..camera.video_worker import VideoWorker  # threaded asyncio pipeline

ICON_SETTINGS_CLOSED = "⚙"
ICON_SETTINGS_OPEN = "✖"


def cvimg_to_qt(img_bgr) -> QtGui.QImage:
    rgb = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2RGB)  # BGR→RGB for Qt
    h, w, ch = rgb.shape
    return QtGui.QImage(rgb.data, w, h, ch * w, QtGui.QImage.Format_RGB888).copy()  # copy: rgb is temporary


class MainWindow(QtWidgets.QMainWindow):  # viewer for the render surface + settings/telemetry
    def __init__(self, profile: PipelineProfile, preferred_camera: Optional[str] = None):
        super().__init__()
        self.profile = profile
        self.preferred_camera = preferred_camera
        self.worker: Optional[VideoWorker] = None
        self.worker_thread: Optional[QtCore.QThread] = None
        self._populating = False  # suppress camera-change handling while filling the combo

        self.setWindowTitle(f"{WINDOW_TITLE} ({profile.name.upper()})")
        self.setStyleSheet("""
            QMainWindow { background: #000; }
            QLabel#info { color: #0f0; font-size: 1.3em; padding: 4px 10px; background: transparent; }
            QWidget#settings { background: rgba(20, 20, 20, 220); border-radius: 10px; }
            QWidget#settings QLabel { color: #ddd; }
        """)
        self.resize(1280, 760)

        # central area: surface view stacked above the info line
        central = QtWidgets.QWidget(self)
        lay = QtWidgets.QVBoxLayout(central); lay.setContentsMargins(0, 0, 0, 0)
        self.video_label = QtWidgets.QLabel("Starting…")
        self.video_label.setAlignment(QtCore.Qt.AlignCenter)
        self.video_label.setSizePolicy(QtWidgets.QSizePolicy.Ignored, QtWidgets.QSizePolicy.Ignored)
        self.info = QtWidgets.QLabel("No detection"); self.info.setObjectName("info")
        lay.addWidget(self.video_label, 1)
        lay.addWidget(self.info)
        self.setCentralWidget(central)

        self._build_toolbar()
        self._build_settings_panel()
        self.status = self.statusBar()

        # keyboard shortcuts
        QtGui.QShortcut(QtGui.QKeySequence("F11"), self, activated=self.toggle_fullscreen)
        QtGui.QShortcut(QtGui.QKeySequence("Escape"), self, activated=self._leave_fullscreen)

        QtCore.QTimer.singleShot(0, self.on_start)  # start once the window is up

    # ---------------- UI ----------------
    def _build_toolbar(self):
        self.tb = self.addToolBar("Controls")
        self.act_settings = QAction(ICON_SETTINGS_CLOSED, self)  # toggles the settings panel
        self.act_settings.setToolTip("Settings")
        self.act_settings.triggered.connect(self.toggle_settings)
        self.act_fullscreen = QAction("Fullscreen", self)
        self.act_fullscreen.triggered.connect(self.toggle_fullscreen)
        self.tb.addAction(self.act_settings)
        self.tb.addAction(self.act_fullscreen)

    def _build_settings_panel(self):
        self.settings_panel = QtWidgets.QWidget(self); self.settings_panel.setObjectName("settings")
        form = QtWidgets.QFormLayout(self.settings_panel)
        self.cmb_camera = QtWidgets.QComboBox(self.settings_panel)
        self.cmb_camera.currentIndexChanged.connect(self.on_camera_change)
        self.lbl_cpu = QtWidgets.QLabel("nm")
        self.lbl_fps = QtWidgets.QLabel("nm")
        self.lbl_detect = QtWidgets.QLabel("nm")
        form.addRow("Camera:", self.cmb_camera)
        form.addRow("CPU:", self.lbl_cpu)
        form.addRow("FPS:", self.lbl_fps)
        form.addRow("Detect time:", self.lbl_detect)
        self.settings_dock = QtWidgets.QDockWidget("Settings", self)
        self.settings_dock.setWidget(self.settings_panel)
        self.settings_dock.setAllowedAreas(QtCore.Qt.RightDockWidgetArea)
        self.addDockWidget(QtCore.Qt.RightDockWidgetArea, self.settings_dock)
        self.settings_dock.hide()  # hidden until the gear is clicked
        self.settings_dock.visibilityChanged.connect(self._sync_settings_icon)

    def toggle_settings(self):
        self.settings_dock.setVisible(not self.settings_dock.isVisible())

    def _sync_settings_icon(self, visible: bool):
        self.act_settings.setText(ICON_SETTINGS_OPEN if visible else ICON_SETTINGS_CLOSED)

    def toggle_fullscreen(self):
        if self.isFullScreen():
            self.showNormal()
        else:
            self.showFullScreen()

    def _leave_fullscreen(self):
        if self.isFullScreen():
            self.showNormal()

    # ---------------- lifecycle ----------------
    def on_start(self):
        if self.worker_thread and self.worker_thread.isRunning():
            return  # already running
        self.worker_thread = QtCore.QThread(self)
        self.worker = VideoWorker(self.profile, preferred_camera=self.preferred_camera)
        self.worker.moveToThread(self.worker_thread)
        self.worker.frame_ready.connect(self.on_frame)
        self.worker.summary_changed.connect(self.info.setText)
        self.worker.telemetry_changed.connect(self.on_telemetry)
        self.worker.devices_ready.connect(self.on_devices)
        self.worker.status.connect(self.status.showMessage)
        self.worker.error.connect(self.on_error)
        self.worker.finished.connect(self.worker_thread.quit)
        # queued: start() must run inside the thread's event loop so quit() can end it afterwards
        self.worker_thread.started.connect(self.worker.start, QtCore.Qt.QueuedConnection)
        self.worker_thread.start()

    def on_stop(self):
        if self.worker:
            self.worker.stop()  # asks the loop to shut the session down
        if self.worker_thread:
            self.worker_thread.quit(); self.worker_thread.wait(3000)
        self.worker = None; self.worker_thread = None

    def closeEvent(self, ev: QtGui.QCloseEvent) -> None:
        self.on_stop()  # stop camera/threads on close
        super().closeEvent(ev)

    # ---------------- worker signals ----------------
    @QtCore.Slot(object)
    def on_frame(self, canvas):
        pix = QtGui.QPixmap.fromImage(cvimg_to_qt(canvas))
        self.video_label.setPixmap(pix.scaled(self.video_label.size(), QtCore.Qt.KeepAspectRatio,
                                              QtCore.Qt.SmoothTransformation))

    @QtCore.Slot(str, str, str)
    def on_telemetry(self, cpu: str, fps: str, detect_time: str):
        self.lbl_cpu.setText(cpu); self.lbl_fps.setText(fps); self.lbl_detect.setText(detect_time)

    @QtCore.Slot(list, str)
    def on_devices(self, devices, active_id: str):
        self._populating = True
        try:
            self.cmb_camera.clear()
            for dev_id, label in devices:
                self.cmb_camera.addItem(label, dev_id)
            row = self.cmb_camera.findData(active_id)
            if row >= 0:
                self.cmb_camera.setCurrentIndex(row)
        finally:
            self._populating = False

    def on_camera_change(self, _i: int):
        if self._populating or not self.worker:
            return
        device_id = self.cmb_camera.currentData()
        if device_id is not None:
            self.worker.select_camera(str(device_id))

    def on_error(self, msg: str):
        self.status.showMessage(msg)
        QtWidgets.QMessageBox.critical(self, "Camera",
            f"{msg}\n\nTroubleshooting:\n"
            "- Is your webcam plugged in?\n"
            "- Is another app using the camera?\n"
            "- Are the MoveNet model files present in 'models/'?")


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="PosePointer desktop viewer")
    ap.add_argument("--camera", default=None, help="preferred camera id (falls back to the first camera)")
    ap.add_argument("--profile", choices=sorted(PROFILES), default=DEFAULT_PROFILE)
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    qt_app = QtWidgets.QApplication(sys.argv[:1])
    win = MainWindow(get_profile(args.profile), preferred_camera=args.camera)
    win.show()
    return qt_app.exec()


if __name__ == "__main__":
    sys.exit(main())
