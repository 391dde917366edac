# ui_main_window.py
from __future__ import annotations

from pathlib import Path
from typing import Optional
import statistics as stats

from PySide6.QtWidgets import (
    QMainWindow,
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QPushButton,
    QFileDialog,
    QMessageBox,
    QLabel,
    QCheckBox,
    QStatusBar,
    QFrame,
    QSizePolicy,
    QProgressBar,
    QListWidget,
    QListWidgetItem,
)
from PySide6.QtCore import Qt

from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure

from context import AppContext
from export import export_history
from models import SensorReading
from settings import SettingsManager
from uploader import UploadResult


class MainWindow(QMainWindow):
    def __init__(self, ctx: AppContext, settings: SettingsManager, parent=None) -> None:
        super().__init__(parent)
        self.ctx = ctx
        self.sensor = ctx.sensor
        self.history = ctx.history
        self.sync = ctx.sync
        self.settings = settings

        self.setWindowTitle("IoT Smart Sensor System")

        # ===================== LAYOUT PRINCIPAL =====================
        central = QWidget(self)
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)
        main_layout.setContentsMargins(6, 6, 6, 6)
        main_layout.setSpacing(8)

        # --------- BARRA SUPERIOR: ACCIONES RÁPIDAS ----------
        top_layout = QHBoxLayout()
        top_layout.setSpacing(10)

        self.btn_start = QPushButton("▶ Anunciar")
        self.btn_stop = QPushButton("⏸ Detener")
        self.btn_export = QPushButton("📤 Exportar histórico")
        self.dark_mode_check = QCheckBox("🌙 Modo oscuro")

        self.btn_start.clicked.connect(self.sensor.start)
        self.btn_stop.clicked.connect(self.sensor.stop)
        self.btn_export.clicked.connect(self.export_file)
        self.dark_mode_check.stateChanged.connect(self.toggle_dark_mode)

        for btn in (self.btn_start, self.btn_stop, self.btn_export):
            btn.setCursor(Qt.PointingHandCursor)
            btn.setMinimumHeight(30)

        top_layout.addWidget(self.btn_start)
        top_layout.addWidget(self.btn_stop)
        top_layout.addStretch()
        top_layout.addWidget(self.btn_export)
        top_layout.addWidget(self.dark_mode_check)
        main_layout.addLayout(top_layout)

        # --------- TARJETA DE CONEXIÓN ----------
        conn_frame = QFrame()
        conn_frame.setFrameShape(QFrame.StyledPanel)
        conn_frame.setObjectName("connectionFrame")
        conn_layout = QHBoxLayout(conn_frame)
        conn_layout.setContentsMargins(10, 6, 10, 6)

        conn_text = QVBoxLayout()
        self.lbl_conn_title = QLabel("Sensor disponible")
        self.lbl_conn_title.setStyleSheet("font-size: 16px; font-weight: 700;")
        lbl_conn_sub = QLabel(f"Virtual BLE Sensor · ID: {self.sensor.device_id}")
        lbl_conn_sub.setStyleSheet("color: gray;")
        conn_text.addWidget(self.lbl_conn_title)
        conn_text.addWidget(lbl_conn_sub)

        self.lbl_conn_chip = QLabel("AVAILABLE")
        self.lbl_conn_chip.setAlignment(Qt.AlignCenter)
        self.lbl_conn_chip.setMinimumWidth(110)

        self.btn_connect = QPushButton("🔗 Conectar al sensor")
        self.btn_connect.setCursor(Qt.PointingHandCursor)
        self.btn_connect.setMinimumHeight(30)
        self.btn_connect.clicked.connect(self.toggle_connection)

        conn_layout.addLayout(conn_text)
        conn_layout.addStretch()
        conn_layout.addWidget(self.lbl_conn_chip)
        conn_layout.addWidget(self.btn_connect)
        main_layout.addWidget(conn_frame)

        # --------- PANEL DE INDICADORES + STATS ----------
        indicators_frame = QFrame()
        indicators_frame.setFrameShape(QFrame.StyledPanel)
        indicators_frame.setObjectName("indicatorsFrame")
        indicators_layout = QHBoxLayout(indicators_frame)
        indicators_layout.setContentsMargins(10, 6, 10, 6)
        indicators_layout.setSpacing(20)

        # --- Temperatura ---
        temp_box = QVBoxLayout()
        temp_title = QLabel("Temperatura")
        temp_title.setAlignment(Qt.AlignCenter)
        temp_title.setStyleSheet("font-size: 14px; font-weight: 600;")

        self.temp_gauge = QProgressBar()
        self.temp_gauge.setRange(15, 40)  # rango del sensor
        self.temp_gauge.setFormat("%v °C")
        self.temp_gauge.setTextVisible(True)
        self.temp_gauge.setStyleSheet("QProgressBar::chunk { background-color: #ff3b30; }")

        self.lbl_temp_stats = QLabel("μ: —   min: —   max: —")
        self.lbl_temp_stats.setAlignment(Qt.AlignCenter)

        temp_box.addWidget(temp_title)
        temp_box.addWidget(self.temp_gauge)
        temp_box.addWidget(self.lbl_temp_stats)

        # --- Humedad ---
        hum_box = QVBoxLayout()
        hum_title = QLabel("Humedad")
        hum_title.setAlignment(Qt.AlignCenter)
        hum_title.setStyleSheet("font-size: 14px; font-weight: 600;")

        self.hum_gauge = QProgressBar()
        self.hum_gauge.setRange(0, 100)  # 0–100%
        self.hum_gauge.setFormat("%v %")
        self.hum_gauge.setTextVisible(True)
        self.hum_gauge.setStyleSheet("QProgressBar::chunk { background-color: #007aff; }")

        self.lbl_hum_stats = QLabel("μ: —   min: —   max: —")
        self.lbl_hum_stats.setAlignment(Qt.AlignCenter)

        hum_box.addWidget(hum_title)
        hum_box.addWidget(self.hum_gauge)
        hum_box.addWidget(self.lbl_hum_stats)

        indicators_layout.addLayout(temp_box)
        indicators_layout.addLayout(hum_box)
        main_layout.addWidget(indicators_frame)

        # --------- ACCIONES ----------
        actions_layout = QHBoxLayout()
        self.btn_sync = QPushButton("☁ Sincronizar con la nube")
        self.btn_refresh = QPushButton("🔄 Refrescar sensor")
        for btn in (self.btn_sync, self.btn_refresh):
            btn.setCursor(Qt.PointingHandCursor)
            btn.setMinimumHeight(30)
        self.btn_sync.clicked.connect(self.sync_current)
        self.btn_refresh.clicked.connect(self.sensor.refresh)
        actions_layout.addWidget(self.btn_sync)
        actions_layout.addWidget(self.btn_refresh)
        main_layout.addLayout(actions_layout)

        # --------- PANEL DE ESTADO DE SINCRONIZACIÓN ----------
        self.sync_label = QLabel("Sin sincronizar todavía")
        self.sync_label.setAlignment(Qt.AlignCenter)
        self.sync_label.setObjectName("syncLabel")
        main_layout.addWidget(self.sync_label)

        # --------- HISTÓRICO + GRÁFICA ----------
        bottom_layout = QHBoxLayout()

        history_box = QVBoxLayout()
        history_title = QLabel("Lecturas recientes")
        history_title.setStyleSheet("font-size: 14px; font-weight: 600;")
        self.history_list = QListWidget()
        self.history_list.itemDoubleClicked.connect(self._resend_item)
        self.btn_resend = QPushButton("⬆ Reenviar seleccionada")
        self.btn_resend.clicked.connect(self.resend_selected)
        history_box.addWidget(history_title)
        history_box.addWidget(self.history_list)
        history_box.addWidget(self.btn_resend)

        self.figure = Figure(figsize=(6, 4))
        self.canvas = FigureCanvas(self.figure)
        self.canvas.setSizePolicy(
            QSizePolicy.Expanding,
            QSizePolicy.Expanding,
        )
        self.ax_temp = self.figure.add_subplot(2, 1, 1)
        self.ax_hum = self.figure.add_subplot(2, 1, 2)
        self.figure.tight_layout()

        bottom_layout.addLayout(history_box, 1)
        bottom_layout.addWidget(self.canvas, 2)
        main_layout.addLayout(bottom_layout)

        # --------- STATUS BAR ----------
        status = QStatusBar()
        self.setStatusBar(status)

        # ===================== SEÑALES DEL NÚCLEO =====================
        self.sensor.reading_generated.connect(self._on_reading)
        self.sensor.current_changed.connect(self._update_indicators)
        self.sensor.advertising_changed.connect(self._on_advertising_changed)
        self.sensor.connection_changed.connect(self._on_connection_changed)
        self.sync.sync_started.connect(self._on_sync_started)
        self.sync.synced.connect(self._on_synced)
        self.sync.sync_failed.connect(self._on_sync_failed)

        self._on_advertising_changed(self.sensor.is_advertising)
        self._on_connection_changed(self.sensor.is_connected)
        self._set_sync_style("idle")

        # Tema inicial
        if self.settings.get("dark_mode", False):
            self.dark_mode_check.setChecked(True)
            self._apply_dark_palette()
        else:
            self._apply_light_palette()

    # ===================== ESTADO DEL SENSOR =====================
    def _on_advertising_changed(self, advertising: bool) -> None:
        self.btn_start.setEnabled(not advertising)
        self.btn_stop.setEnabled(advertising)
        self.statusBar().showMessage(
            "Sensor anunciándose." if advertising else "Sensor detenido.", 2000
        )

    def toggle_connection(self) -> None:
        if self.sensor.is_connected:
            self.sensor.disconnect_sensor()
            return
        self.btn_connect.setEnabled(False)
        self.btn_connect.setText("⏳ Conectando...")
        self.sensor.connect_sensor()

    def _on_connection_changed(self, connected: bool) -> None:
        self.btn_connect.setEnabled(True)
        if connected:
            self.lbl_conn_title.setText("Conectado al sensor")
            self.lbl_conn_chip.setText("CONNECTED")
            self.lbl_conn_chip.setStyleSheet(
                "background-color: #c8f7d0; color: black; padding: 4px; border-radius: 8px;"
            )
            self.btn_connect.setText("⛓ Desconectar")
            self.statusBar().showMessage("✅ Conectado al sensor BLE virtual", 3000)
        else:
            self.lbl_conn_title.setText("Sensor disponible")
            self.lbl_conn_chip.setText("AVAILABLE")
            self.lbl_conn_chip.setStyleSheet(
                "background-color: #cfe3ff; color: black; padding: 4px; border-radius: 8px;"
            )
            self.btn_connect.setText("🔗 Conectar al sensor")

    # ===================== LECTURAS =====================
    def _on_reading(self, reading: SensorReading) -> None:
        self._refresh_history_list()
        self._update_stats()
        self._update_plots()

    def _update_indicators(self, reading: SensorReading) -> None:
        self.temp_gauge.setValue(int(round(reading.temperature)))
        self.hum_gauge.setValue(int(round(reading.humidity)))

    def _refresh_history_list(self) -> None:
        self.history_list.clear()
        for reading in self.history:
            item = QListWidgetItem(
                f"{reading.temperature:.1f}°C • {reading.humidity:.1f}%   "
                f"{reading.timestamp:%H:%M:%S}"
            )
            self.history_list.addItem(item)

    def _update_stats(self) -> None:
        if not len(self.history):
            self.lbl_temp_stats.setText("μ: —   min: —   max: —")
            self.lbl_hum_stats.setText("μ: —   min: —   max: —")
            return

        temps = [r.temperature for r in self.history]
        hums = [r.humidity for r in self.history]

        self.lbl_temp_stats.setText(
            f"μ: {stats.fmean(temps):.1f}   min: {min(temps):.1f}   max: {max(temps):.1f}"
        )
        self.lbl_hum_stats.setText(
            f"μ: {stats.fmean(hums):.1f}   min: {min(hums):.1f}   max: {max(hums):.1f}"
        )

    # ===================== SINCRONIZACIÓN =====================
    def sync_current(self) -> None:
        if not self.sync.sync_now():
            self._explain_sync_refused()

    def resend_selected(self) -> None:
        row = self.history_list.currentRow()
        if row < 0:
            QMessageBox.information(self, "Información", "Selecciona primero una lectura.")
            return
        self._resend_row(row)

    def _resend_item(self, item: QListWidgetItem) -> None:
        self._resend_row(self.history_list.row(item))

    def _resend_row(self, row: int) -> None:
        try:
            reading = self.history.get(row)
        except IndexError:
            return
        if not self.sync.sync_now(reading):
            self._explain_sync_refused()

    def _explain_sync_refused(self) -> None:
        if self.sync.is_busy:
            self.statusBar().showMessage("Ya hay una sincronización en curso.", 3000)
        else:
            self.statusBar().showMessage("Esperando datos del sensor...", 3000)

    def _on_sync_started(self, _reading: SensorReading) -> None:
        self.btn_sync.setEnabled(False)
        self.btn_resend.setEnabled(False)
        self.btn_sync.setText("⏳ Sincronizando...")
        self._set_sync_style("busy")

    def _on_synced(self, result: UploadResult) -> None:
        self._sync_done()
        self.sync_label.setText(f"✅ Sincronizado con la nube ({result.status_code})")
        self._set_sync_style("ok")
        self.statusBar().showMessage(f"Respuesta: {result.body[:120]}", 5000)

    def _on_sync_failed(self, message: str) -> None:
        self._sync_done()
        self.sync_label.setText(f"❌ Falló la sincronización: {message}")
        self._set_sync_style("error")

    def _sync_done(self) -> None:
        self.btn_sync.setEnabled(True)
        self.btn_resend.setEnabled(True)
        self.btn_sync.setText("☁ Sincronizar con la nube")

    def _set_sync_style(self, level: str) -> None:
        """Cambia los colores del panel de sincronización según el resultado."""
        if level == "error":
            # Rojo
            self.sync_label.setStyleSheet(
                "background-color: #ff3b30; color: white; font-weight: 700; padding: 4px; border-radius: 4px;"
            )
        elif level == "ok":
            # Verde
            self.sync_label.setStyleSheet(
                "background-color: #34c759; color: black; font-weight: 700; padding: 4px; border-radius: 4px;"
            )
        elif level == "busy":
            self.sync_label.setText("Sincronizando...")
            self.sync_label.setStyleSheet(
                "background-color: #ffcc00; color: black; font-weight: 700; padding: 4px; border-radius: 4px;"
            )
        else:
            self.sync_label.setStyleSheet(
                "color: gray; padding: 4px;"
            )

    # ===================== GRÁFICAS =====================
    def _update_plots(self) -> None:
        data = list(reversed(self.history.to_list()))
        if not data:
            return

        times = [r.timestamp for r in data]
        temps = [r.temperature for r in data]
        hums = [r.humidity for r in data]

        self.ax_temp.clear()
        self.ax_hum.clear()

        self.ax_temp.plot(times, temps, marker="o", color="#ff3b30")
        self.ax_temp.set_ylabel("Temp (°C)")
        self.ax_temp.grid(True)

        self.ax_hum.plot(times, hums, marker="o", color="#007aff")
        self.ax_hum.set_ylabel("Humedad (%)")
        self.ax_hum.set_xlabel("Tiempo")
        self.ax_hum.grid(True)

        self.figure.autofmt_xdate()
        self.canvas.draw()

    # ===================== EXPORTAR =====================
    def export_file(self) -> None:
        if not len(self.history):
            QMessageBox.information(self, "Exportación", "No hay lecturas que exportar.")
            return

        start_dir = Path(self.settings.get("last_export_dir") or ".")
        output_str, _ = QFileDialog.getSaveFileName(
            self,
            "Exportar histórico",
            str(start_dir / "sensor_data.xlsx"),
            "Excel (*.xlsx);;CSV (*.csv)",
        )
        if not output_str:
            return

        output = Path(output_str)
        try:
            export_history(self.history, output)
        except (OSError, ValueError) as e:
            QMessageBox.critical(
                self, "Error", f"No se pudo exportar el histórico:\n{e}"
            )
            return

        self.settings.set("last_export_dir", str(output.parent))
        QMessageBox.information(
            self,
            "Exportación",
            f"Datos exportados correctamente a:\n{output_str}",
        )

    # ===================== MODO OSCURO / CLARO =====================
    def toggle_dark_mode(self, state: int) -> None:
        enabled = Qt.CheckState(state) == Qt.Checked
        self.settings.set("dark_mode", enabled)
        if enabled:
            self._apply_dark_palette()
        else:
            self._apply_light_palette()

    def _apply_dark_palette(self) -> None:
        dark_style = """
        QMainWindow {
            background-color: #1e1e1e;
            color: #ffffff;
        }
        QWidget {
            background-color: #2b2b2b;
            color: #ffffff;
        }
        QPushButton {
            background-color: #3a3a3a;
            color: #ffffff;
            border: 1px solid #555;
            border-radius: 4px;
            padding: 4px 10px;
        }
        QPushButton:hover {
            background-color: #505050;
        }
        QPushButton:disabled {
            background-color: #2b2b2b;
            color: #777777;
        }
        QListWidget {
            background-color: #3a3a3a;
            border: 1px solid #555;
        }
        #indicatorsFrame, #connectionFrame {
            background-color: #3a3a3a;
            border-radius: 6px;
        }
        """
        self.setStyleSheet(dark_style)

    def _apply_light_palette(self) -> None:
        light_style = """
        QMainWindow {
            background-color: #e3e0dc;
            color: #000000;
        }
        QWidget {
            background-color: #ffffff;
            color: #000000;
        }
        QPushButton {
            background-color: #ffffff;
            color: #000000;
            border: 1px solid #aaa;
            border-radius: 4px;
            padding: 4px 10px;
        }
        QPushButton:hover {
            background-color: #f0f0f0;
        }
        QPushButton:disabled {
            background-color: #dddddd;
            color: #888888;
        }
        QListWidget {
            border: 1px solid #aaa;
        }
        #indicatorsFrame, #connectionFrame {
            background-color: #ffffff;
            border-radius: 6px;
        }
        """
        self.setStyleSheet(light_style)
