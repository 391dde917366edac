# context.py
from __future__ import annotations
import logging
from typing import Optional

from PySide6.QtCore import QObject

from history import HistoryBuffer
from models import SensorReading
from sensor import VirtualBLESensor
from settings import SettingsManager
from sync import SyncController
from uploader import UPLOAD_TIMEOUT_S, Uploader

logger = logging.getLogger(__name__)


class AppContext(QObject):
    """Contenedor de los componentes del núcleo, compartido con la interfaz."""

    def __init__(
        self,
        sensor: VirtualBLESensor,
        history: HistoryBuffer,
        uploader: Uploader,
        sync: SyncController,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.sensor = sensor
        self.history = history
        self.uploader = uploader
        self.sync = sync

        # Conectado antes que la interfaz: el histórico ya está al día
        # cuando la ventana recibe la misma lectura
        self.sensor.reading_generated.connect(self._store_reading)

    @classmethod
    def from_settings(cls, settings: SettingsManager) -> "AppContext":
        sensor_id = settings.get("sensor_id")
        sensor = VirtualBLESensor(
            device_id=sensor_id,
            interval_ms=int(settings.get("reading_interval_ms")),
            connect_delay_ms=int(settings.get("connect_delay_ms")),
        )
        timeout = float(settings.get("upload_timeout_s"))
        if timeout <= 0:
            logger.warning(
                "upload_timeout_s=%s no válido, usando %ss", timeout, UPLOAD_TIMEOUT_S
            )
            timeout = UPLOAD_TIMEOUT_S
        uploader = Uploader(base_url=settings.get("base_url"), timeout=timeout)
        sync = SyncController(
            sensor=sensor,
            uploader=uploader,
            sensor_id=sensor_id,
            interval_ms=int(settings.get("sync_interval_ms")),
        )
        return cls(sensor=sensor, history=HistoryBuffer(), uploader=uploader, sync=sync)

    def _store_reading(self, reading: SensorReading) -> None:
        self.history.push(reading)

    def start(self) -> None:
        self.sensor.start()
        self.sync.start()

    def shutdown(self) -> None:
        self.sync.stop()
        self.sensor.stop()
        self.sensor.disconnect_sensor()
        self.sync.wait_idle()
        self.uploader.close()
        logger.info("Núcleo detenido")
