# sync.py
from __future__ import annotations
import logging
from typing import Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, QTimer, Signal, Slot

from models import SensorReading
from sensor import VirtualBLESensor
from uploader import UploadError, Uploader, UploadResult

logger = logging.getLogger(__name__)

SYNC_INTERVAL_MS = 30000


class _UploadSignals(QObject):
    finished = Signal(object)  # UploadResult
    failed = Signal(str)


class _UploadJob(QRunnable):
    """Ejecuta el POST fuera del hilo de la interfaz."""

    def __init__(self, uploader: Uploader, reading: SensorReading, sensor_id: str) -> None:
        super().__init__()
        self.uploader = uploader
        self.reading = reading
        self.sensor_id = sensor_id
        self.signals = _UploadSignals()

    def run(self) -> None:
        try:
            result = self.uploader.upload(self.reading, self.sensor_id)
        except UploadError as e:
            self.signals.failed.emit(str(e))
            return
        except Exception as e:
            # Toda subida termina emitiendo finished o failed
            logger.exception("Error inesperado durante la subida")
            self.signals.failed.emit(f"Error inesperado: {e}")
            return
        self.signals.finished.emit(result)


class SyncController(QObject):
    """
    Sincronización con el colector remoto.

    - Timer automático (30 s): sube la lectura actual solo si el sensor
      está conectado.
    - `sync_now()`: subida manual (lectura actual o una del histórico).

    Las subidas se serializan: mientras haya una en curso, los ticks
    automáticos se saltan y `sync_now()` devuelve False. Los resultados
    llegan al hilo principal mediante señales.
    """

    sync_started = Signal(object)   # SensorReading
    synced = Signal(object)         # UploadResult
    sync_failed = Signal(str)

    def __init__(
        self,
        sensor: VirtualBLESensor,
        uploader: Uploader,
        sensor_id: str,
        interval_ms: int = SYNC_INTERVAL_MS,
        pool: Optional[QThreadPool] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.sensor = sensor
        self.uploader = uploader
        self.sensor_id = sensor_id
        self.pool = pool or QThreadPool.globalInstance()
        self._job: Optional[_UploadJob] = None

        self.timer = QTimer(self)
        self.timer.setInterval(interval_ms)
        self.timer.timeout.connect(self._auto_sync)

    @property
    def is_busy(self) -> bool:
        return self._job is not None

    def start(self) -> None:
        self.timer.start()

    def stop(self) -> None:
        self.timer.stop()

    def _auto_sync(self) -> None:
        if not self.sensor.is_connected:
            return
        if self.is_busy:
            logger.info("Sincronización anterior aún en curso, se omite este ciclo")
            return
        self.sync_now()

    def sync_now(self, reading: Optional[SensorReading] = None) -> bool:
        if self.is_busy:
            return False

        reading = reading or self.sensor.current
        if reading is None:
            logger.info("Sin lecturas todavía, nada que sincronizar")
            return False

        job = _UploadJob(self.uploader, reading, self.sensor_id)
        job.signals.finished.connect(self._on_finished)
        job.signals.failed.connect(self._on_failed)
        self._job = job

        self.sync_started.emit(reading)
        self.pool.start(job)
        return True

    @Slot(object)
    def _on_finished(self, result: UploadResult) -> None:
        self._job = None
        self.synced.emit(result)

    @Slot(str)
    def _on_failed(self, message: str) -> None:
        self._job = None
        self.sync_failed.emit(message)

    def wait_idle(self, msecs: int = -1) -> bool:
        """Espera a que terminen las subidas en curso (cierre de la app)."""
        return self.pool.waitForDone(msecs)
