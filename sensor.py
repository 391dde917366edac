# sensor.py
from __future__ import annotations
import logging
import random
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal

from models import HUM_RANGE, TEMP_RANGE, SensorReading, SensorState

logger = logging.getLogger(__name__)

READING_INTERVAL_MS = 3000
CONNECT_DELAY_MS = 2000

# Rangos de generación (antes del ruido)
TEMP_BASE = (20.0, 35.0)
HUM_BASE = (40.0, 80.0)
TEMP_JITTER = 0.25  # ± ºC
HUM_JITTER = 1.0    # ± %


def _clamp(value: float, bounds: tuple) -> float:
    low, high = bounds
    return max(low, min(high, value))


def generate_reading(rng: Optional[random.Random] = None) -> SensorReading:
    """
    Genera una lectura plausible: valor base uniforme + pequeño ruido,
    recortado a los rangos físicos admitidos.
    """
    rng = rng or random.Random()

    temperature = rng.uniform(*TEMP_BASE)
    humidity = rng.uniform(*HUM_BASE)

    temperature += (rng.random() - 0.5) * 2 * TEMP_JITTER
    humidity += (rng.random() - 0.5) * 2 * HUM_JITTER

    return SensorReading(
        temperature=_clamp(temperature, TEMP_RANGE),
        humidity=_clamp(humidity, HUM_RANGE),
    )


class VirtualBLESensor(QObject):
    """
    Sensor BLE simulado (servicio Environmental Sensing).

    No hay hardware: cada tick del temporizador produce una lectura aleatoria
    y la notifica a través de `reading_generated`. Los observadores se
    ejecutan en orden de conexión, de forma síncrona dentro del tick.
    """

    reading_generated = Signal(object)   # SensorReading
    current_changed = Signal(object)     # SensorReading (tick o refresh)
    advertising_changed = Signal(bool)
    connection_changed = Signal(bool)
    connected = Signal()

    def __init__(
        self,
        device_id: str = "VIRTUAL_SENSOR_001",
        interval_ms: int = READING_INTERVAL_MS,
        connect_delay_ms: int = CONNECT_DELAY_MS,
        rng: Optional[random.Random] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.device_id = device_id
        self.rng = rng or random.Random()
        self.current: Optional[SensorReading] = None

        self._is_advertising = False
        self._is_connected = False

        self.timer = QTimer(self)
        self.timer.setInterval(interval_ms)
        self.timer.timeout.connect(self._tick)

        # Retardo de "emparejamiento" simulado
        self._connect_timer = QTimer(self)
        self._connect_timer.setSingleShot(True)
        self._connect_timer.setInterval(connect_delay_ms)
        self._connect_timer.timeout.connect(self._finish_connect)

    # ===================== ESTADO =====================
    @property
    def is_advertising(self) -> bool:
        return self._is_advertising

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def is_connecting(self) -> bool:
        return self._connect_timer.isActive()

    @property
    def state(self) -> SensorState:
        return SensorState(
            is_advertising=self._is_advertising,
            is_connected=self._is_connected,
        )

    # ===================== ADVERTISING =====================
    def start(self) -> None:
        if self._is_advertising:
            return
        self._is_advertising = True
        self.timer.start()
        logger.info("Sensor virtual %s anunciándose (Environmental Sensing)", self.device_id)
        self.advertising_changed.emit(True)

    def stop(self) -> None:
        if not self._is_advertising:
            return
        self.timer.stop()
        self._is_advertising = False
        logger.info("Sensor virtual %s detenido", self.device_id)
        self.advertising_changed.emit(False)

    def _tick(self) -> None:
        reading = generate_reading(self.rng)
        self.current = reading
        logger.debug(
            "Lectura: %.1f °C, %.1f %%", reading.temperature, reading.humidity
        )
        self.reading_generated.emit(reading)
        self.current_changed.emit(reading)

    def refresh(self) -> SensorReading:
        """Fuerza un nuevo valor actual sin pasar por el histórico."""
        reading = generate_reading(self.rng)
        self.current = reading
        self.current_changed.emit(reading)
        return reading

    # ===================== CONEXIÓN =====================
    def connect_sensor(self) -> None:
        """
        Inicia la conexión simulada. Termina tras `connect_delay_ms`
        emitiendo `connected`; no bloquea el bucle de eventos.
        """
        if self._is_connected or self.is_connecting:
            return
        logger.info("Conectando con %s...", self.device_id)
        self._connect_timer.start()

    def _finish_connect(self) -> None:
        self._is_connected = True
        logger.info("Conectado a %s", self.device_id)
        self.connection_changed.emit(True)
        self.connected.emit()

    def disconnect_sensor(self) -> None:
        self._connect_timer.stop()
        if not self._is_connected:
            return
        self._is_connected = False
        logger.info("Desconectado de %s", self.device_id)
        self.connection_changed.emit(False)
