# models.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

DEVICE_TYPE = "virtual_ble"

# Rangos físicos admitidos tras aplicar el ruido
TEMP_RANGE = (15.0, 40.0)  # ºC
HUM_RANGE = (30.0, 90.0)   # %


@dataclass(frozen=True)
class SensorReading:
    temperature: float  # ºC
    humidity: float     # %
    timestamp: datetime = field(default_factory=datetime.now)

    def to_payload(self, sensor_id: str) -> Dict[str, Any]:
        """Cuerpo JSON que espera el colector remoto."""
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "sensor_id": sensor_id,
            "timestamp": self.timestamp.isoformat(),
            "device_type": DEVICE_TYPE,
        }


@dataclass(frozen=True)
class SensorState:
    is_advertising: bool = False
    is_connected: bool = False
