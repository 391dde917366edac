# uploader.py
from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

import requests

from models import SensorReading

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/api/sensor-data"
UPLOAD_TIMEOUT_S = 10.0

# Trozos pequeños: el plazo total se comprueba entre lecturas del cuerpo
BODY_CHUNK_SIZE = 1


class UploadError(Exception):
    """Fallo de envío al colector. El mensaje es apto para mostrar al usuario."""


class NetworkError(UploadError):
    pass


class UploadTimeoutError(UploadError):
    pass


@dataclass(frozen=True)
class UploadResult:
    status_code: int
    body: str


class Uploader:
    """
    Envía una lectura al colector remoto con un único POST.

    `timeout` limita la llamada completa (conexión, cabeceras y cuerpo de
    la respuesta), no solo cada espera del socket.

    Cualquier respuesta HTTP (también 4xx/5xx) se considera sincronizada;
    el código de estado se devuelve al llamante sin validarlo. No hay
    reintentos ni cola: una lectura que falla se pierde.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = UPLOAD_TIMEOUT_S,
        session: Optional[requests.Session] = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError(f"upload timeout must be positive, got {timeout!r}")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return self.base_url + UPLOAD_PATH

    def upload(self, reading: SensorReading, sensor_id: str) -> UploadResult:
        payload = reading.to_payload(sensor_id)
        logger.info("Enviando al colector %s: %s", self.url, payload)

        started = time.monotonic()
        try:
            response = self.session.post(
                self.url,
                json=payload,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                stream=True,
            )
            try:
                body = self._read_body(response, started)
            finally:
                response.close()
        # Timeout antes que RequestException: ConnectTimeout hereda de ambas
        except requests.Timeout as e:
            raise self._timeout_error() from e
        except requests.RequestException as e:
            # Un timeout de lectura en mitad del cuerpo llega como ConnectionError
            if self._expired(started):
                raise self._timeout_error() from e
            logger.warning("Error de red enviando a %s: %s", self.url, e)
            raise NetworkError(f"Error de red: {e}") from e

        logger.info("Respuesta del colector: %s - %s", response.status_code, body)
        return UploadResult(status_code=response.status_code, body=body)

    def _read_body(self, response: requests.Response, started: float) -> str:
        if self._expired(started):
            raise self._timeout_error()

        chunks: List[bytes] = []
        for chunk in response.iter_content(chunk_size=BODY_CHUNK_SIZE):
            chunks.append(chunk)
            if self._expired(started):
                raise self._timeout_error()

        return b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")

    def _expired(self, started: float) -> bool:
        return time.monotonic() - started >= self.timeout

    def _timeout_error(self) -> UploadTimeoutError:
        logger.warning("Timeout (%.1fs) enviando a %s", self.timeout, self.url)
        return UploadTimeoutError(f"Sin respuesta de {self.url} en {self.timeout:g}s")

    def close(self) -> None:
        self.session.close()
