from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol

import cv2
import numpy as np
from loguru import logger

from src.domain.errors import CameraError


@dataclass(frozen=True)
class CameraInfo:
    id: str
    label: str


class CameraBackend(Protocol):
    """Blocking camera port; the scan session calls it from a worker thread."""

    def list_devices(self) -> list[CameraInfo]: ...

    def open(self, device_id: str) -> None: ...

    def switch(self, device_id: str) -> None: ...

    def read_frame(self) -> np.ndarray | None: ...

    def close(self) -> None: ...


class OpenCVCamera:
    """Camera backend on ``cv2.VideoCapture``; device ids are capture indexes."""

    def __init__(self, max_probe: int | None = None) -> None:
        self.max_probe = max_probe if max_probe is not None else int(os.getenv("PROFILEKIT_CAMERA_PROBE", "4"))
        self._capture: cv2.VideoCapture | None = None

    @staticmethod
    def _open_capture(device_id: str) -> cv2.VideoCapture:
        try:
            index = int(device_id)
        except ValueError as exc:
            raise CameraError(f"Unknown camera id: {device_id}") from exc
        capture = cv2.VideoCapture(index)
        if not capture.isOpened():
            capture.release()
            raise CameraError(f"Camera {device_id} could not be opened")
        return capture

    def list_devices(self) -> list[CameraInfo]:
        devices = []
        for index in range(self.max_probe):
            capture = cv2.VideoCapture(index)
            if capture.isOpened():
                devices.append(CameraInfo(id=str(index), label=f"Camera {index}"))
            capture.release()
        logger.debug(f"[Camera] Found {len(devices)} device(s)")
        return devices

    def open(self, device_id: str) -> None:
        self.close()
        self._capture = self._open_capture(device_id)

    def switch(self, device_id: str) -> None:
        # the new device must open before the current one is given up
        capture = self._open_capture(device_id)
        self.close()
        self._capture = capture

    def read_frame(self) -> np.ndarray | None:
        if self._capture is None:
            raise CameraError("Camera is not open")
        ok, frame = self._capture.read()
        if not ok:
            return None
        return frame

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
