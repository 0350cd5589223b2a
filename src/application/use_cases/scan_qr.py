from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from loguru import logger

from src.application.dtos.profile_dto import ProfileFormData
from src.application.services.qr_codec import QrCodec
from src.domain.errors import CameraError, QrDecodeError
from src.infrastructure.camera.opencv_camera import CameraBackend, CameraInfo


@dataclass(frozen=True)
class ScanResult:
    data: ProfileFormData | None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.data is not None


@dataclass
class ScanUploadedImageUseCase:
    codec: QrCodec

    def execute(self, image: bytes) -> ScanResult:
        """Decode one uploaded image. Failures are returned, never raised."""
        try:
            return ScanResult(data=self.codec.decode_image(image))
        except QrDecodeError as exc:
            logger.info(f"[QR] Upload rejected: {exc}")
            return ScanResult(data=None, error=str(exc))


class ScanState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


class CameraScanSession:
    """Camera-mode scanning as an explicit state machine.

    IDLE -> STARTING -> ACTIVE(device_id) -> STOPPING -> IDLE

    The camera is released on every way out of ACTIVE: ``stop()``, a
    successful decode, leaving the ``async with`` block, and cancellation or
    errors inside ``run()``. Decode problems are kept in ``error`` and never
    raised to the caller.
    """

    def __init__(self, camera: CameraBackend, codec: QrCodec, *, frame_interval: float = 0.1) -> None:
        self.camera = camera
        self.codec = codec
        self.frame_interval = frame_interval
        self.state = ScanState.IDLE
        self.device_id: str | None = None
        self.selected_device_id: str | None = None
        self.devices: list[CameraInfo] = []
        self.error = ""
        # bumped by every start and stop; a blocking call that returns under an
        # older token belongs to a session that has since been stopped
        self._token = 0

    @property
    def has_camera(self) -> bool:
        return bool(self.devices)

    async def __aenter__(self) -> CameraScanSession:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def list_devices(self) -> list[CameraInfo]:
        try:
            self.devices = await asyncio.to_thread(self.camera.list_devices)
        except CameraError as exc:
            logger.warning(f"[Camera] Device enumeration failed: {exc}")
            self.devices = []
        if self.devices and self.selected_device_id is None:
            self.selected_device_id = self.devices[0].id
        return self.devices

    async def start(self, device_id: str | None = None) -> bool:
        if self.state is ScanState.ACTIVE:
            return True
        if self.state is not ScanState.IDLE:
            raise RuntimeError(f"Cannot start scanning while {self.state.value}")

        target = device_id or self.selected_device_id
        if target is None:
            await self.list_devices()
            target = self.selected_device_id
        if target is None:
            self.error = "No camera detected"
            return False

        self.state = ScanState.STARTING
        self.error = ""
        self._token += 1
        token = self._token
        try:
            await asyncio.to_thread(self.camera.open, target)
        except CameraError as exc:
            if token != self._token:
                return False
            logger.error(f"[Camera] Failed to start device {target}: {exc}")
            self._release()
            self.error = f"Failed to access camera: {exc}"
            return False
        if token != self._token:
            logger.info(f"[Camera] Stopped while opening device {target}, releasing it")
            self._release_if_idle()
            return False
        self.state = ScanState.ACTIVE
        self.device_id = target
        self.selected_device_id = target
        logger.info(f"[Camera] Scanning on device {target}")
        return True

    async def switch_device(self, device_id: str) -> bool:
        """Select another camera; when active, switch in place or fall back to the previous one."""
        previous = self.device_id or self.selected_device_id
        self.selected_device_id = device_id
        self.error = ""
        if self.state is not ScanState.ACTIVE:
            return True
        token = self._token
        try:
            await asyncio.to_thread(self.camera.switch, device_id)
        except CameraError as exc:
            if token != self._token:
                return False
            logger.warning(f"[Camera] Switch to {device_id} failed, restarting on {previous}: {exc}")
            await self.stop()
            self.selected_device_id = previous
            if await self.start(previous):
                self.error = f"Failed to switch camera: {exc}"
            return False
        if token != self._token:
            self._release_if_idle()
            return False
        self.device_id = device_id
        return True

    def _release(self) -> None:
        try:
            self.camera.close()
        except CameraError as exc:
            logger.warning(f"[Camera] Release failed: {exc}")
        finally:
            self.state = ScanState.IDLE
            self.device_id = None

    def _release_if_idle(self) -> None:
        # a newer start owns the device otherwise
        if self.state is ScanState.IDLE:
            self._release()

    async def stop(self) -> None:
        if self.state is ScanState.IDLE:
            return
        self.state = ScanState.STOPPING
        self._token += 1
        self._release()
        logger.info("[Camera] Scanning stopped")

    async def scan_frame(self) -> ProfileFormData | None:
        """Grab one frame and try to decode it; stops the camera on success."""
        if self.state is not ScanState.ACTIVE:
            raise CameraError("Camera is not active")
        token = self._token
        frame = await asyncio.to_thread(self.camera.read_frame)
        if token != self._token or frame is None:
            return None
        text = self.codec.detect_text(frame)
        if text is None:
            return None
        try:
            data = self.codec.parse_payload(text)
        except QrDecodeError as exc:
            self.error = str(exc)
            return None
        self.error = ""
        await self.stop()
        return data

    async def run(
        self,
        on_result: Callable[[ProfileFormData], None],
        max_frames: int | None = None,
    ) -> ProfileFormData | None:
        """Scan frames until a valid profile is read, the session stops or ``max_frames`` is reached."""
        frames = 0
        try:
            while self.state is ScanState.ACTIVE:
                if max_frames is not None and frames >= max_frames:
                    break
                frames += 1
                data = await self.scan_frame()
                if data is not None:
                    on_result(data)
                    return data
                await asyncio.sleep(self.frame_interval)
        finally:
            if self.state is not ScanState.IDLE:
                await self.stop()
        return None
