from __future__ import annotations

import asyncio
import json
import threading

import pytest

from src.application.services.qr_codec import INVALID_PAYLOAD_MESSAGE, NO_CODE_MESSAGE, QrCodec
from src.application.use_cases.scan_qr import CameraScanSession, ScanState, ScanUploadedImageUseCase
from src.domain.errors import CameraError
from src.infrastructure.camera.opencv_camera import CameraInfo, OpenCVCamera

VALID = json.dumps(
    {"type": "user-profile", "version": "1.0", "data": {"fullName": "Ada Lovelace", "email": "ada@example.com"}}
)
FOREIGN = json.dumps({"type": "wifi", "data": {}})


class FakeCamera:
    """Camera whose 'frames' are the decoded text the fake codec will report."""

    def __init__(self, devices=("0", "1"), broken=(), frames=()) -> None:
        self.devices = [CameraInfo(id=d, label=f"Camera {d}") for d in devices]
        self.broken = set(broken)
        self.frames = list(frames)
        self.opened: str | None = None
        self.history: list[str] = []

    def list_devices(self):
        return list(self.devices)

    def open(self, device_id):
        self.history.append(f"open:{device_id}")
        if device_id in self.broken:
            raise CameraError(f"Camera {device_id} could not be opened")
        self.opened = device_id

    def switch(self, device_id):
        self.history.append(f"switch:{device_id}")
        if device_id in self.broken:
            raise CameraError(f"Camera {device_id} could not be opened")
        self.opened = device_id

    def read_frame(self):
        if self.opened is None:
            raise CameraError("Camera is not open")
        return self.frames.pop(0) if self.frames else None

    def close(self):
        self.history.append("close")
        self.opened = None


class TextCodec(QrCodec):
    def detect_text(self, image):
        return image


@pytest.fixture()
def codec() -> TextCodec:
    return TextCodec()


@pytest.mark.asyncio
async def test_start_selects_first_device(codec):
    camera = FakeCamera()
    session = CameraScanSession(camera, codec)

    assert await session.start() is True
    assert session.state is ScanState.ACTIVE
    assert session.device_id == "0"
    assert session.has_camera is True
    assert camera.opened == "0"


@pytest.mark.asyncio
async def test_start_without_devices_reports_error(codec):
    session = CameraScanSession(FakeCamera(devices=()), codec)

    assert await session.start() is False
    assert session.state is ScanState.IDLE
    assert session.has_camera is False
    assert session.error == "No camera detected"


@pytest.mark.asyncio
async def test_start_failure_leaves_session_idle(codec):
    camera = FakeCamera(broken={"0"})
    session = CameraScanSession(camera, codec)

    assert await session.start() is False
    assert session.state is ScanState.IDLE
    assert session.error.startswith("Failed to access camera:")
    assert camera.history[-1] == "close"


@pytest.mark.asyncio
async def test_start_is_idempotent_while_active(codec):
    camera = FakeCamera()
    session = CameraScanSession(camera, codec)
    await session.start()
    assert await session.start("1") is True
    assert camera.history == ["open:0"]


@pytest.mark.asyncio
async def test_switch_device_in_place(codec):
    camera = FakeCamera()
    session = CameraScanSession(camera, codec)
    await session.start("0")

    assert await session.switch_device("1") is True
    assert session.device_id == "1"
    assert session.state is ScanState.ACTIVE
    assert camera.opened == "1"


@pytest.mark.asyncio
async def test_failed_switch_falls_back_to_previous_device(codec):
    camera = FakeCamera(broken={"1"})
    session = CameraScanSession(camera, codec)
    await session.start("0")

    assert await session.switch_device("1") is False

    assert session.state is ScanState.ACTIVE
    assert session.device_id == "0"
    assert session.selected_device_id == "0"
    assert camera.opened == "0"
    assert session.error.startswith("Failed to switch camera:")
    assert camera.history == ["open:0", "switch:1", "close", "open:0"]


@pytest.mark.asyncio
async def test_switch_while_idle_only_selects(codec):
    camera = FakeCamera()
    session = CameraScanSession(camera, codec)

    assert await session.switch_device("1") is True
    assert camera.history == []
    await session.start()
    assert session.device_id == "1"


@pytest.mark.asyncio
async def test_successful_decode_stops_camera(codec):
    camera = FakeCamera(frames=[None, VALID])
    session = CameraScanSession(camera, codec, frame_interval=0)
    await session.start()

    assert await session.scan_frame() is None
    data = await session.scan_frame()

    assert data.full_name == "Ada Lovelace"
    assert data.phone_number == ""
    assert session.state is ScanState.IDLE
    assert camera.opened is None


@pytest.mark.asyncio
async def test_invalid_payload_is_reported_and_scanning_continues(codec):
    camera = FakeCamera(frames=[FOREIGN, VALID])
    session = CameraScanSession(camera, codec, frame_interval=0)
    await session.start()

    assert await session.scan_frame() is None
    assert session.error == INVALID_PAYLOAD_MESSAGE
    assert session.state is ScanState.ACTIVE

    assert (await session.scan_frame()).email == "ada@example.com"
    assert session.error == ""


@pytest.mark.asyncio
async def test_scan_frame_requires_active_session(codec):
    session = CameraScanSession(FakeCamera(), codec)
    with pytest.raises(CameraError):
        await session.scan_frame()


@pytest.mark.asyncio
async def test_run_delivers_result_and_releases(codec):
    camera = FakeCamera(frames=[None, None, VALID])
    session = CameraScanSession(camera, codec, frame_interval=0)
    await session.start()
    results = []

    data = await session.run(results.append)

    assert results == [data]
    assert session.state is ScanState.IDLE
    assert camera.opened is None


@pytest.mark.asyncio
async def test_run_releases_after_frame_limit(codec):
    camera = FakeCamera()
    session = CameraScanSession(camera, codec, frame_interval=0)
    await session.start()

    assert await session.run(lambda _: None, max_frames=3) is None
    assert session.state is ScanState.IDLE
    assert camera.opened is None


@pytest.mark.asyncio
async def test_run_releases_on_cancellation(codec):
    camera = FakeCamera()
    session = CameraScanSession(camera, codec, frame_interval=0.01)
    await session.start()

    task = asyncio.create_task(session.run(lambda _: None))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert session.state is ScanState.IDLE
    assert camera.opened is None


@pytest.mark.asyncio
async def test_leaving_context_releases_camera(codec):
    camera = FakeCamera()
    async with CameraScanSession(camera, codec) as session:
        await session.start()
        assert camera.opened == "0"
    assert camera.opened is None
    assert session.state is ScanState.IDLE


def test_upload_use_case_returns_error_instead_of_raising():
    result = ScanUploadedImageUseCase(QrCodec()).execute(b"not an image")
    assert result.ok is False
    assert result.error == NO_CODE_MESSAGE


def test_upload_use_case_decodes_rendered_code():
    codec = QrCodec()
    result = ScanUploadedImageUseCase(codec).execute(codec.render(VALID))
    assert result.ok is True
    assert result.data.email == "ada@example.com"


class BlockingCamera(FakeCamera):
    """Open and read block until released, like a slow device."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.release_open = threading.Event()
        self.release_read = threading.Event()

    def open(self, device_id):
        self.release_open.wait(timeout=5)
        super().open(device_id)

    def read_frame(self):
        self.release_read.wait(timeout=5)
        return self.frames.pop(0) if self.frames else None


@pytest.mark.asyncio
async def test_stop_during_start_releases_device(codec):
    camera = BlockingCamera()
    session = CameraScanSession(camera, codec)

    starting = asyncio.create_task(session.start("0"))
    await asyncio.sleep(0.01)
    assert session.state is ScanState.STARTING

    await session.stop()
    camera.release_open.set()

    assert await starting is False
    assert session.state is ScanState.IDLE
    assert camera.opened is None


@pytest.mark.asyncio
async def test_restart_after_interrupted_start(codec):
    camera = BlockingCamera()
    session = CameraScanSession(camera, codec)

    first = asyncio.create_task(session.start("0"))
    await asyncio.sleep(0.01)
    await session.stop()
    camera.release_open.set()
    await first

    assert await session.start("1") is True
    assert session.state is ScanState.ACTIVE
    assert camera.opened == "1"


@pytest.mark.asyncio
async def test_stop_during_frame_read_discards_result(codec):
    camera = BlockingCamera(frames=[VALID])
    camera.release_open.set()
    session = CameraScanSession(camera, codec, frame_interval=0)
    await session.start()
    results = []

    running = asyncio.create_task(session.run(results.append))
    await asyncio.sleep(0.01)
    await session.stop()
    camera.release_read.set()

    assert await running is None
    assert results == []
    assert session.state is ScanState.IDLE
    assert camera.opened is None


def test_opencv_camera_rejects_non_numeric_id():
    with pytest.raises(CameraError, match="Unknown camera id"):
        OpenCVCamera._open_capture("front")


def test_opencv_camera_read_requires_open_device():
    camera = OpenCVCamera(max_probe=0)
    assert camera.list_devices() == []
    with pytest.raises(CameraError):
        camera.read_frame()
    camera.close()
