"""QR encoding and decoding of profile records.

Payload format::

    {"type": "user-profile", "version": "1.0",
     "data": {"fullName", "email", "phoneNumber", "bio",
              "avatarUrl", "dateOfBirth", "location"}}

``fullName`` and ``email`` are mandatory; the other fields default to an
empty string.
"""
from __future__ import annotations

import base64
import json
import re
from dataclasses import dataclass
from datetime import date
from io import BytesIO

import cv2
import numpy as np
from loguru import logger
from PIL import Image, UnidentifiedImageError

from src.application.dtos.profile_dto import Profile, ProfileFormData
from src.domain.errors import QrDecodeError

PAYLOAD_TYPE = "user-profile"
PAYLOAD_VERSION = "1.0"
PAYLOAD_FIELDS = ("fullName", "email", "phoneNumber", "bio", "avatarUrl", "dateOfBirth", "location")

INVALID_PAYLOAD_MESSAGE = "Invalid QR code format or missing required information."
NO_CODE_MESSAGE = "Could not detect a valid QR code in the uploaded image."


@dataclass(frozen=True)
class QrImage:
    png: bytes
    filename: str
    payload: str

    @property
    def data_url(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.png).decode("ascii")


def _hex_to_rgb(color: str) -> tuple[int, int, int]:
    color = color.lstrip("#")
    return int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16)


def _date_only(value: date | str | None) -> str:
    if not value:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return value.split("T")[0]


def download_filename(full_name: str) -> str:
    slug = re.sub(r"\s+", "-", full_name).lower()
    return f"qr-code-{slug}.png"


class QrCodec:
    """Renders profiles as two-tone PNG QR codes and reads them back.

    Rendering uses OpenCV's QR encoder for the module matrix and Pillow for
    the final image; decoding runs a single ``cv2.QRCodeDetector`` pass per
    image or frame.
    """

    def __init__(
        self,
        size: int = 256,
        margin: int = 2,
        dark: str = "#1f2937",
        light: str = "#ffffff",
    ) -> None:
        self.size = size
        self.margin = margin  # quiet zone, in modules
        self.dark = _hex_to_rgb(dark)
        self.light = _hex_to_rgb(light)
        self._detector = cv2.QRCodeDetector()

    # -- payload ------------------------------------------------------------

    @staticmethod
    def build_envelope(profile: Profile | ProfileFormData) -> dict:
        return {
            "type": PAYLOAD_TYPE,
            "version": PAYLOAD_VERSION,
            "data": {
                "fullName": profile.full_name,
                "email": profile.email,
                "phoneNumber": profile.phone_number or "",
                "bio": profile.bio or "",
                "avatarUrl": profile.avatar_url or "",
                "dateOfBirth": _date_only(profile.date_of_birth),
                "location": profile.location or "",
            },
        }

    @staticmethod
    def parse_payload(text: str) -> ProfileFormData:
        """Validate scanned text and return the profile form data it carries."""
        try:
            envelope = json.loads(text)
        except ValueError as exc:
            raise QrDecodeError(INVALID_PAYLOAD_MESSAGE) from exc
        if not isinstance(envelope, dict) or envelope.get("type") != PAYLOAD_TYPE:
            raise QrDecodeError(INVALID_PAYLOAD_MESSAGE)
        data = envelope.get("data")
        if not isinstance(data, dict):
            raise QrDecodeError(INVALID_PAYLOAD_MESSAGE)

        fields = {}
        for name in PAYLOAD_FIELDS:
            value = data.get(name) or ""
            fields[name] = value if isinstance(value, str) else str(value)
        if not fields["fullName"] or not fields["email"]:
            raise QrDecodeError(INVALID_PAYLOAD_MESSAGE)
        return ProfileFormData(**fields)

    # -- image --------------------------------------------------------------

    def _modules(self, text: str) -> np.ndarray:
        """Boolean module matrix (True = dark) without any quiet zone."""
        encoder = cv2.QRCodeEncoder.create()
        try:
            raw = encoder.encode(text)
        except cv2.error as exc:
            raise ValueError(f"Payload too large to encode as a QR code: {exc}") from exc
        if raw.ndim == 3:
            raw = raw[..., 0]
        dark = raw < 128
        rows = np.flatnonzero(dark.any(axis=1))
        cols = np.flatnonzero(dark.any(axis=0))
        return dark[rows[0] : rows[-1] + 1, cols[0] : cols[-1] + 1]

    def render(self, text: str) -> bytes:
        modules = self._modules(text)
        modules = np.pad(modules, self.margin, constant_values=False)
        scale = max(1, self.size // modules.shape[0])
        scaled = np.kron(modules, np.ones((scale, scale), dtype=bool))

        side = max(self.size, scaled.shape[0])
        canvas = np.empty((side, side, 3), dtype=np.uint8)
        canvas[:] = self.light
        offset = (side - scaled.shape[0]) // 2
        region = canvas[offset : offset + scaled.shape[0], offset : offset + scaled.shape[1]]
        region[scaled] = self.dark

        buf = BytesIO()
        Image.fromarray(canvas).save(buf, format="PNG")
        return buf.getvalue()

    def encode(self, profile: Profile | ProfileFormData) -> QrImage:
        payload = json.dumps(self.build_envelope(profile))
        png = self.render(payload)
        logger.debug(f"[QR] Encoded profile {profile.email} ({len(payload)} chars)")
        return QrImage(png=png, filename=download_filename(profile.full_name), payload=payload)

    def detect_text(self, image: np.ndarray) -> str | None:
        """Run one detection pass; returns the decoded text or None when no code is found."""
        try:
            text, points, _ = self._detector.detectAndDecode(image)
        except cv2.error as exc:
            logger.debug(f"[QR] Detector failed: {exc}")
            return None
        if points is None or not text:
            return None
        return text

    @staticmethod
    def load_image(data: bytes) -> np.ndarray:
        try:
            with Image.open(BytesIO(data)) as img:
                array = np.asarray(img.convert("RGB"))
        except (UnidentifiedImageError, OSError) as exc:
            raise QrDecodeError(NO_CODE_MESSAGE) from exc
        # tight crops lose the quiet zone the detector needs
        return cv2.copyMakeBorder(array, 16, 16, 16, 16, cv2.BORDER_CONSTANT, value=(255, 255, 255))

    def decode_image(self, image: bytes | np.ndarray) -> ProfileFormData:
        """Decode an uploaded image (raw bytes) or a camera frame into profile form data."""
        array = self.load_image(image) if isinstance(image, (bytes, bytearray)) else image
        text = self.detect_text(array)
        if text is None:
            raise QrDecodeError(NO_CODE_MESSAGE)
        return self.parse_payload(text)
