from __future__ import annotations

from dataclasses import dataclass

from src.application.dtos.profile_dto import Profile
from src.application.services.qr_codec import QrCodec, QrImage
from src.domain.errors import ProfileNotFoundError
from src.infrastructure.database.repositories.profile_repository import ProfileRepository


@dataclass
class GenerateProfileQrUseCase:
    profiles: ProfileRepository
    codec: QrCodec

    def execute(self, profile_id: str) -> QrImage:
        """Render the QR image for a stored profile."""
        entity = self.profiles.get(profile_id)
        if entity is None:
            raise ProfileNotFoundError(profile_id)
        return self.codec.encode(Profile.from_entity(entity))
