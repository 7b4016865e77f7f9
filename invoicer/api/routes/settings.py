"""User Settings Routes — invoice defaults; the number counter is read-only here."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.infrastructure.database import get_db
from invoicer.schemas.settings import UserSettingsResponse, UserSettingsUpdate
from invoicer.services.user_settings import UserSettingsService

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


@router.get("", response_model=UserSettingsResponse)
async def get_user_settings(db: AsyncSession = Depends(get_db)):
    return await UserSettingsService(db).get()


@router.patch("", response_model=UserSettingsResponse)
async def update_user_settings(
    body: UserSettingsUpdate, db: AsyncSession = Depends(get_db),
):
    return await UserSettingsService(db).update(
        body.model_dump(exclude_unset=True, exclude_none=True),
    )
