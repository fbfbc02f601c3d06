import logging
from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from typing import Optional
from medminder.core.firebase import get_current_user_uid
from medminder.models.profile import Profile
from medminder.routes.serializers import serialize_profile
from medminder.services.container import get_record_service
from medminder.services.records import RecordService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/profiles", tags=["profiles"])


MAX_NAME_LENGTH = 100
MAX_AGE = 150


class ProfileCreate(BaseModel):
    name: str
    age: int = 0
    image_name: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Profile name cannot be empty')
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f'Profile name cannot exceed {MAX_NAME_LENGTH} characters')
        return v.strip()

    @field_validator('age')
    @classmethod
    def validate_age(cls, v: int) -> int:
        if v < 0 or v > MAX_AGE:
            raise ValueError(f'Age must be between 0 and {MAX_AGE}')
        return v


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    age: Optional[int] = None
    image_name: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            if not v.strip():
                raise ValueError('Profile name cannot be empty')
            if len(v) > MAX_NAME_LENGTH:
                raise ValueError(f'Profile name cannot exceed {MAX_NAME_LENGTH} characters')
            return v.strip()
        return v

    @field_validator('age')
    @classmethod
    def validate_age(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and (v < 0 or v > MAX_AGE):
            raise ValueError(f'Age must be between 0 and {MAX_AGE}')
        return v


#------This Function lists profiles---------
@router.get("/")
async def list_profiles(
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    return [serialize_profile(p) for p in await records.list_profiles()]


#------This Function gets a profile---------
@router.get("/{profile_id}")
async def get_profile(
    profile_id: str,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    return serialize_profile(await records.get_profile(profile_id))


#------This Function creates a profile---------
@router.post("/", status_code=201)
async def create_profile(
    body: ProfileCreate,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    profile = await records.create_profile(Profile(**body.model_dump()))
    logger.info(f"Profile {profile.id} created by {uid}")
    return serialize_profile(profile)


#------This Function updates a profile---------
@router.put("/{profile_id}")
async def update_profile(
    profile_id: str,
    body: ProfileUpdate,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    profile = await records.get_profile(profile_id)
    profile = profile.model_copy(update=body.model_dump(exclude_unset=True))
    return serialize_profile(await records.update_profile(profile))


#------This Function deletes a profile---------
@router.delete("/{profile_id}")
async def delete_profile(
    profile_id: str,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    await records.delete_profile(profile_id)
    logger.info(f"Profile {profile_id} deleted by {uid}")
    return {"status": "deleted", "id": profile_id}
