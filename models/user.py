from pydantic import BaseModel, Field, field_validator
from typing import Optional

MEDIUMS = ("hindi", "english")

class UserBase(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    district: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    medium: Optional[str] = None

    @field_validator('medium')
    @classmethod
    def validate_medium(cls, v):
        if v is None:
            return v
        v = v.strip().lower()
        if v not in MEDIUMS:
            raise ValueError("Medium must be 'hindi' or 'english'")
        return v

class UserCreate(UserBase):
    phone: str = Field(..., min_length=10, max_length=15)
    referral_code: Optional[str] = Field(default=None, min_length=5, max_length=5)

class UserUpdate(UserBase):
    profile_image_url: Optional[str] = None

class ReferralApply(BaseModel):
    referral_code: str = Field(..., min_length=5, max_length=5)
