"""Emergency contact schemas."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class ContactCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    phone: str = Field(min_length=7, max_length=20)
    email: EmailStr | None = None
    relation: str = Field(pattern="^(Mother|Father|Spouse|Sibling|Friend|Colleague|Other)$")
    is_primary: bool = False


class ContactResponse(BaseModel):
    id: int
    name: str
    phone: str
    email: str | None = None
    relation: str
    is_primary: bool
    created_at: datetime

    model_config = {"from_attributes": True}
