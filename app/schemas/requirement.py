# schemas/requirement.py

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime


class RaosItem(BaseModel):
    role: str
    action: str
    object: str
    supplementary: str = ""


class ExtractionResult(BaseModel):
    """Structured fields the model extracts from a free-text description."""

    app_name: str = Field(alias="appName")
    entities: List[str] = []
    roles: List[str] = []
    features: List[str] = []
    raos: List[RaosItem] = []

    class Config:
        populate_by_name = True


class RequirementCreate(BaseModel):
    description: str

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Description is required")
        return value


class RequirementUpdate(BaseModel):
    app_name: Optional[str] = Field(default=None, min_length=1)
    roles: Optional[List[str]] = None
    entities: Optional[List[str]] = None
    raos: Optional[List[RaosItem]] = None


class OwnerRead(BaseModel):
    id: int
    username: str
    real_name: str
    avatar: Optional[str]

    class Config:
        from_attributes = True


class RequirementRead(BaseModel):
    id: int
    description: str
    app_name: Optional[str]
    entities: List[str] = []
    roles: List[str] = []
    features: List[str] = []
    raos: List[RaosItem] = []
    mockup_markup: Optional[str]
    state: str
    owner_id: int
    created_by: Optional[OwnerRead] = None
    created_at: datetime


class RequirementSummary(BaseModel):
    id: int
    app_name: Optional[str]
    description: str
    state: str
    has_mockup: bool
    created_by: Optional[OwnerRead] = None
    created_at: datetime


class RequirementPage(BaseModel):
    requirements: List[RequirementSummary]
    total_pages: int
    current_page: int
    total: int


class MockupRead(BaseModel):
    id: int
    mockup_markup: str
