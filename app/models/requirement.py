from typing import Any, Dict, List, Optional
from sqlmodel import SQLModel, Field, Column
from sqlalchemy import JSON, Text
from datetime import datetime, timezone

class Requirement(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    description: str
    app_name: Optional[str] = Field(default=None, index=True)
    entities: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    roles: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    features: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    raos: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))  # [{role, action, object, supplementary}]
    mockup_markup: Optional[str] = Field(default=None, sa_column=Column(Text))
    owner_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
