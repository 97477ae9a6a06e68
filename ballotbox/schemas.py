# schemas.py

import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict


class StudentLogin(BaseModel):
    student_id: str
    name: str

class AdminLogin(BaseModel):
    username: str
    password: str


class CategoryIn(BaseModel):
    name: str
    description: str = ''
    icon: str = 'star'
    display_order: int = 0

class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    display_order: Optional[int] = None

class CategoryOut(CategoryIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class CandidateIn(BaseModel):
    name: str
    category_id: int
    image_url: str = ''
    manifesto: str = ''
    class_level: str = ''

class CandidateUpdate(BaseModel):
    name: Optional[str] = None
    category_id: Optional[int] = None
    image_url: Optional[str] = None
    manifesto: Optional[str] = None
    class_level: Optional[str] = None

class CandidateOut(CandidateIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class Selection(BaseModel):
    category_id: int
    candidate_id: int

class BallotOut(BaseModel):
    selections: dict
    complete: bool
    missing: List[str]
    current_category_id: Optional[int] = None
    progress: float = 0


class ArchiveIn(BaseModel):
    election_name: str

class ArchiveOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    election_name: str
    archived_at: datetime.datetime
    total_voters: int
    results: List[Any]
    archived_by: Optional[str] = None

class ResetIn(BaseModel):
    confirmation: str
