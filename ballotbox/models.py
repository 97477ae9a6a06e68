# models.py

import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ballotbox.database import Base  # Import Base from database.py


def utcnow():
    return datetime.datetime.utcnow()


class Category(Base):
    __tablename__ = 'categories'
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, default='')
    icon = Column(String, default='star')
    display_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    # Deleting a category takes its candidates (and their votes) with it
    candidates = relationship("Candidate", back_populates="category", cascade="all, delete-orphan")

class Candidate(Base):
    __tablename__ = 'candidates'
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    category_id = Column(Integer, ForeignKey('categories.id', ondelete='CASCADE'), nullable=False, index=True)
    image_url = Column(String, default='')
    manifesto = Column(Text, default='')
    class_level = Column(String, default='')
    created_at = Column(DateTime, default=utcnow)

    category = relationship("Category", back_populates="candidates")
    votes = relationship("Vote", back_populates="candidate", cascade="all, delete-orphan")

class Voter(Base):
    __tablename__ = 'voters'
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    class_level = Column(String, default='Unknown')
    has_voted = Column(Boolean, default=False, nullable=False)
    voted_at = Column(DateTime)  # Set when the ballot is accepted, cleared on reset

class Vote(Base):
    __tablename__ = 'votes'
    __table_args__ = (
        UniqueConstraint('student_id', 'category_id', name='uq_votes_student_category'),
    )
    id = Column(Integer, primary_key=True, index=True)
    candidate_id = Column(Integer, ForeignKey('candidates.id', ondelete='CASCADE'), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey('categories.id', ondelete='CASCADE'), nullable=False)
    student_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)

    candidate = relationship("Candidate", back_populates="votes")

class ArchivedElection(Base):
    __tablename__ = 'archived_elections'
    id = Column(Integer, primary_key=True, index=True)
    election_name = Column(String, nullable=False)
    archived_at = Column(DateTime, default=utcnow, nullable=False)
    total_voters = Column(Integer, default=0, nullable=False)
    results = Column(JSON, nullable=False)  # Frozen nested category -> candidate snapshot
    archived_by = Column(String, default='admin')
