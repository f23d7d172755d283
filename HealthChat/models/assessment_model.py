from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from HealthChat.database import Base

# Assessments are owned by the assessment service; chat only reads them to snapshot into a conversation
class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), index=True, nullable=False)
    age = Column(String(32), nullable=True)
    pattern = Column(String(64), nullable=True)
    cycle_length = Column(String(32), nullable=True)
    period_duration = Column(String(32), nullable=True)
    flow_heaviness = Column(String(32), nullable=True)
    pain_level = Column(Integer, nullable=True)
    physical_symptoms = Column(JSON, nullable=True)
    emotional_symptoms = Column(JSON, nullable=True)
    other_symptoms = Column(Text, nullable=True)
    recommendations = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)
