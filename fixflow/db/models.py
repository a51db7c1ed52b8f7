
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Integer, JSON, DateTime
from datetime import datetime

class Base(DeclarativeBase):
    pass

class FlowStateRecord(Base):
    __tablename__ = "flow_state"

    owner_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    flow_type: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True) # active, completed, cancelled
    current_step: Mapped[int] = mapped_column(Integer, nullable=False)
    total_steps: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Full serialized FlowSession (data, history, config, timestamps)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    # Mirrors payload["updated_at"]; indexed so the reaper can range-scan it
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
