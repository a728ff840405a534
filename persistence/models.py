"""SQLAlchemy models."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

MODEL_STATUSES = ("available", "downloading", "installing", "error", "removed")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid.uuid4())


class Model(Base):
    """A model the inference server has, had, or is fetching."""

    __tablename__ = "models"
    __table_args__ = (
        CheckConstraint(
            "status IN ({})".format(", ".join(f"'{s}'" for s in MODEL_STATUSES)),
            name="ck_models_status",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    size: Mapped[int] = mapped_column(Integer, default=0)
    family: Mapped[str] = mapped_column(String(100), default="")
    format: Mapped[str] = mapped_column(String(50), default="")
    parameters: Mapped[str] = mapped_column(String(50), default="")  # "8.0B"
    quantization: Mapped[str] = mapped_column(String(50), default="")  # "Q4_K_M"
    status: Mapped[str] = mapped_column(String(20), default="available", index=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    supports_embeddings: Mapped[bool] = mapped_column(Boolean, default=False)
    embedding_dimensions: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())
    last_used_at: Mapped[datetime | None] = mapped_column(index=True)

    config: Mapped["ModelConfig | None"] = relationship(
        back_populates="model",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ModelConfig(Base):
    """Generation parameters for a model. One per model."""

    __tablename__ = "model_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    model_id: Mapped[str] = mapped_column(
        ForeignKey("models.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    temperature: Mapped[float | None] = mapped_column(Float)
    top_p: Mapped[float | None] = mapped_column(Float)
    top_k: Mapped[int | None] = mapped_column(Integer)
    repeat_penalty: Mapped[float | None] = mapped_column(Float)
    context_length: Mapped[int | None] = mapped_column(Integer)
    max_tokens: Mapped[int | None] = mapped_column(Integer)
    system_prompt: Mapped[str] = mapped_column(Text, default="")
    custom_options: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    model: Mapped[Model] = relationship(back_populates="config")
