"""
Protocol and workout-log models.

Protocols are the user-authored workout templates; a FinalizedLog is the
immutable record produced once when a guided session finishes.
"""

import time
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExerciseStep(BaseModel):
    """One entry in a protocol's exercise list.

    ``duration`` drives a timed WORK phase; without it the step is
    rep-driven and waits for the user to mark it done.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "Strength"
    duration: int | None = None  # seconds
    reps: int | None = None
    sets: int = 1
    rest: int | None = None  # seconds
    weight: float | None = None  # kg
    distance: float | None = None  # km

    @field_validator("sets", mode="before")
    @classmethod
    def sets_at_least_one(cls, v):
        if v is None:
            return 1
        v = int(v)
        return v if v >= 1 else 1

    @field_validator("duration", "rest")
    @classmethod
    def non_negative_seconds(cls, v):
        if v is not None and v < 0:
            raise ValueError("seconds must be >= 0")
        return v

    @property
    def is_manual(self):
        return not self.duration

    @property
    def rest_seconds(self):
        return self.rest or 0


class Protocol(BaseModel):
    """A named, ordered list of exercises."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    category: str = "Strength"
    exercises: list[ExerciseStep] = Field(default_factory=list)
    created_at: str = Field(default_factory=lambda: time.strftime("%Y-%m-%dT%H:%M:%S"))


class LogExercise(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    reps: int | None = None
    sets: int | None = None
    weight_kg: float | None = None
    duration_seconds: int | None = None
    distance_km: float | None = None

    @classmethod
    def from_step(cls, step: ExerciseStep) -> "LogExercise":
        """Carry the static plan values through unchanged."""
        return cls(
            name=step.name,
            type=step.type,
            reps=step.reps,
            sets=step.sets,
            weight_kg=step.weight,
            duration_seconds=step.duration,
            distance_km=step.distance,
        )


class FinalizedLog(BaseModel):
    """Completed-session record handed to history persistence."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "Protocol"
    protocol_id: str | None = None
    date: str
    total_elapsed_seconds: int
    cumulative_work_seconds: int
    estimated_calories: int
    exercises: tuple[LogExercise, ...] = ()

    def to_history_payload(self) -> dict:
        """Body of a history record, in the shape the history API stores."""
        return {
            "name": self.name,
            "type": self.type,
            "protocol_id": self.protocol_id,
            "date": self.date,
            "duration_seconds": self.total_elapsed_seconds,
            "work_seconds": self.cumulative_work_seconds,
            "calories_burned": self.estimated_calories,
            "exercises": [ex.model_dump() for ex in self.exercises],
        }


class ProfileModel(BaseModel):
    name: str = ""
    date_of_birth: str | None = None
    height_cm: float | None = None
    weight_kg: float | None = None
    city: str = ""
    area: str = ""
    avatar_url: str = ""
    updated_at: str = ""

    @field_validator("weight_kg", "height_cm")
    @classmethod
    def positive_or_none(cls, v):
        if v is not None and v <= 0:
            raise ValueError("must be positive")
        return v
