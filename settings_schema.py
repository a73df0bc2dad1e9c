from typing import Literal

from pydantic import BaseModel, Field, ValidationError


class Settings(BaseModel):
    db_path: str = "lograt.db"
    recent_workout_days: int = Field(default=90, gt=0)
    recent_workout_limit: int = Field(default=20, gt=0)
    log_level: str = "INFO"
    weight_unit: Literal["kg", "lb"] = "kg"


def validate_settings(data: dict) -> Settings:
    try:
        return Settings(**data)
    except ValidationError as e:
        raise ValueError(str(e))
