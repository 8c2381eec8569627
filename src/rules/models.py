from pydantic import BaseModel, Field, field_validator

from src.components.calendar import is_valid_time_zone
from src.components.cycles import CycleKind


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class CalendarRules(BaseModel):
    default_timezone: str = "America/New_York"

    @field_validator("default_timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        if not is_valid_time_zone(value):
            raise ValueError(f"unknown time zone {value!r}")
        return value.strip()


class StakeRules(BaseModel):
    base_stake_cents: int = Field(gt=0)
    goal_locked_stake_cents: int = Field(gt=0)


class CycleRules(BaseModel):
    default_kind: CycleKind = CycleKind.WEEKLY
    default_start_day: int = Field(default=5, ge=0, le=6)  # 0 = Sunday


class SettlementRules(BaseModel):
    lease_seconds: int = Field(default=60, gt=0)
    allow_force_replay: bool = True


class StoreRules(BaseModel):
    timeout_seconds: float = Field(default=5.0, gt=0)


class OpsRules(BaseModel):
    required_env: list[str] = Field(default_factory=list)


class Rules(BaseModel):
    project: ProjectRules
    calendar: CalendarRules = Field(default_factory=CalendarRules)
    stakes: StakeRules
    cycles: CycleRules = Field(default_factory=CycleRules)
    settlement: SettlementRules = Field(default_factory=SettlementRules)
    store: StoreRules = Field(default_factory=StoreRules)
    ops: OpsRules = Field(default_factory=OpsRules)
