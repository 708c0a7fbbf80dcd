"""Request models for the scheduling API."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LoadWeekRequest(_Request):
    """Week to load; any date inside the week works."""

    fecha: date | None = None


class AddCombinationRequest(_Request):
    combination_id: str = Field(alias="combinationId")


class CopyDayRequest(_Request):
    target_day: str = Field(alias="targetDay")


class CreateTemplateRequest(_Request):
    nombre: str
    descripcion: str = ""
