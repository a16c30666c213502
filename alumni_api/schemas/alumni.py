from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AlumniSearchOut(CamelModel):
    # Approved edits merge arbitrary JSON values, so only rollNumber is typed.
    roll_number: str
    name: Any = None
    year_of_entry: Any = None
    year_of_graduation: Any = None
    program_name: Any = None
    specialization: Any = None
    department: Any = None
    serial_no: Any = None
    last_position: Any = None
    last_organization: Any = None
    nature_of_job: Any = None
    current_location_india: Any = None
    current_overseas_location: Any = None
    country: Any = None


class AlumniSearchResponse(CamelModel):
    count: int
    data: list[AlumniSearchOut] = Field(default_factory=list)
    page: int
    limit: int
    total_count: int
    has_more: bool
