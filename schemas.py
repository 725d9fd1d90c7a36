from datetime import date
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic import ValidationError as SchemaError

from errors import ValidationError


def load(model, data, **err_kw):
    """Validates a JSON body into `model`; schema errors become a 400 ValidationError."""
    try:
        return model.model_validate(data if data is not None else {})
    except SchemaError as e:
        msg = "; ".join(f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors())
        raise ValidationError(msg, **err_kw) from e


class StudentBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    course: str = Field(min_length=1)
    level_of_study: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    national_id: Optional[str] = None
    birth_certificate: Optional[str] = None
    date_of_birth: Optional[date] = None


class StudentCreate(StudentBase):
    registration_number: str = Field(min_length=1, max_length=64)
    password: Optional[str] = None


class StudentUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1)
    course: Optional[str] = Field(default=None, min_length=1)
    level_of_study: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    national_id: Optional[str] = None
    birth_certificate: Optional[str] = None
    date_of_birth: Optional[date] = None


class AcademicLeave(BaseModel):
    reason: str = Field(min_length=1)


class FeeIn(BaseModel):
    student_id: Optional[str] = None
    semester_fee: float = Field(ge=0)
    total_paid: float = Field(default=0, ge=0)


class FeeUpdate(BaseModel):
    semester_fee: Optional[float] = Field(default=None, ge=0)
    total_paid: Optional[float] = Field(default=None, ge=0)


class UnitIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    unit_code: str = Field(min_length=1, max_length=32)
    unit_name: str = Field(min_length=1)


class UnitsIn(BaseModel):
    units: List[UnitIn] = Field(min_length=1)


class UnitUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    unit_code: Optional[str] = Field(default=None, min_length=1, max_length=32)
    unit_name: Optional[str] = Field(default=None, min_length=1)


class Promotion(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    registration_number: str = Field(min_length=1)
    new_level: str = Field(min_length=1)


class FinanceIn(BaseModel):
    student_id: str = Field(min_length=1)
    statement: Optional[str] = None
    statement_url: Optional[str] = None
    receipt_url: Optional[str] = None


class FinanceUpdate(BaseModel):
    statement: Optional[str] = None
    statement_url: Optional[str] = None
    receipt_url: Optional[str] = None


class ResultIn(BaseModel):
    semester: int = Field(ge=1)
    result_data: Union[Dict[str, Any], List[Any]]


class ResultUpdate(BaseModel):
    semester: Optional[int] = Field(default=None, ge=1)
    result_data: Optional[Union[Dict[str, Any], List[Any]]] = None


class TimetableIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    course: Optional[str] = None
    semester: int = Field(ge=1, le=2)
    timetable_data: Union[Dict[str, Any], List[Any]]


class TimetableUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    course: Optional[str] = None
    semester: Optional[int] = Field(default=None, ge=1, le=2)
    timetable_data: Optional[Union[Dict[str, Any], List[Any]]] = None
