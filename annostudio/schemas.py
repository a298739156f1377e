"""Form schemas: what a user may submit from the create/profile/password/login forms."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator, model_validator

from annostudio.models import DATASET_TYPES

DATASET_NAME_PATTERN = r"^[a-zA-Z0-9\s\-_]+$"
MIN_PASSWORD_LENGTH = 8


class CreateDatasetForm(BaseModel):
    name: str = Field(min_length=2, max_length=100, pattern=DATASET_NAME_PATTERN)
    description: str = Field(default="", max_length=500)
    dataset_type: str

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("dataset_type")
    @classmethod
    def _known_type(cls, v: str) -> str:
        if v not in DATASET_TYPES:
            raise ValueError("Please select a dataset type")
        return v

    def to_payload(self) -> dict:
        return {"name": self.name, "description": self.description, "datasetType": self.dataset_type}


class UpdateDatasetForm(CreateDatasetForm):
    access_type: str = "private"


class LoginForm(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ProfileForm(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: Optional[EmailStr] = None

    def to_payload(self) -> dict:
        payload = {"firstName": self.first_name.strip(), "lastName": self.last_name.strip()}
        if self.email:
            payload["email"] = str(self.email)
        return payload


class PasswordChangeForm(BaseModel):
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    confirm_password: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "PasswordChangeForm":
        if self.new_password != self.confirm_password:
            raise ValueError("New passwords do not match")
        return self

    def to_payload(self) -> dict:
        return {"newPassword": self.new_password, "confirmPassword": self.confirm_password}


def form_errors(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into one readable line per problem."""
    out: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
        msg = str(err.get("msg", "")).removeprefix("Value error, ")
        out.append(f"{loc}: {msg}" if loc else msg)
    return out
