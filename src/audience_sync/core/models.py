"""Data models for the Mailchimp and Ometria APIs."""

from typing import List
from pydantic import BaseModel, ConfigDict, Field, field_validator


class MergeFields(BaseModel):
    """Structured name fields of a Mailchimp member."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    first_name: str = Field("", alias="FNAME")
    last_name: str = Field("", alias="LNAME")

    @field_validator('first_name', 'last_name', mode='before')
    @classmethod
    def validate_name(cls, v):
        # Mailchimp sends null for merge fields that were never filled in
        if v is None:
            return ""
        return str(v)


class Member(BaseModel):
    """Represents an audience member from Mailchimp."""
    model_config = ConfigDict(extra="ignore")

    id: str
    email_address: str = ""
    full_name: str = ""
    status: str = ""
    merge_fields: MergeFields = Field(default_factory=MergeFields)

    @field_validator('email_address', 'full_name', 'status', mode='before')
    @classmethod
    def validate_text(cls, v):
        if v is None:
            return ""
        return v

    @field_validator('merge_fields', mode='before')
    @classmethod
    def validate_merge_fields(cls, v):
        if v is None:
            return {}
        return v


class MembersPage(BaseModel):
    """Response from the Mailchimp list members API."""
    model_config = ConfigDict(extra="ignore")

    total_items: int = 0
    members: List[Member] = Field(default_factory=list)


class ListStats(BaseModel):
    """Member count statistics of an audience list."""
    model_config = ConfigDict(extra="ignore")

    member_count: int = 0
    total_contacts: int = 0


class AudienceList(BaseModel):
    """Represents a Mailchimp audience list."""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    stats: ListStats = Field(default_factory=ListStats)


class ListsResponse(BaseModel):
    """Response from the Mailchimp lists API."""
    model_config = ConfigDict(extra="ignore")

    lists: List[AudienceList] = Field(default_factory=list)


class OmetriaContact(BaseModel):
    """Contact record in the shape the Ometria push endpoint expects."""
    id: str
    firstname: str = ""
    lastname: str = ""
    email: str = ""
    status: str = ""
