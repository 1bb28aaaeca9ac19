from pydantic import BaseModel, Field


class OrgCreateRequest(BaseModel):
    name: str = Field(max_length=255)
    slug: str | None = Field(default=None, max_length=120)


class OrgCreateResponse(BaseModel):
    org_id: int
    slug: str
