from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    cache: dict


class UploadResponse(BaseModel):
    seasonName: str
    title: str
    recordCount: int
    files: list[str] = Field(default_factory=list)
    skipped: dict[str, int] = Field(default_factory=dict)
    skippedSheets: list[dict[str, str]] = Field(default_factory=list)


class SeasonServersRequest(BaseModel):
    seasonName: str = Field(min_length=1, max_length=128)
    allies: list[int] = Field(default_factory=list)
    enemies: list[int] = Field(default_factory=list)


class SeasonServersResponse(BaseModel):
    seasonName: str
    allies: list[int]
    enemies: list[int]


class SeasonNamesResponse(BaseModel):
    sheetIds: list[str]
    current_season: str | None = None
