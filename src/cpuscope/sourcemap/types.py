from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


class Location(BaseModel):
    """A minified locator to resolve. `line` and `column` are 1-based."""

    url: str
    line: int | None = None
    column: int | None = None
    hinted_name: str | None = None


class ResolvedLocation(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(populate_by_name=True)

    original_file: str = Field(alias="originalFile")
    original_line: int = Field(alias="originalLine")
    original_column: int = Field(alias="originalColumn")
    original_name: str | None = Field(default=None, alias="originalName")
    is_resolved: bool = Field(default=False, alias="isResolved")
    minified_url: str = Field(alias="minifiedUrl")
    full_original_path: str | None = Field(default=None, alias="fullOriginalPath")
    source_map_url: str | None = Field(default=None, alias="sourceMapUrl")

    @staticmethod
    def unresolved(url: str, line: int | None = None, column: int | None = None) -> "ResolvedLocation":
        return ResolvedLocation(
            original_file=url,
            original_line=line or 1,
            original_column=column or 1,
            minified_url=url,
        )
