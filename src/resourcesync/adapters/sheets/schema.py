"""Pydantic models describing the Google Sheets v4 payloads we use."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SheetsBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SheetProperties(SheetsBaseModel):
    sheet_id: int = Field(alias="sheetId", default=0)
    title: str
    index: int = 0


class Sheet(SheetsBaseModel):
    properties: SheetProperties


class SpreadsheetProperties(SheetsBaseModel):
    title: str | None = None


class Spreadsheet(SheetsBaseModel):
    spreadsheet_id: str | None = Field(alias="spreadsheetId", default=None)
    properties: SpreadsheetProperties | None = None
    sheets: list[Sheet] = Field(default_factory=list)

    def sheet(self, title: str) -> SheetProperties | None:
        for sheet in self.sheets:
            if sheet.properties.title == title:
                return sheet.properties
        return None


class ValueRange(SheetsBaseModel):
    range: str | None = None
    major_dimension: str = Field(alias="majorDimension", default="ROWS")
    values: list[list[str]] = Field(default_factory=list)

    @field_validator("values", mode="before")
    @classmethod
    def _stringify_cells(cls, value: object) -> object:
        # UNFORMATTED reads can return numbers and booleans
        if isinstance(value, list):
            return [
                [cell if isinstance(cell, str) else str(cell) for cell in row]
                for row in value
                if isinstance(row, list)
            ]
        return value


class UpdateValuesResponse(SheetsBaseModel):
    spreadsheet_id: str | None = Field(alias="spreadsheetId", default=None)
    updated_range: str | None = Field(alias="updatedRange", default=None)
    updated_rows: int = Field(alias="updatedRows", default=0)
    updated_columns: int = Field(alias="updatedColumns", default=0)
    updated_cells: int = Field(alias="updatedCells", default=0)


class ErrorDetail(SheetsBaseModel):
    code: int
    message: str
    status: str | None = None


class ErrorResponse(SheetsBaseModel):
    error: ErrorDetail
