from typing import Literal

from pydantic import BaseModel, Field, model_validator


class StoreLocation(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class StoreCreate(BaseModel):
    name: str
    location: StoreLocation | None = None


class StoreRename(BaseModel):
    name: str


class SectionIn(BaseModel):
    id: str | None = Field(default=None, max_length=100)
    name: str


class SectionsReplace(BaseModel):
    sections: list[SectionIn]


class SectionCreate(BaseModel):
    name: str


class ShareCreate(BaseModel):
    email: str = Field(max_length=254)


class ItemEntry(BaseModel):
    # Name rules are enforced by the list service so a bad entry rejects the whole batch.
    name: str | None = None
    sectionId: str = Field(default="", max_length=100)


class ItemsCreate(BaseModel):
    name: str | None = None
    sectionId: str = Field(default="", max_length=100)
    items: list[ItemEntry] | None = None

    @model_validator(mode="after")
    def _require_name_or_items(self):
        if self.items is None and not self.name:
            raise ValueError("Missing name or items in request body")
        return self

    def Entries(self) -> list[ItemEntry]:
        if self.items is not None:
            return self.items
        return [ItemEntry(name=self.name, sectionId=self.sectionId)]


class ItemUpdate(BaseModel):
    checked: bool | None = None
    sectionId: str | None = Field(default=None, max_length=100)
    name: str | None = None


class ItemsClear(BaseModel):
    mode: Literal["checked", "all"] = "checked"
