"""Pydantic models for tenant menus.

A menu is stored as a bare JSON array at ``public/menus/<tenant>.json`` so the
public viewer can fetch it as a static file. Item keys follow the viewer's
wire format (``desc``, ``img``).
"""

from pydantic import BaseModel, ConfigDict, Field


class MenuItem(BaseModel):
    """A single dish or drink on a menu."""

    # Unknown keys from the editor are kept so a save round-trips unchanged.
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | int
    name: str = Field(min_length=1)
    description: str = Field(default="", alias="desc")
    price: float = Field(ge=0, allow_inf_nan=False)
    image_ref: str = Field(
        default="", alias="img", description="Image URL or data URI"
    )
    category: str = ""

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
