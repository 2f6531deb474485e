"""Vehicle catalog data models."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Vehicle(BaseModel):
    """A rentable car as returned by the catalog."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    title: str
    brand: str = ""
    model: str = ""
    year: Optional[int] = None
    price_per_day: Decimal = Field(alias="pricePerDay", ge=0)
    price_per_hour: Decimal = Field(alias="pricePerHour", ge=0)
    location: str = ""
    is_available: bool = Field(default=True, alias="isAvailable")
    fuel_type: Optional[str] = Field(default=None, alias="fuelType")
    transmission: Optional[str] = None
    seats: Optional[int] = None
    image: Optional[str] = None
    features: list[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        parts = [self.brand, self.model]
        name = " ".join(p for p in parts if p)
        return f"{name} ({self.year})" if self.year else name or self.title


class VehicleFilter(BaseModel):
    """Catalog query parameters, mirroring the storefront's search form."""

    model_config = ConfigDict(populate_by_name=True)

    search: Optional[str] = None
    brand: Optional[str] = None
    fuel_type: Optional[str] = Field(default=None, alias="fuelType")
    transmission: Optional[str] = None
    min_price: Optional[Decimal] = Field(default=None, alias="minPrice")
    max_price: Optional[Decimal] = Field(default=None, alias="maxPrice")
    sort_by: str = Field(default="createdAt", alias="sortBy")
    sort_order: str = Field(default="desc", alias="sortOrder")
    page: int = Field(default=1, ge=1)

    def to_query(self) -> dict[str, str]:
        """Serialize to query parameters, dropping unset filters."""
        data = self.model_dump(by_alias=True, mode="json", exclude_none=True)
        return {key: str(value) for key, value in data.items() if value != ""}


class Pagination(BaseModel):
    """Page metadata attached to list responses."""

    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(default=1, alias="currentPage")
    total_pages: int = Field(default=1, alias="totalPages")
    total_items: int = Field(default=0, alias="totalItems")

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1


class VehiclePage(BaseModel):
    """One page of catalog results."""

    cars: list[Vehicle] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
