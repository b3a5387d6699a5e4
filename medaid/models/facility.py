from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class Facility(BaseModel):
    title: str
    uri: str


class FacilitySearchRequest(BaseModel):
    category: str = Field(..., min_length=1)
    latitude: float | None = Field(None, ge=-90.0, le=90.0)
    longitude: float | None = Field(None, ge=-180.0, le=180.0)

    def coordinates(self) -> Coordinates | None:
        """Both halves are needed; a lone latitude or longitude is treated as no location."""
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class FacilitySearchResult(BaseModel):
    category: str = ""
    narrative: str = ""
    facilities: list[Facility] = []
    used_location: bool = False
