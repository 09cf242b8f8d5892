from pydantic import BaseModel, ConfigDict
import math

class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        """False for non-finite, out-of-range, or the (0, 0) placeholder."""
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            return False
        if not (-90 <= self.latitude <= 90 and -180 <= self.longitude <= 180):
            return False
        return not (self.latitude == 0 and self.longitude == 0)
