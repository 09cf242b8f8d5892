from fastapi import APIRouter, HTTPException, Depends
from typing import Optional

from models import BloodSearchRequest, GeoPoint, SearchMode
from services import MongoRepository, InvalidInputError, search, stage_plan
from .dependencies import get_repository

router = APIRouter(prefix="/search", tags=["Blood Search"])


def _origin(search_data: BloodSearchRequest) -> Optional[GeoPoint]:
    if search_data.latitude is None or search_data.longitude is None:
        return None
    return GeoPoint(latitude=search_data.latitude, longitude=search_data.longitude)


@router.post("/blood")
async def search_blood(
    search_data: BloodSearchRequest,
    repository: MongoRepository = Depends(get_repository)
):
    """
    Run one stage of the nearest-source search.

    Send ``next_stage`` from the response back as ``stage`` to widen the
    radius or move on to donors.
    """
    try:
        result = await search(
            repository, _origin(search_data), search_data.blood_group,
            min_units=search_data.min_units,
            stage=search_data.stage,
            city=search_data.city,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result.matches:
        message = f"Found {result.count} {result.source.value} match(es)"
    elif result.exhausted:
        message = "No blood bank or donor available"
    else:
        message = result.transitions[-1].reason if result.transitions else "No match at this stage"

    return {
        "success": True,
        "message": message,
        "data": result.model_dump(mode="json"),
    }


@router.get("/stages")
async def get_search_stages():
    return {
        "success": True,
        "data": {mode.value: [s.model_dump(mode="json") for s in stage_plan(mode)] for mode in SearchMode},
    }
