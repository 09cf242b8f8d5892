"""
Proximity Search
Finds the nearest blood banks holding enough units of a blood group, widening
the radius in fixed stages and switching to individual donors once the
largest radius is exhausted.

Geo mode stage plan:

    0  bloodbank   5 km
    1  bloodbank  10 km
    2  bloodbank  20 km
    3  bloodbank  30 km
    4  donor      30 km   (DONOR_FALLBACK)
    5  -                  (EXHAUSTED)

City mode (origin missing or invalid) has no radii:

    0  bloodbank  by city
    1  donor      by city (DONOR_FALLBACK)
    2  -                  (EXHAUSTED)

``search`` runs exactly one stage per call and reports the next stage, so the
caller decides when to escalate. ``SearchSession`` keeps that state for a
caller that holds one search open across several calls.
"""
import asyncio
import logging
from typing import AsyncIterator, List, Optional, Protocol, Tuple, Union

from models import (
    BloodGroup, GeoPoint, SearchSource, SearchMode, SearchState,
    BloodBankCandidate, DonorCandidate, BloodBankMatch, DonorMatch,
    SearchStage, StageTransition, SearchResult
)
from .exceptions import InvalidInputError
from .geo import is_usable, haversine_km, distance_category

logger = logging.getLogger(__name__)

BLOOD_BANK_RADII_KM = (5, 10, 20, 30)
DONOR_RADIUS_KM = 30


class OrganizationDirectory(Protocol):
    """Read-only lookups the search needs from the organization/donor store."""

    async def list_blood_banks_near(self, origin: GeoPoint, radius_km: float) -> List[BloodBankCandidate]:
        ...

    async def list_donors_near(self, origin: GeoPoint, radius_km: float, blood_group: BloodGroup) -> List[DonorCandidate]:
        ...

    async def list_blood_banks_by_city(self, city: Optional[str]) -> List[BloodBankCandidate]:
        ...

    async def list_donors_by_city(self, city: Optional[str], blood_group: BloodGroup) -> List[DonorCandidate]:
        ...


def _build_geo_plan() -> Tuple[SearchStage, ...]:
    stages = [
        SearchStage(index=i, state=SearchState.STAGE, source=SearchSource.BLOOD_BANK, radius_km=r)
        for i, r in enumerate(BLOOD_BANK_RADII_KM)
    ]
    stages.append(SearchStage(
        index=len(stages), state=SearchState.DONOR_FALLBACK,
        source=SearchSource.DONOR, radius_km=DONOR_RADIUS_KM,
    ))
    stages.append(SearchStage(index=len(stages), state=SearchState.EXHAUSTED))
    return tuple(stages)


GEO_PLAN = _build_geo_plan()
CITY_PLAN = (
    SearchStage(index=0, state=SearchState.STAGE, source=SearchSource.BLOOD_BANK),
    SearchStage(index=1, state=SearchState.DONOR_FALLBACK, source=SearchSource.DONOR),
    SearchStage(index=2, state=SearchState.EXHAUSTED),
)


def stage_plan(mode: SearchMode) -> Tuple[SearchStage, ...]:
    return GEO_PLAN if mode == SearchMode.GEO else CITY_PLAN


# ==================== INPUT HANDLING ====================

def _coerce_blood_group(blood_group: Union[BloodGroup, str]) -> BloodGroup:
    if isinstance(blood_group, BloodGroup):
        return blood_group
    try:
        return BloodGroup(blood_group)
    except ValueError as e:
        raise InvalidInputError(f"Unknown blood group: {blood_group!r}") from e


def _validate_min_units(min_units) -> int:
    if isinstance(min_units, bool) or not isinstance(min_units, int) or min_units <= 0:
        raise InvalidInputError("min_units must be a positive integer")
    return min_units


def _validate_limit(limit) -> Optional[int]:
    if limit is None:
        return None
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidInputError("limit must be a positive integer")
    return limit


def _resolve_stage(mode: SearchMode, stage: Union[SearchStage, int, None]) -> SearchStage:
    """
    Map a caller-supplied stage (index or stage object) onto the plan for mode.

    Geo stage indexes are accepted in city mode and mapped by state, so a
    caller that lost its coordinates between calls degrades instead of
    failing.
    """
    if stage is None:
        return stage_plan(mode)[0]
    index = stage.index if isinstance(stage, SearchStage) else stage
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise InvalidInputError(f"Invalid search stage: {stage!r}")

    if mode == SearchMode.GEO:
        if index >= len(GEO_PLAN):
            raise InvalidInputError(f"Invalid search stage: {index}")
        return GEO_PLAN[index]

    if index < len(CITY_PLAN):
        return CITY_PLAN[index]
    if index < len(GEO_PLAN):
        state = GEO_PLAN[index].state
        return next(s for s in CITY_PLAN if s.state == state)
    raise InvalidInputError(f"Invalid search stage: {index}")


# ==================== MATCHING ====================

def _city_matches(candidate_city: Optional[str], city: Optional[str]) -> bool:
    if not city:
        return True
    return bool(candidate_city) and city.strip().lower() in candidate_city.lower()


def _match_key(match: Union[BloodBankMatch, DonorMatch]):
    distance = match.distance_km if match.distance_km is not None else 0.0
    return (distance, match.name.lower(), match.id)


def _locate(origin: Optional[GeoPoint], location: Optional[GeoPoint], radius_km: Optional[float]):
    """
    (qualifies, distance_km) for one candidate location.

    In city mode nothing is measured and every candidate qualifies.
    """
    if origin is None:
        return True, None
    if not is_usable(location):
        return False, None
    km = round(haversine_km(origin, location), 2)
    if km > radius_km:
        return False, None
    return True, km


def match_blood_banks(
    candidates: List[BloodBankCandidate],
    blood_group: BloodGroup,
    min_units: int,
    origin: Optional[GeoPoint] = None,
    radius_km: Optional[float] = None,
    city: Optional[str] = None,
) -> List[BloodBankMatch]:
    """
    Banks holding at least ``min_units`` of the group, nearest first.

    With an origin, banks without usable coordinates or beyond ``radius_km``
    are dropped. Without one, banks are filtered by city and carry no distance.
    """
    matches = {}
    for bank in candidates:
        units = bank.units_of(blood_group)
        if units < min_units:
            logger.debug(f"Skipping bank {bank.id}: {units} units of {blood_group.value} < {min_units}")
            continue
        if origin is None and not _city_matches(bank.city, city):
            continue
        qualifies, km = _locate(origin, bank.location, radius_km)
        if not qualifies:
            continue
        level = bank.stock.get(blood_group.value)
        matches[bank.id] = BloodBankMatch(
            id=bank.id,
            name=bank.name,
            city=bank.city,
            address=bank.address,
            contact=bank.contact,
            location=bank.location,
            distance_km=km,
            distance_category=distance_category(km) if km is not None else None,
            units_available=units,
            last_stock_update=level.last_updated if level else None,
        )
    return sorted(matches.values(), key=_match_key)


def match_donors(
    candidates: List[DonorCandidate],
    blood_group: BloodGroup,
    origin: Optional[GeoPoint] = None,
    radius_km: Optional[float] = None,
    city: Optional[str] = None,
) -> List[DonorMatch]:
    """Donors with exactly the requested group, nearest first."""
    matches = {}
    for donor in candidates:
        if donor.blood_group != blood_group:
            continue
        if origin is None and not _city_matches(donor.city, city):
            continue
        qualifies, km = _locate(origin, donor.location, radius_km)
        if not qualifies:
            continue
        matches[donor.id] = DonorMatch(
            id=donor.id,
            name=donor.name,
            blood_group=donor.blood_group,
            city=donor.city,
            contact=donor.contact,
            location=donor.location,
            distance_km=km,
            distance_category=distance_category(km) if km is not None else None,
        )
    return sorted(matches.values(), key=_match_key)


# ==================== STAGE EXECUTION ====================

def _transition_reason(to_stage: SearchStage, mode: SearchMode) -> str:
    if to_stage.state == SearchState.EXHAUSTED:
        if mode == SearchMode.GEO:
            return f"No blood bank or donor found within {DONOR_RADIUS_KM} km"
        return "No blood bank or donor found"
    if to_stage.state == SearchState.DONOR_FALLBACK:
        return "No blood bank stock found; switched to donor search"
    return f"Expanded search radius to {to_stage.radius_km:g} km"


async def _run_stage(
    directory: OrganizationDirectory,
    stage: SearchStage,
    origin: Optional[GeoPoint],
    blood_group: BloodGroup,
    min_units: int,
    city: Optional[str],
):
    if stage.source == SearchSource.BLOOD_BANK:
        if origin is not None:
            candidates = await directory.list_blood_banks_near(origin, stage.radius_km)
        else:
            candidates = await directory.list_blood_banks_by_city(city)
        return match_blood_banks(candidates, blood_group, min_units, origin, stage.radius_km, city)

    if origin is not None:
        candidates = await directory.list_donors_near(origin, stage.radius_km, blood_group)
    else:
        candidates = await directory.list_donors_by_city(city, blood_group)
    return match_donors(candidates, blood_group, origin, stage.radius_km, city)


def exhausted_result(mode: SearchMode, source: SearchSource = SearchSource.DONOR) -> SearchResult:
    return SearchResult(source=source, mode=mode, stage=stage_plan(mode)[-1], exhausted=True)


async def search(
    directory: OrganizationDirectory,
    origin: Optional[GeoPoint],
    blood_group: Union[BloodGroup, str],
    min_units: int = 1,
    stage: Union[SearchStage, int, None] = None,
    city: Optional[str] = None,
    limit: Optional[int] = None,
) -> SearchResult:
    """
    Run one search stage.

    An empty result carries ``next_stage`` (pass it back to escalate) and the
    ``transitions`` the caller should display; after the donor stage it is
    marked ``exhausted``. Without usable origin coordinates the search runs in
    city mode: blood banks by city, then donors by city within the same call.

    ``limit`` only trims the matches returned; escalation depends on the full
    match list.

    Raises InvalidInputError for an unknown blood group, non-positive
    ``min_units`` or ``limit``, or an unknown stage. Nothing else is an error.
    """
    blood_group = _coerce_blood_group(blood_group)
    min_units = _validate_min_units(min_units)
    limit = _validate_limit(limit)

    mode = SearchMode.GEO if is_usable(origin) else SearchMode.CITY
    if mode == SearchMode.CITY:
        if origin is not None:
            logger.info("Origin coordinates unusable; falling back to city search")
        origin = None
    plan = stage_plan(mode)
    current = _resolve_stage(mode, stage)

    if current.state == SearchState.EXHAUSTED:
        return exhausted_result(mode)

    transitions = []
    while True:
        matches = await _run_stage(directory, current, origin, blood_group, min_units, city)
        if matches:
            logger.info(
                f"Search for {blood_group.value} found {len(matches)} {current.source.value} match(es) "
                f"at stage {current.index} ({mode.value})"
            )
            return SearchResult(
                source=current.source,
                mode=mode,
                stage=current,
                radius_used=current.radius_km,
                matches=matches[:limit] if limit else matches,
                transitions=transitions,
            )

        following = plan[current.index + 1]
        transition = StageTransition(
            from_stage=current,
            to_stage=following,
            reason=_transition_reason(following, mode),
        )
        transitions.append(transition)
        logger.info(f"Search for {blood_group.value}: {transition.reason}")

        # City mode has no radius to widen, so donors are tried in the same call
        if mode == SearchMode.CITY and following.state == SearchState.DONOR_FALLBACK:
            current = following
            continue

        exhausted = following.state == SearchState.EXHAUSTED
        return SearchResult(
            source=current.source,
            mode=mode,
            stage=current,
            radius_used=current.radius_km,
            matches=[],
            next_stage=None if exhausted else following,
            exhausted=exhausted,
            transitions=transitions,
        )


# ==================== SESSIONS ====================

class SearchSession:
    """
    One hospital's search, advanced a stage per call to ``search()``.

    The stage index only moves forward: the radius never narrows and a
    session that reached donor fallback never goes back to blood banks.
    """

    def __init__(
        self,
        directory: OrganizationDirectory,
        origin: Optional[GeoPoint],
        blood_group: Union[BloodGroup, str],
        min_units: int = 1,
        city: Optional[str] = None,
        limit: Optional[int] = None,
    ):
        self.directory = directory
        self.blood_group = _coerce_blood_group(blood_group)
        self.min_units = _validate_min_units(min_units)
        self.mode = SearchMode.GEO if is_usable(origin) else SearchMode.CITY
        self.origin = origin if self.mode == SearchMode.GEO else None
        self.city = city
        self.limit = _validate_limit(limit)
        self.plan = stage_plan(self.mode)
        self.history: List[StageTransition] = []
        self.last_result: Optional[SearchResult] = None
        self._index = 0
        self._source = SearchSource.BLOOD_BANK
        self._cancelled = False

    @property
    def current_stage(self) -> SearchStage:
        return self.plan[self._index]

    @property
    def state(self) -> SearchState:
        return self.current_stage.state

    @property
    def exhausted(self) -> bool:
        return self.state == SearchState.EXHAUSTED

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        if self.exhausted:
            return
        self._cancelled = True
        terminal = self.plan[-1]
        self.history.append(StageTransition(
            from_stage=self.current_stage, to_stage=terminal, reason="Search cancelled",
        ))
        self._index = terminal.index
        logger.info(f"Search for {self.blood_group.value} cancelled")

    async def search(self) -> SearchResult:
        if self.exhausted:
            return exhausted_result(self.mode, self._source)

        result = await search(
            self.directory, self.origin, self.blood_group, self.min_units,
            stage=self._index, city=self.city, limit=self.limit,
        )
        self.last_result = result
        # A cancel() that landed while the lookup was in flight wins
        if self._cancelled:
            return result

        self._source = result.source
        self.history.extend(result.transitions)
        if result.exhausted:
            self._index = self.plan[-1].index
        elif result.next_stage is not None:
            self._index = max(self._index, result.next_stage.index)
        else:
            self._index = max(self._index, result.stage.index)
        return result


async def iter_stages(
    session: SearchSession,
    cancel_event: Optional[asyncio.Event] = None,
) -> AsyncIterator[SearchResult]:
    """
    Yield one result per stage until something is found or the plan runs out.

    Cancellation is checked between stages, never during a lookup.
    """
    while not session.exhausted:
        if cancel_event is not None and cancel_event.is_set():
            session.cancel()
            break
        result = await session.search()
        yield result
        if result.matches:
            return
