"""Per (year, field) value resolution with provenance.

Each resolved number carries a Source tag:

    HISTORICAL           recorded actual for a historical year
    TRANSITION_EXPLICIT  admin override for a transition year
    TRANSITION_FALLBACK  transition year without an override (capacity cap,
                         flat manual rent, or the calculated value)
    CALCULATED           model calculation

Resolution is independent per field: a historical year can carry a recorded
revenue and a calculated opex if only the revenue was recorded.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Iterable, Mapping, NamedTuple

from projection.inputs import HistoricalActuals, TransitionSettings, TransitionYear
from projection.periods import Phase, phase_for_year, transition_base_year, transition_capacity_cap


class Source(str, Enum):
    HISTORICAL = "HISTORICAL"
    TRANSITION_EXPLICIT = "TRANSITION_EXPLICIT"
    TRANSITION_FALLBACK = "TRANSITION_FALLBACK"
    CALCULATED = "CALCULATED"


class Resolved(NamedTuple):
    value: float
    source: Source
    note: str = ""


def _grown(base: float, pct: float) -> float:
    return base * (1.0 + pct / 100.0)


class PeriodResolver:
    """Chooses the authoritative value for each (year, field)."""

    def __init__(
        self,
        historical: Iterable[HistoricalActuals] = (),
        transition: Iterable[TransitionYear] = (),
        settings: TransitionSettings | None = None,
    ):
        self._historical = {h.year: h for h in historical}
        self._transition = {t.year: t for t in transition}
        self.settings = settings or TransitionSettings()
        self.capacity_cap = self.settings.capacity_cap or transition_capacity_cap()

    # ── Lookups ─────────────────────────────────────────────────

    def actuals(self, year: int) -> HistoricalActuals | None:
        if phase_for_year(year) is not Phase.HISTORICAL:
            return None
        return self._historical.get(year)

    def override(self, year: int) -> TransitionYear | None:
        if phase_for_year(year) is not Phase.TRANSITION:
            return None
        return self._transition.get(year)

    def base_rent(self) -> float | None:
        """Rent of the transition base year (2024): admin value, else recorded."""
        if self.settings.rent_base_2024 is not None:
            return self.settings.rent_base_2024
        h = self._historical.get(transition_base_year())
        return h.rent if h else None

    def base_staff_cost(self) -> float | None:
        if self.settings.staff_cost_base_2024 is not None:
            return self.settings.staff_cost_base_2024
        h = self._historical.get(transition_base_year())
        return h.staff_cost if h else None

    # ── Fields ──────────────────────────────────────────────────

    def resolve_enrollment(self, year: int,
                           projected: Mapping[str, int]) -> dict[str, Resolved]:
        """Students per curriculum.

        Transition years scale every curriculum proportionally, rounding
        down: to the explicit target when one is set, else to the capacity
        cap when the projected total exceeds it.
        """
        phase = phase_for_year(year)
        if phase is not Phase.TRANSITION:
            return {k: Resolved(v, Source.CALCULATED) for k, v in projected.items()}

        total = sum(projected.values())
        ov = self.override(year)
        if ov is not None and ov.target_enrollment is not None:
            target = ov.target_enrollment
            return {
                k: Resolved(math.floor(target * v / total) if total else 0,
                            Source.TRANSITION_EXPLICIT, f"target {target}")
                for k, v in projected.items()
            }

        cap = self.capacity_cap
        if total > cap:
            return {
                k: Resolved(math.floor(v * cap / total), Source.TRANSITION_FALLBACK,
                            f"capped at {cap}")
                for k, v in projected.items()
            }
        return {k: Resolved(v, Source.TRANSITION_FALLBACK, "below cap")
                for k, v in projected.items()}

    def resolve_revenue(self, year: int, calculated: float, other_revenue: float) -> Resolved:
        """calculated is tuition revenue only; other_revenue is added here."""
        phase = phase_for_year(year)
        if phase is Phase.HISTORICAL:
            h = self.actuals(year)
            if h is not None and h.revenue is not None:
                return Resolved(h.revenue, Source.HISTORICAL)
            return Resolved(calculated + other_revenue, Source.CALCULATED, "no recorded revenue")

        if phase is Phase.TRANSITION:
            ov = self.override(year)
            if ov is not None and ov.target_enrollment is not None:
                if ov.average_tuition_per_student is not None:
                    other = ov.other_revenue if ov.other_revenue is not None else other_revenue
                    return Resolved(
                        ov.target_enrollment * ov.average_tuition_per_student + other,
                        Source.TRANSITION_EXPLICIT,
                        "target enrollment x average tuition",
                    )
                return Resolved(calculated + other_revenue, Source.TRANSITION_EXPLICIT,
                                "tuition x target enrollment")
            return Resolved(calculated + other_revenue, Source.TRANSITION_FALLBACK)

        return Resolved(calculated + other_revenue, Source.CALCULATED)

    def resolve_staff_cost(self, year: int, calculated: float) -> Resolved:
        phase = phase_for_year(year)
        if phase is Phase.HISTORICAL:
            h = self.actuals(year)
            if h is not None and h.staff_cost is not None:
                return Resolved(h.staff_cost, Source.HISTORICAL)
            return Resolved(calculated, Source.CALCULATED, "no recorded staff cost")

        if phase is Phase.TRANSITION:
            ov = self.override(year)
            if ov is not None:
                base = self.base_staff_cost()
                if ov.staff_cost_growth_percent is not None and base is not None:
                    return Resolved(_grown(base, ov.staff_cost_growth_percent),
                                    Source.TRANSITION_EXPLICIT,
                                    f"{ov.staff_cost_growth_percent}% over base year")
                if ov.staff_cost_base is not None:
                    return Resolved(ov.staff_cost_base, Source.TRANSITION_EXPLICIT)
            return Resolved(calculated, Source.TRANSITION_FALLBACK)

        return Resolved(calculated, Source.CALCULATED)

    def resolve_rent(self, year: int, model_rent: float) -> Resolved:
        """model_rent is the rent model's value; only dynamic years use it."""
        phase = phase_for_year(year)
        if phase is Phase.HISTORICAL:
            h = self.actuals(year)
            if h is not None and h.rent is not None:
                return Resolved(h.rent, Source.HISTORICAL)
            return Resolved(0.0, Source.HISTORICAL, "no recorded rent")

        if phase is Phase.TRANSITION:
            ov = self.override(year)
            if ov is not None:
                base = self.base_rent()
                if ov.rent_growth_percent is not None and base is not None:
                    return Resolved(_grown(base, ov.rent_growth_percent),
                                    Source.TRANSITION_EXPLICIT,
                                    f"{ov.rent_growth_percent}% over base year")
                if ov.rent:
                    return Resolved(ov.rent, Source.TRANSITION_EXPLICIT)
            return Resolved(self.settings.transition_rent, Source.TRANSITION_FALLBACK,
                            "flat transition rent")

        return Resolved(model_rent, Source.CALCULATED)

    def resolve_opex(self, year: int, calculated: float) -> Resolved:
        h = self.actuals(year)
        if h is not None and h.opex is not None:
            return Resolved(h.opex, Source.HISTORICAL)
        return Resolved(calculated, Source.CALCULATED)

    def resolve_capex(self, year: int, planned: float) -> Resolved:
        h = self.actuals(year)
        if h is not None and h.capex is not None:
            return Resolved(h.capex, Source.HISTORICAL)
        return Resolved(planned, Source.CALCULATED)
