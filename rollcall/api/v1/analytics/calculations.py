"""Attendance arithmetic shared by the analytics endpoints. No database access here."""

import re
from calendar import month_abbr
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from rollcall.api.v1.working_days.service import date_range
from rollcall.core.enums import DayStatus, Gender

UG_BATCHES = ("I Year", "II Year", "III Year", "IV Year")
PG_BATCHES = ("PG First Year", "PG Second Year")
BATCH_ORDER = UG_BATCHES + PG_BATCHES

_YEAR_PREFIX = re.compile(r"^(IV|III|II|I)(?![A-Z])")


def year_of_class(class_name: str) -> Optional[int]:
    """Roman-numeral year prefix of a class name: 'II-A' -> 2, 'IV' -> 4, 'Lab' -> None."""
    m = _YEAR_PREFIX.match(class_name.strip().upper())
    if not m:
        return None
    return {"I": 1, "II": 2, "III": 3, "IV": 4}[m.group(1)]


def batch_of(class_name: str, is_pg: bool) -> Optional[str]:
    year = year_of_class(class_name)
    if year is None:
        return None
    if is_pg:
        return PG_BATCHES[year - 1] if year <= len(PG_BATCHES) else None
    return UG_BATCHES[year - 1]


def percentage(part: int, whole: int, empty: float = 0.0) -> float:
    if whole <= 0:
        return empty
    return round(part / whole * 100, 2)


@dataclass
class Strength:
    key: Hashable
    name: str
    total_boys: int = 0
    total_girls: int = 0
    absent_boys: int = 0
    absent_girls: int = 0

    @property
    def total_strength(self) -> int:
        return self.total_boys + self.total_girls

    @property
    def present_boys(self) -> int:
        return self.total_boys - self.absent_boys

    @property
    def present_girls(self) -> int:
        return self.total_girls - self.absent_girls

    @property
    def present_total(self) -> int:
        return self.present_boys + self.present_girls

    @property
    def absent_total(self) -> int:
        return self.absent_boys + self.absent_girls

    @property
    def percentage(self) -> float:
        # An empty group reports full attendance
        return percentage(self.present_total, self.total_strength, empty=100.0)

    def add(self, gender: str, absent: bool) -> None:
        if gender == Gender.FEMALE.value:
            self.total_girls += 1
            self.absent_girls += int(absent)
        else:
            self.total_boys += 1
            self.absent_boys += int(absent)


def group_strength(
    students: Iterable,
    absent_ids: Set[UUID],
    key: Callable[[object], Optional[Tuple[Hashable, str]]],
) -> Dict[Hashable, Strength]:
    """Bucket students by ``key(student) -> (group key, display name)``; None skips the student."""
    groups: Dict[Hashable, Strength] = {}
    for s in students:
        k = key(s)
        if k is None:
            continue
        group_key, name = k
        if group_key not in groups:
            groups[group_key] = Strength(key=group_key, name=name)
        groups[group_key].add(s.gender, s.id in absent_ids)
    return groups


@dataclass(frozen=True)
class DayPoint:
    date: date
    present: int
    absent: int
    holiday: int


def day_wise_series(
    start: date,
    end: date,
    working: Set[date],
    strength: int,
    absences: Dict[date, int],
) -> List[DayPoint]:
    """One point per day. A holiday reports the whole strength under 'holiday'."""
    points: List[DayPoint] = []
    for d in date_range(start, end):
        if d not in working:
            points.append(DayPoint(date=d, present=0, absent=0, holiday=strength))
            continue
        absent = min(absences.get(d, 0), strength)
        points.append(DayPoint(date=d, present=strength - absent, absent=absent, holiday=0))
    return points


@dataclass(frozen=True)
class PeriodicalRow:
    student_id: UUID
    register_no: str
    name: str
    total_working_days: int
    present: int
    absent: int
    percentage: float


def periodical_rows(
    students: Iterable,
    working: Set[date],
    absent_days: Dict[UUID, Set[date]],
) -> List[PeriodicalRow]:
    total = len(working)
    rows = []
    for s in students:
        absent = len(absent_days.get(s.id, set()) & working)
        present = total - absent
        rows.append(
            PeriodicalRow(
                student_id=s.id,
                register_no=s.register_no,
                name=s.name,
                total_working_days=total,
                present=present,
                absent=absent,
                percentage=percentage(present, total),
            )
        )
    rows.sort(key=lambda r: r.register_no)
    return rows


@dataclass(frozen=True)
class MonthStat:
    month: int
    name: str
    present: int
    working_days: int
    percentage: float


def day_status(d: date, today: date, working: Set[date], absent: Set[date]) -> DayStatus:
    if d > today:
        return DayStatus.FUTURE
    if d not in working:
        return DayStatus.HOLIDAY
    if d in absent:
        return DayStatus.ABSENT
    return DayStatus.PRESENT


def yearly_grid(
    year: int,
    today: date,
    working: Set[date],
    absent: Set[date],
) -> Tuple[List[Tuple[date, DayStatus]], List[MonthStat], float]:
    """Status of every day of ``year`` plus monthly and overall attendance over past working days."""
    days = [
        (d, day_status(d, today, working, absent))
        for d in date_range(date(year, 1, 1), date(year, 12, 31))
    ]
    present = [0] * 12
    counted = [0] * 12
    for d, status in days:
        if status in (DayStatus.PRESENT, DayStatus.ABSENT):
            counted[d.month - 1] += 1
            if status == DayStatus.PRESENT:
                present[d.month - 1] += 1
    months = [
        MonthStat(
            month=i + 1,
            name=month_abbr[i + 1],
            present=present[i],
            working_days=counted[i],
            percentage=percentage(present[i], counted[i]),
        )
        for i in range(12)
    ]
    return days, months, percentage(sum(present), sum(counted))
