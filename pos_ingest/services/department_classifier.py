from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from pos_ingest.models import Department

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifierKeywords:
    fuel_names: tuple[str, ...] = (
        'fuel',
        'gas',
        'gasoline',
        'diesel',
        'petroleum',
        'pump',
        'dispenser',
        'unleaded',
        'premium',
        'regular',
        'e85',
        'ethanol',
    )
    fuel_types: tuple[str, ...] = ('fuel', 'gasoline', 'petroleum')
    car_wash_names: tuple[str, ...] = ('car wash', 'carwash', 'wash', 'vehicle wash', 'auto wash')
    lottery_names: tuple[str, ...] = (
        'lottery',
        'lotto',
        'instant',
        'scratch',
        'powerball',
        'mega millions',
        'pick 3',
        'pick 4',
        'keno',
        'scratch off',
        'instant win',
    )
    lottery_types: tuple[str, ...] = ('lottery', 'gaming')
    # Every word of a pair must appear in the name.
    lottery_name_pairs: tuple[tuple[str, str], ...] = (('instant', 'lotto'),)


DEFAULT_KEYWORDS = ClassifierKeywords()


@dataclass(frozen=True)
class DepartmentClassification:
    is_fuel: bool
    is_car_wash: bool
    is_lottery: bool
    reason: dict[str, str | None] = field(default_factory=dict)


def _contains_any(value: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in value for keyword in keywords)


def classify_department(
    name: str | None,
    department_type: str | None,
    keywords: ClassifierKeywords = DEFAULT_KEYWORDS,
) -> DepartmentClassification:
    lowered_name = (name or '').lower().strip()
    lowered_type = (department_type or '').lower().strip()

    is_car_wash = _contains_any(lowered_name, keywords.car_wash_names)
    is_fuel = _contains_any(lowered_name, keywords.fuel_names) or _contains_any(lowered_type, keywords.fuel_types)
    is_lottery = (
        _contains_any(lowered_name, keywords.lottery_names)
        or _contains_any(lowered_type, keywords.lottery_types)
        or any(first in lowered_name and second in lowered_name for first, second in keywords.lottery_name_pairs)
    )

    return DepartmentClassification(
        is_fuel=is_fuel,
        is_car_wash=is_car_wash,
        is_lottery=is_lottery,
        reason={
            'fuel': 'Name/type contains fuel keywords' if is_fuel else None,
            'car_wash': 'Name contains car wash keywords' if is_car_wash else None,
            'lottery': 'Name/type contains lottery keywords' if is_lottery else None,
        },
    )


def apply_classification(department: Department, classification: DepartmentClassification) -> None:
    department.is_fuel_department = classification.is_fuel
    department.is_car_wash_department = classification.is_car_wash
    department.is_lottery_department = classification.is_lottery


def reclassify_department(
    db: Session,
    department: Department,
    keywords: ClassifierKeywords = DEFAULT_KEYWORDS,
) -> DepartmentClassification:
    """Explicit update path: recompute a stored department's flags from its name and type."""
    classification = classify_department(department.department_name, department.department_type, keywords)
    apply_classification(department, classification)
    db.flush()
    return classification


def reclassify_all_departments(db: Session, keywords: ClassifierKeywords = DEFAULT_KEYWORDS) -> list[dict]:
    results: list[dict] = []
    departments = db.execute(select(Department).order_by(Department.department_id.asc())).scalars().all()
    for department in departments:
        classification = reclassify_department(db, department, keywords)
        results.append(
            {
                'department_id': department.department_id,
                'department_name': department.department_name,
                'is_fuel_department': classification.is_fuel,
                'is_car_wash_department': classification.is_car_wash,
                'is_lottery_department': classification.is_lottery,
                'classification_reason': classification.reason,
            }
        )
    logger.info('Reclassified %d departments', len(results))
    return results


def _flag_total(column):
    return func.coalesce(func.sum(case((column.is_(True), 1), else_=0)), 0)


def department_statistics(db: Session) -> dict[str, int]:
    row = db.execute(
        select(
            func.count(Department.department_id),
            _flag_total(Department.is_car_wash_department),
            _flag_total(Department.is_fuel_department),
            _flag_total(Department.is_lottery_department),
        )
    ).one()
    return {
        'total_departments': int(row[0] or 0),
        'car_wash_count': int(row[1] or 0),
        'fuel_count': int(row[2] or 0),
        'lottery_count': int(row[3] or 0),
    }
