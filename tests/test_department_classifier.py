from __future__ import annotations

import unittest

from ingest_fixtures import make_session_factory
from pos_ingest.models import Department
from pos_ingest.services.department_classifier import (
    ClassifierKeywords,
    classify_department,
    department_statistics,
    reclassify_all_departments,
    reclassify_department,
)
from pos_ingest.services.reference_service import resolve_department


class ClassifyDepartmentTests(unittest.TestCase):
    def test_fuel_by_name_and_type(self) -> None:
        result = classify_department('Shell Unleaded', 'fuel')

        self.assertTrue(result.is_fuel)
        self.assertFalse(result.is_car_wash)
        self.assertFalse(result.is_lottery)
        self.assertIsNotNone(result.reason['fuel'])
        self.assertIsNone(result.reason['lottery'])

    def test_lottery_by_name(self) -> None:
        result = classify_department('Mega Millions Instant', 'lottery')

        self.assertTrue(result.is_lottery)
        self.assertFalse(result.is_fuel)
        self.assertFalse(result.is_car_wash)

    def test_car_wash_by_name(self) -> None:
        result = classify_department('Car Wash Deluxe', 'norm')

        self.assertTrue(result.is_car_wash)
        self.assertFalse(result.is_fuel)
        self.assertFalse(result.is_lottery)

    def test_lottery_by_type_alone(self) -> None:
        self.assertTrue(classify_department('Tickets', 'Gaming').is_lottery)

    def test_missing_name_and_type_set_no_flags(self) -> None:
        result = classify_department(None, None)

        self.assertEqual((result.is_fuel, result.is_car_wash, result.is_lottery), (False, False, False))

    def test_flags_are_independent(self) -> None:
        result = classify_department('Diesel Car Wash', None)

        self.assertTrue(result.is_fuel)
        self.assertTrue(result.is_car_wash)

    def test_keyword_sets_can_be_replaced(self) -> None:
        keywords = ClassifierKeywords(fuel_names=('propane',), car_wash_names=('detail',))

        self.assertTrue(classify_department('Propane Exchange', None, keywords).is_fuel)
        self.assertFalse(classify_department('Unleaded', None, keywords).is_fuel)
        self.assertTrue(classify_department('Auto Detail', None, keywords).is_car_wash)


class StoredClassificationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()

    def test_stored_flags_are_not_recomputed_implicitly(self) -> None:
        with self.session_factory.begin() as db:
            resolve_department(db, 10, 'Grocery', 'norm')
        with self.session_factory.begin() as db:
            department = resolve_department(db, 10, 'Car Wash', 'norm')

            self.assertEqual(department.department_name, 'Grocery')
            self.assertFalse(department.is_car_wash_department)

    def test_nameless_department_is_classified_when_named(self) -> None:
        with self.session_factory.begin() as db:
            resolve_department(db, 20)
        with self.session_factory.begin() as db:
            department = resolve_department(db, 20, 'Lotto Tickets', 'lottery')

            self.assertEqual(department.department_name, 'Lotto Tickets')
            self.assertTrue(department.is_lottery_department)

    def test_reclassify_department_uses_current_name(self) -> None:
        with self.session_factory.begin() as db:
            resolve_department(db, 30, 'Grocery', 'norm')
        with self.session_factory.begin() as db:
            department = db.get(Department, 30)
            department.department_name = 'Premium Diesel'
            classification = reclassify_department(db, department)

            self.assertTrue(classification.is_fuel)
        with self.session_factory() as db:
            self.assertTrue(db.get(Department, 30).is_fuel_department)

    def test_reclassify_all_departments_and_statistics(self) -> None:
        with self.session_factory.begin() as db:
            db.add_all(
                [
                    Department(department_id=1, department_name='Shell Unleaded', department_type='fuel'),
                    Department(department_id=2, department_name='Car Wash Deluxe', department_type='norm'),
                    Department(department_id=3, department_name='Mega Millions Instant', department_type='lottery'),
                    Department(department_id=4, department_name='Snacks', department_type='norm'),
                ]
            )
        with self.session_factory.begin() as db:
            self.assertEqual(department_statistics(db)['fuel_count'], 0)

            results = reclassify_all_departments(db)

            self.assertEqual([item['department_id'] for item in results], [1, 2, 3, 4])
            self.assertEqual(
                department_statistics(db),
                {'total_departments': 4, 'car_wash_count': 1, 'fuel_count': 1, 'lottery_count': 1},
            )

    def test_statistics_on_empty_table(self) -> None:
        with self.session_factory() as db:
            self.assertEqual(
                department_statistics(db),
                {'total_departments': 0, 'car_wash_count': 0, 'fuel_count': 0, 'lottery_count': 0},
            )


if __name__ == '__main__':
    unittest.main()
