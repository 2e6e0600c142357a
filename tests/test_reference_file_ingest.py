from __future__ import annotations

import tempfile
import unittest
from decimal import Decimal

from ingest_fixtures import (
    FUEL_PRICE_LEVEL_XML,
    GENERIC_XML,
    PRICEBOOK_CSV,
    SUMMARY_XML,
    make_session_factory,
    row_count,
    write_file,
)
from pos_ingest.exceptions import FileStructureError
from pos_ingest.models import (
    Department,
    Product,
    PromotionProgram,
    PromotionUPCLinkage,
    RebateProgram,
    RebateUPCLinkage,
    Store,
)
from pos_ingest.services.generic_normalizer import MATCHERS, visit
from pos_ingest.services.ingest_service import ingest
from pos_ingest.services.reference_service import resolve_department


class IngestTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def _ingest(self, name: str, content: str):
        path = write_file(self.tmp.name, name, content)
        return ingest(path, session_factory=self.session_factory, created_by='tester')


class FuelIngestTests(IngestTestCase):
    def test_price_level_period_creates_fuel_products(self) -> None:
        result = self._ingest('FCF_20240115.xml', FUEL_PRICE_LEVEL_XML)

        self.assertEqual(result.record_kind, 'FCF')
        self.assertEqual((result.processed_count, result.error_count), (1, 0))
        with self.session_factory() as db:
            self.assertIsNotNone(db.get(Store, '002'))

            department = db.get(Department, 999)
            self.assertEqual(department.department_name, 'Fuel')
            self.assertTrue(department.is_fuel_department)

            regular = db.get(Product, 1)
            self.assertEqual(regular.upc_description, 'Regular Unleaded')
            self.assertEqual(regular.department_id, 999)
            self.assertEqual(regular.retail_price, Decimal('3.00'))
            self.assertEqual(regular.upc_source, 'FCF_20240115.xml')

            diesel = db.get(Product, 2)
            self.assertEqual(diesel.upc_description, 'Diesel')
            self.assertIsNone(diesel.retail_price)
            self.assertFalse(diesel.retail_price_available)

    def test_fuel_entries_layout(self) -> None:
        content = (
            '<fuelControl>'
            '<entry><storeId>010</storeId><productId>3</productId>'
            '<description>Premium</description><price>3.459</price></entry>'
            '<entry><storeId>010</storeId><productId>4</productId></entry>'
            '</fuelControl>'
        )

        result = self._ingest('FCF_entries.xml', content)

        self.assertEqual(result.processed_count, 2)
        with self.session_factory() as db:
            premium = db.get(Product, 3)
            self.assertEqual(premium.upc_description, 'Premium')
            self.assertEqual(premium.retail_price, Decimal('3.46'))
            self.assertEqual(db.get(Product, 4).upc_description, 'Fuel Product 4')
        self.assertEqual(row_count(self.session_factory, Store), 1)

    def test_fuel_grades_layout(self) -> None:
        content = (
            '<fuelGrades>'
            '<grade><gradeId>3</gradeId><gradeName>Premium</gradeName><price>4.19</price></grade>'
            '<grade><gradeId>5</gradeId><cost>2.10</cost></grade>'
            '</fuelGrades>'
        )

        result = self._ingest('FCF_grades.xml', content)

        self.assertEqual((result.processed_count, result.error_count), (2, 0))
        with self.session_factory() as db:
            department = db.get(Department, 999)
            self.assertTrue(department.is_fuel_department)

            premium = db.get(Product, 3)
            self.assertEqual(premium.upc_description, 'Premium')
            self.assertEqual(premium.retail_price, Decimal('4.19'))
            self.assertEqual(premium.department_id, 999)

            unnamed = db.get(Product, 5)
            self.assertEqual(unnamed.upc_description, 'Fuel Product 5')
            self.assertEqual(unnamed.cost, Decimal('2.10'))

    def test_grades_root_is_accepted(self) -> None:
        content = '<grades><fuelGrade><id>7</id><description>Diesel</description></fuelGrade></grades>'

        result = self._ingest('FCF_legacy.xml', content)

        self.assertEqual((result.processed_count, result.error_count), (1, 0))
        with self.session_factory() as db:
            diesel = db.get(Product, 7)
            self.assertEqual(diesel.upc_description, 'Diesel')
            self.assertEqual(diesel.department_id, 999)

    def test_unknown_root_rejects_file(self) -> None:
        with self.assertRaises(FileStructureError):
            self._ingest('FCF_bad.xml', '<pumpStatus><pump>1</pump></pumpStatus>')


class SummaryIngestTests(IngestTestCase):
    def test_every_summary_section_is_written(self) -> None:
        result = self._ingest('SUM_20240115.xml', SUMMARY_XML)

        self.assertEqual((result.record_kind, result.processed_count, result.error_count), ('SUM', 5, 0))
        with self.session_factory() as db:
            store = db.get(Store, '003')
            self.assertEqual((store.store_name, store.city), ('Main St', 'Austin'))

            department = db.get(Department, 20)
            self.assertEqual(department.department_name, 'Lotto Tickets')
            self.assertTrue(department.is_lottery_department)

            product = db.get(Product, 49000000443)
            self.assertEqual(product.upc_description, 'Scratcher')
            self.assertEqual(product.department_id, 20)
            self.assertEqual(product.retail_price, Decimal('2.00'))

            self.assertEqual(db.get(PromotionProgram, 700).promotion_name, 'Summer')
            rebate = db.get(RebateProgram, 800)
            self.assertEqual(rebate.rebate_percentage, Decimal('2.5'))
            self.assertEqual(rebate.rebate_type, 'cashback')

        self.assertEqual(row_count(self.session_factory, PromotionUPCLinkage), 1)
        self.assertEqual(row_count(self.session_factory, RebateUPCLinkage), 1)

    def test_named_summary_container(self) -> None:
        content = '<master><storeSummary><storeId>011</storeId><storeName>Airport</storeName></storeSummary></master>'

        result = self._ingest('SUM_store.xml', content)

        self.assertEqual(result.processed_count, 1)
        with self.session_factory() as db:
            self.assertEqual(db.get(Store, '011').store_name, 'Airport')

    def test_document_without_summaries_rejects_file(self) -> None:
        with self.assertRaises(FileStructureError):
            self._ingest('SUM_empty.xml', '<summaries><note>none</note></summaries>')


class GenericIngestTests(IngestTestCase):
    def test_unknown_kind_falls_back_to_keyword_matching(self) -> None:
        result = self._ingest('ISM_20240115.xml', GENERIC_XML)

        self.assertEqual(result.record_kind, 'ISM')
        self.assertEqual(result.error_count, 0)
        self.assertGreater(result.processed_count, 0)
        with self.session_factory() as db:
            self.assertIsNotNone(db.get(Store, '004'))
            self.assertEqual(db.get(Product, 555).upc_source, 'ISM_20240115.xml')
            self.assertEqual(db.get(Department, 30).department_type, 'norm')

    def test_visit_matches_list_items_individually(self) -> None:
        tree = {'items': {'item': [{'upc': '1'}, {'upc': '2'}]}}

        products = [match for match in visit(tree, MATCHERS) if match.entity == 'product']

        self.assertEqual(
            [match.key_path for match in products],
            ['items', 'items.item', 'items.item.upc', 'items.item', 'items.item.upc'],
        )

    def test_non_numeric_ids_are_ignored(self) -> None:
        content = '<export><department>Grocery</department><sku>ABC-1</sku></export>'

        result = self._ingest('XYZ_export.xml', content)

        self.assertEqual(result.error_count, 0)
        self.assertEqual(row_count(self.session_factory, Department), 0)
        self.assertEqual(row_count(self.session_factory, Product), 0)


class CatalogIngestTests(IngestTestCase):
    def test_catalog_rows_create_products(self) -> None:
        result = self._ingest('pricebook_20240115.csv', PRICEBOOK_CSV)

        self.assertEqual(result.record_kind, 'PRICEBOOK')
        self.assertEqual((result.processed_count, result.error_count, result.skipped_count), (2, 0, 1))
        with self.session_factory() as db:
            cola = db.get(Product, 1234567890)
            self.assertEqual(cola.upc_description, 'Cola 12oz')
            self.assertEqual(cola.cost, Decimal('0.50'))
            self.assertEqual(cola.retail_price, Decimal('1299.99'))
            self.assertTrue(cola.cost_available)
            self.assertEqual(cola.upc_source, 'pricebook_20240115.csv')

            token = db.get(Product, 49000000443)
            self.assertIsNone(token.cost)
            self.assertFalse(token.cost_available)
            self.assertTrue(db.get(Department, 40).is_car_wash_department)

    def test_catalog_overwrites_existing_products(self) -> None:
        self._ingest('pricebook_1.csv', PRICEBOOK_CSV)
        repriced = PRICEBOOK_CSV.replace('"$1,299.99"', '1.49')

        result = self._ingest('pricebook_2.csv', repriced)

        self.assertEqual(result.processed_count, 2)
        with self.session_factory() as db:
            cola = db.get(Product, 1234567890)
            self.assertEqual(cola.retail_price, Decimal('1.49'))
            self.assertEqual(cola.modified_by, 'tester')
            self.assertIsNotNone(cola.modified_at)
            self.assertIsNone(db.get(Product, 49000000443).modified_by)

    def test_catalog_names_a_nameless_department(self) -> None:
        with self.session_factory.begin() as db:
            resolve_department(db, 10)

        self._ingest('pricebook.csv', PRICEBOOK_CSV)

        with self.session_factory() as db:
            self.assertEqual(db.get(Department, 10).department_name, 'Grocery')

    def test_catalog_without_upc_column_rejects_file(self) -> None:
        with self.assertRaises(FileStructureError):
            self._ingest('pricebook.csv', 'SKU,Cost\n1,2\n')

    def test_header_only_catalog_has_nothing_to_do(self) -> None:
        result = self._ingest('pricebook.csv', 'UPC,Cost\n')

        self.assertEqual((result.processed_count, result.skipped_count), (0, 0))


if __name__ == '__main__':
    unittest.main()
