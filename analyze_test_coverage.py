#!/usr/bin/env python3
"""
Test Coverage Analysis Script
Counts the test cases in test_comprehensive.py and test_api.py per layer
and writes a markdown summary to TEST_COVERAGE_REPORT.md
"""

import ast
from typing import Dict, List, Set
from collections import defaultdict
from pathlib import Path

TEST_FILES = ['test_comprehensive.py', 'test_api.py']

# Test class -> (layer, area)
CLASS_CATEGORIES = {
    'TestValueObjects': ('Domain Layer', 'Value Objects'),
    'TestEnums': ('Domain Layer', 'Enums'),
    'TestPropertyAndUnitEntities': ('Domain Layer', 'Inventory Entities'),
    'TestBookingEntity': ('Domain Layer', 'Booking'),
    'TestDueEntity': ('Domain Layer', 'Dues & Receipts'),
    'TestReceiptEntity': ('Domain Layer', 'Dues & Receipts'),
    'TestVendorEntity': ('Domain Layer', 'Vendors & Payouts'),
    'TestNotificationDomain': ('Domain Layer', 'Notifications & Settings'),
    'TestUserAndExceptions': ('Domain Layer', 'Users & Errors'),

    'TestInventoryService': ('Application Services', 'InventoryService'),
    'TestBookingService': ('Application Services', 'BookingService'),
    'TestDueService': ('Application Services', 'DueService'),
    'TestDepositService': ('Application Services', 'DepositService'),
    'TestPayoutService': ('Application Services', 'PayoutService'),
    'TestNotificationService': ('Application Services', 'NotificationService'),
    'TestAdminSettingsService': ('Application Services', 'AdminSettingsService'),
    'TestReportService': ('Application Services', 'ReportService'),

    'TestInMemoryRepositories': ('Infrastructure', 'Repositories'),
    'TestUnitOfWork': ('Infrastructure', 'Unit of Work'),
    'TestRazorpayGateway': ('Infrastructure', 'Payment Gateway'),
    'TestPushSenders': ('Infrastructure', 'Push Delivery'),
    'TestSecurity': ('Infrastructure', 'Security'),
    'TestDependencies': ('Infrastructure', 'Dependencies'),
    'TestConfigAndLogging': ('Infrastructure', 'Config & Logging'),

    'TestAuthenticationAPI': ('API/Integration', 'Authentication'),
    'TestHealthAndEnumsAPI': ('API/Integration', 'Health & Enums'),
    'TestInventoryAPI': ('API/Integration', 'Inventory'),
    'TestBookingAPI': ('API/Integration', 'Bookings'),
    'TestDuesAPI': ('API/Integration', 'Dues'),
    'TestDepositsAPI': ('API/Integration', 'Deposits'),
    'TestVendorScopingAPI': ('API/Integration', 'Vendor Scoping'),
    'TestVendorPayoutAPI': ('API/Integration', 'Vendors & Payouts'),
    'TestNotificationsAPI': ('API/Integration', 'Notifications'),
    'TestAdminSettingsAPI': ('API/Integration', 'Admin Settings'),
    'TestAPIMockErrors': ('API/Integration', 'Error Handling'),
}

# Markers that get their own cross-cutting section
SPECIALIZED_MARKERS = {
    'security': 'Security Tests',
    'edge_case': 'Edge Cases',
    'concurrency': 'Concurrency',
}

LAYERS = ['Domain Layer', 'Application Services', 'Infrastructure', 'API/Integration']


class TestAnalyzer:
    """Analyzer for test files to extract coverage statistics"""

    def __init__(self):
        self.test_classes = defaultdict(list)
        self.test_markers = defaultdict(set)
        self.total_tests = 0
        self.categories: Dict[str, Dict[str, List[str]]] = defaultdict(lambda: defaultdict(list))
        self.uncategorized: List[str] = []

    def analyze_file(self, filepath: Path):
        """Parse Python test file and extract test information"""
        tree = ast.parse(filepath.read_text(encoding='utf-8'))

        for node in tree.body:
            if isinstance(node, ast.ClassDef) and node.name.startswith('Test'):
                self._analyze_class(node)

    def _analyze_class(self, class_node):
        class_name = class_node.name

        for item in class_node.body:
            # Service tests are async, API tests are sync
            if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)) and item.name.startswith('test_'):
                self.total_tests += 1
                markers = self._extract_markers(item)
                self.test_classes[class_name].append({'name': item.name, 'markers': markers})

                test_id = f"{class_name}.{item.name}"
                for marker in markers:
                    self.test_markers[marker].add(test_id)
                self._categorize_test(class_name, test_id, markers)

    def _extract_markers(self, func_node) -> Set[str]:
        """Extract pytest markers from function decorators"""
        markers = set()
        for decorator in func_node.decorator_list:
            target = decorator.func if isinstance(decorator, ast.Call) else decorator
            if not isinstance(target, ast.Attribute) or not isinstance(target.value, ast.Attribute):
                continue
            # pytest.mark.<name>
            if getattr(target.value.value, 'id', None) == 'pytest' and target.value.attr == 'mark':
                markers.add(target.attr)
        return markers

    def _categorize_test(self, class_name: str, test_id: str, markers: Set[str]):
        layer, area = CLASS_CATEGORIES.get(class_name, (None, None))
        if layer:
            self.categories[layer][area].append(test_id)
        else:
            self.uncategorized.append(test_id)

        for marker, section in SPECIALIZED_MARKERS.items():
            if marker in markers:
                self.categories['Specialized'][section].append(test_id)

    def _layer_total(self, layer: str) -> int:
        return sum(len(tests) for tests in self.categories[layer].values())

    def _pct(self, count: int) -> float:
        return count / self.total_tests * 100 if self.total_tests else 0.0

    @staticmethod
    def _bar(pct: float, width: int = 20) -> str:
        filled = round(pct / 100 * width)
        return '█' * filled + '░' * (width - filled)

    def generate_report(self) -> str:
        """Generate markdown report"""
        report = []
        report.append("# 📊 Unit Testing Coverage Report\n")
        report.append("**Cabin & Hostel Booking API - Test Inventory**\n")
        report.append(f"**Files:** {', '.join(TEST_FILES)}\n")
        report.append("---\n")

        report.append("## 🎯 Test Count\n")
        report.append(f"### **{self.total_tests} test cases in {len(self.test_classes)} classes**\n")
        report.append("Run `pytest -v` for pass/fail results.\n")

        report.append("## 📈 Coverage by Category\n")
        for layer in LAYERS + ['Specialized']:
            areas = self.categories.get(layer, {})
            layer_total = sum(len(tests) for tests in areas.values())
            if not layer_total:
                continue
            report.append(f"\n### {layer}\n")
            if layer != 'Specialized':
                report.append(f"**Total: {layer_total} tests ({self._pct(layer_total):.1f}% of total)**\n")
            for area, tests in areas.items():
                report.append(f"- **{area}**: {len(tests)} tests ({self._pct(len(tests)):.1f}%)\n")

        report.append("\n## 🏗️ Test Distribution by Architectural Layer\n")
        report.append("```")
        for layer in LAYERS:
            total = self._layer_total(layer)
            pct = self._pct(total)
            report.append(f"{layer:<22}: {self._bar(pct)} {total} tests ({pct:.1f}%)")
        report.append("```\n")

        report.append("## 🏷️ Test Markers Distribution\n")
        marker_counts = {marker: len(tests) for marker, tests in self.test_markers.items()}
        for marker, count in sorted(marker_counts.items(), key=lambda x: x[1], reverse=True):
            report.append(f"- `@pytest.mark.{marker}`: {count} tests ({self._pct(count):.1f}%)\n")

        report.append("\n## 📋 Detailed Test Breakdown\n")
        for layer in LAYERS:
            areas = self.categories.get(layer, {})
            if not areas:
                continue
            report.append(f"\n### {layer}\n")
            for area, tests in areas.items():
                report.append(f"\n#### {area} ({len(tests)} tests)\n")
                for test_id in tests:
                    class_name, test_name = test_id.split('.', 1)
                    report.append(f"- {class_name[len('Test'):]} → {test_name[len('test_'):]}\n")

        if self.uncategorized:
            report.append("\n## ❔ Uncategorized\n")
            for test_id in self.uncategorized:
                report.append(f"- {test_id}\n")

        report.append("\n## 📊 Summary Statistics\n")
        report.append(f"- **Total Test Cases**: {self.total_tests}\n")
        report.append(f"- **Test Classes**: {len(self.test_classes)}\n")
        report.append(f"- **Test Markers Used**: {len(self.test_markers)}\n")

        report.append("\n---\n")
        report.append("*Report generated by analyze_test_coverage.py*\n")

        return '\n'.join(report)


def main():
    """Main execution"""
    analyzer = TestAnalyzer()
    root = Path(__file__).parent

    print("🔍 Analyzing test files...")
    for name in TEST_FILES:
        test_file = root / name
        if not test_file.exists():
            print(f"Error: {test_file} not found!")
            return
        analyzer.analyze_file(test_file)

    print(f"✅ Found {analyzer.total_tests} tests")
    print("📊 Generating coverage report...")

    report_file = root / 'TEST_COVERAGE_REPORT.md'
    report_file.write_text(analyzer.generate_report(), encoding='utf-8')

    print(f"✨ Coverage report saved to: {report_file}")
    print(f"\n{'='*70}")
    print(f"{'SUMMARY':^70}")
    print(f"{'='*70}")
    print(f"Total Tests: {analyzer.total_tests}")
    print(f"Test Classes: {len(analyzer.test_classes)}")
    print(f"Report: {report_file.name}")
    print(f"{'='*70}\n")


if __name__ == '__main__':
    main()
