"""
Excel Export Verification Script

Checks the order export written by the Celery worker.
Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from orderdesk.services.excel_manager import get_excel_manager


def verify_excel() -> bool:
    """Summarize the export file and flag duplicates."""
    manager = get_excel_manager()

    print("=" * 60)
    print("🔍 EXCEL VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {manager.orders_file}")
    print("=" * 60)

    if not manager.orders_file.exists():
        print("\n❌ Excel file not found!")
        print("   Enable EXPORT_ENABLED, start a Celery worker and submit some orders.")
        return False

    rows = manager.get_all_orders()
    print(f"\n📊 Total Orders: {len(rows)}")

    ids = [row["order_id"] for row in rows]
    duplicates = len(ids) - len(set(ids))
    if duplicates:
        print(f"⚠️ {duplicates} duplicate order IDs found!")
    else:
        print("✅ No duplicate order IDs")

    if rows:
        revenue = sum(row["total"] for row in rows)
        print(f"\n💰 Revenue: {revenue} (average {revenue / len(rows):.1f})")

        print(f"\n📋 RECENT ORDERS:")
        print("-" * 60)
        for row in rows[-5:]:
            print(f"   #{row['order_id']:<5} {row['customer_name']:<15} {row['total']:>6}  {row['items']}")

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE")
    print("=" * 60)
    return True


if __name__ == "__main__":
    verify_excel()
