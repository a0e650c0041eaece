"""
Excel Order Export with Concurrency Control

Appends one row per created order to a spreadsheet. Several Celery workers
may export at once, so every read-modify-write happens under a file lock.
"""

import logging
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any

import pandas as pd
from filelock import FileLock, Timeout

from orderdesk.core.config import get_settings

logger = logging.getLogger(__name__)


class ExcelManager:
    """Lock-protected Excel file of exported orders."""

    ORDER_COLUMNS = [
        "order_id",
        "date_time",
        "customer_name",
        "table_no",
        "note",
        "items",
        "item_count",
        "total",
        "order_status",
        "exported_at",
    ]

    def __init__(self, data_dir: Path, filename: str = "orders.xlsx", lock_timeout: int = 30):
        self.data_dir = Path(data_dir)
        self.orders_file = self.data_dir / filename
        self.lock_file = self.data_dir / f"{filename}.lock"
        self.lock_timeout = lock_timeout

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _load_or_create_df(self) -> pd.DataFrame:
        """Load existing file or create new DataFrame."""
        if self.orders_file.exists():
            try:
                return pd.read_excel(self.orders_file, engine="openpyxl")
            except Exception as e:
                logger.warning(f"Error reading {self.orders_file}: {e}")
        return pd.DataFrame(columns=self.ORDER_COLUMNS)

    @staticmethod
    def summarize_items(items: list[dict[str, Any]]) -> str:
        """``"2x Pad Thai, 1x Tea"``"""
        return ", ".join(f"{item.get('qty', 1)}x {item.get('name', '')}" for item in items)

    def export_order(self, order: dict[str, Any]) -> dict[str, Any]:
        """
        Append an order (the camelCase order view) to the spreadsheet.

        Returns:
            Result dict with ``success``, ``message``, ``order_id``, ``exported_at``
        """
        self._ensure_data_dir()

        order_id = order.get("id", 0)
        items = order.get("items") or []
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "exported_at": None,
        }

        try:
            with FileLock(str(self.lock_file), timeout=self.lock_timeout):
                logger.debug(f"Lock acquired for Order #{order_id}")

                df = self._load_or_create_df()

                export_time = datetime.now().isoformat()
                new_row = {
                    "order_id": order_id,
                    "date_time": order.get("createdAt", export_time),
                    "customer_name": order.get("customerName"),
                    "table_no": order.get("tableNo"),
                    "note": order.get("note"),
                    "items": self.summarize_items(items),
                    "item_count": sum(int(item.get("qty", 1)) for item in items),
                    "total": order.get("total"),
                    "order_status": order.get("status"),
                    "exported_at": export_time,
                }

                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(self.orders_file), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} exported to Excel")

                result["success"] = True
                result["message"] = f"Order #{order_id} exported"
                result["exported_at"] = export_time

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for Order #{order_id}")

        except Exception as e:
            result["message"] = str(e)
            logger.exception(f"Error exporting Order #{order_id}")

        return result

    def get_all_orders(self) -> list[dict[str, Any]]:
        """Read back every exported row."""
        if not self.orders_file.exists():
            return []

        try:
            df = pd.read_excel(self.orders_file, engine="openpyxl")
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading orders: {e}")
            return []


@lru_cache()
def get_excel_manager() -> ExcelManager:
    settings = get_settings()
    return ExcelManager(
        data_dir=Path(settings.data_directory),
        filename=settings.excel_filename,
        lock_timeout=settings.excel_lock_timeout,
    )
