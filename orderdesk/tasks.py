"""
Celery Tasks
Background export of created orders.
"""

import logging
import time

from orderdesk.celery_worker import celery_app
from orderdesk.services.excel_manager import get_excel_manager

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_order_to_excel(self, order: dict) -> dict:
    """
    Append an order to the Excel export.

    Args:
        order: Order view as broadcast on the event stream (camelCase keys)

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    order_id = order.get("id", "unknown")

    logger.info(f"Task {task_id}: exporting order #{order_id}")
    start_time = time.time()

    result = get_excel_manager().export_order(order)

    elapsed = round(time.time() - start_time, 3)
    result["task_id"] = task_id
    result["processing_time_seconds"] = elapsed

    if result["success"]:
        logger.info(f"Task {task_id}: order #{order_id} exported in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: order #{order_id} not exported - {result['message']}")

    return result
