"""
Batch contract shared by the tool endpoints.

A call carries one object or a list of up to MAX_BATCH_ITEMS objects. Lists
that are too long are rejected before any item runs. Items run in parallel,
and every failure, including database and token errors, is turned into a
{"status": false, "message", "code"} element so the other items still finish.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List

from toolgate.errors import BatchLimitExceeded, GatewayError, InvalidArgument
from toolgate.schemas import BatchItemResult, BatchResponse

logger = logging.getLogger(__name__)

MAX_BATCH_ITEMS = 50


def normalize_items(body: Any) -> List[Dict[str, Any]]:
    """Turn a request body into a list of item dicts, enforcing the size limit."""
    if body is None:
        raise InvalidArgument("Request body must be a JSON object or array")
    items = body if isinstance(body, list) else [body]

    if len(items) > MAX_BATCH_ITEMS:
        raise BatchLimitExceeded(
            f"Too many requests. Please provide {MAX_BATCH_ITEMS} or fewer requests in a single call."
        )
    return items


def run_item(handler: Callable[[Dict[str, Any]], Any], item: Any) -> BatchItemResult:
    """Run one item, converting any failure into a result value."""
    try:
        if not isinstance(item, dict):
            raise InvalidArgument("Each request must be a JSON object")
        return BatchItemResult(status=True, data=handler(item))
    except GatewayError as e:
        return BatchItemResult(status=False, message=e.message, code=e.code)
    except Exception as e:
        logger.exception("Unexpected failure in batch item")
        return BatchItemResult(status=False, message=f"Error: {e}", code="internal_error")


def run_batch(body: Any, handler: Callable[[Dict[str, Any]], Any], success_message: str) -> BatchResponse:
    """
    Process a batch request.

    Args:
        body: Parsed JSON body (object or list)
        handler: Called with each item dict; returns the item's data
        success_message: Envelope message for a processed batch

    Returns:
        BatchResponse with one result per item, in request order

    Raises:
        BatchLimitExceeded: If the body holds more than MAX_BATCH_ITEMS items
        InvalidArgument: If there is no body
    """
    items = normalize_items(body)
    if not items:
        return BatchResponse(status=True, message=success_message, data=[])

    # One worker per item; upstream calls are not throttled
    with ThreadPoolExecutor(max_workers=len(items)) as pool:
        results = list(pool.map(lambda item: run_item(handler, item), items))

    return BatchResponse(status=True, message=success_message, data=results)
