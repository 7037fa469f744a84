from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import PipelineError
from app.db.session import SessionLocal
from app.schemas.bulk import BulkResult
from app.services.observer import TransitionObserver, default_observer

logger = logging.getLogger("sp.bulk")

T = TypeVar("T")


async def run_each(
    items: Sequence[T],
    single_op: Callable[[AsyncSession, T], Awaitable[Any]],
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    operation: str = "bulk",
    observer: TransitionObserver | None = None,
) -> list[BulkResult]:
    """
    Apply `single_op` to every item in order, each in its own session and transaction.

    One result per item, in input order. A failing item never affects the others.
    """
    factory = session_factory or SessionLocal
    observer = observer or default_observer
    results: list[BulkResult] = []

    for index, item in enumerate(items):
        try:
            async with factory() as session:
                data = await single_op(session, item)
        except ValidationError as exc:
            result = BulkResult(
                index=index,
                success=False,
                error="Validation failed",
                code="validation_error",
                details=json.loads(exc.json(include_url=False)),
            )
        except PipelineError as exc:
            result = BulkResult(index=index, success=False, error=exc.message, code=exc.code)
        except Exception as exc:
            logger.exception("bulk_item_crashed", extra={"operation": operation, "index": index})
            result = BulkResult(index=index, success=False, error=str(exc) or exc.__class__.__name__, code="internal_error")
        else:
            result = BulkResult(index=index, success=True, data=data)

        if not result.success:
            observer.after_bulk_item_failure(operation=operation, index=index, error=result.error or "", code=result.code)
        results.append(result)

    logger.info(
        "bulk_completed",
        extra={
            "operation": operation,
            "total": len(results),
            "failed": sum(1 for result in results if not result.success),
        },
    )
    return results
