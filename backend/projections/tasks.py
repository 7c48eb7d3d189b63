"""
Celery tasks for projection catch-up and rebuilds.

Commands already run projections inside their own transaction, so these
tasks only matter when a projection was paused, failed, or is being
rebuilt after a code change.

Tasks:
- process_business_projections: Process all projections for a business
- process_all_projections: Process projections for all active businesses
- rebuild_business_projection: Rebuild a single projection from scratch

Usage:
    from projections.tasks import rebuild_business_projection
    rebuild_business_projection.delay(business_id=business.id, projection_name="account_balance")
"""
import logging
from typing import Optional

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    retry_backoff=True,
)
def process_business_projections(
    self,
    business_id: int,
    projection_names: Optional[list] = None,
    limit: int = 1000,
) -> dict:
    """
    Process all pending projection events for a business.

    Args:
        business_id: ID of the business to process
        projection_names: Optional list of specific projections to process
        limit: Maximum events per projection

    Returns:
        Dict with processing results per projection
    """
    from accounts.models import Business
    from projections.base import projection_registry

    logger.info("Processing projections for business %s", business_id)

    try:
        business = Business.objects.get(id=business_id)
    except Business.DoesNotExist:
        logger.error("Business %s not found", business_id)
        return {"error": f"Business {business_id} not found"}

    if projection_names:
        projections = [
            projection_registry.get(name)
            for name in projection_names
            if projection_registry.get(name)
        ]
    else:
        projections = projection_registry.all()

    results = {}
    total_processed = 0

    for projection in projections:
        try:
            processed = projection.process_pending(business, limit=limit)
            results[projection.name] = {"processed": processed, "status": "success"}
            total_processed += processed
        except Exception as e:
            logger.exception("Error in projection %s: %s", projection.name, e)
            results[projection.name] = {"error": str(e), "status": "error"}

    logger.info(
        "Completed projections for business %s: %s events processed",
        business_id, total_processed,
    )

    return {
        "business_id": business_id,
        "total_processed": total_processed,
        "projections": results,
    }


@shared_task(bind=True)
def process_all_projections(self, limit: int = 1000) -> dict:
    """
    Process projections for all active businesses.

    Designed to be run periodically to catch up on any pending events.
    """
    from accounts.models import Business

    logger.info("Processing projections for all businesses")

    results = {}
    total_processed = 0
    businesses = list(Business.objects.filter(is_active=True))

    for business in businesses:
        try:
            result = process_business_projections(
                business_id=business.id,
                limit=limit,
            )
            results[business.slug] = result
            total_processed += result.get("total_processed", 0)
        except Exception as e:
            logger.exception("Error processing business %s: %s", business.slug, e)
            results[business.slug] = {"error": str(e)}

    logger.info("Completed all projections: %s total events processed", total_processed)

    return {
        "businesses_processed": len(businesses),
        "total_events_processed": total_processed,
        "results": results,
    }


@shared_task(
    bind=True,
    max_retries=1,
    time_limit=3600,
)
def rebuild_business_projection(
    self,
    business_id: int,
    projection_name: str,
) -> dict:
    """
    Rebuild a projection from scratch for a business.

    Resets the bookmark, clears the projected data and replays every
    relevant event (BaseProjection.rebuild).
    """
    from accounts.models import Business
    from projections.base import projection_registry

    logger.info("Rebuilding projection %s for business %s", projection_name, business_id)

    try:
        business = Business.objects.get(id=business_id)
    except Business.DoesNotExist:
        return {"error": f"Business {business_id} not found"}

    projection = projection_registry.get(projection_name)
    if not projection:
        return {"error": f"Projection {projection_name} not found"}

    try:
        processed = projection.rebuild(business)
        logger.info(
            "Rebuilt projection %s for %s: %s events processed",
            projection_name, business.slug, processed,
        )
        return {
            "business_id": business_id,
            "projection": projection_name,
            "events_processed": processed,
            "status": "success",
        }
    except Exception as e:
        logger.exception("Error rebuilding projection %s: %s", projection_name, e)
        return {
            "business_id": business_id,
            "projection": projection_name,
            "error": str(e),
            "status": "error",
        }
