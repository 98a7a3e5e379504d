"""Celery tasks for background processing."""

import asyncio
import smtplib

import structlog

from productbazar.database.session import async_session_maker
from productbazar.models.view import VIEW_RETENTION_DAYS
from productbazar.services.auth_service import AuthService
from productbazar.services.email_service import render, send_email
from productbazar.services.job_service import JobService
from productbazar.services.view_service import ViewService
from productbazar.utils.text import mask_email
from productbazar.workers.celery_app import celery_app

logger = structlog.get_logger()


def run_async(coro):
    """Run async coroutine in sync context."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(bind=True, max_retries=3)
def send_templated_email(self, template: str, to_email: str, context: dict):
    """
    Render and deliver a transactional email.

    Args:
        template: Name of a template in ``email_service.TEMPLATES``
        to_email: Recipient address
        context: Template keyword arguments
    """
    rendered = render(template, context)
    try:
        return send_email(to_email, rendered)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(
            "send_email_error", template=template, to=mask_email(to_email), error=str(e)
        )
        raise self.retry(exc=e, countdown=60)


@celery_app.task
def purge_old_views(days: int = VIEW_RETENTION_DAYS):
    """Delete views older than the retention window."""
    logger.info("purge_old_views_start", days=days)

    async def _purge():
        async with async_session_maker() as db:
            deleted = await ViewService(db).purge_old_views(days)
            await db.commit()
            return deleted

    return run_async(_purge())


@celery_app.task
def purge_refresh_tokens():
    """Delete expired and revoked refresh tokens."""

    async def _purge():
        async with async_session_maker() as db:
            deleted = await AuthService(db).purge_stale_tokens()
            await db.commit()
            return deleted

    return run_async(_purge())


@celery_app.task
def close_expired_jobs():
    """Close published jobs whose expiry date has passed."""

    async def _close():
        async with async_session_maker() as db:
            closed = await JobService(db).close_expired_jobs()
            await db.commit()
            return closed

    return run_async(_close())
