"""Product view tracking and analytics."""

from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import delete, distinct, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from productbazar.exceptions import ForbiddenError, NotFoundError
from productbazar.models.base import as_utc, utcnow
from productbazar.models.product import Product, ProductStatus
from productbazar.models.user import User
from productbazar.models.view import VIEW_RETENTION_DAYS, View, ViewSource
from productbazar.realtime.pubsub import publish_event
from productbazar.services.cache_service import (
    CacheService,
    popular_key,
    product_count_key,
    product_stats_key,
    related_key,
    user_engagement_key,
    view_engagement_key,
)
from productbazar.utils.bot_detection import is_bot_request
from productbazar.utils.insights import generate_view_insights
from productbazar.utils.text import extract_domain
from productbazar.utils.user_agent import parse_user_agent

logger = structlog.get_logger()

DEDUP_WINDOW_MINUTES = 30
SYNC_DEBOUNCE_SECONDS = 10
RELATED_LOOKBACK_DAYS = 30
RELATED_MAX_VIEWERS = 1000

POPULAR_PERIODS = {"day": 1, "week": 7, "month": 30, "year": 365}
POPULAR_TTLS = {"day": 900, "week": 3600, "month": 7200, "year": 14400}
COUNT_TTL = 3600
STATS_TTL = 1800
RELATED_TTL = 7200
ENGAGEMENT_TTL = 1800
VIEW_ENGAGEMENT_TTL = 3600

VIEW_UPDATE_EVENT = "product:view:update"


@dataclass
class RecordedView:
    """Outcome of a view recording attempt."""

    count: int = 0
    unique: int = 0
    bot: bool = False
    duplicate: bool = False
    is_unique: bool = False


def _day(value: Any) -> str:
    """Normalise a SQL date (date object on Postgres, string on SQLite)."""
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)[:10]


def _clamp_scroll(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(min(max(value, 0), 100))


def _as_seconds(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _parse_source(value: Any) -> ViewSource:
    try:
        return ViewSource(value)
    except ValueError:
        return ViewSource.UNKNOWN


def _round(value: Any, digits: int = 1) -> float:
    return round(float(value), digits) if value is not None else 0


def geo_from_headers(headers: Mapping[str, str]) -> dict[str, str | None]:
    return {
        "country": headers.get("cf-ipcountry") or headers.get("x-country-code") or None,
        "region": headers.get("cf-region") or None,
        "city": headers.get("cf-city") or None,
    }


class ViewService:
    """Service for recording views and aggregating view analytics."""

    def __init__(self, db: AsyncSession, cache: CacheService | None = None):
        self.db = db
        self.cache = cache or CacheService()

    async def _product_or_404(self, product_id: int) -> Product:
        result = await self.db.execute(select(Product).where(Product.id == product_id))
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFoundError("Product not found.")
        return product

    async def _broadcast(self, product: Product, data: dict[str, Any]) -> None:
        payload = {"product_id": product.id, "maker_id": product.maker_id, **data}
        await publish_event(f"product:{product.id}", VIEW_UPDATE_EVENT, payload)
        await publish_event(f"user:{product.maker_id}", VIEW_UPDATE_EVENT, payload)

    # Recording

    async def record_view(
        self,
        product_id: int,
        viewer: User | None,
        payload: dict[str, Any],
        headers: Mapping[str, str],
        ip: str | None,
    ) -> RecordedView:
        """Record a product view with bot filtering and a dedup window."""
        product = await self._product_or_404(product_id)

        if is_bot_request(headers, ip):
            logger.debug("bot_view_ignored", product_id=product_id)
            return RecordedView(product.view_count, product.unique_view_count, bot=True)

        client_id = payload.get("client_id") or None
        since = utcnow() - timedelta(minutes=DEDUP_WINDOW_MINUTES)
        recent = select(View.id).where(
            View.product_id == product_id,
            View.created_at >= since,
            View.is_bot.is_(False),
        )
        if viewer is not None:
            recent = recent.where(View.user_id == viewer.id)
        elif client_id:
            recent = recent.where(View.client_id == client_id)
        else:
            recent = recent.where(View.ip == ip)
        if (await self.db.execute(recent.limit(1))).first() is not None:
            logger.info("duplicate_view", product_id=product_id, user_id=viewer.id if viewer else None)
            return RecordedView(product.view_count, product.unique_view_count, duplicate=True)

        user_agent = headers.get("user-agent") or "Unknown"
        client = parse_user_agent(user_agent)
        view = View(
            product_id=product_id,
            user_id=viewer.id if viewer else None,
            client_id=client_id,
            session_id=payload.get("session_id"),
            source=_parse_source(payload.get("source") or "unknown"),
            referrer=payload.get("referrer"),
            user_agent=user_agent[:1000],
            ip=ip,
            is_bot=False,
            device=client["device"],
            os=client["os"],
            browser=client["browser"],
            view_duration=_as_seconds(payload.get("view_duration")),
            scroll_depth=_clamp_scroll(payload.get("scroll_depth")),
            **geo_from_headers(headers),
        )
        self.db.add(view)
        await self.db.flush()

        product.view_count = (product.view_count or 0) + 1
        product.bump_history(utcnow().date().isoformat())

        is_unique = await self._is_first_view(product_id, viewer, client_id)
        if is_unique:
            product.unique_view_count = (product.unique_view_count or 0) + 1
        await self.db.flush()

        if is_unique:
            await self.sync_views_with_product(product_id)

        await self.cache.invalidate_view_caches(product_id)
        await self.cache.set(
            product_count_key(product_id),
            {
                "count": product.view_count,
                "unique": product.unique_view_count,
                "last_updated": utcnow().isoformat(),
            },
            COUNT_TTL,
        )
        await self._broadcast(
            product,
            {
                "count": product.view_count,
                "unique": product.unique_view_count,
                "view_type": "new",
                "is_unique": is_unique,
            },
        )
        logger.info(
            "view_recorded",
            product_id=product_id,
            view_id=view.id,
            count=product.view_count,
            is_unique=is_unique,
        )
        return RecordedView(product.view_count, product.unique_view_count, is_unique=is_unique)

    async def _is_first_view(
        self, product_id: int, viewer: User | None, client_id: str | None
    ) -> bool:
        """Anonymous viewers without a client id never count as unique."""
        query = select(func.count(View.id)).where(
            View.product_id == product_id, View.is_bot.is_(False)
        )
        if viewer is not None:
            query = query.where(View.user_id == viewer.id)
        elif client_id:
            query = query.where(View.client_id == client_id, View.user_id.is_(None))
        else:
            return False
        return (await self.db.execute(query)).scalar_one() <= 1

    async def update_view_duration(
        self,
        product_id: int,
        viewer: User | None,
        payload: dict[str, Any],
        headers: Mapping[str, str],
        ip: str | None,
    ) -> bool:
        """Attach duration data to the viewer's latest view. Returns True if a view was created."""
        product = await self._product_or_404(product_id)
        duration = _as_seconds(payload.get("view_duration"))
        scroll_depth = _clamp_scroll(payload.get("scroll_depth"))
        exit_page = payload.get("exit_page")
        session_id = payload.get("session_id")

        query = select(View).where(View.product_id == product_id, View.is_bot.is_(False))
        if viewer is not None:
            query = query.where(View.user_id == viewer.id)
            viewer_key = f"user:{viewer.id}"
        elif session_id:
            query = query.where(View.session_id == session_id)
            viewer_key = f"session:{session_id}"
        else:
            query = query.where(View.ip == ip)
            viewer_key = f"ip:{ip}"
        result = await self.db.execute(query.order_by(View.created_at.desc(), View.id.desc()).limit(1))
        view = result.scalar_one_or_none()

        if view is None:
            user_agent = headers.get("user-agent") or "Unknown"
            client = parse_user_agent(user_agent)
            self.db.add(
                View(
                    product_id=product_id,
                    user_id=viewer.id if viewer else None,
                    session_id=session_id,
                    source=ViewSource.UNKNOWN,
                    user_agent=user_agent[:1000],
                    ip=ip,
                    is_bot=False,
                    device=client["device"],
                    os=client["os"],
                    browser=client["browser"],
                    view_duration=duration,
                    scroll_depth=scroll_depth,
                    exit_page=exit_page,
                    **geo_from_headers(headers),
                )
            )
            await self.db.flush()
            logger.info("view_created_with_duration", product_id=product_id, duration=duration)
            return True

        view.view_duration = duration
        if exit_page:
            view.exit_page = exit_page
        if scroll_depth is not None:
            view.scroll_depth = scroll_depth
        await self.db.flush()

        await self.cache.set(
            view_engagement_key(product_id, viewer_key),
            {
                "view_duration": duration,
                "scroll_depth": scroll_depth,
                "exit_page": exit_page,
                "last_updated": utcnow().isoformat(),
            },
            VIEW_ENGAGEMENT_TTL,
        )
        await self._broadcast(
            product,
            {
                "count": product.view_count,
                "unique": product.unique_view_count,
                "view_type": "duration",
                "view_duration": duration,
                "scroll_depth": scroll_depth,
            },
        )
        return False

    # Synchronisation and housekeeping

    async def sync_views_with_product(self, product_id: int, force: bool = False) -> dict[str, Any]:
        """Recompute the product's counters from the view log, at most every 10 seconds."""
        product = await self._product_or_404(product_id)
        now = utcnow()
        synced_at = as_utc(product.views_synced_at)
        if not force and synced_at and (now - synced_at).total_seconds() < SYNC_DEBOUNCE_SECONDS:
            return {"skipped": True, "updated": False}

        not_bot = (View.product_id == product_id, View.is_bot.is_(False))
        total = (await self.db.execute(select(func.count(View.id)).where(*not_bot))).scalar_one()
        users = (
            await self.db.execute(
                select(func.count(distinct(View.user_id))).where(*not_bot, View.user_id.is_not(None))
            )
        ).scalar_one()
        clients = (
            await self.db.execute(
                select(func.count(distinct(View.client_id))).where(
                    *not_bot, View.user_id.is_(None), View.client_id.is_not(None)
                )
            )
        ).scalar_one()
        ips = (
            await self.db.execute(
                select(func.count(distinct(View.ip))).where(
                    *not_bot, View.user_id.is_(None), View.client_id.is_(None), View.ip.is_not(None)
                )
            )
        ).scalar_one()
        unique = users + clients + ips

        today = now.date().isoformat()
        today_start = datetime.combine(now.date(), datetime.min.time(), tzinfo=now.tzinfo)
        today_count = (
            await self.db.execute(
                select(func.count(View.id)).where(*not_bot, View.created_at >= today_start)
            )
        ).scalar_one()

        updated = total != product.view_count or unique != product.unique_view_count
        if updated:
            product.view_count = total
            product.unique_view_count = unique
        has_today = any(entry.get("date") == today for entry in product.view_history or [])
        if has_today or today_count > 0:
            product.set_history(today, today_count)
        product.views_synced_at = now
        await self.db.flush()

        if updated:
            logger.info("views_synced", product_id=product_id, total=total, unique=unique)
        return {"total_count": total, "unique_count": unique, "updated": updated, "skipped": False}

    async def purge_old_views(self, days: int = VIEW_RETENTION_DAYS) -> int:
        cutoff = utcnow() - timedelta(days=days)
        result = await self.db.execute(
            delete(View)
            .where(View.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        logger.info("old_views_purged", deleted=result.rowcount, days=days)
        return result.rowcount or 0

    # Discovery

    async def get_popular(self, limit: int = 10, period: str = "week") -> list[dict[str, Any]]:
        period = period if period in POPULAR_PERIODS else "week"
        limit = max(1, min(limit, 30))
        key = popular_key(period, limit)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        since = utcnow() - timedelta(days=POPULAR_PERIODS[period])
        views = func.count(View.id).label("views")
        result = await self.db.execute(
            select(
                Product,
                views,
                func.count(distinct(View.user_id)).label("unique_viewers"),
                func.max(View.created_at).label("last_viewed"),
            )
            .join(View, View.product_id == Product.id)
            .where(
                View.created_at >= since,
                View.is_bot.is_(False),
                Product.status == ProductStatus.PUBLISHED,
            )
            .group_by(Product.id)
            .order_by(views.desc(), Product.id)
            .limit(limit)
        )
        popular = [
            {
                **self._product_summary(product),
                "views": count,
                "unique_viewers": unique_viewers,
                "last_viewed": last_viewed,
            }
            for product, count, unique_viewers, last_viewed in result.all()
        ]
        await self.cache.set(key, popular, POPULAR_TTLS[period])
        return popular

    async def get_related(self, product_id: int, limit: int = 5) -> dict[str, Any]:
        """Products co-viewed by the signed-in viewers of this product."""
        limit = max(1, min(limit, 15))
        key = related_key(product_id, limit)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        since = utcnow() - timedelta(days=RELATED_LOOKBACK_DAYS)
        viewers = (
            select(View.user_id)
            .where(
                View.product_id == product_id,
                View.user_id.is_not(None),
                View.created_at >= since,
                View.is_bot.is_(False),
            )
            .distinct()
            .limit(RELATED_MAX_VIEWERS)
        )
        viewer_ids = list((await self.db.execute(viewers)).scalars().all())
        if not viewer_ids:
            return {"products": [], "meta": {"source": "co-view-empty"}}

        strength = func.count(distinct(View.user_id)).label("strength")
        candidates = (
            await self.db.execute(
                select(View.product_id, strength)
                .where(
                    View.user_id.in_(viewer_ids),
                    View.product_id != product_id,
                    View.is_bot.is_(False),
                )
                .group_by(View.product_id)
                .order_by(strength.desc(), View.product_id)
                .limit(limit * 2)
            )
        ).all()
        scores = {pid: score for pid, score in candidates}
        if not scores:
            return {"products": [], "meta": {"source": "co-view-empty"}}

        products = (
            await self.db.execute(
                select(Product).where(
                    Product.id.in_(scores), Product.status == ProductStatus.PUBLISHED
                )
            )
        ).scalars().all()
        ranked = sorted(products, key=lambda p: (-scores[p.id], p.id))[:limit]
        related = {
            "products": [
                {**self._product_summary(p), "co_view_strength": scores[p.id]} for p in ranked
            ],
            "meta": {"source": "co-view" if ranked else "co-view-empty"},
        }
        if ranked:
            await self.cache.set(key, related, RELATED_TTL)
        return related

    @staticmethod
    def _product_summary(product: Product) -> dict[str, Any]:
        return {
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "tagline": product.tagline,
            "category": product.category,
            "maker_id": product.maker_id,
            "view_count": product.view_count,
            "unique_view_count": product.unique_view_count,
        }

    # Analytics

    async def get_product_stats(self, product_id: int, days: int = 7) -> dict[str, Any]:
        end = utcnow()
        start = end - timedelta(days=days)
        window = (
            View.product_id == product_id,
            View.created_at >= start,
            View.is_bot.is_(False),
        )

        day = func.date(View.created_at).label("day")
        daily_rows = (
            await self.db.execute(
                select(
                    day,
                    func.count(View.id),
                    func.count(distinct(View.user_id)),
                    func.avg(View.view_duration),
                )
                .where(*window)
                .group_by(day)
                .order_by(day)
            )
        ).all()
        daily = [
            {
                "date": _day(d),
                "count": count,
                "unique_count": unique_count,
                "avg_duration": _round(avg),
            }
            for d, count, unique_count, avg in daily_rows
        ]

        total_views, unique_viewers, countries, referrers, avg_duration = (
            await self.db.execute(
                select(
                    func.count(View.id),
                    func.count(distinct(View.user_id)),
                    func.count(distinct(View.country)),
                    func.count(distinct(View.referrer)),
                    func.avg(View.view_duration),
                ).where(*window)
            )
        ).one()

        country_count = func.count(View.id).label("count")
        top_countries = [
            {"country": country, "count": count}
            for country, count in (
                await self.db.execute(
                    select(View.country, country_count)
                    .where(*window, View.country.is_not(None))
                    .group_by(View.country)
                    .order_by(country_count.desc())
                    .limit(10)
                )
            ).all()
        ]

        referrer_rows = (
            await self.db.execute(select(View.referrer).where(*window, View.referrer.is_not(None)))
        ).scalars()
        domains = Counter(filter(None, (extract_domain(r) for r in referrer_rows)))
        top_referrers = [{"domain": d, "count": c} for d, c in domains.most_common(10)]

        devices = await self._breakdown(View.device, window, "other")
        sources = await self._breakdown(View.source, window, "direct")

        hour = extract("hour", View.created_at).label("hour")
        hour_rows = await self.db.execute(
            select(hour, func.count(View.id)).where(*window).group_by(hour)
        )
        hourly = {int(h): c for h, c in hour_rows.all() if h is not None}

        return {
            "daily": daily,
            "totals": {
                "total_views": total_views,
                "unique_viewers": unique_viewers,
                "countries": countries,
                "referrers": referrers,
                "avg_duration": _round(avg_duration),
            },
            "countries": top_countries,
            "referrers": top_referrers,
            "devices": [{"device": k, "count": v} for k, v in devices],
            "sources": [{"source": k, "count": v} for k, v in sources],
            "hourly": [{"hour": h, "count": hourly.get(h, 0)} for h in range(24)],
            "timeframe": {"start": start, "end": end, "days": days},
        }

    async def _breakdown(self, column, window: tuple, null_label: str) -> list[tuple[str, int]]:
        """Count views grouped by a column, biggest first, nulls folded into one label."""
        rows = (
            await self.db.execute(
                select(column, func.count(View.id)).where(*window).group_by(column)
            )
        ).all()
        counts: Counter[str] = Counter()
        for value, count in rows:
            label = value.value if hasattr(value, "value") else value
            counts[label or null_label] += count
        return counts.most_common()

    async def calculate_engagement_metrics(self, product_id: int, days: int = 30) -> dict[str, Any]:
        since = utcnow() - timedelta(days=days)
        total, unique, avg_duration, max_scroll, avg_tfi = (
            await self.db.execute(
                select(
                    func.count(View.id),
                    func.count(distinct(View.user_id)),
                    func.avg(View.view_duration),
                    func.max(View.scroll_depth),
                    func.avg(View.time_to_first_interaction),
                ).where(
                    View.product_id == product_id,
                    View.created_at >= since,
                    View.is_bot.is_(False),
                )
            )
        ).one()
        return {
            "total_views": total,
            "unique_viewers_count": unique,
            "average_view_duration": _round(avg_duration),
            "max_scroll_depth": max_scroll or 0,
            "time_to_first_interaction": _round(avg_tfi),
        }

    async def get_stats_payload(self, product_id: int, days: int, user: User | None) -> dict[str, Any]:
        """Stats, engagement and insights for a product, cached per window."""
        product = await self._product_or_404(product_id)
        if product.status == ProductStatus.DRAFT and not (
            user and (user.is_admin or user.id == product.maker_id)
        ):
            raise ForbiddenError("You do not have permission to view these stats.")

        key = product_stats_key(product_id, days)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        stats = await self.get_product_stats(product_id, days)
        engagement = await self.calculate_engagement_metrics(product_id, days)
        if not stats["totals"]["total_views"]:
            # Nothing in the window yet; fall back to the stored counters
            stats["totals"]["total_views"] = product.view_count or 0
            stats["totals"]["unique_viewers"] = product.unique_view_count or 0
            stats["daily"] = [
                {"date": entry["date"], "count": entry["count"], "unique_count": 0, "avg_duration": 0}
                for entry in sorted(product.view_history or [], key=lambda e: e["date"])
                if entry["date"] >= stats["timeframe"]["start"].date().isoformat()
            ]

        payload = {
            "product": {
                "id": product.id,
                "name": product.name,
                "slug": product.slug,
                "view_count": product.view_count,
                "unique_view_count": product.unique_view_count,
            },
            "stats": stats,
            "engagement": engagement,
            "insights": generate_view_insights(stats, engagement),
        }
        await self.cache.set(key, payload, STATS_TTL)
        return payload

    async def get_device_breakdown(self, product_id: int, days: int = 30) -> dict[str, Any]:
        await self._product_or_404(product_id)
        since = utcnow() - timedelta(days=days)
        window = (View.product_id == product_id, View.created_at >= since, View.is_bot.is_(False))
        return {
            "devices": [
                {"device": k, "count": v} for k, v in await self._breakdown(View.device, window, "other")
            ],
            "browsers": [
                {"browser": k, "count": v} for k, v in await self._breakdown(View.browser, window, "other")
            ],
            "os": [{"os": k, "count": v} for k, v in await self._breakdown(View.os, window, "other")],
            "timeframe_days": days,
        }

    async def get_user_history(
        self, user_id: int, page: int = 1, limit: int = 10
    ) -> tuple[list[dict[str, Any]], int]:
        limit = max(1, min(limit, 50))
        page = max(1, page)
        condition = (View.user_id == user_id, View.is_bot.is_(False))
        total = (await self.db.execute(select(func.count(View.id)).where(*condition))).scalar_one()
        rows = (
            await self.db.execute(
                select(View, Product)
                .join(Product, Product.id == View.product_id)
                .where(*condition)
                .order_by(View.created_at.desc(), View.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).all()
        history = [
            {
                "id": view.id,
                "product": self._product_summary(product),
                "source": view.source.value,
                "view_duration": view.view_duration,
                "created_at": view.created_at,
            }
            for view, product in rows
        ]
        return history, total

    async def clear_user_history(self, user_id: int) -> int:
        result = await self.db.execute(delete(View).where(View.user_id == user_id))
        await self.db.flush()
        await self.cache.delete_pattern(f"view:user:{user_id}:*")
        logger.info("view_history_cleared", user_id=user_id, deleted=result.rowcount)
        return result.rowcount or 0

    async def get_user_engagement(self, user_id: int, days: int = 30) -> dict[str, Any]:
        key = user_engagement_key(user_id, days)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        since = utcnow() - timedelta(days=days)
        window = (View.user_id == user_id, View.created_at >= since, View.is_bot.is_(False))

        day = func.date(View.created_at).label("day")
        over_time = [
            {"date": _day(d), "count": c}
            for d, c in (
                await self.db.execute(
                    select(day, func.count(View.id)).where(*window).group_by(day).order_by(day)
                )
            ).all()
        ]

        category_count = func.count(View.id).label("count")
        categories = [
            {"category": category, "count": count}
            for category, count in (
                await self.db.execute(
                    select(Product.category, category_count)
                    .join(Product, Product.id == View.product_id)
                    .where(*window, Product.category.is_not(None))
                    .group_by(Product.category)
                    .order_by(category_count.desc())
                    .limit(5)
                )
            ).all()
        ]

        total, products, avg_duration = (
            await self.db.execute(
                select(
                    func.count(View.id),
                    func.count(distinct(View.product_id)),
                    func.avg(View.view_duration),
                ).where(*window)
            )
        ).one()

        engagement = {
            "views_over_time": over_time,
            "top_categories": categories,
            "summary": {
                "total_views": total,
                "unique_products_viewed": products,
                "average_view_duration": _round(avg_duration),
                "timeframe_days": days,
            },
        }
        await self.cache.set(key, engagement, ENGAGEMENT_TTL)
        return engagement

    async def get_daily_analytics(self, start: date, end: date) -> list[dict[str, Any]]:
        """Platform-wide per-day view breakdown, inclusive of both dates."""
        start_at = datetime.combine(start, datetime.min.time()).replace(tzinfo=utcnow().tzinfo)
        end_at = datetime.combine(end + timedelta(days=1), datetime.min.time()).replace(
            tzinfo=utcnow().tzinfo
        )
        window = (View.created_at >= start_at, View.created_at < end_at, View.is_bot.is_(False))
        day = func.date(View.created_at).label("day")

        days: dict[str, dict[str, Any]] = {}
        for d, total, users, products, avg in (
            await self.db.execute(
                select(
                    day,
                    func.count(View.id),
                    func.count(distinct(View.user_id)),
                    func.count(distinct(View.product_id)),
                    func.avg(View.view_duration),
                )
                .where(*window)
                .group_by(day)
                .order_by(day)
            )
        ).all():
            days[_day(d)] = {
                "date": _day(d),
                "total_views": total,
                "unique_users": users,
                "unique_products": products,
                "avg_duration": _round(avg),
                "device_breakdown": {},
                "source_breakdown": {},
            }

        for column, field, null_label in (
            (View.device, "device_breakdown", "unknown"),
            (View.source, "source_breakdown", "direct"),
        ):
            rows = await self.db.execute(
                select(day, column, func.count(View.id)).where(*window).group_by(day, column)
            )
            for d, value, count in rows.all():
                entry = days.get(_day(d))
                if entry is None:
                    continue
                label = (value.value if hasattr(value, "value") else value) or null_label
                entry[field][label] = entry[field].get(label, 0) + count

        return list(days.values())
