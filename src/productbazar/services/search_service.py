"""Global search across products, jobs and users."""

from typing import Any

import structlog
from sqlalchemy import case, delete, func, literal, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from productbazar.models.base import utcnow
from productbazar.models.job import Job, JobStatus
from productbazar.models.product import Product, ProductStatus
from productbazar.models.search import SearchHistory, SearchType
from productbazar.models.user import User
from productbazar.services.cache_service import CacheService, search_key

logger = structlog.get_logger()

SEARCH_CACHE_TTL = 300
SUGGESTION_LIMIT = 10
HISTORY_LIMIT = 10

EXACT_SCORE = 15
CONTAINS_SCORE = 8
DESCRIPTION_SCORE = 3
FEATURED_BONUS = 2


def relevance(
    query: str,
    titles: list[ColumnElement],
    descriptions: list[ColumnElement],
    featured: ColumnElement | None = None,
) -> ColumnElement:
    """SQL score for a hit: exact title 15, title contains 8, description 3, featured +2."""
    q = query.lower()
    term = f"%{query}%"
    score = case(
        (or_(*(func.lower(col) == q for col in titles)), EXACT_SCORE),
        (or_(*(col.ilike(term) for col in titles)), CONTAINS_SCORE),
        else_=0,
    ) + case((or_(*(col.ilike(term) for col in descriptions)), DESCRIPTION_SCORE), else_=0)
    if featured is not None:
        score = score + case((featured.is_(True), FEATURED_BONUS), else_=0)
    return score


def _full_name() -> ColumnElement:
    return func.trim(
        func.coalesce(User.first_name, "") + literal(" ") + func.coalesce(User.last_name, "")
    )


class SearchService:
    """Service for global search, suggestions and search history."""

    def __init__(self, db: AsyncSession, cache: CacheService | None = None):
        self.db = db
        self.cache = cache or CacheService()

    async def search(
        self,
        query: str | None,
        search_type: SearchType = SearchType.ALL,
        page: int = 1,
        limit: int = 10,
        user: User | None = None,
    ) -> dict[str, Any]:
        q = (query or "").strip()
        empty = {"items": [], "total": 0}
        if not q:
            return {
                "query": "",
                "type": search_type.value,
                "page": page,
                "limit": limit,
                "total": 0,
                "results": {"products": empty, "jobs": empty, "users": empty},
            }

        if user is not None:
            await self.record_history(user.id, q, search_type)

        key = search_key(search_type.value, q, page, limit)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        results: dict[str, dict] = {"products": empty, "jobs": empty, "users": empty}
        if search_type in (SearchType.ALL, SearchType.PRODUCTS):
            results["products"] = await self._search_products(q, page, limit)
        if search_type in (SearchType.ALL, SearchType.JOBS):
            results["jobs"] = await self._search_jobs(q, page, limit)
        if search_type in (SearchType.ALL, SearchType.USERS):
            results["users"] = await self._search_users(q, page, limit)

        payload = {
            "query": q,
            "type": search_type.value,
            "page": page,
            "limit": limit,
            "total": sum(group["total"] for group in results.values()),
            "results": results,
        }
        await self.cache.set(key, payload, SEARCH_CACHE_TTL)
        logger.info("search_executed", type=search_type.value, total=payload["total"])
        return payload

    async def _ranked(self, model, conditions: list, score: ColumnElement, page: int, limit: int):
        """One page of matches ordered by score then newest, plus the full match count."""
        total = (
            await self.db.execute(select(func.count()).select_from(model).where(*conditions))
        ).scalar() or 0
        rows = await self.db.execute(
            select(model, score.label("score"))
            .where(*conditions)
            .order_by(score.desc(), model.created_at.desc(), model.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return rows.all(), total

    async def _search_products(self, q: str, page: int, limit: int) -> dict[str, Any]:
        term = f"%{q}%"
        conditions = [
            Product.status == ProductStatus.PUBLISHED,
            or_(
                Product.name.ilike(term),
                Product.tagline.ilike(term),
                Product.description.ilike(term),
            ),
        ]
        score = relevance(q, [Product.name], [Product.tagline, Product.description], Product.featured)
        rows, total = await self._ranked(Product, conditions, score, page, limit)
        items = [
            {
                "id": product.id,
                "name": product.name,
                "slug": product.slug,
                "tagline": product.tagline,
                "category": product.category,
                "featured": product.featured,
                "score": score_value,
            }
            for product, score_value in rows
        ]
        return {"items": items, "total": total}

    async def _search_jobs(self, q: str, page: int, limit: int) -> dict[str, Any]:
        term = f"%{q}%"
        company = Job.company["name"].as_string()
        conditions = [
            Job.status == JobStatus.PUBLISHED,
            or_(Job.expires_at.is_(None), Job.expires_at > utcnow()),
            or_(Job.title.ilike(term), Job.description.ilike(term), company.ilike(term)),
        ]
        score = relevance(q, [Job.title], [Job.description, company], Job.featured)
        rows, total = await self._ranked(Job, conditions, score, page, limit)
        items = [
            {
                "id": job.id,
                "title": job.title,
                "slug": job.slug,
                "company": job.company_name,
                "location": job.location,
                "job_type": job.job_type.value,
                "featured": job.featured,
                "score": score_value,
            }
            for job, score_value in rows
        ]
        return {"items": items, "total": total}

    async def _search_users(self, q: str, page: int, limit: int) -> dict[str, Any]:
        term = f"%{q}%"
        full_name = _full_name()
        conditions = [
            or_(
                User.username.ilike(term),
                full_name.ilike(term),
                User.headline.ilike(term),
                User.bio.ilike(term),
            )
        ]
        score = relevance(q, [User.username, full_name], [User.headline, User.bio])
        rows, total = await self._ranked(User, conditions, score, page, limit)
        items = [
            {
                "id": user.id,
                "username": user.username,
                "full_name": user.full_name,
                "headline": user.headline,
                "role": user.role.value,
                "profile_picture_url": user.profile_picture_url,
                "score": score_value,
            }
            for user, score_value in rows
        ]
        return {"items": items, "total": total}

    async def record_history(self, user_id: int, query: str, search_type: SearchType) -> None:
        """Upsert a history row; failures never break the search."""
        normalized = query.strip().lower()[:255]
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(
                    select(SearchHistory).where(
                        SearchHistory.user_id == user_id,
                        SearchHistory.query == normalized,
                        SearchHistory.type == search_type,
                    )
                )
                entry = result.scalar_one_or_none()
                if entry is None:
                    self.db.add(
                        SearchHistory(
                            user_id=user_id,
                            query=normalized,
                            type=search_type,
                            count=1,
                            last_searched_at=utcnow(),
                        )
                    )
                else:
                    entry.count += 1
                    entry.last_searched_at = utcnow()
        except SQLAlchemyError as e:
            logger.warning("search_history_failed", user_id=user_id, error=str(e))

    async def suggestions(
        self, query: str | None, search_type: SearchType = SearchType.ALL, user: User | None = None
    ) -> list[dict[str, str]]:
        q = (query or "").strip()
        if len(q) < 2:
            return []
        prefix = f"{q}%"
        suggestions: list[dict[str, str]] = []
        seen: set[str] = set()

        def add(text: str | None, kind: str) -> None:
            if text and text.lower() not in seen and len(suggestions) < SUGGESTION_LIMIT:
                seen.add(text.lower())
                suggestions.append({"text": text, "type": kind})

        if user is not None:
            history = await self.db.execute(
                select(SearchHistory.query)
                .where(SearchHistory.user_id == user.id, SearchHistory.query.ilike(prefix))
                .order_by(SearchHistory.last_searched_at.desc())
                .limit(SUGGESTION_LIMIT)
            )
            for text in history.scalars():
                add(text, "history")

        if search_type in (SearchType.ALL, SearchType.PRODUCTS):
            rows = await self.db.execute(
                select(Product.name)
                .where(Product.status == ProductStatus.PUBLISHED, Product.name.ilike(prefix))
                .limit(SUGGESTION_LIMIT)
            )
            for text in rows.scalars():
                add(text, "product")
        if search_type in (SearchType.ALL, SearchType.JOBS):
            rows = await self.db.execute(
                select(Job.title)
                .where(Job.status == JobStatus.PUBLISHED, Job.title.ilike(prefix))
                .limit(SUGGESTION_LIMIT)
            )
            for text in rows.scalars():
                add(text, "job")
        if search_type in (SearchType.ALL, SearchType.USERS):
            rows = await self.db.execute(
                select(User.username).where(User.username.ilike(prefix)).limit(SUGGESTION_LIMIT)
            )
            for text in rows.scalars():
                add(text, "user")
        return suggestions

    async def get_history(self, user_id: int) -> list[SearchHistory]:
        result = await self.db.execute(
            select(SearchHistory)
            .where(SearchHistory.user_id == user_id)
            .order_by(SearchHistory.last_searched_at.desc(), SearchHistory.id.desc())
            .limit(HISTORY_LIMIT)
        )
        return list(result.scalars().all())

    async def clear_history(self, user_id: int) -> int:
        result = await self.db.execute(
            delete(SearchHistory).where(SearchHistory.user_id == user_id)
        )
        await self.db.flush()
        logger.info("search_history_cleared", user_id=user_id, deleted=result.rowcount)
        return result.rowcount or 0
