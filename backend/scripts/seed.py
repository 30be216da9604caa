"""Seed script for the dataset marketplace.

Creates the default admin user, the catalog categories and the starter
datasets when they are missing. It is idempotent and safe to run on every
container start.
"""

import asyncio
import logging
from sqlalchemy import select

from marketplace.database import AsyncSessionLocal
from marketplace.models.user import User
from marketplace.models.category import Category
from marketplace.models.dataset import Dataset
from marketplace.auth.security import hash_password
from marketplace.config import settings
from marketplace.logging_config import setup_logging

logger = logging.getLogger(__name__)

CATEGORIES = [
    ("Finance", "finance", "Financial datasets including market data, economic indicators, and corporate financials"),
    ("Healthcare", "healthcare", "Healthcare data including medical research, patient statistics, and industry trends"),
    ("Technology", "technology", "Technology sector data including market trends, user statistics, and industry reports"),
    ("Retail", "retail", "Retail industry data including consumer behavior, sales trends, and market analysis"),
    ("Energy", "energy", "Energy sector data including consumption patterns, pricing, and sustainability metrics"),
    ("Real Estate", "real-estate", "Real estate market data including property values, demographic trends, and development stats"),
]

# file_path values are relative to settings.DATASET_STORAGE_ROOT
DATASETS = [
    {
        "category": "finance",
        "title": "Global Financial Markets - Q2 2025",
        "slug": "global-financial-markets-q2-2025",
        "description": "Comprehensive analysis of global financial markets with performance metrics, indices, and future projections for Q2 2025.",
        "price": 299.99,
        "record_count": 540000,
        "data_format": "CSV, JSON",
        "update_frequency": "Quarterly",
        "file_path": "finance/global-markets-q2-2025.csv",
    },
    {
        "category": "healthcare",
        "title": "Healthcare Patient Statistics 2025",
        "slug": "healthcare-patient-statistics-2025",
        "description": "Anonymized patient data and healthcare statistics from major hospitals and clinics across North America.",
        "price": 449.99,
        "record_count": 1250000,
        "data_format": "CSV",
        "update_frequency": "Annually",
        "file_path": "healthcare/patient-stats-2025.csv",
    },
    {
        "category": "technology",
        "title": "Tech Industry Trends Analysis",
        "slug": "tech-industry-trends-analysis",
        "description": "In-depth analysis of technology industry trends including adoption rates, market share, and future projections.",
        "price": 599.99,
        "record_count": 850000,
        "data_format": "JSON",
        "update_frequency": "Monthly",
        "file_path": "technology/tech-industry-trends.json",
    },
    {
        "category": "retail",
        "title": "Retail Consumer Behavior Insights",
        "slug": "retail-consumer-behavior-insights",
        "description": "Detailed analysis of consumer shopping behavior, preferences, and spending patterns in retail markets.",
        "price": 349.99,
        "record_count": 2100000,
        "data_format": "CSV",
        "update_frequency": "Quarterly",
        "file_path": "retail/consumer-behavior.csv",
    },
    {
        "category": "energy",
        "title": "Energy Consumption Patterns",
        "slug": "energy-consumption-patterns",
        "description": "Detailed energy consumption data from residential, commercial, and industrial sectors with regional breakdowns.",
        "price": 499.99,
        "record_count": 1800000,
        "data_format": "CSV",
        "update_frequency": "Monthly",
        "file_path": "energy/consumption-patterns.csv",
    },
    {
        "category": "real-estate",
        "title": "Commercial Real Estate Market Analysis",
        "slug": "commercial-real-estate-market-analysis",
        "description": "Comprehensive analysis of commercial real estate markets including property values, occupancy rates, and investment metrics.",
        "price": 799.99,
        "record_count": 650000,
        "data_format": "CSV",
        "update_frequency": "Quarterly",
        "file_path": "real-estate/commercial-market-analysis.csv",
    },
]


async def seed_admin(session) -> None:
    """Create the default admin user if it doesn't exist."""
    result = await session.execute(
        select(User).where(User.email == settings.ADMIN_EMAIL)
    )
    if result.scalar_one_or_none():
        logger.info("Admin user already exists, skipping")
        return

    session.add(User(
        name=settings.ADMIN_NAME,
        email=settings.ADMIN_EMAIL,
        password_hash=hash_password(settings.ADMIN_PASSWORD),
        user_role="admin",
        status="active",
    ))
    await session.commit()
    logger.info(f"Admin user created: {settings.ADMIN_EMAIL}")


async def seed_catalog(session) -> None:
    """Create missing categories and datasets, matched by slug."""
    result = await session.execute(select(Category))
    categories = {c.slug: c for c in result.scalars().all()}

    for name, slug, description in CATEGORIES:
        if slug not in categories:
            category = Category(name=name, slug=slug, description=description)
            session.add(category)
            categories[slug] = category
    await session.flush()

    result = await session.execute(select(Dataset.slug))
    existing = set(result.scalars().all())

    created = 0
    for entry in DATASETS:
        if entry["slug"] in existing:
            continue
        fields = {k: v for k, v in entry.items() if k != "category"}
        session.add(Dataset(**fields, category_id=categories[entry["category"]].uuid))
        created += 1

    await session.commit()
    logger.info(f"Catalog seeded: {len(categories)} categories, {created} new dataset(s)")


async def seed():
    async with AsyncSessionLocal() as session:
        await seed_admin(session)
        await seed_catalog(session)


def main():
    """Entry point for the seed script."""
    setup_logging(settings.LOG_LEVEL)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
