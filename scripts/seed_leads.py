"""
Seed the leads table with synthetic businesses and create the search indexes
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import argparse
import random
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from leadsearch.database import Lead, get_engine, get_session_factory, run_migrations
from leadsearch.models.lead import LeadStatus, BusinessStatus, PriceLevel

CITIES = [
    ("Austin", "TX"), ("Dallas", "TX"), ("Houston", "TX"), ("Denver", "CO"),
    ("Phoenix", "AZ"), ("Seattle", "WA"), ("Portland", "OR"), ("Miami", "FL"),
]
CATEGORIES = ["plumber", "dentist", "roofing", "restaurant", "landscaping", "auto repair", "bakery"]
NAME_PARTS = ["Acme", "Summit", "Lone Star", "Blue Sky", "Pioneer", "Evergreen", "Main Street", "Rapid"]


def build_lead(index: int) -> Lead:
    city, state = random.choice(CITIES)
    category = random.choice(CATEGORIES)
    has_website = random.random() < 0.6
    slug = f"{random.choice(NAME_PARTS).lower().replace(' ', '')}{index}"

    return Lead(
        business_name=f"{random.choice(NAME_PARTS)} {category.title()} {index}",
        address=f"{random.randint(100, 9999)} Main St",
        city=city,
        state=state,
        zip_code=f"{random.randint(10000, 99999)}",
        phone=f"(555) {random.randint(100, 999)}-{random.randint(1000, 9999)}" if random.random() < 0.85 else None,
        website_url=f"https://{slug}.example.com" if has_website else None,
        has_website=has_website,
        business_category=category,
        status=random.choice([status.value for status in LeadStatus]),
        source="seed",
        business_status=random.choice([status.value for status in BusinessStatus]),
        price_level=random.choice([level.value for level in PriceLevel]),
        pure_service_area_business=random.random() < 0.2,
        google_rating=round(random.uniform(2.5, 5.0), 1),
        review_count=random.randint(0, 800),
        created_at=datetime.utcnow() - timedelta(days=random.randint(0, 365)),
    )


def seed_leads(db: Session, count: int, batch_size: int = 500) -> int:
    """Insert count synthetic leads in batches"""
    created = 0
    while created < count:
        batch = [build_lead(created + i) for i in range(min(batch_size, count - created))]
        db.add_all(batch)
        db.commit()
        created += len(batch)
        print(f"Inserted {created}/{count} leads")
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed synthetic leads")
    parser.add_argument("--count", type=int, default=1000)
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    args = parser.parse_args()

    if args.seed is not None:
        random.seed(args.seed)

    if not run_migrations(get_engine()):
        print("Migrations failed; aborting")
        sys.exit(1)

    db = get_session_factory()()
    try:
        total = seed_leads(db, args.count)
        print(f"Done: {total} leads created")
    except Exception as e:
        db.rollback()
        print(f"Error seeding leads: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
