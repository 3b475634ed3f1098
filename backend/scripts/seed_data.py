#!/usr/bin/env python3
"""Seed a development database with a property and its seasonal periods.

Writes through the engine services, so every seeded period passes the same
validation and overlap checks as one created through the admin API:
- One property with default rules
- Low, mid, high and peak season periods for the requested year
- An optional maintenance hold

Usage:
    python backend/scripts/seed_data.py --env dev
    python backend/scripts/seed_data.py --env dev --year 2027 --clear-first
    python backend/scripts/seed_data.py --env dev --skip-blocks
"""

import argparse
import os
import sys

from booking_engine.models import BookingError, PeriodRules, Property
from booking_engine.services.block_service import BlockService
from booking_engine.services.dynamodb import DynamoDBService
from booking_engine.services.night_claims import NightClaims
from booking_engine.services.period_registry import PeriodRegistry
from booking_engine.services.property_service import PropertyService

DEFAULT_PROPERTY_ID = "PROP-SUMMERHOUSE"

# (name, start MM-DD, end MM-DD exclusive, nightly EUR, min nights, weekly discount bps)
SEASONS: list[tuple[str, str, str, int, int, int | None]] = [
    ("Low Season (Winter)", "01-01", "04-01", 85, 2, None),
    ("Mid Season (Spring)", "04-01", "07-01", 105, 3, 500),
    ("High Season (Summer)", "07-01", "09-01", 160, 7, 1000),
    ("Mid Season (Fall)", "09-01", "12-01", 105, 3, 500),
    ("Peak Season (Christmas)", "12-01", "12-31", 190, 7, None),
]


def seed_property(properties: PropertyService, property_id: str) -> Property:
    prop = properties.put_property(
        Property(
            property_id=property_id,
            title="Summerhouse by the Lake",
            currency="eur",
            default_nightly_price=120,
            max_guests=4,
            min_nights=2,
        )
    )
    print(f"  ✓ {prop.title}: €{prop.default_nightly_price}/night default")
    return prop


def seed_periods(registry: PeriodRegistry, property_id: str, year: int) -> int:
    """Create the seasonal periods of one year. Existing overlaps are skipped."""
    created = 0
    for name, start, end, price, min_nights, discount in SEASONS:
        try:
            period = registry.create_period(
                property_id,
                f"{year}-{start}",
                f"{year}-{end}",
                PeriodRules(
                    name=f"{name} {year}",
                    standard_nightly_price=price,
                    min_nights=min_nights,
                    max_guests=4,
                    weekly_discount_bps=discount,
                ),
            )
        except BookingError as e:
            print(f"  ○ {name} {year}: skipped ({e.code.value} {e.details})")
            continue
        created += 1
        print(
            f"  ✓ {period.name}: €{price}/night, min {min_nights} nights "
            f"[{period.start_date} .. {period.end_date})"
        )
    return created


def seed_maintenance_block(blocks: BlockService, property_id: str, year: int) -> None:
    try:
        block = blocks.create_manual_block(
            property_id,
            f"{year}-11-10",
            f"{year}-11-14",
            reason="Annual maintenance",
            created_by="seed",
        )
    except BookingError as e:
        print(f"  ○ Maintenance hold skipped ({e.code.value})")
        return
    print(f"  ✓ Maintenance hold {block.block_id}: {block.start_date} .. {block.end_date}")


def clear_periods(registry: PeriodRegistry, property_id: str) -> int:
    """Delete the seeded periods of a property. Periods in use are kept."""
    deleted = 0
    for period in registry.list_periods(property_id):
        try:
            registry.delete_period(period.period_id)
        except BookingError as e:
            print(f"  ○ Kept {period.period_id} ({e.code.value})")
            continue
        deleted += 1
    return deleted


def main() -> int:
    """Run the seed script."""
    parser = argparse.ArgumentParser(description="Seed development database with test data")
    parser.add_argument(
        "--env",
        choices=["dev", "staging", "prod"],
        default="dev",
        help="Target environment (default: dev)",
    )
    parser.add_argument(
        "--region",
        default=os.environ.get("AWS_DEFAULT_REGION", "eu-west-1"),
        help="AWS region (default: eu-west-1 or AWS_DEFAULT_REGION env var)",
    )
    parser.add_argument("--property-id", default=DEFAULT_PROPERTY_ID)
    parser.add_argument("--year", type=int, default=2027, help="Season year (default: 2027)")
    parser.add_argument(
        "--clear-first",
        action="store_true",
        help="Delete existing periods of the property before seeding",
    )
    parser.add_argument(
        "--skip-blocks",
        action="store_true",
        help="Skip the maintenance hold",
    )

    args = parser.parse_args()
    os.environ["AWS_DEFAULT_REGION"] = args.region

    # Safety check for production
    if args.env == "prod":
        confirm = input("⚠️  WARNING: You are about to modify PRODUCTION data. Type 'yes' to continue: ")
        if confirm.lower() != "yes":
            print("Aborted.")
            return 1

    db = DynamoDBService(environment=args.env)
    properties = PropertyService(db)
    registry = PeriodRegistry(db, properties)

    print(f"\n🌱 Seeding {db.name_prefix} (region: {args.region})\n")

    print("Property:")
    seed_property(properties, args.property_id)

    if args.clear_first:
        print("\nClearing existing periods...")
        print(f"  Deleted {clear_periods(registry, args.property_id)} periods")

    print(f"\nPeriods {args.year}:")
    seed_periods(registry, args.property_id, args.year)

    if not args.skip_blocks:
        print("\nBlocks:")
        seed_maintenance_block(
            BlockService(db, properties, NightClaims(db)), args.property_id, args.year
        )

    print("\n✅ Seed completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
