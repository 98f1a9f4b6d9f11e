"""
POS Upload Generator
Generates a synthetic point-of-sale export (one row per sold line item)
in the column layout the upload normalizer expects.

Usage:
    python scripts/generate_dataset.py --bills 20000 --days 400 --format csv
"""

import argparse
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import polars as pl
from faker import Faker

fake = Faker("id_ID")
np.random.seed(42)
Faker.seed(42)

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"

BRANCHES = ["Kemang", "Senopati", "Bintaro", "Kelapa Gading", "BSD"]
CHANNELS = ["Dine In", "Take Away", "GoFood", "GrabFood", "ShopeeFood"]
CHANNEL_WEIGHTS = [0.45, 0.15, 0.20, 0.15, 0.05]

MENU = {
    "Food": [
        ("Nasi Goreng Kampung", 45000), ("Mie Goreng Jawa", 42000), ("Ayam Bakar Madu", 55000),
        ("Sate Ayam", 48000), ("Soto Betawi", 50000), ("Nasi Campur Bali", 60000),
    ],
    "Beverage": [
        ("Es Teh Manis", 12000), ("Es Kopi Susu", 28000), ("Jus Alpukat", 30000),
        ("Teh Tarik", 22000), ("Air Mineral", 8000),
    ],
    "Dessert": [
        ("Pisang Goreng Keju", 25000), ("Es Campur", 28000), ("Klepon", 18000),
    ],
}

# lunch and dinner peaks
HOUR_WEIGHTS = np.array([
    0, 0, 0, 0, 0, 0, 0, 1, 2, 3, 4, 8,
    12, 11, 6, 4, 5, 7, 10, 12, 9, 5, 2, 1,
], dtype=float)


def generate_customers(n: int) -> list:
    print(f"📊 Generating {n:,} customers...")
    return [fake.unique.name() for _ in range(n)]


def generate_bills(n_bills: int, days: int, customers: list) -> pl.DataFrame:
    """One row per line item, 1-5 items per bill"""
    print(f"📊 Generating {n_bills:,} bills over {days} days...")

    end = datetime.now().replace(minute=0, second=0, microsecond=0)
    start = end - timedelta(days=days)

    day_offsets = np.random.randint(0, days, n_bills)
    hours = np.random.choice(24, n_bills, p=HOUR_WEIGHTS / HOUR_WEIGHTS.sum())
    minutes = np.random.randint(0, 60, n_bills)
    branches = np.random.choice(BRANCHES, n_bills)
    channels = np.random.choice(CHANNELS, n_bills, p=CHANNEL_WEIGHTS)
    item_counts = np.random.randint(1, 6, n_bills)
    # roughly a third of bills carry a member name
    has_customer = np.random.random(n_bills) < 0.35
    customer_picks = np.random.randint(0, len(customers), n_bills)

    menu = [(category, name, price) for category, items in MENU.items() for name, price in items]

    rows = []
    for i in range(n_bills):
        sold_at = start + timedelta(days=int(day_offsets[i]), hours=int(hours[i]), minutes=int(minutes[i]))
        bill_number = f"INV-{sold_at:%Y%m%d}-{i:07d}"
        customer = customers[customer_picks[i]] if has_customer[i] else None

        for pick in np.random.choice(len(menu), item_counts[i], replace=False):
            category, name, price = menu[pick]
            quantity = int(np.random.randint(1, 4))
            discount = float(np.random.choice([0, 0, 0, 0.1, 0.2]))
            rows.append({
                "Bill Number": bill_number,
                "Sales Date In": sold_at.strftime("%Y-%m-%d %H:%M:%S"),
                "Branch": branches[i],
                "Visit Purpose": channels[i],
                "Menu Category": category,
                "Menu": name,
                "Quantity": quantity,
                "Price": price,
                "Revenue": round(price * quantity * (1 - discount)),
                "Customer Name": customer,
            })

    df = pl.DataFrame(rows).sort("Sales Date In")
    print(f"   ✅ {len(df):,} line items")
    return df


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic POS upload")
    parser.add_argument("--bills", type=int, default=20000, help="Number of bills")
    parser.add_argument("--days", type=int, default=400, help="Days of history ending today")
    parser.add_argument("--customers", type=int, default=2000, help="Distinct member names")
    parser.add_argument("--format", choices=["csv", "parquet", "ndjson"], default="csv")
    args = parser.parse_args()

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

    customers = generate_customers(args.customers)
    df = generate_bills(args.bills, args.days, customers)

    path = OUTPUT_DIR / f"pos_upload.{args.format}"
    if args.format == "csv":
        df.write_csv(path)
    elif args.format == "parquet":
        df.write_parquet(path)
    else:
        df.write_ndjson(path)

    print(f"   ✅ written to {path}")


if __name__ == "__main__":
    main()
