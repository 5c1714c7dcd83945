#!/usr/bin/env python3
"""
Seed the admin account and a starter catalogue.

Sweets can come from a JSON file (a list, or an object with an "items" list,
using either camelCase or snake_case keys); without --file the built-in
starter catalogue is used. Opening stock is booked as a restock by the admin,
so the ledger accounts for every unit.

Usage:
    python scripts/seed.py --admin-email admin@sweetshop.com --admin-password admin123
    python scripts/seed.py --file catalogue.json --reset
"""
import argparse
import json
import logging
import os
import sys

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sweetshop.db import SessionLocal, init_db  # noqa: E402
from sweetshop.models.sweet import Sweet  # noqa: E402
from sweetshop.services.auth_service import AuthService  # noqa: E402
from sweetshop.services.sweet_service import SweetService  # noqa: E402
from sweetshop.utils.logging_setup import configure_logging  # noqa: E402

log = logging.getLogger("sweetshop.seed")

STARTER_SWEETS = [
    {"name": "Gulab Jamun", "category": "Traditional Sweets", "price": "299.99", "quantity": 50, "featured": True},
    {"name": "Rasgulla", "category": "Traditional Sweets", "price": "249.99", "quantity": 40},
    {"name": "Kaju Katli", "category": "Traditional Sweets", "price": "599.99", "quantity": 30, "featured": True},
    {"name": "Sugar-Free Anjeer Roll", "category": "Sugar-Free", "price": "449.99", "quantity": 25, "sugar_free": True},
    {
        "name": "Stevia Mysore Pak",
        "category": "Sugar-Free",
        "price": "349.99",
        "quantity": 20,
        "sugar_free": True,
        "featured": True,
    },
    {"name": "Sugar-Free Mixed Sweets", "category": "Sugar-Free", "price": "499.99", "quantity": 15, "sugar_free": True},
    {"name": "Dates & Nuts Roll", "category": "Dry Fruits", "price": "699.99", "quantity": 35},
    {"name": "Dry Fruit Ladoo", "category": "Dry Fruits", "price": "799.99", "quantity": 30, "featured": True},
    {"name": "Kaju Pista Roll", "category": "Dry Fruits", "price": "899.99", "quantity": 20},
]


def _normalize_entry(entry: dict) -> dict:
    """Accept the storefront's camelCase keys as well as snake_case."""
    return {
        "name": entry["name"],
        "category": entry.get("category") or "Uncategorized",
        "price": str(entry.get("price", 0)),
        "quantity": int(entry.get("quantity", entry.get("stock", 0)) or 0),
        "image": entry.get("image"),
        "featured": bool(entry.get("featured", False)),
        "sugar_free": bool(entry.get("sugar_free", entry.get("sugarFree", False))),
    }


def load_entries(path: str) -> list:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("items", list(data.values()))
    return [_normalize_entry(e) for e in data]


def seed(entries: list, admin_email: str, admin_password: str, reset: bool = False) -> int:
    init_db(reset=reset)
    created = 0
    with SessionLocal() as db:
        admin = AuthService(db).ensure_admin(admin_email, admin_password)
        svc = SweetService(db)
        for entry in entries:
            exists = db.query(Sweet).filter(Sweet.name == entry["name"], Sweet.active == True).first()  # noqa: E712
            if exists:
                log.info("Skipping existing sweet %r", entry["name"])
                continue
            svc.create_sweet(entry, acting_user_id=admin.id)
            db.commit()
            created += 1
    log.info("Seeded %d sweets", created)
    return created


if __name__ == "__main__":
    configure_logging()
    parser = argparse.ArgumentParser(description="Seed the Sweet Shop database.")
    parser.add_argument("--file", "-f", default=None, help="JSON catalogue; defaults to the built-in starter list")
    parser.add_argument("--admin-email", default=os.environ.get("ADMIN_EMAIL", "admin@sweetshop.com"))
    parser.add_argument("--admin-password", default=os.environ.get("ADMIN_PASSWORD", "admin123"))
    parser.add_argument("--reset", action="store_true", help="drop and recreate every table first")
    args = parser.parse_args()

    if args.file and not os.path.exists(args.file):
        log.error("File not found: %s", args.file)
        sys.exit(1)
    entries = load_entries(args.file) if args.file else [_normalize_entry(e) for e in STARTER_SWEETS]
    seed(entries, args.admin_email, args.admin_password, reset=args.reset)
