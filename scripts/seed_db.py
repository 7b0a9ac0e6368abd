"""
Seed script for the Civic Pulse mock DB or Firestore.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured DB: python scripts/seed_db.py --apply
  - Write the mock DB file even if Firestore is configured: python scripts/seed_db.py --apply --force-mock

Behavior:
  - Loads `db_seed.json` from repo root: {"reports": {id: {...}}, "users": {uid: {...}}}
  - Mock mode writes the seed to MOCK_DB_PATH, which the in-memory store loads on startup.
  - Firestore mode writes each document to the configured reports/users collections.

NOTE: When applying to real Firestore, ensure `FIREBASE_CREDENTIALS_PATH` and `USE_MOCK_DB=false` are set in `.env`.
"""

import argparse
import json
import os
from typing import Any

from app.core.settings import settings


def load_seed(path: str = "./db_seed.json") -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def collection_names() -> dict:
    return {"reports": settings.REPORTS_COLLECTION, "users": settings.USERS_COLLECTION}


def write_to_firestore(db: Any, seed: dict, apply: bool = False):
    names = collection_names()
    for key, docs in seed.items():
        collection = names.get(key)
        if collection is None:
            print(f"Skipping unknown section: {key}")
            continue
        for doc_id, data in docs.items():
            print(f"Preparing: {collection}/{doc_id}")
            if not apply:
                continue
            try:
                db.collection(collection).document(doc_id).set(data)
                print(f"Wrote: {collection}/{doc_id}")
            except Exception as e:
                print(f"Failed to write {collection}/{doc_id}: {e}")


def write_to_mock_file(seed: dict, apply: bool = False):
    reports = seed.get("reports") or {}
    users = seed.get("users") or {}
    print(f"Preparing: {len(reports)} reports, {len(users)} users → {settings.MOCK_DB_PATH}")
    if not apply:
        return
    with open(settings.MOCK_DB_PATH, "w", encoding="utf-8") as f:
        json.dump({"reports": reports, "users": users}, f, indent=2)
    print(f"Wrote: {settings.MOCK_DB_PATH}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the DB instead of dry-run")
    parser.add_argument("--force-mock", action="store_true", help="Write the mock DB file even if Firestore is configured")
    args = parser.parse_args()

    seed_path = os.path.join(os.getcwd(), "db_seed.json")
    if not os.path.exists(seed_path):
        print(f"Seed file not found: {seed_path}")
        return

    seed = load_seed(seed_path)

    if args.force_mock or settings.USE_MOCK_DB:
        write_to_mock_file(seed, apply=args.apply)
    else:
        from app.config.firebase import get_db

        write_to_firestore(get_db(), seed, apply=args.apply)

    if args.apply:
        print("Seeding completed.")
    else:
        print("Dry run complete. Re-run with --apply to write to DB.")


if __name__ == "__main__":
    main()
