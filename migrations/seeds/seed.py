#!/usr/bin/env python3
"""
Seed runner — loads the default departments (the routing table).

Usage:
  # Development (local Docker Compose):
  ENVIRONMENT=development python seed.py

  # Production (credentials from Secrets Manager):
  ENVIRONMENT=production python seed.py

Seeds are idempotent (INSERT … ON CONFLICT DO NOTHING). After loading, every
department category is checked against the category vocabulary; a label the
vocabulary does not know can never match a complaint, so it fails the run.
"""
import json
import logging
import os
import sys
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

_repo_root = Path(__file__).resolve().parent.parent.parent
load_dotenv(dotenv_path=_repo_root / ".env", override=False)

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
SEEDS_DIR = Path(__file__).parent
SEED_FILES = ["seed_departments.sql"]
MIN_DEPARTMENTS = 5

_BUNDLED_VOCABULARY = _repo_root / "backend" / "civicdesk" / "engine" / "category_vocabulary.json"


def _get_connection() -> psycopg2.extensions.connection:
    if ENVIRONMENT == "development":
        return psycopg2.connect(
            host=os.environ.get("LOCAL_DB_HOST", "localhost"),
            port=int(os.environ.get("LOCAL_DB_PORT", "5433")),
            dbname=os.environ.get("LOCAL_DB_NAME", "civicdesk_dev"),
            user=os.environ.get("LOCAL_DB_USER", "postgres"),
            password=os.environ.get("LOCAL_DB_PASSWORD", "localpassword"),
        )

    host = os.environ.get("DB_HOST", "")
    user = os.environ.get("DB_USER", "postgres")
    password = os.environ.get("DB_PASSWORD", "")

    if host and not password:
        try:
            import boto3
            client = boto3.client("secretsmanager", region_name=os.environ.get("AWS_REGION", "ap-south-1"))
            creds = json.loads(
                client.get_secret_value(SecretId="/civicdesk/db/credentials")["SecretString"]
            )
            user = creds.get("username", user)
            password = creds.get("password", "")
        except Exception as exc:
            logger.error("Failed to retrieve DB credentials from Secrets Manager: %s", exc)
            sys.exit(1)

    if not host:
        logger.error("DB_HOST is not set for ENVIRONMENT=%s.", ENVIRONMENT)
        sys.exit(1)

    return psycopg2.connect(
        host=host,
        port=int(os.environ.get("DB_PORT", "5432")),
        dbname=os.environ.get("DB_NAME", "civicdesk"),
        user=user,
        password=password,
        sslmode="require",
    )


def _known_labels() -> set[str]:
    """Every folded spelling in the configured category vocabulary."""
    path = Path(os.environ.get("CATEGORY_VOCABULARY_PATH") or _BUNDLED_VOCABULARY)
    data = json.loads(path.read_text(encoding="utf-8"))
    known = set()
    for entry in data.get("categories", []):
        for spelling in [entry["label"], *entry.get("aliases", [])]:
            known.add(" ".join(spelling.split()).casefold())
    logger.info("Vocabulary v%s: %d spellings (%s)", data.get("version"), len(known), path)
    return known


def run_seeds(conn) -> None:
    cur = conn.cursor()
    try:
        for filename in SEED_FILES:
            logger.info("Running seed: %s", filename)
            cur.execute((SEEDS_DIR / filename).read_text(encoding="utf-8"))
        conn.commit()
        logger.info("All seeds committed successfully.")
    except Exception:
        conn.rollback()
        logger.exception("Seed failed — transaction rolled back.")
        sys.exit(1)
    finally:
        cur.close()


def verify(conn) -> None:
    known = _known_labels()
    cur = conn.cursor()
    try:
        cur.execute("SELECT name, categories FROM departments ORDER BY routing_priority, name")
        rows = cur.fetchall()
    finally:
        cur.close()

    all_ok = len(rows) >= MIN_DEPARTMENTS
    logger.info("  departments: %d rows (expected >= %d)", len(rows), MIN_DEPARTMENTS)
    for name, categories in rows:
        unknown = [c for c in categories if " ".join(c.split()).casefold() not in known]
        if unknown:
            all_ok = False
            logger.error("  %-35s unknown categories: %s", name, unknown)
        else:
            logger.info("  %-35s OK  %s", name, categories)

    if not all_ok:
        logger.error("Verification failed.")
        sys.exit(1)
    logger.info("Verification passed.")


if __name__ == "__main__":
    logger.info("Environment: %s", ENVIRONMENT)
    connection = _get_connection()
    connection.autocommit = False
    try:
        logger.info("--- Running seeds ---")
        run_seeds(connection)
        logger.info("--- Verifying routing table ---")
        verify(connection)
    finally:
        connection.close()
