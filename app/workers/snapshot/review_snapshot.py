import re
import json
import time
import logging
from datetime import datetime, date

import requests
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import SessionLocal
from app.models.review_snapshot import ReviewSnapshot
from app.models.tenant import Tenant
from app.schemas.cycle import SnapshotSummary

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept-Language": "en-US",
}

INIT_STATE_REGEX = re.compile(r"window\.APP_INITIALIZATION_STATE\s*=\s*(\[.+?\]);", re.DOTALL)
STATE_COUNT_REGEX = re.compile(r'"(\d+[\d,.]*)\s+reviews"')
STATE_RATING_REGEX = re.compile(r",([0-5]\.\d),")
TEXT_REGEX = re.compile(r"([0-5]\.\d)\s*(?:stars|★)?.*?(\d+[\d,.]*k?)\s*reviews", re.IGNORECASE)
ARIA_REGEX = re.compile(r'aria-label="([^"]*stars[^"]*reviews[^"]*)"', re.IGNORECASE)
TAG_REGEX = re.compile(r"<[^>]+>")


# ---------------- COUNT PARSER ----------------

def parse_count(raw: str) -> int:
    """'1,234' -> 1234, '1.2k' -> 1200, '' -> 0"""
    if not raw:
        return 0
    clean = raw.lower().replace(",", "").strip()

    if "k" in clean:
        try:
            return int(float(clean.replace("k", "")) * 1000)
        except ValueError:
            return 0

    m = re.search(r"(\d+)", clean.replace(".", ""))
    return int(m.group(1)) if m else 0


# ---------------- PAGE PARSER ----------------

def extract_reviews(html: str):
    """(rating, count) from a maps page, or None when nothing matched."""

    # 1. Embedded app state
    m = INIT_STATE_REGEX.search(html)
    if m:
        try:
            raw = json.dumps(json.loads(m.group(1)), separators=(",", ":"))
        except ValueError:
            raw = None
            logger.warning("⚠️ Could not parse APP_INITIALIZATION_STATE")

        if raw:
            count_match = STATE_COUNT_REGEX.search(raw)
            if count_match:
                count = parse_count(count_match.group(1))
                rating_match = STATE_RATING_REGEX.search(raw)
                if count > 0:
                    return (float(rating_match.group(1)) if rating_match else 0.0), count

    # 2. Visible text
    text = TAG_REGEX.sub(" ", html)
    m = TEXT_REGEX.search(text)
    if m:
        return float(m.group(1)), parse_count(m.group(2))

    # 3. Accessibility labels
    m = ARIA_REGEX.search(html)
    if m:
        label = m.group(1)
        rating = re.search(r"([0-5]\.\d)", label)
        count = re.search(r"(\d+[\d,.]*k?)\s*reviews", label, re.IGNORECASE)
        if rating and count:
            return float(rating.group(1)), parse_count(count.group(1))

    return None


def scrape_maps_link(url: str):
    """Returns (rating, count, error). Never raises."""
    try:
        r = requests.get(url, headers=HEADERS, timeout=settings.MAILER_TIMEOUT_SECONDS)

        if r.status_code != 200:
            return 0.0, 0, f"Status {r.status_code}"

        found = extract_reviews(r.text)
        if not found:
            return 0.0, 0, "Could not extract reviews from page source"

        rating, count = found
        return rating, count, None

    except requests.exceptions.RequestException as e:
        return 0.0, 0, str(e)


# ---------------- SNAPSHOT JOB ----------------

def save_snapshot(db: Session, tenant_id: int, rating: float, count: int, snapshot_date: date):
    snapshot = db.query(ReviewSnapshot).filter(
        ReviewSnapshot.tenant_id == tenant_id,
        ReviewSnapshot.snapshot_date == snapshot_date,
    ).first()

    if not snapshot:
        snapshot = ReviewSnapshot(tenant_id=tenant_id, snapshot_date=snapshot_date)
        db.add(snapshot)

    snapshot.review_count = count
    snapshot.average_rating = rating
    db.commit()


def run_review_snapshot(db: Session = None, delay: float = None, fetch=None, today: date = None) -> SnapshotSummary:
    owns_session = db is None
    db = db or SessionLocal()
    delay = settings.SNAPSHOT_DELAY_SECONDS if delay is None else delay
    fetch = fetch or scrape_maps_link
    today = today or datetime.utcnow().date()
    summary = SnapshotSummary()

    try:
        tenants = db.query(Tenant.id, Tenant.business_name, Tenant.google_maps_link).filter(
            Tenant.google_maps_link != None,  # noqa: E711
            Tenant.google_maps_link != "",
        ).order_by(Tenant.id).all()

        logger.info(f"📸 Snapshot job: processing {len(tenants)} tenants")

        for tenant in tenants:
            summary.processed += 1

            # Delay to be polite
            if delay:
                time.sleep(delay)

            rating, count, error = fetch(tenant.google_maps_link)
            if error or (rating == 0 and count == 0):
                logger.warning(f"⚠️ Scrape failed for {tenant.business_name}: {error}")
                summary.errors += 1
                continue

            try:
                save_snapshot(db, tenant.id, rating, count, today)
                summary.successes += 1
            except Exception as e:
                db.rollback()
                logger.error(f"❌ Could not save snapshot for tenant {tenant.id}: {e}")
                summary.errors += 1
    finally:
        if owns_session:
            db.close()

    logger.info(f"🏁 Snapshot job finished: {summary.successes} saved, {summary.errors} errors")
    return summary
