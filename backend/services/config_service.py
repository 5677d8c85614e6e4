"""Runtime business settings backed by the ``system_configurations`` table.

Values are cached per process for ``CONFIG_CACHE_TTL`` seconds and the cache
is dropped whenever a value is written. Secrets such as SMTP credentials are
read from the environment when present and are never cached.
"""

import logging
import os
import threading
import time
from collections import OrderedDict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from config import settings
from models.system_config import SystemConfiguration
from utils.errors import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)

# key -> (default value, value type, category, description)
DEFAULTS: "OrderedDict[str, tuple]" = OrderedDict([
    ("invoice_due_days", ("30", "integer", "invoice", "Days between invoice date and due date")),
    ("invoice_late_fee_percent", ("1.5", "decimal", "invoice", "Monthly late fee on overdue balances (%)")),
    ("invoice_tax_rate", ("0.13", "decimal", "invoice", "Sales tax applied to course invoices")),
    ("payment_reversal_window_hours", ("48", "integer", "payment", "Hours after verification a payment can be reversed")),
    ("default_hourly_rate", ("25.00", "decimal", "payroll", "Instructor hourly rate when no pay rate is set")),
    ("default_course_bonus", ("50.00", "decimal", "payroll", "Per-course bonus when no pay rate is set")),
    ("company_name", ("CPR Training Services", "string", "general", "Name printed on invoices")),
    ("company_address", ("", "string", "general", "Address printed on invoices")),
    ("smtp_host", ("", "string", "email", "Outgoing mail server")),
    ("smtp_port", ("587", "integer", "email", "Outgoing mail port")),
    ("smtp_user", ("", "string", "email", "Outgoing mail account")),
    ("smtp_password", ("", "string", "email", "Outgoing mail password")),
])

# Keys whose value comes from the environment when the variable is set
ENV_OVERRIDES = {
    "smtp_host": "SMTP_HOST",
    "smtp_port": "SMTP_PORT",
    "smtp_user": "SMTP_USER",
    "smtp_password": "SMTP_PASS",
}

VALUE_TYPES = {"string", "integer", "decimal", "boolean"}


def _convert(raw: Optional[str], value_type: str) -> Any:
    if raw is None:
        return None
    if value_type == "integer":
        return int(raw)
    if value_type == "decimal":
        return Decimal(raw)
    if value_type == "boolean":
        return str(raw).strip().lower() in {"1", "true", "yes", "on"}
    return raw


def validate_value(value: str, value_type: str) -> None:
    try:
        _convert(value, value_type)
    except (ValueError, InvalidOperation):
        raise ValidationFailedError(f"Value '{value}' is not a valid {value_type}")


class ConfigService:
    def __init__(self, ttl: int = 300):
        self.ttl = ttl
        self._cache: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def invalidate(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._cache.clear()
            else:
                self._cache.pop(key, None)

    def _cached(self, key: str):
        with self._lock:
            hit = self._cache.get(key)
            if hit and hit[1] > time.monotonic():
                return hit[0]
        return None

    def _store(self, key: str, value: str) -> None:
        with self._lock:
            self._cache[key] = (value, time.monotonic() + self.ttl)

    def get_raw(self, db: Session, key: str) -> Optional[str]:
        env_name = ENV_OVERRIDES.get(key)
        if env_name and os.getenv(env_name):
            return os.getenv(env_name)

        cached = self._cached(key)
        if cached is not None:
            return cached

        row = db.query(SystemConfiguration).filter(SystemConfiguration.config_key == key).first()
        if row is not None and row.config_value is not None:
            value = row.config_value
        elif key in DEFAULTS:
            value = DEFAULTS[key][0]
        else:
            return None

        if env_name is None:
            self._store(key, value)
        return value

    def get(self, db: Session, key: str, fallback: Any = None) -> Any:
        raw = self.get_raw(db, key)
        if raw is None or raw == "":
            return fallback
        value_type = DEFAULTS[key][1] if key in DEFAULTS else "string"
        try:
            return _convert(raw, value_type)
        except (ValueError, InvalidOperation):
            logger.warning("Bad value for config %s: %r, using fallback", key, raw)
            return fallback

    def get_int(self, db: Session, key: str, fallback: int) -> int:
        value = self.get(db, key, fallback)
        return int(value)

    def get_decimal(self, db: Session, key: str, fallback: str) -> Decimal:
        value = self.get(db, key, Decimal(fallback))
        return Decimal(value)

    def set(self, db: Session, key: str, value: str, user_id: Optional[int] = None) -> SystemConfiguration:
        row = db.query(SystemConfiguration).filter(SystemConfiguration.config_key == key).first()
        if row is None:
            raise NotFoundError(f"Configuration '{key}' not found")
        validate_value(value, row.value_type)
        row.config_value = value
        row.updated_by = user_id
        db.flush()
        self.invalidate(key)
        logger.info("Configuration %s updated by user %s", key, user_id)
        return row

    def list_all(self, db: Session, category: Optional[str] = None) -> List[SystemConfiguration]:
        query = db.query(SystemConfiguration)
        if category:
            query = query.filter(SystemConfiguration.category == category)
        return query.order_by(SystemConfiguration.category, SystemConfiguration.config_key).all()

    def grouped(self, db: Session) -> Dict[str, List[SystemConfiguration]]:
        groups: Dict[str, List[SystemConfiguration]] = OrderedDict()
        for row in self.list_all(db):
            groups.setdefault(row.category, []).append(row)
        return groups

    def categories(self, db: Session) -> List[str]:
        rows = db.query(SystemConfiguration.category).distinct().order_by(SystemConfiguration.category).all()
        return [r[0] for r in rows]

    def seed_defaults(self, db: Session) -> int:
        existing = {k for (k,) in db.query(SystemConfiguration.config_key).all()}
        created = 0
        for key, (value, value_type, category, description) in DEFAULTS.items():
            if key in existing:
                continue
            db.add(SystemConfiguration(
                config_key=key, config_value=value, value_type=value_type,
                category=category, description=description,
            ))
            created += 1
        if created:
            db.commit()
            logger.info("Seeded %s default configuration values", created)
        return created

    # Typed accessors used across billing and payroll
    def invoice_due_days(self, db: Session) -> int:
        return self.get_int(db, "invoice_due_days", 30)

    def invoice_late_fee_percent(self, db: Session) -> Decimal:
        return self.get_decimal(db, "invoice_late_fee_percent", "1.5")

    def invoice_tax_rate(self, db: Session) -> Decimal:
        return self.get_decimal(db, "invoice_tax_rate", "0.13")

    def payment_reversal_window_hours(self, db: Session) -> int:
        return self.get_int(db, "payment_reversal_window_hours", 48)

    def default_hourly_rate(self, db: Session) -> Decimal:
        return self.get_decimal(db, "default_hourly_rate", "25.00")

    def default_course_bonus(self, db: Session) -> Decimal:
        return self.get_decimal(db, "default_course_bonus", "50.00")


config_service = ConfigService(ttl=settings.CONFIG_CACHE_TTL)
