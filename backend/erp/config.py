# backend/erp/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/erp.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///erp.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Invoice edits: "metadata" keeps the ledger untouched,
    # "repost" posts a correcting transaction when the total changes.
    INVOICE_EDIT_POLICY = os.environ.get("INVOICE_EDIT_POLICY", "metadata")

    ORDER_NUMBER_PREFIX = os.environ.get("ORDER_NUMBER_PREFIX", "HCP")

    DEMO_SEED_ENABLED = os.environ.get("DEMO_SEED_ENABLED", "false").lower() == "true"
