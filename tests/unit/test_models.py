from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

from spendtrack import models

REPO_ROOT = Path(__file__).resolve().parents[2]


def test_models_import_in_a_fresh_interpreter():
    env = {**os.environ, "SPENDTRACK_DATABASE_URL": "sqlite://", "PYTHONPATH": str(REPO_ROOT)}
    completed = subprocess.run(
        [sys.executable, "-c", "import spendtrack.models, spendtrack.server"],
        cwd=REPO_ROOT,
        env=env,
        capture_output=True,
        text=True,
        check=False,
    )
    assert completed.returncode == 0, completed.stderr


def test_mixin_columns_are_copied_per_table():
    for model in (models.Category, models.Receipt, models.Expense, models.Budget):
        columns = model.__table__.c
        assert {"created_at", "updated_at"} <= set(columns.keys())
        assert columns.created_at.table is model.__table__


def test_only_soft_deleted_tables_carry_deleted_at():
    assert "deleted_at" not in models.Category.__table__.c
    for model in (models.Receipt, models.Expense, models.Budget):
        assert "deleted_at" in model.__table__.c
    assert "user_id" in models.Receipt.__table__.c
