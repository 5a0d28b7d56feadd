"""Shared pytest fixtures and utilities for retail ledger tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator

import pytest
from openpyxl.workbook import Workbook

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from retail_ledger import cli, constants, core_logic, data_manager  # noqa: E402
from retail_ledger.setup_excel import build_master_workbook, create_master_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
FIXED_MOMENT = datetime(2025, 1, 1, 9, 0, tzinfo=UTC)
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "ShopName = {shop_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Ledger]\n"
    "CurrencySymbol = {currency_symbol}\n"
    "MaxWriteRetries = {max_write_retries}\n"
)

SEED_PRODUCTS = (
    data_manager.ProductRow("P-BREAD", "Bread", Decimal("100.00"), True),
    data_manager.ProductRow("P-CAKE", "Cake", Decimal("50.00"), True),
    data_manager.ProductRow("P-MILK", "Milk", Decimal("30.00"), True),
    data_manager.ProductRow("P-BUN", "Bun", Decimal("2.50"), True),
    data_manager.ProductRow("P-OLD", "Old Stock", Decimal("5.00"), False),
)

SEED_CUSTOMERS = (
    data_manager.CustomerRow("C-001", "Asha Verma", "9800000001", "12 Market Road", True),
    data_manager.CustomerRow("C-002", "Ravi Kumar", "9800000002", "4 Lake View", True),
    data_manager.CustomerRow("C-003", "Meera Ashok", "9800000003", "7 Hill Street", True),
    data_manager.CustomerRow("C-OLD", "Closed Account", "", "", False),
)


def seed_master_data(workbook: Workbook) -> Workbook:
    """Append the shared product and customer fixtures to ``workbook``."""

    for product in SEED_PRODUCTS:
        data_manager.append_product(workbook, product)
    for customer in SEED_CUSTOMERS:
        data_manager.append_customer(workbook, customer)
    return workbook


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    schema_version: str
    shop_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized master workbook in a temp folder."""

    def _create_workbook(
        *,
        subdir: str | None = None,
        filename: str = "master_workbook.xlsx",
        seed: bool = True,
    ) -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = create_master_workbook(base_dir / filename, overwrite=True)
        if seed:
            workbook = data_manager.open_workbook(workbook_path)
            seed_master_data(workbook)
            data_manager.save_workbook(workbook, workbook_path)
        return workbook_path

    return _create_workbook


@pytest.fixture
def master_workbook_path(workbook_factory: Callable[..., Path]) -> Path:
    """Return a fresh, seeded master workbook ready for use in a test."""

    return workbook_factory(subdir=f"workbook_{uuid.uuid4().hex}")


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        shop_name: str = "Corner Bakery",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        currency_symbol: str = "₹",
        max_write_retries: int = 3,
    ) -> ConfigBundle:
        bundle_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_name
        workbook_path = workbook_factory(subdir=bundle_name)
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                shop_name=shop_name,
                schema_version=schema_version,
                currency_symbol=currency_symbol,
                max_write_retries=max_write_retries,
            ),
            encoding="utf-8",
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            schema_version=schema_version,
            shop_name=shop_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# In-memory engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "master_workbook.xlsx",
        shop_name="Corner Bakery",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
    )


@pytest.fixture
def workbook() -> Workbook:
    """Return an unsaved, seeded workbook with every ledger sheet."""

    return seed_master_data(build_master_workbook())


@pytest.fixture
def context(settings: data_manager.ConfigSettings, workbook: Workbook) -> core_logic.RuntimeContext:
    """Assemble a runtime context around the in-memory workbook."""

    return core_logic.build_runtime_context(settings, workbook)


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` so ``now`` returns a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime(datetime):
            @classmethod
            def now(cls, tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="ledger-cli", description="Ledger CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]
