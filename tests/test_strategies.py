"""!
@brief Removal strategy tests.
@details Checks the target-set properties (activation filtering, Uninstall
as a superset of Remove), per-target outcome collection and the restart
decision of each installer technology. Back-end calls are replaced with
recording spies; registry reads come from the ``winreg`` fake.
"""

from __future__ import annotations

import pathlib
import sys
from typing import List

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from office_remover import (  # noqa: E402
    appx_uninstall,
    c2r_uninstall,
    constants,
    elevation,
    fs_tools,
    msi_uninstall,
    registry_tools,
    strategies,
    tasks_services,
)
from office_remover.options import ParsedArgs, ProductType, WorkMode  # noqa: E402
from office_remover.registry_tools import RegistryKeyRef, RegistryView  # noqa: E402
from office_remover.report import (  # noqa: E402
    OutcomeStatus,
    TargetKind,
    access_denied,
    not_found,
    succeeded,
)

PROPLUS_CODE = "{90160000-0011-0000-1000-0000000FF1CE}"

CASES = [
    (ProductType.STORE, 16),
    (ProductType.CLICK_TO_RUN, 15),
    (ProductType.CLICK_TO_RUN, 16),
    (ProductType.WINDOWS_INSTALLER, 12),
    (ProductType.WINDOWS_INSTALLER, 14),
    (ProductType.WINDOWS_INSTALLER, 16),
]


def _args(product: ProductType, version: int, mode: WorkMode, *, keep: bool = False) -> ParsedArgs:
    return ParsedArgs(product, version, work_mode=mode, keep_activation_info=keep, no_restart=True)


class _Spy:
    """!
    @brief Records every back-end call and answers with a fixed status.
    """

    def __init__(self, status: OutcomeStatus = OutcomeStatus.SUCCEEDED) -> None:
        self.status = status
        self.calls: List[tuple] = []

    def outcome(self, target: str, kind: TargetKind):
        if self.status is OutcomeStatus.SUCCEEDED:
            return succeeded(target, kind)
        if self.status is OutcomeStatus.NOT_FOUND:
            return not_found(target, kind)
        return access_denied(target, kind, "Access is denied")

    def install(self, monkeypatch) -> "_Spy":
        def delete_subkey(hive, path, view=RegistryView.DEFAULT):
            self.calls.append(("registry", hive, path, view))
            return self.outcome(str(registry_tools.RegistryKeyRef(hive, path, view)), TargetKind.REGISTRY)

        def remove_directory(path):
            self.calls.append(("directory", str(path)))
            return self.outcome(str(path), TargetKind.DIRECTORY)

        def remove_service(name):
            self.calls.append(("service", name))
            return self.outcome(f"service {name}", TargetKind.SERVICE)

        def remove_task(name):
            self.calls.append(("task", name))
            return self.outcome(f"task {name}", TargetKind.TASK)

        def remove_package(name):
            self.calls.append(("package", name))
            return self.outcome(f"package {name}", TargetKind.PACKAGE)

        def remove_provisioned(name):
            self.calls.append(("provisioned", name))
            return self.outcome(f"provisioned package {name}", TargetKind.PROVISIONED_PACKAGE)

        def c2r_product(version):
            self.calls.append(("c2r_product", version))
            return self.outcome(f"Click-to-Run {version}.0 product", TargetKind.PRODUCT)

        def msi_product(product):
            self.calls.append(("msi_product", product.product_code))
            return self.outcome(f"product {product.product_code}", TargetKind.PRODUCT), False

        monkeypatch.setattr(registry_tools, "delete_subkey", delete_subkey)
        monkeypatch.setattr(fs_tools, "remove_directory", remove_directory)
        monkeypatch.setattr(tasks_services, "remove_service", remove_service)
        monkeypatch.setattr(tasks_services, "remove_task", remove_task)
        monkeypatch.setattr(appx_uninstall, "remove_appx_package", remove_package)
        monkeypatch.setattr(appx_uninstall, "remove_provisioned_package", remove_provisioned)
        monkeypatch.setattr(c2r_uninstall, "uninstall_product", c2r_product)
        monkeypatch.setattr(msi_uninstall, "uninstall_product", msi_product)
        return self


@pytest.fixture(autouse=True)
def _populated_registry(fake_winreg):
    """!
    @brief Give every strategy something version-specific to plan against.
    """

    for code in (PROPLUS_CODE, "{90140000-0011-0000-0000-0000000FF1CE}", "{90120000-0030-0000-0000-0000000FF1CE}"):
        fake_winreg.add(
            constants.HKLM,
            f"{constants.UNINSTALL_ROOT}\\{code}",
            int(RegistryView.REGISTRY_64),
            DisplayName="Microsoft Office",
        )
    fake_winreg.add(
        constants.HKLM,
        constants.UNINSTALL_ROOT + r"\O365ProPlusRetail - en-us",
        int(RegistryView.REGISTRY_64),
        UninstallString="OfficeClickToRun.exe scenario=install",
        DisplayVersion="16.0.1",
    )
    tasks_services.consume_reboot_recommendations()
    return fake_winreg


def test_every_product_type_has_a_strategy() -> None:
    assert isinstance(strategies.strategy_for(ProductType.STORE, 16), strategies.StoreStrategy)
    assert isinstance(
        strategies.strategy_for(ProductType.CLICK_TO_RUN, 16), strategies.ClickToRunStrategy
    )
    assert isinstance(
        strategies.strategy_for(ProductType.WINDOWS_INSTALLER, 14),
        strategies.WindowsInstallerStrategy,
    )
    for product in ProductType:
        assert strategies.strategy_for(product, 16).product_type is product


@pytest.mark.parametrize(("product", "version"), CASES)
@pytest.mark.parametrize("mode", [WorkMode.REMOVE, WorkMode.UNINSTALL])
def test_keep_activation_targets_are_a_subset(product, version, mode) -> None:
    strategy = strategies.strategy_for(product, version)

    kept = strategy.plan_targets(_args(product, version, mode, keep=True))
    full = strategy.plan_targets(_args(product, version, mode))

    assert kept
    assert set(kept) <= set(full)
    assert not any(target.activation for target in kept)
    assert any(target.activation for target in full) or mode is WorkMode.REMOVE


@pytest.mark.parametrize(("product", "version"), CASES)
def test_remove_targets_are_a_subset_of_uninstall(product, version) -> None:
    strategy = strategies.strategy_for(product, version)

    remove = strategy.plan_targets(_args(product, version, WorkMode.REMOVE))
    uninstall = strategy.plan_targets(_args(product, version, WorkMode.UNINSTALL))

    assert set(remove) < set(uninstall)
    assert not any(target.uninstall_only for target in remove)


@pytest.mark.parametrize(
    ("product", "version"),
    [(ProductType.STORE, 12), (ProductType.STORE, 15), (ProductType.CLICK_TO_RUN, 14), (ProductType.CLICK_TO_RUN, 12)],
)
def test_unavailable_versions_plan_nothing(monkeypatch, product, version) -> None:
    def refuse(*_args, **_kwargs):
        raise AssertionError("detection is not expected")

    monkeypatch.setattr(appx_uninstall, "_run_powershell", refuse)
    strategy = strategies.strategy_for(product, version)

    assert strategy.detect() == strategies.Presence.absent()
    assert strategy.plan_targets(_args(product, version, WorkMode.UNINSTALL)) == []


def test_remove_attempts_every_target_after_failures(monkeypatch) -> None:
    spy = _Spy(OutcomeStatus.ACCESS_DENIED).install(monkeypatch)
    strategy = strategies.strategy_for(ProductType.CLICK_TO_RUN, 16)
    args = _args(ProductType.CLICK_TO_RUN, 16, WorkMode.REMOVE)

    report = strategy.remove(args)

    assert len(report.outcomes) == len(strategy.plan_targets(args)) == len(spy.calls)
    assert len(report.failures) == len(report.outcomes)
    assert report.exit_code() is constants.ExitCode.TARGETS_FAILED


def test_c2r_uninstall_runs_product_removal_first(monkeypatch) -> None:
    spy = _Spy().install(monkeypatch)
    strategy = strategies.strategy_for(ProductType.CLICK_TO_RUN, 16)

    report = strategy.remove(_args(ProductType.CLICK_TO_RUN, 16, WorkMode.UNINSTALL))

    assert spy.calls[0] == ("c2r_product", 16)
    assert ("service", "ClickToRunSvc") in spy.calls
    assert ("registry", constants.HKLM, constants.C2R_ROOTS[16], RegistryView.REGISTRY_64) in spy.calls
    assert (
        "registry",
        constants.HKLM,
        constants.UNINSTALL_ROOT + r"\O365ProPlusRetail - en-us",
        RegistryView.REGISTRY_64,
    ) in spy.calls
    assert report.restart_required is True


def test_c2r_machine_keys_use_native_registry_view() -> None:
    strategy = strategies.strategy_for(ProductType.CLICK_TO_RUN, 16)
    targets = strategy.plan_targets(_args(ProductType.CLICK_TO_RUN, 16, WorkMode.UNINSTALL))

    machine_keys = [
        target.key
        for target in targets
        if target.key is not None and target.key.hive == constants.HKLM
    ]

    assert machine_keys
    assert all(key.view is not RegistryView.DEFAULT for key in machine_keys)
    assert RegistryKeyRef(
        constants.HKLM, constants.OSPP_REGISTRY_PATH, RegistryView.REGISTRY_64
    ) in machine_keys


def test_c2r_legacy_service_for_2013(monkeypatch) -> None:
    strategy = strategies.strategy_for(ProductType.CLICK_TO_RUN, 15)
    names = [target.name for target in strategy.plan_targets(_args(ProductType.CLICK_TO_RUN, 15, WorkMode.REMOVE))]
    assert "OfficeSvc" in names
    assert "ClickToRunSvc" in names


def test_c2r_restart_not_required_when_nothing_removed(monkeypatch) -> None:
    _Spy(OutcomeStatus.NOT_FOUND).install(monkeypatch)
    strategy = strategies.strategy_for(ProductType.CLICK_TO_RUN, 16)

    report = strategy.remove(_args(ProductType.CLICK_TO_RUN, 16, WorkMode.REMOVE))

    assert report.all_succeeded
    assert report.restart_required is False


def test_store_never_requires_restart(monkeypatch) -> None:
    spy = _Spy().install(monkeypatch)
    strategy = strategies.strategy_for(ProductType.STORE, 16)

    report = strategy.remove(_args(ProductType.STORE, 16, WorkMode.UNINSTALL))

    assert report.restart_required is False
    assert ("provisioned", "Microsoft.Office.Desktop") in spy.calls
    assert ("package", "Microsoft.Office.Desktop") in spy.calls


def test_store_detect_scopes_query_to_elevation(monkeypatch) -> None:
    seen = {}

    def fake_detect(names=constants.OFFICE_APPX_PACKAGES, *, all_users=False):
        seen["all_users"] = all_users
        return [{"Name": "Microsoft.Office.Desktop", "PackageFullName": "pkg_full", "Version": "16.0.1"}]

    monkeypatch.setattr(appx_uninstall, "detect_office_appx_packages", fake_detect)
    monkeypatch.setattr(elevation, "is_admin", lambda: False)

    presence = strategies.strategy_for(ProductType.STORE, 16).detect()

    assert presence.present
    assert presence.version == "16.0.1"
    assert presence.metadata == {"packages": ["pkg_full"]}
    assert seen["all_users"] is False


def test_msi_uninstall_targets_include_installer_records(monkeypatch) -> None:
    strategy = strategies.strategy_for(ProductType.WINDOWS_INSTALLER, 16)
    targets = strategy.plan_targets(_args(ProductType.WINDOWS_INSTALLER, 16, WorkMode.UNINSTALL))
    paths = [target.key.path for target in targets if target.key is not None]

    assert targets[0] == strategies.RemovalTarget(TargetKind.PRODUCT, PROPLUS_CODE)
    assert r"Installer\Products\00006109110000000100000000F01FEC" in paths
    assert f"{constants.UNINSTALL_ROOT}\\{PROPLUS_CODE}" in paths
    assert r"SOFTWARE\Microsoft\Office\16.0\Registration" in paths


def test_msi_restart_follows_msiexec(monkeypatch) -> None:
    _Spy().install(monkeypatch)
    monkeypatch.setattr(
        msi_uninstall,
        "uninstall_product",
        lambda product: (succeeded(f"product {product.product_code}", TargetKind.PRODUCT), True),
    )
    strategy = strategies.strategy_for(ProductType.WINDOWS_INSTALLER, 16)

    report = strategy.remove(_args(ProductType.WINDOWS_INSTALLER, 16, WorkMode.REMOVE))

    assert report.restart_required is True


def test_msi_detect_reports_products() -> None:
    presence = strategies.strategy_for(ProductType.WINDOWS_INSTALLER, 14).detect()
    assert presence.present
    assert presence.metadata["products"][0]["product_code"] == "{90140000-0011-0000-0000-0000000FF1CE}"
    assert presence.describe().startswith("Present")
