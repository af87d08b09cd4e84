"""!
@brief Per-installer-technology detection and removal strategies.
@details Each strategy knows how one installer technology (Microsoft Store,
Click-to-Run, Windows Installer) lays Office out on a machine. ``detect``
only reads; ``plan_targets`` lists what a run would touch; ``remove`` walks
that list in order and records exactly one outcome per target, continuing
past failures.

Targets tagged ``activation`` are dropped entirely when the caller keeps
activation data, and targets tagged ``uninstall_only`` are attempted only
in Uninstall mode, so the target set of a narrower request is always a
subset of a wider one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar, Dict, List, Optional, Tuple, Type

from . import (
    appx_uninstall,
    c2r_uninstall,
    constants,
    elevation,
    fs_tools,
    logging_ext,
    msi_uninstall,
    registry_tools,
    tasks_services,
)
from .guid_utils import GuidError, compress_guid
from .options import ParsedArgs, ProductType, WorkMode
from .registry_tools import RegistryKeyRef, RegistryView
from .report import RemovalOutcome, RemovalReport, TargetKind, other_failure


@dataclass(frozen=True)
class Presence:
    """!
    @brief Result of a read-only detection pass.
    """

    present: bool
    version: Optional[str] = None
    metadata: Dict[str, object] = field(default_factory=dict)

    @classmethod
    def absent(cls) -> "Presence":
        return cls(False)

    def describe(self) -> str:
        if not self.present:
            return "Absent"
        return f"Present ({self.version})" if self.version else "Present"


@dataclass(frozen=True)
class RemovalTarget:
    """!
    @brief One thing a removal run attempts to delete.
    @details ``name`` identifies the object for its back-end (service name,
    task path, package name or product code); registry and directory targets
    carry a :class:`RegistryKeyRef` or a :class:`Path` instead.
    """

    kind: TargetKind
    name: str
    key: Optional[RegistryKeyRef] = None
    path: Optional[Path] = None
    activation: bool = False
    uninstall_only: bool = False

    @property
    def label(self) -> str:
        if self.key is not None:
            return str(self.key)
        if self.path is not None:
            return str(self.path)
        return self.name


def _registry_target(
    hive: int,
    path: str,
    view: RegistryView = RegistryView.DEFAULT,
    *,
    activation: bool = False,
    uninstall_only: bool = False,
) -> RemovalTarget:
    ref = RegistryKeyRef(hive, path, view)
    return RemovalTarget(
        TargetKind.REGISTRY,
        str(ref),
        key=ref,
        activation=activation,
        uninstall_only=uninstall_only,
    )


def _directory_target(template: str, **fmt: str) -> RemovalTarget:
    path = fs_tools.expand_path(template.format(**fmt) if fmt else template)
    return RemovalTarget(TargetKind.DIRECTORY, str(path), path=path)


class OfficeProductStrategy:
    """!
    @brief Shared planning and execution loop for the installer technologies.
    @details Subclasses provide :meth:`detect`, :meth:`candidate_targets` and
    the execution of their non-registry, non-directory targets.
    """

    product_type: ClassVar[ProductType]
    supported_versions: ClassVar[Tuple[int, ...]] = constants.SUPPORTED_VERSIONS

    def __init__(self, version: int) -> None:
        self.version = version
        self._restart_requested = False

    @property
    def supports_version(self) -> bool:
        return self.version in self.supported_versions

    @property
    def office_root(self) -> str:
        return constants.OFFICE_VERSION_ROOT.format(version=self.version)

    def detect(self) -> Presence:
        raise NotImplementedError

    def candidate_targets(self) -> List[RemovalTarget]:
        """!
        @brief Every target this technology may remove, in attempt order,
        before filtering by work mode and activation handling.
        """

        raise NotImplementedError

    def plan_targets(self, args: ParsedArgs) -> List[RemovalTarget]:
        if not self.supports_version:
            logging_ext.get_human_logger().warning(
                "%s Office is not available for version %s; nothing to remove.",
                self.product_type.value,
                self.version,
            )
            return []
        planned: List[RemovalTarget] = []
        for target in self.candidate_targets():
            if target.activation and args.keep_activation_info:
                continue
            if target.uninstall_only and args.work_mode is not WorkMode.UNINSTALL:
                continue
            planned.append(target)
        return planned

    def remove(self, args: ParsedArgs) -> RemovalReport:
        """!
        @brief Attempt every planned target and collect the outcomes.
        """

        human_logger = logging_ext.get_human_logger()
        machine_logger = logging_ext.get_machine_logger()

        self._restart_requested = False
        report = RemovalReport(self.product_type.value, self.version, args.work_mode.value)
        targets = self.plan_targets(args)
        machine_logger.info(
            "removal_plan",
            extra={
                "event": "removal_plan",
                "product": self.product_type.value,
                "version": self.version,
                "work_mode": args.work_mode.value,
                "targets": [target.label for target in targets],
            },
        )
        human_logger.info(
            "%s %s %s.0: %d target(s) planned",
            args.work_mode.value,
            self.product_type.value,
            self.version,
            len(targets),
        )
        for target in targets:
            report.add(self.attempt(target))
        report.restart_required = self.restart_required(report)
        return report

    def attempt(self, target: RemovalTarget) -> RemovalOutcome:
        """!
        @brief Remove one target; failures come back as outcomes.
        """

        try:
            if target.kind is TargetKind.REGISTRY and target.key is not None:
                return registry_tools.delete_key_ref(target.key)
            if target.kind is TargetKind.DIRECTORY and target.path is not None:
                return fs_tools.remove_directory(target.path)
            return self.attempt_component(target)
        except OSError as exc:
            logging_ext.get_human_logger().warning("Removing %s failed: %s", target.label, exc)
            return other_failure(target.label, target.kind, str(exc))

    def attempt_component(self, target: RemovalTarget) -> RemovalOutcome:
        return other_failure(
            target.label, target.kind, f"unsupported target kind {target.kind.value}"
        )

    def restart_required(self, report: RemovalReport) -> bool:
        return self._restart_requested


class StoreStrategy(OfficeProductStrategy):
    """!
    @brief Microsoft Store (AppX) packaged Office.
    """

    product_type = ProductType.STORE
    supported_versions = constants.STORE_VERSIONS

    def detect(self) -> Presence:
        if not self.supports_version:
            return Presence.absent()
        packages = appx_uninstall.detect_office_appx_packages(all_users=elevation.is_admin())
        if not packages:
            return Presence.absent()
        return Presence(
            True,
            str(packages[0].get("Version") or "") or None,
            {"packages": [pkg.get("PackageFullName") for pkg in packages]},
        )

    def candidate_targets(self) -> List[RemovalTarget]:
        targets = [
            RemovalTarget(TargetKind.PACKAGE, name) for name in constants.OFFICE_APPX_PACKAGES
        ]
        targets.extend(
            RemovalTarget(TargetKind.PROVISIONED_PACKAGE, name, uninstall_only=True)
            for name in constants.OFFICE_APPX_PACKAGES
        )
        for app in (*constants.OFFICE_APPLICATIONS, "User Settings"):
            targets.append(_registry_target(constants.HKCU, f"{self.office_root}\\{app}"))
        targets.append(
            _directory_target(constants.STORE_USER_DATA, family=constants.STORE_PACKAGE_FAMILY)
        )
        for template in (constants.LICENSING_KEY, constants.IDENTITY_KEY):
            targets.append(
                _registry_target(
                    constants.HKCU, template.format(version=self.version), activation=True
                )
            )
        return targets

    def attempt_component(self, target: RemovalTarget) -> RemovalOutcome:
        if target.kind is TargetKind.PACKAGE:
            return appx_uninstall.remove_appx_package(target.name)
        if target.kind is TargetKind.PROVISIONED_PACKAGE:
            return appx_uninstall.remove_provisioned_package(target.name)
        return super().attempt_component(target)

    def restart_required(self, report: RemovalReport) -> bool:
        return False


class ClickToRunStrategy(OfficeProductStrategy):
    """!
    @brief Click-to-Run streamed Office (2013 and later).
    @details Uninstall runs the product removal first, then the component
    cleanup shared with Remove, then deletes the remaining Click-to-Run
    registry tree and uninstall entries.
    """

    product_type = ProductType.CLICK_TO_RUN
    supported_versions = constants.C2R_VERSIONS

    @property
    def c2r_root(self) -> str:
        return constants.C2R_ROOTS[self.version]

    def detect(self) -> Presence:
        if not self.supports_version:
            return Presence.absent()
        installation = c2r_uninstall.detect_installation(self.version)
        if installation is None:
            return Presence.absent()
        reported = installation.get("version")
        return Presence(True, str(reported) if reported else None, dict(installation))

    def candidate_targets(self) -> List[RemovalTarget]:
        targets: List[RemovalTarget] = [
            RemovalTarget(
                TargetKind.PRODUCT, f"Click-to-Run {self.version}.0 product", uninstall_only=True
            )
        ]
        services = (*constants.C2R_SERVICES, *constants.C2R_LEGACY_SERVICES.get(self.version, ()))
        targets.extend(RemovalTarget(TargetKind.SERVICE, name) for name in services)
        targets.extend(
            RemovalTarget(TargetKind.TASK, name) for name in constants.C2R_SCHEDULED_TASKS
        )
        targets.extend(
            _registry_target(constants.HKLM, f"{self.c2r_root}\\{subkey}", RegistryView.REGISTRY_64)
            for subkey in constants.C2R_COMPONENT_SUBKEYS
        )
        targets.extend(_directory_target(template) for template in constants.C2R_CACHE_DIRECTORIES)

        licensing = constants.LICENSING_KEY.format(version=self.version)
        targets.append(
            _registry_target(constants.HKLM, licensing, RegistryView.REGISTRY_64, activation=True)
        )
        targets.append(_registry_target(constants.HKCU, licensing, activation=True))
        targets.append(
            _registry_target(
                constants.HKCU,
                constants.IDENTITY_KEY.format(version=self.version),
                activation=True,
            )
        )
        targets.append(
            _registry_target(
                constants.HKLM,
                constants.OSPP_REGISTRY_PATH,
                RegistryView.REGISTRY_64,
                activation=True,
            )
        )

        targets.append(
            _registry_target(
                constants.HKLM, self.c2r_root, RegistryView.REGISTRY_64, uninstall_only=True
            )
        )
        for ref in c2r_uninstall.find_uninstall_entries(self.version):
            targets.append(_registry_target(ref.hive, ref.path, ref.view, uninstall_only=True))
        return targets

    def attempt_component(self, target: RemovalTarget) -> RemovalOutcome:
        if target.kind is TargetKind.PRODUCT:
            return c2r_uninstall.uninstall_product(self.version)
        if target.kind is TargetKind.SERVICE:
            return tasks_services.remove_service(target.name)
        if target.kind is TargetKind.TASK:
            return tasks_services.remove_task(target.name)
        return super().attempt_component(target)

    def restart_required(self, report: RemovalReport) -> bool:
        pending = tasks_services.consume_reboot_recommendations()
        return bool(report.removed) or bool(pending)


class WindowsInstallerStrategy(OfficeProductStrategy):
    """!
    @brief Classic Windows Installer (MSI) Office, 2007 through 2016.
    """

    product_type = ProductType.WINDOWS_INSTALLER

    def detect(self) -> Presence:
        if not self.supports_version:
            return Presence.absent()
        products = msi_uninstall.detect_products(self.version)
        if not products:
            return Presence.absent()
        return Presence(
            True,
            products[0].version or None,
            {"products": [product.as_dict() for product in products]},
        )

    def candidate_targets(self) -> List[RemovalTarget]:
        products = msi_uninstall.detect_products(self.version)
        targets: List[RemovalTarget] = [
            RemovalTarget(TargetKind.PRODUCT, product.product_code) for product in products
        ]

        residual = (*constants.OFFICE_APPLICATIONS, *constants.MSI_COMMON_SUBKEYS)
        for view in (RegistryView.REGISTRY_64, RegistryView.REGISTRY_32):
            targets.extend(
                _registry_target(constants.HKLM, f"{self.office_root}\\{name}", view)
                for name in residual
            )
        targets.extend(
            _registry_target(constants.HKCU, f"{self.office_root}\\{app}")
            for app in constants.OFFICE_APPLICATIONS
        )

        for product in products:
            for view in product.views:
                targets.append(
                    _registry_target(
                        constants.HKLM,
                        f"{constants.UNINSTALL_ROOT}\\{product.product_code}",
                        view,
                        uninstall_only=True,
                    )
                )
            try:
                compressed = compress_guid(product.product_code)
            except GuidError:
                continue
            targets.append(
                _registry_target(
                    constants.HKCR,
                    f"{constants.INSTALLER_PRODUCTS_ROOT}\\{compressed}",
                    uninstall_only=True,
                )
            )

        registration = constants.REGISTRATION_KEY.format(version=self.version)
        for view in (RegistryView.REGISTRY_64, RegistryView.REGISTRY_32):
            targets.append(
                _registry_target(
                    constants.HKLM, registration, view, activation=True, uninstall_only=True
                )
            )
        targets.append(
            _registry_target(
                constants.HKLM,
                constants.OSPP_REGISTRY_PATH,
                activation=True,
                uninstall_only=True,
            )
        )
        return targets

    def attempt_component(self, target: RemovalTarget) -> RemovalOutcome:
        if target.kind is TargetKind.PRODUCT:
            outcome, restart = msi_uninstall.uninstall_product(
                msi_uninstall.MsiProduct(product_code=target.name)
            )
            self._restart_requested = self._restart_requested or restart
            return outcome
        return super().attempt_component(target)


_STRATEGIES: Dict[ProductType, Type[OfficeProductStrategy]] = {
    ProductType.STORE: StoreStrategy,
    ProductType.CLICK_TO_RUN: ClickToRunStrategy,
    ProductType.WINDOWS_INSTALLER: WindowsInstallerStrategy,
}

_MISSING = set(ProductType) - set(_STRATEGIES)
if _MISSING:  # pragma: no cover - guarded at import time
    raise RuntimeError(f"No removal strategy for {sorted(item.value for item in _MISSING)}")


def strategy_for(product_type: ProductType, version: int) -> OfficeProductStrategy:
    """!
    @brief Instantiate the strategy handling ``product_type`` at ``version``.
    """

    return _STRATEGIES[product_type](version)


__all__ = [
    "ClickToRunStrategy",
    "OfficeProductStrategy",
    "Presence",
    "RemovalTarget",
    "StoreStrategy",
    "WindowsInstallerStrategy",
    "strategy_for",
]
