from __future__ import annotations

"""
User identity and SDK metadata assembly.

The metadata mapping produced here travels with every error report sent by
the error boundary.
"""

import platform
import uuid
from typing import Any, Callable, Optional

from loguru import logger

from .. import __version__

SDK_TYPE = "python-client"

_DEVICE_INFO_GETTERS = (
    ("get_version", "appVersion"),
    ("get_system_version", "systemVersion"),
    ("get_system_name", "systemName"),
    ("get_model", "deviceModelName"),
    ("get_device_id", "deviceModel"),
)


def _host_metadata() -> dict[str, str]:
    metadata = {}
    for key, getter in (
        ("systemName", platform.system),
        ("systemVersion", platform.release),
        ("deviceModel", platform.machine),
    ):
        try:
            value = getter()
        except Exception:
            continue
        if value:
            metadata[key] = value
    return metadata


class StatsigIdentity:
    """
    Current user plus the ``statsigMetadata`` mapping.
    """

    def __init__(self, user: Optional[dict[str, Any]] = None) -> None:
        """
        Parameters
        ----------
        user : dict[str, Any] | None, optional
            Initial user object, by default ``None``.
        """
        self._user = user
        self._metadata: dict[str, str | int | float] = {
            "sdkType": SDK_TYPE,
            "sdkVersion": __version__,
            "stableID": str(uuid.uuid4()),
        }
        self._metadata.update(_host_metadata())

    def get_user(self) -> Optional[dict[str, Any]]:
        return self._user

    def update_user(self, user: Optional[dict[str, Any]]) -> None:
        self._user = user

    def get_statsig_metadata(self) -> dict[str, str | int | float]:
        return dict(self._metadata)

    def set_sdk_package_info(self, sdk_type: str, sdk_version: str) -> None:
        self._metadata["sdkType"] = sdk_type
        self._metadata["sdkVersion"] = sdk_version

    def set_device_info(self, info: Any) -> None:
        """
        Copy host device details from an info provider.

        Parameters
        ----------
        info : Any
            Object exposing any of ``get_version``, ``get_system_version``,
            ``get_system_name``, ``get_model`` and ``get_device_id``. Missing
            getters, getters that raise, and ``None`` values are skipped.
        """
        for attr, key in _DEVICE_INFO_GETTERS:
            getter: Optional[Callable[[], Any]] = getattr(info, attr, None)
            if not callable(getter):
                continue
            try:
                value = getter()
            except Exception as exc:
                logger.debug("Device info getter {} failed: {}", attr, exc)
                continue
            if value is not None:
                self._metadata[key] = value

    def set_app_constants(
        self,
        native_app_version: Optional[str] = None,
        native_build_version: Optional[str] = None,
    ) -> None:
        app_version = native_app_version or native_build_version
        if app_version:
            self._metadata["appVersion"] = app_version

    def set_host_device(
        self,
        *,
        os_version: Optional[str] = None,
        os_name: Optional[str] = None,
        model_name: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> None:
        for key, value in (
            ("systemVersion", os_version),
            ("systemName", os_name),
            ("deviceModelName", model_name),
            ("deviceModel", model_id),
        ):
            if value is not None:
                self._metadata[key] = value
