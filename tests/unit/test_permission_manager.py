"""Unit tests for PermissionManager."""

import pytest

from steno.errors import DeviceUnavailableError
from steno.models.events import ErrorClass
from steno.models.state import PermissionState


@pytest.mark.unit
class TestRequestPermissions:

    def test_initial_state(self, permissions):
        assert permissions.permission_state is PermissionState.UNKNOWN
        assert permissions.available_devices == []
        assert permissions.selected_device_id is None

    def test_grant_refreshes_catalog_and_selects_first(self, permissions, devices, notifications):
        assert permissions.request_permissions() is True

        assert permissions.permission_state is PermissionState.GRANTED
        assert permissions.has_permission
        assert permissions.available_devices == devices
        assert permissions.selected_device_id == "mic-1"
        assert notifications == []

    def test_probe_stream_is_released(self, permissions, device_access):
        permissions.request_permissions()

        assert device_access.events == [("acquire", None), ("release", None)]
        assert device_access.open_streams == 0

    def test_no_devices_leaves_selection_empty(self, permissions, device_access):
        device_access.devices = []

        assert permissions.request_permissions() is True
        assert permissions.selected_device_id is None

    def test_existing_selection_is_kept(self, permissions):
        permissions.select_device("mic-2")

        permissions.request_permissions()

        assert permissions.selected_device_id == "mic-2"

    def test_denied(self, permissions, device_access, notifications):
        device_access.granted = False

        assert permissions.request_permissions() is False

        assert permissions.permission_state is PermissionState.DENIED
        assert len(notifications) == 1
        assert notifications[0].title == "Permission Denied"
        assert notifications[0].error_class is ErrorClass.PERMISSION_DENIED

    def test_denied_leaves_catalog_unchanged(self, permissions, device_access, devices):
        permissions.request_permissions()
        device_access.granted = False

        permissions.request_permissions()

        assert permissions.permission_state is PermissionState.DENIED
        assert permissions.available_devices == devices
        assert permissions.selected_device_id == "mic-1"

    def test_probe_released_when_enumeration_fails(self, permissions, device_access):
        device_access.enumerate_error = DeviceUnavailableError("enumeration failed")

        assert permissions.request_permissions() is False

        assert device_access.open_streams == 0
        assert permissions.permission_state is PermissionState.DENIED

    def test_repeated_calls_are_idempotent(self, permissions, devices):
        permissions.request_permissions()
        permissions.request_permissions()

        assert permissions.permission_state is PermissionState.GRANTED
        assert permissions.available_devices == devices
        assert permissions.selected_device_id == "mic-1"

    def test_last_resolved_call_wins(self, permissions, device_access):
        permissions.request_permissions()
        device_access.granted = False
        permissions.request_permissions()
        device_access.granted = True
        permissions.request_permissions()

        assert permissions.permission_state is PermissionState.GRANTED


@pytest.mark.unit
class TestSelection:

    def test_select_device_accepts_any_id(self, permissions):
        permissions.select_device("not-in-catalog")
        assert permissions.selected_device_id == "not-in-catalog"

    def test_mark_denied(self, permissions):
        permissions.request_permissions()

        permissions.mark_denied()

        assert permissions.permission_state is PermissionState.DENIED
        assert not permissions.has_permission
