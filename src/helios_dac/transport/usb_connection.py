"""USB connection to a Helios laser DAC via pyusb.

The DAC is a vendor-class device (VID 0x1209, PID 0xE500). Control
commands travel as vendor control transfers addressed to the device;
frames are written to bulk endpoint 0x02 on interface 0.

All methods are blocking. The device session runs them in an executor.
"""

from __future__ import annotations

import errno
import logging
from dataclasses import dataclass
from typing import Protocol

import usb.core
import usb.util

from ..config import DacConfig
from ..errors import DeviceConnectionError, DeviceDisconnectedError, TransportError

logger = logging.getLogger(__name__)

# bmRequestType: vendor request addressed to the device
CTRL_OUT = usb.util.CTRL_OUT | usb.util.CTRL_TYPE_VENDOR | usb.util.CTRL_RECIPIENT_DEVICE
CTRL_IN = usb.util.CTRL_IN | usb.util.CTRL_TYPE_VENDOR | usb.util.CTRL_RECIPIENT_DEVICE


class Transport(Protocol):
    """Blocking USB primitives a device session drives."""

    def open(self) -> None: ...

    def close(self) -> None: ...

    def control_out(self, request: int, payload: bytes, value: int = 0) -> None: ...

    def control_in(self, request: int, length: int) -> bytes: ...

    def bulk_out(self, endpoint: int, data: bytes | memoryview) -> int: ...


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int
    product_id: int
    bus: int | None = None
    address: int | None = None
    serial_number: str = ""

    @property
    def path(self) -> str:
        return f"{self.bus}:{self.address}"


def _map_usb_error(action: str, e: usb.core.USBError) -> TransportError:
    if e.errno == errno.ENODEV:
        return DeviceDisconnectedError(f"{action}: device is gone ({e})")
    return TransportError(f"{action} failed: {e}")


def find_devices(config: DacConfig | None = None) -> list[USBConnection]:
    """Enumerate every attached DAC matching the configured VID/PID.

    Raises:
        DeviceConnectionError: If no USB backend (libusb) is available.
    """
    config = config or DacConfig()
    try:
        devices = usb.core.find(
            find_all=True, idVendor=config.vendor_id, idProduct=config.product_id
        )
        found = [USBConnection(config, device=dev) for dev in devices]
    except usb.core.NoBackendError as e:
        raise DeviceConnectionError(f"No USB backend available: {e}") from e
    logger.debug("Found %d device(s) %04x:%04x", len(found), config.vendor_id, config.product_id)
    return found


class USBConnection:
    """Manages the USB connection to one DAC.

    Usage::

        conn = USBConnection()
        conn.open()
        conn.control_out(0x01, b"\\x01\\x00")
        conn.bulk_out(0x02, frame_bytes)
        conn.close()
    """

    def __init__(self, config: DacConfig | None = None, device=None) -> None:
        self._config = config or DacConfig()
        self._device = device
        self._claimed = False
        self._device_info = DeviceInfo(
            vendor_id=self._config.vendor_id, product_id=self._config.product_id
        )
        if device is not None:
            self._device_info.bus = getattr(device, "bus", None)
            self._device_info.address = getattr(device, "address", None)

    @property
    def connected(self) -> bool:
        return self._claimed

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def open(self) -> None:
        """Locate (if needed) and claim the DAC's streaming interface.

        Raises:
            DeviceConnectionError: If the device cannot be found or claimed.
        """
        if self._claimed:
            return
        cfg = self._config
        try:
            if self._device is None:
                self._device = usb.core.find(idVendor=cfg.vendor_id, idProduct=cfg.product_id)
                if self._device is None:
                    raise DeviceConnectionError(
                        f"No Helios DAC found ({cfg.vendor_id:#06x}:{cfg.product_id:#06x})"
                    )
            dev = self._device

            # Detach kernel driver if needed
            try:
                if dev.is_kernel_driver_active(cfg.interface):
                    dev.detach_kernel_driver(cfg.interface)
            except NotImplementedError:
                logger.debug("Kernel driver query unsupported on this platform")

            dev.set_configuration(cfg.configuration)
            usb.util.claim_interface(dev, cfg.interface)
        except (usb.core.USBError, usb.core.NoBackendError, ValueError) as e:
            raise DeviceConnectionError(
                f"Could not open Helios DAC "
                f"({cfg.vendor_id:#06x}:{cfg.product_id:#06x}). "
                f"Ensure the device is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

        self._claimed = True
        self._device_info.bus = getattr(dev, "bus", None)
        self._device_info.address = getattr(dev, "address", None)
        if getattr(dev, "iSerialNumber", 0):
            try:
                self._device_info.serial_number = usb.util.get_string(dev, dev.iSerialNumber) or ""
            except (usb.core.USBError, ValueError) as e:
                logger.debug("Could not read serial number: %s", e)
        logger.info("Opened Helios DAC at %s", self._device_info.path)

    def close(self) -> None:
        """Release the interface and free the libusb handle."""
        if self._device is None:
            return

        try:
            if self._claimed:
                usb.util.release_interface(self._device, self._config.interface)
            usb.util.dispose_resources(self._device)
        except usb.core.USBError as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._claimed = False
            logger.info("Closed Helios DAC at %s", self._device_info.path)

    def _require_open(self):
        if not self._claimed:
            raise TransportError("Device is not open")
        return self._device

    def control_out(self, request: int, payload: bytes, value: int = 0) -> None:
        """Send a vendor control request carrying *payload*.

        Raises:
            TransportError: If the transfer fails or is short.
        """
        dev = self._require_open()
        try:
            written = dev.ctrl_transfer(
                CTRL_OUT, request, value, 0, payload, timeout=self._config.timeout_ms
            )
        except usb.core.USBError as e:
            raise _map_usb_error(f"control out 0x{request:02X}", e) from e
        if written != len(payload):
            raise TransportError(
                f"control out 0x{request:02X}: wrote {written} of {len(payload)} bytes"
            )

    def control_in(self, request: int, length: int) -> bytes:
        """Read up to *length* bytes answering vendor request *request*."""
        dev = self._require_open()
        try:
            data = dev.ctrl_transfer(
                CTRL_IN, request, 0, 0, length, timeout=self._config.timeout_ms
            )
        except usb.core.USBError as e:
            raise _map_usb_error(f"control in 0x{request:02X}", e) from e
        return bytes(data)

    def bulk_out(self, endpoint: int, data: bytes | memoryview) -> int:
        """Write *data* to a bulk OUT endpoint and return the byte count."""
        dev = self._require_open()
        try:
            written = dev.write(endpoint, data, timeout=self._config.timeout_ms)
        except usb.core.USBError as e:
            raise _map_usb_error(f"bulk out 0x{endpoint:02X}", e) from e
        if written != len(data):
            raise TransportError(f"bulk out 0x{endpoint:02X}: wrote {written} of {len(data)} bytes")
        return written
