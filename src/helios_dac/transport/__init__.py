"""USB transport for the Helios DAC."""

from .usb_connection import DeviceInfo, Transport, USBConnection, find_devices
