# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""FTDI control requests and shared USB device access."""

from enum import Enum, IntEnum, unique
from errno import EBUSY
from logging import getLogger
from threading import RLock
from typing import Set, Union
from usb.core import Device as UsbDevice, USBError
from usb.util import (build_request_type, claim_interface, release_interface,
                      CTRL_IN, CTRL_OUT, CTRL_TYPE_VENDOR,
                      CTRL_RECIPIENT_DEVICE)
from .misc import hexline
from .usbtools import UsbTools

# pylint: disable=invalid-name


@unique
class ErrorKind(Enum):
    """Category of an FTDI error."""

    USB = 'USB error'
    MULTIPLE_DEVICES_FOUND = 'multiple matching devices found'
    NO_DEVICE_FOUND = 'no matching devices found'
    UNSUPPORTED_DEVICE = 'device is not supported'
    OTHER = 'other error'


class FtdiError(IOError):
    """Base class error for all FTDI devices.

       The wrapped transport error, if any, is available as ``__cause__``.
    """

    KIND = ErrorKind.OTHER

    @property
    def kind(self) -> ErrorKind:
        """Return the error category."""
        return self.KIND

    def __str__(self):
        detail = ' '.join(str(arg) for arg in self.args)
        if detail:
            return f'{self.KIND.value}: {detail}'
        return self.KIND.value


class FtdiUsbError(FtdiError):
    """Failure of the underlying USB transport.

       These errors may be transient (unplug, busy device) and a caller may
       retry the operation after a delay.
    """

    KIND = ErrorKind.USB


class FtdiMultipleDevicesError(FtdiError):
    """More than one device matches the selection criteria"""

    KIND = ErrorKind.MULTIPLE_DEVICES_FOUND


class FtdiNoDeviceError(FtdiError):
    """No device matches the selection criteria"""

    KIND = ErrorKind.NO_DEVICE_FOUND


class FtdiUnsupportedDeviceError(FtdiError):
    """Device does not match any known FTDI model"""

    KIND = ErrorKind.UNSUPPORTED_DEVICE


class FtdiProtocolError(FtdiError):
    """Device reply violates the control request contract"""


class FtdiModeError(FtdiError):
    """Operation is not available in the current port state"""


@unique
class ControlRequest(IntEnum):
    """FTDI vendor control requests."""

    RESET = 0x00              # Reset the port
    SET_MODEM_CTRL = 0x01     # Set the modem control register
    SET_FLOW_CTRL = 0x02      # Set flow control register
    SET_BAUDRATE = 0x03       # Set baud rate
    SET_DATA = 0x04           # Set the data characteristics of the port
    POLL_MODEM_STATUS = 0x05  # Get line status
    SET_EVENT_CHAR = 0x06     # Change event character
    SET_ERROR_CHAR = 0x07     # Change error character
    SET_LATENCY_TIMER = 0x09  # Change latency timer
    GET_LATENCY_TIMER = 0x0A  # Get latency timer
    SET_BITMODE = 0x0B        # Change bit mode
    READ_PINS = 0x0C          # Read GPIO pin value (or "get bitmode")
    READ_EEPROM = 0x90        # Read EEPROM word
    WRITE_EEPROM = 0x91       # Write EEPROM word
    ERASE_EEPROM = 0x92       # Erase EEPROM content


class UsbChannel:
    """Shared access to an opened FTDI USB device.

       A single physical device only handles one control transfer at a time,
       so every transfer is serialized, whatever the count of device handles
       and ports that share the channel.

       The channel is reference counted: the PyUSB resources are disposed of
       when the last holder releases it.

       :param device: an opened PyUSB device
    """

    REQ_OUT = build_request_type(CTRL_OUT, CTRL_TYPE_VENDOR,
                                 CTRL_RECIPIENT_DEVICE)
    REQ_IN = build_request_type(CTRL_IN, CTRL_TYPE_VENDOR,
                                CTRL_RECIPIENT_DEVICE)

    def __init__(self, device: UsbDevice):
        self.log = getLogger('ftdiport.usb')
        self._device = device
        self._lock = RLock()
        self._claimed: Set[int] = set()
        self._detached: Set[int] = set()
        self._refcount = 0

    @property
    def device(self) -> UsbDevice:
        """Return the underlying PyUSB device."""
        return self._device

    def acquire(self) -> 'UsbChannel':
        """Register a new holder of the channel.

           :return: self
        """
        with self._lock:
            self._refcount += 1
            return self

    def release(self) -> None:
        """Unregister a holder, disposing of the USB device with the last
           one."""
        with self._lock:
            if self._refcount <= 0:
                return
            self._refcount -= 1
            if self._refcount:
                return
            self.log.debug('dispose device %s:%s',
                           self._device.bus, self._device.address)
            self._claimed.clear()
            self._detached.clear()
            try:
                UsbTools.release_device(self._device)
            except (NotImplementedError, USBError) as exc:
                self.log.warning('FTDI device may be gone: %s', exc)

    def read(self, request: ControlRequest, value: int, index: int,
             length: int, timeout: int) -> bytes:
        """Request a control message from the device.

           :param request: the vendor request
           :param value: the 16-bit value field
           :param index: the 16-bit index field
           :param length: the expected reply length, in bytes
           :param timeout: transfer timeout in milliseconds
           :return: the received payload
           :raise FtdiUsbError: on transport failure
           :raise FtdiProtocolError: if the reply size does not match length
        """
        with self._lock:
            try:
                data = self._device.ctrl_transfer(
                    self.REQ_IN, request, value, index, length, timeout)
            except (NotImplementedError, USBError) as exc:
                raise FtdiUsbError(f'{request.name}: {exc}') from exc
        data = bytes(data)
        self.log.debug('< %s val 0x%04x idx 0x%04x %s', request.name,
                       value, index, hexline(data))
        if len(data) != length:
            raise FtdiProtocolError(f'{request.name}: received {len(data)} '
                                    f'bytes, expected {length}')
        return data

    def write(self, request: ControlRequest, value: int, index: int,
              data: Union[bytes, bytearray], timeout: int) -> None:
        """Send a control message to the device.

           :param request: the vendor request
           :param value: the 16-bit value field
           :param index: the 16-bit index field
           :param data: the payload, usually empty
           :param timeout: transfer timeout in milliseconds
           :raise FtdiUsbError: on transport failure
           :raise FtdiProtocolError: if the payload is not fully written
        """
        self.log.debug('> %s val 0x%04x idx 0x%04x %s', request.name,
                       value, index, hexline(data))
        with self._lock:
            try:
                count = self._device.ctrl_transfer(
                    self.REQ_OUT, request, value, index, bytearray(data),
                    timeout)
            except (NotImplementedError, USBError) as exc:
                raise FtdiUsbError(f'{request.name}: {exc}') from exc
        if count != len(data):
            raise FtdiProtocolError(f'{request.name}: sent {count} bytes, '
                                    f'expected {len(data)}')

    def claim_interface(self, interface: int) -> None:
        """Claim a USB interface for exclusive access.

           :param interface: the interface number, starting from 0
           :raise FtdiUsbError: if the interface is already claimed, or
                                cannot be claimed
        """
        with self._lock:
            if interface in self._claimed:
                exc = USBError('Resource busy', errno=EBUSY)
                raise FtdiUsbError(f'Interface {interface} already '
                                   f'claimed') from exc
            # detach kernel driver from the interface
            try:
                if self._device.is_kernel_driver_active(interface):
                    self._device.detach_kernel_driver(interface)
                    self._detached.add(interface)
            except (NotImplementedError, USBError):
                pass
            try:
                claim_interface(self._device, interface)
            except (NotImplementedError, USBError) as exc:
                raise FtdiUsbError(f'Cannot claim interface {interface}: '
                                   f'{exc}') from exc
            self._claimed.add(interface)
            self.log.debug('claimed interface %d', interface)

    def release_interface(self, interface: int) -> None:
        """Release a previously claimed USB interface.

           :param interface: the interface number, starting from 0
           :raise FtdiUsbError: if the interface cannot be released
        """
        with self._lock:
            if interface not in self._claimed:
                return
            self._claimed.discard(interface)
            try:
                release_interface(self._device, interface)
            except (NotImplementedError, USBError) as exc:
                raise FtdiUsbError(f'Cannot release interface {interface}: '
                                   f'{exc}') from exc
            finally:
                if interface in self._detached:
                    self._detached.discard(interface)
                    try:
                        self._device.attach_kernel_driver(interface)
                    except (NotImplementedError, USBError):
                        pass
            self.log.debug('released interface %d', interface)

    def reset(self) -> None:
        """Perform a USB port reset of the device.

           The reset is issued on the current device handle, which is not
           disposed of, so interface claims are kept and open ports remain
           usable.

           :raise FtdiUsbError: on transport failure
        """
        # pylint: disable=protected-access
        # PyUSB has no public API to reset a device w/o closing its handle
        with self._lock:
            try:
                handle = self._device._ctx.managed_open()
                self._device._ctx.backend.reset_device(handle)
            except (NotImplementedError, USBError) as exc:
                raise FtdiUsbError(f'Cannot reset device: {exc}') from exc

    def get_string(self, stridx: int, name: str) -> str:
        """Read a string descriptor.

           :param stridx: the string descriptor index
           :param name: the descriptor name, for error reports
           :return: the decoded string
           :raise FtdiUsbError: if the string cannot be retrieved
        """
        if not stridx:
            raise FtdiUsbError(f'No {name} string descriptor')
        with self._lock:
            try:
                return UsbTools.get_string(self._device, stridx)
            except (NotImplementedError, USBError, ValueError) as exc:
                raise FtdiUsbError(f'Cannot read {name}: {exc}') from exc
