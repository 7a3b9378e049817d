# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""FTDI device discovery and device-level driver."""

from logging import getLogger
from struct import unpack as sunpack
from sys import platform
from typing import Callable, Iterator, List, Tuple, Union
from weakref import finalize
from usb.core import Device as UsbDevice, USBError
from usb.util import (endpoint_direction, endpoint_type, ENDPOINT_IN,
                      ENDPOINT_OUT, ENDPOINT_TYPE_BULK)
from .control import (ControlRequest, FtdiError, FtdiMultipleDevicesError,
                      FtdiNoDeviceError, FtdiUnsupportedDeviceError,
                      FtdiUsbError, UsbChannel)
from .port import Port
from .props import DeviceProperties, lookup
from .serial import SerialPort
from .usbtools import UsbTools, UsbToolsError

# pylint: disable=invalid-name


def decode_version(bcd: int) -> Tuple[int, int, int]:
    """Decode a BCD-encoded ``bcdDevice`` hardware revision.

       The revision is encoded as ``JJ.M.N``: the upper byte holds two BCD
       digits for the major field, then one nibble for the minor field and
       one nibble for the sub-minor field.

       >>> decode_version(0x0700)
       (7, 0, 0)
       >>> decode_version(0x1000)
       (10, 0, 0)
       >>> decode_version(0x0612)
       (6, 1, 2)

       :param bcd: the raw ``bcdDevice`` value
       :return: a (major, minor, sub-minor) 3-tuple
    """
    major = ((bcd >> 12) & 0xF) * 10 + ((bcd >> 8) & 0xF)
    return major, (bcd >> 4) & 0xF, bcd & 0xF


class Ftdi:
    """An opened FTDI USB device.

       Instances are never created directly, but through the :py:meth:`open`
       family of class methods, or with :py:func:`devices`.

       A device exposes device-level services (identification, EEPROM raw
       access, USB reset) and gives access to its ports, see
       :py:meth:`open_port`. The underlying USB device is shared with all
       the ports opened from this instance, and is released once the device
       and all its ports have been closed.

       :param channel: the shared USB channel to the device
       :param properties: the capabilities of the device model
    """

    VENDOR_ID = 0x403
    """USB VID for FTDI chips."""

    PRODUCT_IDS = (0x6001, 0x6010, 0x6011, 0x6015)
    """USB PIDs of the official FTDI devices."""

    DEFAULT_TIMEOUT = 500
    """Default USB control transfer timeout, in milliseconds."""

    WINUSB_HINT = ('this error may be caused by not having the WinUSB driver '
                   'installed; use Zadig (https://zadig.akeo.ie/) to install '
                   'it for the FTDI device; this will replace any existing '
                   'driver')

    log = getLogger('ftdiport.ftdi')

    def __init__(self, channel: UsbChannel, properties: DeviceProperties):
        self._channel = channel.acquire()
        self._properties = properties
        self._timeout = self.DEFAULT_TIMEOUT
        self._finalizer = finalize(self, channel.release)

    def __enter__(self) -> 'Ftdi':
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __repr__(self) -> str:
        return (f'<{self.__class__.__name__} {self.model} '
                f'{self.bus_number}:{self.device_address} '
                f'timeout={self._timeout}ms>')

    # --- Discovery ---------------------------------------------------------

    @classmethod
    def open_unique(cls) -> 'Ftdi':
        """Open the only FTDI device connected to the host.

           :return: the opened device
           :raise FtdiNoDeviceError: if no FTDI device is found
           :raise FtdiMultipleDevicesError: if several FTDI devices are found
        """
        return cls._open_filtered(_is_ftdi)

    @classmethod
    def open_by_id(cls, vid: int, pid: int) -> 'Ftdi':
        """Open the only device with the specified USB identifiers.

           :param vid: USB vendor identifier
           :param pid: USB product identifier
           :return: the opened device
           :raise FtdiNoDeviceError: if no device matches
           :raise FtdiMultipleDevicesError: if several devices match
        """
        return cls._open_filtered(
            lambda dev: dev.idVendor == vid and dev.idProduct == pid)

    @classmethod
    def open_by_addr(cls, bus: int, address: int) -> 'Ftdi':
        """Open a device from its location on the host USB buses.

           The location is unique for a host, but it is not bound to the
           device and may change whenever the device is plugged again.

           :param bus: USB bus number
           :param address: device address on the USB bus
           :return: the opened device
           :raise FtdiNoDeviceError: if no device lives at this location
        """
        return cls._open_filtered(
            lambda dev: dev.bus == bus and dev.address == address)

    @classmethod
    def open(cls, device: UsbDevice) -> 'Ftdi':
        """Validate a USB device against the supported FTDI models, then
           open it.

           :param device: the PyUSB device to open
           :return: the opened device
           :raise FtdiUnsupportedDeviceError: if the device topology or
                                              revision does not match a
                                              supported FTDI model
           :raise FtdiUsbError: if the device cannot be opened
        """
        cls.log.debug('open device %04x:%04x @ %s:%s', device.idVendor,
                      device.idProduct, device.bus, device.address)
        properties = cls._validate(device)
        channel = UsbChannel(device)
        try:
            # pylint: disable=protected-access
            # PyUSB opens devices lazily, force it to report access errors
            device._ctx.managed_open()
        except (NotImplementedError, USBError) as exc:
            msg = str(exc)
            if platform == 'win32':
                msg = f'{msg} ({cls.WINUSB_HINT})'
            raise FtdiUsbError(msg) from exc
        cls._select_configuration(device)
        return cls(channel, properties)

    # --- Identification ----------------------------------------------------

    @property
    def vid(self) -> int:
        """Return the USB vendor identifier."""
        return self._channel.device.idVendor

    @property
    def pid(self) -> int:
        """Return the USB product identifier."""
        return self._channel.device.idProduct

    @property
    def bus_number(self) -> int:
        """Return the USB bus the device is attached to.

           Alongside :py:attr:`device_address`, it identifies a device
           connected to the host.
        """
        return self._channel.device.bus

    @property
    def device_address(self) -> int:
        """Return the USB address of the device on its bus."""
        return self._channel.device.address

    @property
    def model(self) -> str:
        """Return the FTDI model name."""
        return self._properties.model

    @property
    def properties(self) -> DeviceProperties:
        """Return the capabilities of the device model."""
        return self._properties

    @property
    def num_ports(self) -> int:
        """Return the count of ports of the device."""
        return self._properties.port_count

    @property
    def is_connected(self) -> bool:
        """Tell whether the device has not been closed yet."""
        return self._finalizer.alive

    def serial(self) -> str:
        """Read the serial number string of the device.

           Most FTDI devices do not have a unique serial number, so it should
           not be used to identify a device.

           :raise FtdiUsbError: if the string cannot be retrieved
        """
        self._check_connected()
        device = self._channel.device
        return self._channel.get_string(device.iSerialNumber, 'serial number')

    def product(self) -> str:
        """Read the product description string of the device.

           :raise FtdiUsbError: if the string cannot be retrieved
        """
        self._check_connected()
        device = self._channel.device
        return self._channel.get_string(device.iProduct, 'product')

    # --- Configuration -----------------------------------------------------

    @property
    def timeout(self) -> int:
        """Return the USB control transfer timeout, in milliseconds."""
        return self._timeout

    @timeout.setter
    def timeout(self, timeout: int) -> None:
        self.set_timeout(timeout)

    def set_timeout(self, timeout: int) -> None:
        """Change the USB control transfer timeout.

           Ports opened afterwards inherit this timeout.

           :param timeout: the new timeout, in milliseconds
        """
        timeout = int(timeout)
        if timeout < 0:
            raise ValueError(f'Invalid timeout: {timeout}')
        self._timeout = timeout

    def reset_device(self) -> None:
        """Perform a USB port reset of the device.

           Ports opened from this device keep their interface claim.

           :raise FtdiUsbError: on transport failure
        """
        self._check_connected()
        self.log.info('reset device %s:%s', self.bus_number,
                      self.device_address)
        self._channel.reset()

    # --- EEPROM ------------------------------------------------------------

    def read_eeprom_word(self, addr: int) -> int:
        """Read a 16-bit word from the EEPROM.

           The caller should ensure the address is in bounds, otherwise the
           returned value is meaningless.

           :param addr: the word address
           :return: the word value
        """
        self._check_connected()
        data = self._channel.read(ControlRequest.READ_EEPROM, 0, addr, 2,
                                  self._timeout)
        return sunpack('<H', data)[0]

    def read_eeprom(self, addr: int = 0, count: int = 1) -> List[int]:
        """Read consecutive 16-bit words from the EEPROM.

           :param addr: the word address of the first word
           :param count: the count of words to read
           :return: the word values
        """
        return [self.read_eeprom_word(addr + pos) for pos in range(count)]

    def write_eeprom_word(self, addr: int, word: int) -> None:
        """Write a 16-bit word to the EEPROM.

           .. warning:: This may overwrite the device configuration and
              brick the device.

           The caller should ensure the address is in bounds, otherwise this
           operation may write to unintended EEPROM locations.

           :param addr: the word address
           :param word: the word value
        """
        self._check_connected()
        if not 0 <= word <= 0xffff:
            raise ValueError(f'Invalid EEPROM word: {word}')
        self.log.debug('write EEPROM [0x%04x]: 0x%04x', addr, word)
        self._channel.write(ControlRequest.WRITE_EEPROM, word, addr, b'',
                            self._timeout)

    def erase_eeprom(self, timeout: int) -> None:
        """Erase the EEPROM.

           .. warning:: This erases the device configuration and may brick
              the device.

           The device timeout is not used, as EEPROM erasure may take longer
           than other requests.

           :param timeout: the transfer timeout, in milliseconds
        """
        self._check_connected()
        self.log.info('erase EEPROM')
        self._channel.write(ControlRequest.ERASE_EEPROM, 0, 0, b'', timeout)

    # --- Ports -------------------------------------------------------------

    def open_port(self, index: int) -> SerialPort:
        """Open a port of the device.

           The matching USB interface is claimed for exclusive access, the
           port is switched to the serial mode and its buffers are purged.

           The port inherits the device timeout.

           :param index: the port index, starting from 0
           :return: the opened port, in serial mode
           :raise ValueError: if the index is out of range
           :raise FtdiUsbError: if the interface cannot be claimed
        """
        if not 0 <= index < self.num_ports:
            raise ValueError(f'Port {index} out of range (device only has '
                             f'{self.num_ports})')
        self._check_connected()
        return Port.create(self._channel, index, self._timeout,
                           self._properties)

    def close(self) -> None:
        """Close the device.

           Ports opened from this device remain usable until they are
           closed. Calling this method more than once has no effect.
        """
        self._finalizer()

    # --- Internals ---------------------------------------------------------

    def _check_connected(self) -> None:
        if not self._finalizer.alive:
            raise FtdiError('Not connected')

    @classmethod
    def _open_filtered(cls, predicate: Callable[[UsbDevice], bool]) \
            -> 'Ftdi':
        selected = None
        for device in _find_devices():
            if not predicate(device):
                continue
            if selected is not None:
                raise FtdiMultipleDevicesError()
            selected = device
        if selected is None:
            raise FtdiNoDeviceError()
        return cls.open(selected)

    @classmethod
    def _validate(cls, device: UsbDevice) -> DeviceProperties:
        """Check the device topology and revision against the supported
           models, returning the matching model properties."""
        if device.bNumConfigurations != 1:
            cls._reject(f'device has {device.bNumConfigurations} '
                        f'configurations, expected 1')
        try:
            config = device[0]
            altsettings = {}
            for iface in config:
                altsettings.setdefault(iface.bInterfaceNumber,
                                       []).append(iface)
        except (NotImplementedError, USBError) as exc:
            raise FtdiUsbError(f'Cannot read configuration: {exc}') from exc
        for ifnum in sorted(altsettings):
            alts = altsettings[ifnum]
            if len(alts) != 1:
                cls._reject(f'interface {ifnum} has {len(alts)} alternate '
                            f'settings, expected 1')
            if not cls._has_bulk_pair(alts[0]):
                cls._reject(f'interface {ifnum} does not have a pair of '
                            f'bulk endpoints')
        major, minor, subminor = decode_version(device.bcdDevice)
        if minor or subminor:
            cls._reject(f'unsupported revision {major}.{minor}.{subminor}')
        properties = lookup(major)
        if properties is None:
            cls._reject(f'unknown FTDI revision {major}.{minor}.{subminor}')
        if config.bNumInterfaces != properties.port_count:
            cls._reject(f'device reports {config.bNumInterfaces} '
                        f'interfaces, expected {properties.port_count}')
        return properties

    @classmethod
    def _has_bulk_pair(cls, iface) -> bool:
        endpoints = list(iface)
        if len(endpoints) != 2:
            return False
        directions = set()
        for endpoint in endpoints:
            if endpoint_type(endpoint.bmAttributes) != ENDPOINT_TYPE_BULK:
                return False
            directions.add(endpoint_direction(endpoint.bEndpointAddress))
        return directions == {ENDPOINT_IN, ENDPOINT_OUT}

    @classmethod
    def _reject(cls, reason: str) -> None:
        cls.log.error('%s', reason)
        raise FtdiUnsupportedDeviceError(reason)

    @classmethod
    def _select_configuration(cls, device: UsbDevice) -> None:
        # only change the active configuration if the active one is
        # not the first. This allows other libusb sessions running
        # with the same device to run seamlessly.
        try:
            config = device.get_active_configuration()
            setconf = config.bConfigurationValue != 1
        except USBError:
            setconf = True
        if setconf:
            try:
                device.set_configuration()
            except USBError:
                pass


def _is_ftdi(device: UsbDevice) -> bool:
    return (device.idVendor == Ftdi.VENDOR_ID and
            device.idProduct in Ftdi.PRODUCT_IDS)


def _find_devices() -> List[UsbDevice]:
    try:
        return UsbTools.find_all()
    except (NotImplementedError, USBError, UsbToolsError) as exc:
        raise FtdiUsbError(f'Cannot enumerate USB devices: {exc}') from exc


def _open_all(predicate: Callable[[UsbDevice], bool]) \
        -> Iterator[Union[Ftdi, FtdiError]]:
    results: List[Union[Ftdi, FtdiError]] = []
    for device in _find_devices():
        try:
            if not predicate(device):
                continue
            results.append(Ftdi.open(device))
        except FtdiError as exc:
            results.append(exc)
    return iter(results)


def devices() -> Iterator[Union[Ftdi, FtdiError]]:
    """Open all the official FTDI devices connected to the host.

       Every device is reported, either as an opened :py:class:`Ftdi`
       instance or as the error that prevented it from being opened, so that
       a faulty device does not hide the other ones.

       :return: an iterator on the per-device results
       :raise FtdiUsbError: if the USB devices cannot be enumerated
    """
    return _open_all(_is_ftdi)


def devices_by_id(vid: int, pid: int) \
        -> Iterator[Union[Ftdi, FtdiError]]:
    """Open all the devices with the specified USB identifiers.

       :param vid: USB vendor identifier
       :param pid: USB product identifier
       :return: an iterator on the per-device results
       :raise FtdiUsbError: if the USB devices cannot be enumerated
    """
    return _open_all(
        lambda dev: dev.idVendor == vid and dev.idProduct == pid)

