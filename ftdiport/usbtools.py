# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""USB Helpers"""

import sys
from importlib import import_module
from logging import getLogger
from threading import RLock
from typing import Dict, List, Optional, Sequence, Tuple
from usb.backend import IBackend
from usb.core import Device as UsbDevice
from usb.util import dispose_resources, get_string as usb_get_string


class UsbToolsError(Exception):
    """UsbTools error."""


class UsbTools:
    """Helpers to enumerate and release USB devices."""

    # Supported back ends, in preference order
    BACKENDS = ('usb.backend.libusb1', 'usb.backend.libusb0')

    Lock = RLock()

    log = getLogger('ftdiport.usb')

    @classmethod
    def find_all(cls, vps: Optional[Sequence[Tuple[int, int]]] = None) \
            -> List[UsbDevice]:
        """Enumerate the USB devices connected to the host.

           Devices are always re-enumerated, as a device may appear on a
           different USB location each time it is plugged in.

           :param vps: optional sequence of 2-tuple (vid, pid) pairs used to
                       filter the devices. All devices are reported if None
           :return: the matching USB devices, in enumeration order
           :raise UsbToolsError: if no backend is available
        """
        with cls.Lock:
            backend = cls._load_backend()
            devs = []
            for dev in backend.enumerate_devices():
                device = UsbDevice(dev, backend)
                if vps is not None and \
                        (device.idVendor, device.idProduct) not in vps:
                    continue
                devs.append(device)
            if sys.platform == 'win32':
                devs = cls._filter_win32_devices(devs)
            cls.log.debug('found %d USB device(s)', len(devs))
            return devs

    @classmethod
    def release_device(cls, usb_dev: UsbDevice) -> None:
        """Release all the resources of a previously open device.

           :param usb_dev: a previously instanciated USB device instance
        """
        with cls.Lock:
            dispose_resources(usb_dev)

    @classmethod
    def get_string(cls, device: UsbDevice, stridx: int) -> str:
        """Retrieve a string from the USB device.

           :param device: USB device instance
           :param stridx: the string identifier
           :return: the string read from the USB device
        """
        try:
            return usb_get_string(device, stridx) or ''
        except UnicodeDecodeError:
            # do not abort if EEPROM data is somewhat incoherent
            return ''

    @classmethod
    def find_backend(cls) -> IBackend:
        """Try to find and load an PyUSB backend.

           ..note:: There is no need to call this method for regular usage.

           :return: PyUSB backend
        """
        with cls.Lock:
            return cls._load_backend()

    @classmethod
    def _filter_win32_devices(cls, devs: List[UsbDevice]) -> List[UsbDevice]:
        # ugly kludge for a boring OS:
        # on Windows, the USB stack may enumerate the very same
        # devices several times: a real device with N interface
        # appears also as N device with as single interface.
        # We only keep the "device" that declares the most
        # interface count and discard the "virtual" ones.
        filtered_devs: Dict[Tuple[int, int, int, int], UsbDevice] = {}
        for dev in devs:
            ifc = max([cfg.bNumInterfaces for cfg in dev])
            k = (dev.idVendor, dev.idProduct, dev.bus, dev.address)
            if k not in filtered_devs:
                filtered_devs[k] = dev
            else:
                fdev = filtered_devs[k]
                fifc = max([cfg.bNumInterfaces for cfg in fdev])
                if fifc < ifc:
                    filtered_devs[k] = dev
        return list(filtered_devs.values())

    @classmethod
    def _load_backend(cls) -> IBackend:
        backend = None  # Optional[IBackend]
        for candidate in cls.BACKENDS:
            mod = import_module(candidate)
            backend = mod.get_backend()
            if backend is not None:
                return backend
        raise UsbToolsError('No backend available')
