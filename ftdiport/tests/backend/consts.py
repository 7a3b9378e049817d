"""Constant importer from existing modules."""

# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

#pylint: disable-msg=missing-docstring

from typing import Dict
import usb.util
from ftdiport.control import ControlRequest
from ftdiport.misc import EasyDict


def _usb_constants(prefix: str) -> Dict[str, int]:
    """Collect the PyUSB constants sharing a prefix, e.g. ``CTRL_TYPE``,
       as a name: value map with lower case names stripped from the prefix.
    """
    prefix = f'{prefix}_'
    names = {name[len(prefix):].lower(): getattr(usb.util, name)
             for name in dir(usb.util) if name.startswith(prefix) and
             '_' not in name[len(prefix):]}
    if not names:
        raise ValueError(f'No USB constant found for {prefix[:-1]}')
    return names


class _Field:
    """A bit field of a request or descriptor type, decoded to a name."""

    def __init__(self, prefix: str):
        self.names = {val: name
                      for name, val in _usb_constants(prefix).items()}
        self.mask = 0
        for val in self.names:
            self.mask |= val

    def decode(self, value: int, default: str = '?') -> str:
        return self.names.get(value & self.mask, default)


class UsbConstants:
    """Expose the PyUSB constants the virtual backend needs, and decode
       request and descriptor types back to names.
    """

    DEVICE_REQUESTS = {
        (True, 0x0): 'get_status',
        (False, 0x1): 'clear_feature',
        (False, 0x3): 'set_feature',
        (False, 0x5): 'set_address',
        (True, 0x6): 'get_descriptor',
        (False, 0x7): 'set_descriptor',
        (True, 0x8): 'get_configuration',
        (False, 0x9): 'set_configuration',
    }

    def __init__(self):
        self._desc_type = _Field('DESC_TYPE')
        self._ctrl_dir = _Field('CTRL')
        self._ctrl_type = _Field('CTRL_TYPE')
        self._ctrl_rcpt = _Field('CTRL_RECIPIENT')
        self.descriptors = EasyDict({name.upper(): val for name, val in
                                     _usb_constants('DESC_TYPE').items()})
        self.endpoints = _usb_constants('ENDPOINT')
        self.endpoint_types = _usb_constants('ENDPOINT_TYPE')
        self.speeds = _usb_constants('SPEED')

    def is_req_out(self, reqtype: int) -> bool:
        return not reqtype & self._ctrl_dir.mask

    def dec_req_ctrl(self, reqtype: int) -> str:
        return self._ctrl_dir.decode(reqtype)

    def dec_req_type(self, reqtype: int) -> str:
        return self._ctrl_type.decode(reqtype)

    def dec_req_rcpt(self, reqtype: int) -> str:
        return self._ctrl_rcpt.decode(reqtype)

    def dec_req_name(self, reqtype: int, request: int) -> str:
        return self.DEVICE_REQUESTS.get(
            (not self.is_req_out(reqtype), request), f'req x{request:02x}')

    def dec_desc_type(self, desctype: int) -> str:
        return self._desc_type.decode(desctype, f'desc x{desctype:02x}')


class FtdiConstants:
    """Retrieve FTDI vendor request names from their integral values."""

    @staticmethod
    def dec_req_name(request: int) -> str:
        try:
            return ControlRequest(request).name.lower()
        except ValueError:
            return f'req x{request:02x}'


USBCONST = UsbConstants()
"""Unique instance of USB constant container."""

FTDICONST = FtdiConstants()
"""Unique instance of FTDI constant container."""
