"""PyUSB virtual FTDI device."""

# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

#pylint: disable-msg=missing-docstring
#pylint: disable-msg=unused-argument
#pylint: disable-msg=invalid-name
#pylint: disable-msg=too-many-arguments
#pylint: disable-msg=too-many-instance-attributes

from array import array
from binascii import hexlify
from errno import EPIPE
from logging import getLogger
from struct import pack as spack
from typing import Dict, List, NamedTuple, Optional, Set
from usb.core import USBError
from ftdiport.control import ControlRequest
from .consts import FTDICONST, USBCONST


class VirtRequest(NamedTuple):
    """Record of a vendor control request received by a virtual FTDI."""

    request: ControlRequest
    value: int
    index: int
    payload: bytes
    length: int
    timeout: int


class VirtFtdiPort:
    """Virtual FTDI port/interface

       :param iface: the interface number (start from 0)
    """

    def __init__(self, iface: int):
        self.log = getLogger(f'ftdiport.vftdi[{iface}]')
        self._iface = iface
        self.bitmode: int = 0
        self.latency: int = 16
        self.dtr: bool = False
        self.rts: bool = False
        self.flow_control: int = 0
        self.line_property: int = 0
        self.event_char: int = 0
        self.error_char: int = 0
        self.pins: int = 0
        # low byte: modem status register, high byte: line status register
        # bits 0..3 are not defined, but are not always zero
        self.modem_status: int = 0x6001
        self.purges: Dict[str, int] = {'rx': 0, 'tx': 0}

    @property
    def iface(self) -> int:
        return self._iface

    def control_reset(self, wValue: int, data: array) -> None:
        if wValue == 1:
            self.purges['rx'] += 1
        elif wValue == 2:
            self.purges['tx'] += 1
        elif wValue == 0:
            self.log.info('> ftdi reset')
            self.bitmode = 0
        else:
            self.log.error('Unknown reset kind: %d', wValue)

    def control_set_modem_ctrl(self, wValue: int, data: array) -> None:
        mask = wValue >> 8
        if mask & 0x1:
            self.dtr = bool(wValue & 0x1)
        if mask & 0x2:
            self.rts = bool(wValue & 0x2)
        self.log.info('> ftdi modem ctrl: dtr %s rts %s', self.dtr, self.rts)

    def control_set_flow_ctrl(self, wValue: int, data: array) -> None:
        self.flow_control = wValue

    def control_set_data(self, wValue: int, data: array) -> None:
        self.line_property = wValue

    def control_poll_modem_status(self, wValue: int, data: array) -> bytes:
        return spack('<H', self.modem_status)

    def control_set_event_char(self, wValue: int, data: array) -> None:
        self.event_char = wValue

    def control_set_error_char(self, wValue: int, data: array) -> None:
        self.error_char = wValue

    def control_set_latency_timer(self, wValue: int, data: array) -> None:
        self.latency = wValue & 0xFF

    def control_get_latency_timer(self, wValue: int, data: array) -> bytes:
        return bytes([self.latency])

    def control_set_bitmode(self, wValue: int, data: array) -> None:
        self.bitmode = (wValue >> 8) & 0x7F
        self.log.info('> ftdi bitmode 0x%02x', self.bitmode)

    def control_read_pins(self, wValue: int, data: array) -> bytes:
        return bytes([self.pins & 0xFF])


class VirtFtdi:
    """Virtual FTDI device.

       EEPROM options:

       * ``size``: EEPROM size, in 16-bit words, default to 128
       * ``data``: initial content, as a list of words

       Faults can be injected to exercise the error paths of the driver:

       * :py:attr:`short_reads`: IN requests return one byte less than
         requested
       * :py:attr:`extra_writes`: OUT requests report one more byte than
         sent
       * :py:attr:`stalled`: names of the requests that fail with a USB
         error
    """

    def __init__(self, eeprom: Optional[dict] = None):
        self.log = getLogger('ftdiport.vftdi')
        eeprom = eeprom or {}
        size = eeprom.get('size', 128)
        words = list(eeprom.get('data', []))
        if len(words) > size:
            raise ValueError('Data cannot fit into EEPROM')
        self.eeprom: List[int] = words + [0xFFFF] * (size - len(words))
        self.ports: List[VirtFtdiPort] = []
        self.requests: List[VirtRequest] = []
        self.short_reads = False
        self.extra_writes = False
        self.stalled: Set[str] = set()

    def create_ports(self, count: int) -> None:
        self.ports = [VirtFtdiPort(iface) for iface in range(count)]

    def get_port(self, iface: int) -> VirtFtdiPort:
        # iface: 0..n-1
        return self.ports[iface]

    def control(self, dev_handle: 'VirtDeviceHandle', bmRequestType: int,
                bRequest: int, wValue: int, wIndex: int, data: array,
                timeout: int) -> int:
        req_name = FTDICONST.dec_req_name(bRequest)
        out = USBCONST.is_req_out(bmRequestType)
        dstr = hexlify(data).decode() if out else f'({len(data)})'
        self.log.debug('> control ftdi hdl %d, %s, '
                       'val 0x%04x, idx 0x%04x, data %s, to %d',
                       dev_handle.handle, req_name, wValue, wIndex, dstr,
                       timeout)
        try:
            request = ControlRequest(bRequest)
        except ValueError:
            raise USBError('Pipe error', errno=EPIPE) from None
        self.requests.append(VirtRequest(request, wValue, wIndex,
                                         bytes(data) if out else b'',
                                         0 if out else len(data), timeout))
        if req_name in self.stalled:
            raise USBError('Pipe error', errno=EPIPE)
        if req_name.endswith('_eeprom'):
            obj = self
            handler = getattr(self, f'_control_{req_name}')
        else:
            if not 0 < wIndex <= len(self.ports):
                # a real device stalls on invalid interfaces
                raise USBError('Pipe error', errno=EPIPE)
            obj = self.ports[wIndex-1]
            try:
                handler = getattr(obj, f'control_{req_name}')
            except AttributeError:
                self.log.warning('Unsupported request %s', req_name)
                return 0
        buf = handler(wValue, wIndex, data) if obj is self else \
            handler(wValue, data)
        if out:
            return len(data) + 1 if self.extra_writes else len(data)
        buf = bytes(buf or b'')[:len(data)]
        if self.short_reads and buf:
            buf = buf[:-1]
        size = len(buf)
        data[:size] = array('B', buf)
        self.log.debug('< (%d) %s', size, hexlify(data[:size]).decode())
        return size

    def requests_of(self, request: ControlRequest) -> List[VirtRequest]:
        return [req for req in self.requests if req.request == request]

    def _control_read_eeprom(self, wValue: int, wIndex: int,
                             data: array) -> bytes:
        if wIndex >= len(self.eeprom):
            # out of bound, a real device returns random data
            return b'\xff\xff'
        return spack('<H', self.eeprom[wIndex])

    def _control_write_eeprom(self, wValue: int, wIndex: int,
                              data: array) -> None:
        if wIndex >= len(self.eeprom):
            self.log.warning('Invalid EEPROM address: 0x%04x', wIndex)
            return
        self.eeprom[wIndex] = wValue

    def _control_erase_eeprom(self, wValue: int, wIndex: int,
                              data: array) -> None:
        self.eeprom = [0xFFFF] * len(self.eeprom)
