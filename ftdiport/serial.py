# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Serial (UART) line control of FTDI ports."""

from enum import IntEnum, IntFlag, unique
from typing import Optional, Union
from serial import (PARITY_EVEN, PARITY_MARK, PARITY_NONE, PARITY_ODD,
                    PARITY_SPACE, STOPBITS_ONE, STOPBITS_ONE_POINT_FIVE,
                    STOPBITS_TWO)
from .control import ControlRequest
from .port import BitMode, Port


class ModemStatus(IntFlag):
    """Modem and line status, as reported by the FTDI device.

       The low byte matches the modem status register of a 16550-like UART,
       the high byte its line status register.
    """

    CTS = 1 << 4      # Clear to send
    DSR = 1 << 5      # Data set ready
    RI = 1 << 6       # Ring indicator
    DCD = 1 << 7      # Data carrier detect
    DR = 1 << 8       # Data ready
    OE = 1 << 9       # Overrun error
    PE = 1 << 10      # Parity error
    FE = 1 << 11      # Framing error
    BI = 1 << 12      # Break interrupt
    THRE = 1 << 13    # Transmitter holding register empty
    TEMT = 1 << 14    # Transmitter empty
    ERR = 1 << 15     # Error in RCVR FIFO

    @classmethod
    def from_word(cls, word: int) -> 'ModemStatus':
        """Decode a raw status word, discarding the undefined bits."""
        mask = 0
        for flag in cls:
            mask |= flag
        return cls(word & mask)


@unique
class FlowControl(IntEnum):
    """Flow control (handshake) selection."""

    DISABLED = 0x0000
    RTS_CTS = 0x0100
    DTR_DSR = 0x0200
    XON_XOFF = 0x0400


@unique
class Parity(IntEnum):
    """Parity bit selection."""

    NONE = 0
    ODD = 1
    EVEN = 2
    MARK = 3
    SPACE = 4

    @classmethod
    def from_pyserial(cls, parity: str) -> 'Parity':
        """Convert a pyserial parity constant, e.g. ``serial.PARITY_EVEN``.

           :raise ValueError: if the parity is not supported
        """
        try:
            return _PYSERIAL_PARITIES[parity]
        except KeyError as exc:
            raise ValueError(f'Unsupported parity: {parity}') from exc


@unique
class StopBits(IntEnum):
    """Stop bit count selection."""

    ONE = 0
    ONE_POINT_FIVE = 1
    TWO = 2

    @classmethod
    def from_pyserial(cls, stopbits: Union[int, float]) -> 'StopBits':
        """Convert a pyserial stop bit constant, e.g. ``serial.STOPBITS_TWO``.

           :raise ValueError: if the stop bit count is not supported
        """
        try:
            return _PYSERIAL_STOPBITS[stopbits]
        except KeyError as exc:
            raise ValueError(f'Unsupported stop bits: {stopbits}') from exc


_PYSERIAL_PARITIES = {
    PARITY_NONE: Parity.NONE,
    PARITY_ODD: Parity.ODD,
    PARITY_EVEN: Parity.EVEN,
    PARITY_MARK: Parity.MARK,
    PARITY_SPACE: Parity.SPACE,
}

_PYSERIAL_STOPBITS = {
    STOPBITS_ONE: StopBits.ONE,
    STOPBITS_ONE_POINT_FIVE: StopBits.ONE_POINT_FIVE,
    STOPBITS_TWO: StopBits.TWO,
}


class SerialPort(Port):
    """A port in serial mode.

       Line control requests are only available while the port stays in
       serial mode, i.e. until it is consumed with :py:meth:`into_mode`.

       .. note:: the DTR and RTS output pins are active low: the pin level
          is the opposite of the requested state.
    """

    # Modem control register values
    DTR_HIGH = 0x0101
    DTR_LOW = 0x0100
    RTS_HIGH = 0x0202
    RTS_LOW = 0x0200

    # Latency timer range, in milliseconds
    LATENCY_MIN = 12
    LATENCY_MAX = 255

    def poll_modem_status(self) -> ModemStatus:
        """Read the modem and line status.

           :return: the status flags
        """
        data = self._read(ControlRequest.POLL_MODEM_STATUS, 0, 2,
                          self._check_mode(BitMode.SERIAL))
        return ModemStatus.from_word(data[0] | (data[1] << 8))

    def set_dtr(self, state: bool) -> None:
        """Set or clear the Data Terminal Ready (DTR) line."""
        self._write(ControlRequest.SET_MODEM_CTRL,
                    self.DTR_HIGH if state else self.DTR_LOW,
                    self._check_mode(BitMode.SERIAL))

    def set_rts(self, state: bool) -> None:
        """Set or clear the Request To Send (RTS) line."""
        self._write(ControlRequest.SET_MODEM_CTRL,
                    self.RTS_HIGH if state else self.RTS_LOW,
                    self._check_mode(BitMode.SERIAL))

    def set_flow_control(self, flow: FlowControl) -> None:
        """Select the flow control.

           :param flow: the flow control mode
        """
        flow = FlowControl(flow)
        self._write(ControlRequest.SET_FLOW_CTRL, int(flow),
                    self._check_mode(BitMode.SERIAL))

    def set_serial_config(self, parity: Parity = Parity.NONE,
                          stop_bits: StopBits = StopBits.ONE,
                          break_condition: bool = False) -> None:
        """Configure the line characteristics.

           :param parity: the parity bit
           :param stop_bits: the count of stop bits
           :param break_condition: whether to emit a break condition
        """
        value = (Parity(parity) << 8 | StopBits(stop_bits) << 11 |
                 int(bool(break_condition)) << 14)
        self._write(ControlRequest.SET_DATA, value,
                    self._check_mode(BitMode.SERIAL))

    def set_event_char(self, char: Optional[int]) -> None:
        """Set the special event character, or disable it with None."""
        self._write(ControlRequest.SET_EVENT_CHAR, self._char_value(char),
                    self._check_mode(BitMode.SERIAL))

    def set_error_char(self, char: Optional[int]) -> None:
        """Set the error replacement character, or disable it with None."""
        self._write(ControlRequest.SET_ERROR_CHAR, self._char_value(char),
                    self._check_mode(BitMode.SERIAL))

    def read_latency_timer(self) -> int:
        """Read the latency timer.

           :return: the latency, in milliseconds
        """
        return self._read(ControlRequest.GET_LATENCY_TIMER, 0, 1,
                          self._check_mode(BitMode.SERIAL))[0]

    def set_latency_timer(self, latency: int) -> None:
        """Set the latency timer.

           The shorter the delay, the higher the host CPU load. FTDI devices
           lose data with latencies below 12 ms.

           :param latency: the latency, in milliseconds
           :raise ValueError: if the latency is out of range
        """
        if not self.LATENCY_MIN <= latency <= self.LATENCY_MAX:
            raise ValueError(f'Invalid latency: {latency} ms')
        self._write(ControlRequest.SET_LATENCY_TIMER, latency,
                    self._check_mode(BitMode.SERIAL))

    @staticmethod
    def _char_value(char: Optional[int]) -> int:
        if char is None:
            return 0
        if isinstance(char, (bytes, bytearray)):
            if len(char) != 1:
                raise ValueError(f'Invalid character: {char!r}')
            char = char[0]
        if not 0 <= char <= 0xff:
            raise ValueError(f'Invalid character: {char}')
        return 0x100 | char
