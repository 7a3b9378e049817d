# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""FTDI ports, i.e. claimed USB interfaces of an FTDI device.

   A port is always in one operating mode (see :py:class:`BitMode`). The
   mode is changed with :py:meth:`Port.into_mode`, which consumes the port
   and returns a new one: the consumed port cannot be used anymore, and the
   operations of the new port are the ones available in the new mode.
"""

from enum import IntEnum, IntFlag, unique
from logging import getLogger
from typing import Optional
from weakref import finalize
from .control import (ControlRequest, FtdiError, FtdiModeError, UsbChannel)
from .props import DeviceProperties, MpsseSupport


@unique
class BitMode(IntEnum):
    """Function selection."""

    SERIAL = 0x00   # RS-232 to USB converter mode, default after reset
    BITBANG = 0x01  # classical asynchronous bitbang mode
    MPSSE = 0x02    # MPSSE mode, available on 2232x chips
    SYNCBB = 0x04   # synchronous bitbang mode
    MCU = 0x08      # MCU Host Bus Emulation mode
    OPTO = 0x10     # Fast Opto-Isolated Serial Interface Mode
    CBUS = 0x20     # Bitbang on CBUS pins of R-type chips
    SYNCFF = 0x40   # Single Channel Synchronous FIFO mode


class Purge(IntFlag):
    """Port buffers to drain."""

    RX = 1  # Drain USB RX buffer (host-to-ftdi)
    TX = 2  # Drain USB TX buffer (ftdi-to-host)


class _InterfaceClaim:
    """Exclusive access to a USB interface, shared by the successive
       ports of a mode sequence.

       The claim also holds a reference to the shared USB channel, so that
       the device remains open while the interface is claimed.
    """

    log = getLogger('ftdiport.port')

    def __init__(self, channel: UsbChannel, interface: int):
        channel.acquire()
        try:
            channel.claim_interface(interface)
        except FtdiError:
            channel.release()
            raise
        self._channel: Optional[UsbChannel] = channel
        self.interface = interface

    @property
    def channel(self) -> Optional[UsbChannel]:
        return self._channel

    def release(self) -> None:
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            channel.release_interface(self.interface)
        except FtdiError as exc:
            self.log.warning('Cannot release port %d: %s',
                             self.interface, exc)
        finally:
            channel.release()


class Port:
    """A claimed port of an FTDI device.

       Ports are not created directly, see :py:meth:`Ftdi.open_port`.

       Each port owns its own timeout, initialized from the device timeout
       when the port is opened.

       :param claim: the claim of the port interface
       :param mode: the current port mode
       :param timeout: the USB control transfer timeout, in milliseconds
       :param properties: the capabilities of the device model
    """

    log = getLogger('ftdiport.port')

    def __init__(self, claim: _InterfaceClaim, mode: BitMode, timeout: int,
                 properties: DeviceProperties):
        self._claim: Optional[_InterfaceClaim] = claim
        self._mode = mode
        self._timeout = timeout
        self._properties = properties
        self._index = claim.interface
        self._finalizer = finalize(self, claim.release)

    def __enter__(self) -> 'Port':
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __repr__(self) -> str:
        state = '' if self.is_alive else ' (closed)'
        return (f'<{self.__class__.__name__} {self._index} '
                f'{self._mode.name}{state}>')

    @classmethod
    def create(cls, channel: UsbChannel, index: int, timeout: int,
               properties: DeviceProperties) -> 'Port':
        """Claim a device interface and open it as a port in serial mode.

           The serial mode is forced and the port buffers are drained. The
           interface is released if any of these requests fails.

           :param channel: the shared USB channel to the device
           :param index: the port (interface) index, starting from 0
           :param timeout: the USB control transfer timeout, in milliseconds
           :param properties: the capabilities of the device model
           :return: the new port, in serial mode
        """
        claim = _InterfaceClaim(channel, index)
        port = cls._port_class(BitMode.SERIAL)(claim, BitMode.SERIAL,
                                               timeout, properties)
        try:
            port._set_bitmode(BitMode.SERIAL)
            port.reset(Purge.RX | Purge.TX)
        except FtdiError:
            port.close()
            raise
        cls.log.debug('port %d opened', index)
        return port

    @property
    def index(self) -> int:
        """Return the port index, starting from 0."""
        return self._index

    @property
    def mode(self) -> BitMode:
        """Return the current port mode."""
        return self._mode

    @property
    def is_alive(self) -> bool:
        """Tell whether the port can still be used, i.e. it has neither
           been closed nor been consumed by a mode change."""
        return self._claim is not None and self._finalizer.alive

    @property
    def timeout(self) -> int:
        """Return the USB control transfer timeout, in milliseconds."""
        return self._timeout

    @timeout.setter
    def timeout(self, timeout: int) -> None:
        self.set_timeout(timeout)

    def set_timeout(self, timeout: int) -> None:
        """Change the USB control transfer timeout of this port.

           :param timeout: the new timeout, in milliseconds
        """
        timeout = int(timeout)
        if timeout < 0:
            raise ValueError(f'Invalid timeout: {timeout}')
        self._timeout = timeout

    @property
    def properties(self) -> DeviceProperties:
        """Return the capabilities of the device model."""
        return self._properties

    @property
    def pin_count(self) -> int:
        """Return the count of data pins.

           This is the device pin width, some ports of a device may expose
           fewer pins.
        """
        return self._properties.port_width

    @property
    def mpsse(self) -> MpsseSupport:
        """Return the MPSSE support level of this port."""
        return self._properties.ports[self._index].mpsse

    def reset(self, flags: Purge = Purge.RX | Purge.TX) -> None:
        """Drain the selected port buffers.

           :param flags: the buffers to drain, RX is drained first
        """
        for purge in (Purge.RX, Purge.TX):
            if purge & flags:
                self._write(ControlRequest.RESET, int(purge))

    def read_pins(self) -> int:
        """Read the current level of the data pins.

           Only the 8 lower pins are reported.

           :return: the pin levels, as a bitfield
        """
        return self._read(ControlRequest.READ_PINS, 0, 1)[0]

    def into_mode(self, mode: BitMode) -> 'Port':
        """Switch the port to another mode.

           This port is consumed and cannot be used anymore, even if the
           mode change fails. On failure, the port interface is released.

           :param mode: the new mode
           :return: a new port in the requested mode, which keeps the port
                    interface claim, timeout and properties
           :raise FtdiModeError: if the port has already been consumed or
                                 closed
        """
        mode = BitMode(mode)
        claim = self._consume()
        port = self._port_class(mode)(claim, mode, self._timeout,
                                      self._properties)
        try:
            port._set_bitmode(mode)
        except FtdiError:
            port.close()
            raise
        self.log.debug('port %d: %s -> %s', self._index, self._mode.name,
                       mode.name)
        return port

    def close(self) -> None:
        """Close the port and release its interface.

           Release failures are logged but not reported. Calling this method
           more than once has no effect.
        """
        self._finalizer()
        self._claim = None

    @classmethod
    def _port_class(cls, mode: BitMode) -> type:
        if mode == BitMode.SERIAL:
            #pylint: disable-msg=import-outside-toplevel
            from .serial import SerialPort
            return SerialPort
        return Port

    def _consume(self) -> _InterfaceClaim:
        self._check_alive()
        claim, self._claim = self._claim, None
        self._finalizer.detach()
        return claim

    def _check_alive(self) -> UsbChannel:
        if self._claim is None or self._claim.channel is None or \
                not self._finalizer.alive:
            raise FtdiModeError(f'Port {self._index} is not usable anymore')
        return self._claim.channel

    def _check_mode(self, mode: BitMode) -> UsbChannel:
        channel = self._check_alive()
        if self._mode != mode:
            raise FtdiModeError(f'Port {self._index} is in {self._mode.name} '
                                f'mode, {mode.name} mode required')
        return channel

    def _set_bitmode(self, mode: BitMode) -> None:
        self._write(ControlRequest.SET_BITMODE, mode << 8)

    def _write(self, request: ControlRequest, value: int,
               channel: Optional[UsbChannel] = None) -> None:
        channel = channel or self._check_alive()
        channel.write(request, value, self._index + 1, b'', self._timeout)

    def _read(self, request: ControlRequest, value: int, length: int,
              channel: Optional[UsbChannel] = None) -> bytes:
        channel = channel or self._check_alive()
        return channel.read(request, value, self._index + 1, length,
                            self._timeout)
