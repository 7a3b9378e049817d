# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""FTDI device property database.

   Devices are identified by the major field of their ``bcdDevice`` hardware
   revision, which uniquely identifies each generation of FTDI products.
"""

from enum import IntEnum, unique
from typing import NamedTuple, Optional, Tuple


@unique
class MpsseSupport(IntEnum):
    """MPSSE engine capability of a port."""

    NO = 0      # fixed converter, no MPSSE
    BASIC = 1   # FT2232C/D: 12 MHz base clock (6 MHz effective max.)
    H = 2       # -H series: higher clock rates and I2C commands
    FT232H = 3  # FT232H: -H features plus open-collector (drive-zero) mode


class PortProperties(NamedTuple):
    """Capabilities of a single port (USB interface)."""

    mpsse: MpsseSupport


class DeviceProperties(NamedTuple):
    """Capabilities of a device model.

       * model: device model name
       * tx_buf: TX buffer size, in bytes
       * rx_buf: RX buffer size, in bytes
       * port_width: data pins per port
       * ports: port properties, one per USB interface
    """

    model: str
    tx_buf: int
    rx_buf: int
    port_width: int
    ports: Tuple[PortProperties, ...]

    @property
    def port_count(self) -> int:
        """Return the count of ports (USB interfaces) of the device."""
        return len(self.ports)


_DUMB_PORT = (PortProperties(MpsseSupport.NO),)

DEVICES: Tuple[Optional[DeviceProperties], ...] = (
    None,  # 0.00
    None,  # 1.00
    # 2.00
    DeviceProperties('FT232AM', 128, 128, 0, _DUMB_PORT),  # UART only
    None,  # 3.00
    # 4.00
    DeviceProperties('FT232BM', 128, 384, 0, _DUMB_PORT),  # UART only
    # 5.00: xDBUS0-7, xCBUS0-3
    DeviceProperties('FT2232C/D', 128, 384, 12,
                     (PortProperties(MpsseSupport.BASIC),)),
    # 6.00
    DeviceProperties('FT232R', 256, 128, 8, _DUMB_PORT),
    # 7.00: two 16-bit ports
    DeviceProperties('FT2232H', 4096, 4096, 16,
                     (PortProperties(MpsseSupport.H),
                      PortProperties(MpsseSupport.H))),
    # 8.00: four 8-bit ports, only the first two have an MPSSE
    DeviceProperties('FT4232H', 2048, 2048, 8,
                     (PortProperties(MpsseSupport.H),
                      PortProperties(MpsseSupport.H),
                      PortProperties(MpsseSupport.NO),
                      PortProperties(MpsseSupport.NO))),
    # 9.00: one 16-bit port
    DeviceProperties('FT232H', 1024, 1024, 16,
                     (PortProperties(MpsseSupport.FT232H),)),
    # 10.00
    DeviceProperties('FT-X', 512, 512, 8, _DUMB_PORT),
)
"""Map from ``bcdDevice`` major version to the device properties, or None
   if that version does not correspond to a known device.
"""


def lookup(major: int) -> Optional[DeviceProperties]:
    """Find the properties of a device model.

       :param major: major field of the device hardware revision
       :return: the shared device properties, or None for unknown models
    """
    if not 0 <= major < len(DEVICES):
        return None
    return DEVICES[major]
