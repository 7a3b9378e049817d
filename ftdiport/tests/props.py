#!/usr/bin/env python3

# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

#pylint: disable-msg=missing-docstring

from doctest import testmod
from unittest import TestCase, TestSuite, defaultTestLoader, main as ut_main
from ftdiport import ftdi as ftdi_mod
from ftdiport.control import (ErrorKind, FtdiError, FtdiModeError,
                              FtdiMultipleDevicesError, FtdiNoDeviceError,
                              FtdiProtocolError, FtdiUnsupportedDeviceError,
                              FtdiUsbError)
from ftdiport.ftdi import decode_version
from ftdiport.props import DEVICES, MpsseSupport, lookup


class PropertyDatabaseTestCase(TestCase):
    """Device model capabilities."""

    def test_known_models(self):
        reference = {
            2: ('FT232AM', 128, 128, 0, [MpsseSupport.NO]),
            4: ('FT232BM', 128, 384, 0, [MpsseSupport.NO]),
            5: ('FT2232C/D', 128, 384, 12, [MpsseSupport.BASIC]),
            6: ('FT232R', 256, 128, 8, [MpsseSupport.NO]),
            7: ('FT2232H', 4096, 4096, 16, [MpsseSupport.H] * 2),
            8: ('FT4232H', 2048, 2048, 8,
                [MpsseSupport.H, MpsseSupport.H,
                 MpsseSupport.NO, MpsseSupport.NO]),
            9: ('FT232H', 1024, 1024, 16, [MpsseSupport.FT232H]),
            10: ('FT-X', 512, 512, 8, [MpsseSupport.NO]),
        }
        for major, (model, tx_buf, rx_buf, width, mpsse) in \
                reference.items():
            props = lookup(major)
            self.assertIsNotNone(props, f'No entry for {major}')
            self.assertEqual(props.model, model)
            self.assertEqual(props.tx_buf, tx_buf)
            self.assertEqual(props.rx_buf, rx_buf)
            self.assertEqual(props.port_width, width)
            self.assertEqual([port.mpsse for port in props.ports], mpsse)
            self.assertEqual(props.port_count, len(mpsse))

    def test_unknown_models(self):
        for major in (-1, 0, 1, 3, 11, 99, 0x100):
            self.assertIsNone(lookup(major), f'Unexpected entry {major}')

    def test_shared_entries(self):
        # entries are never copied
        self.assertIs(lookup(7), lookup(7))
        self.assertIs(lookup(8), DEVICES[8])
        with self.assertRaises(AttributeError):
            lookup(6).model = 'FT232RL'


class VersionTestCase(TestCase):
    """Hardware revision decoding."""

    def test_decode(self):
        self.assertEqual(decode_version(0x0200), (2, 0, 0))
        self.assertEqual(decode_version(0x0600), (6, 0, 0))
        self.assertEqual(decode_version(0x0900), (9, 0, 0))
        self.assertEqual(decode_version(0x1000), (10, 0, 0))
        self.assertEqual(decode_version(0x0612), (6, 1, 2))
        self.assertEqual(decode_version(0x2345), (23, 4, 5))

    def test_doctest(self):
        failures, _ = testmod(ftdi_mod)
        self.assertEqual(failures, 0)


class ErrorTestCase(TestCase):
    """Error taxonomy."""

    def test_kinds(self):
        reference = {
            FtdiUsbError: ErrorKind.USB,
            FtdiMultipleDevicesError: ErrorKind.MULTIPLE_DEVICES_FOUND,
            FtdiNoDeviceError: ErrorKind.NO_DEVICE_FOUND,
            FtdiUnsupportedDeviceError: ErrorKind.UNSUPPORTED_DEVICE,
            FtdiProtocolError: ErrorKind.OTHER,
            FtdiModeError: ErrorKind.OTHER,
            FtdiError: ErrorKind.OTHER,
        }
        for exc_class, kind in reference.items():
            exc = exc_class()
            self.assertIsInstance(exc, FtdiError)
            self.assertIsInstance(exc, IOError)
            self.assertEqual(exc.kind, kind)

    def test_messages(self):
        self.assertEqual(str(FtdiNoDeviceError()),
                         'no matching devices found')
        self.assertEqual(str(FtdiUsbError('Resource busy')),
                         'USB error: Resource busy')
        self.assertEqual(str(FtdiMultipleDevicesError()),
                         'multiple matching devices found')
        self.assertEqual(str(FtdiUnsupportedDeviceError('bad revision')),
                         'device is not supported: bad revision')


def suite():
    suite_ = TestSuite()
    suite_.addTest(defaultTestLoader.loadTestsFromTestCase(
        PropertyDatabaseTestCase))
    suite_.addTest(defaultTestLoader.loadTestsFromTestCase(VersionTestCase))
    suite_.addTest(defaultTestLoader.loadTestsFromTestCase(ErrorTestCase))
    return suite_


if __name__ == '__main__':
    ut_main(defaultTest='suite')
