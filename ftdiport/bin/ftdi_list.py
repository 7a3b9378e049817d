#!/usr/bin/env python3

# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""List the FTDI devices connected to the host."""

from argparse import ArgumentParser, FileType
from sys import exit as sys_exit, modules, stderr
from traceback import format_exc
from ftdiport.control import FtdiError
from ftdiport.ftdi import Ftdi, devices, devices_by_id
from ftdiport.log import configure_loggers
from ftdiport.misc import hexwords, to_vidpid


def _get_string(getter) -> str:
    try:
        return getter()
    except FtdiError:
        return '?'


def show_device(ftdi: Ftdi, eeprom_words: int = 0) -> None:
    """Describe a device.

       :param ftdi: the opened device
       :param eeprom_words: count of EEPROM words to dump
    """
    print(f'  {ftdi.bus_number:3d}:{ftdi.device_address:<3d} '
          f'{ftdi.vid:04x}:{ftdi.pid:04x}  {ftdi.model:<9s} '
          f'{ftdi.num_ports} port(s)  '
          f'{_get_string(ftdi.product)!r} [{_get_string(ftdi.serial)}]')
    if eeprom_words:
        try:
            words = ftdi.read_eeprom(0, eeprom_words)
        except FtdiError as exc:
            print(f'    EEPROM: {exc}')
            return
        for line in hexwords(words).splitlines():
            print(f'    {line}')


def main():
    """Entry point."""
    debug = False
    try:
        argparser = ArgumentParser(description=modules[__name__].__doc__)
        argparser.add_argument('-P', '--vidpid',
                               help='list devices with a custom VID:PID '
                                    'device ID, e.g. 0403:6010')
        argparser.add_argument('-e', '--eeprom', type=int, default=0,
                               metavar='N',
                               help='dump the first N EEPROM words of each '
                                    'device')
        argparser.add_argument('-V', '--virtual', type=FileType('r'),
                               help='use a virtual device, specified as YaML')
        argparser.add_argument('-v', '--verbose', action='count', default=0,
                               help='increase verbosity')
        argparser.add_argument('-d', '--debug', action='store_true',
                               help='enable debug mode')
        args = argparser.parse_args()
        debug = args.debug

        configure_loggers(args.verbose, 'ftdiport')

        if args.virtual:
            # pylint: disable=import-outside-toplevel
            from ftdiport.usbtools import UsbTools
            # Force PyUSB to use ftdiport test framework for USB backends
            UsbTools.BACKENDS = ('ftdiport.tests.backend.usbvirt', )
            # Ensure the virtual backend can be found and is loaded
            backend = UsbTools.find_backend()
            loader = backend.create_loader()()
            loader.load(args.virtual)

        if args.eeprom < 0:
            argparser.error('Invalid EEPROM word count')
        if args.vidpid:
            try:
                vid, pid = to_vidpid(args.vidpid)
            except ValueError as exc:
                argparser.error(str(exc))
            results = devices_by_id(vid, pid)
        else:
            results = devices()

        count = 0
        print('Available FTDI devices:')
        for result in results:
            count += 1
            if isinstance(result, FtdiError):
                print(f'  (unavailable: {result})')
                continue
            with result:
                show_device(result, args.eeprom)
        if not count:
            print('  (none)')

    except (ImportError, IOError, NotImplementedError, ValueError) as exc:
        print(f'\nError: {exc}', file=stderr)
        if debug:
            print(format_exc(chain=False), file=stderr)
        sys_exit(1)
    except KeyboardInterrupt:
        sys_exit(2)


if __name__ == '__main__':
    main()
