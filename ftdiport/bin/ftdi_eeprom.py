#!/usr/bin/env python3

"""Raw FTDI EEPROM word access.
"""

# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

from argparse import ArgumentParser, FileType
from struct import pack as spack
from sys import exit as sys_exit, modules, stderr, stdout
from traceback import format_exc
from ftdiport.ftdi import Ftdi
from ftdiport.log import configure_loggers
from ftdiport.misc import hexwords, to_int, to_vidpid

#pylint: disable-msg=too-many-branches
#pylint: disable-msg=too-many-statements

ERASE_TIMEOUT = 5000
"""EEPROM erasure timeout, in milliseconds."""


def confirm(prompt: str) -> bool:
    """Ask the user for a confirmation."""
    try:
        answer = input(f'{prompt} [y/N] ')
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


def main():
    """Main routine"""
    debug = False
    try:
        argparser = ArgumentParser(description=modules[__name__].__doc__)
        argparser.add_argument('-d', '--device', metavar='VID:PID',
                               help='select the device, e.g. 0403:6010 '
                                    '(default: the only FTDI device)')
        argparser.add_argument('-f', '--force', action='store_true',
                               help='do not ask for confirmation before '
                                    'altering the EEPROM')
        argparser.add_argument('-V', '--virtual', type=FileType('r'),
                               help='use a virtual device, specified as YaML')
        argparser.add_argument('-v', '--verbose', action='count', default=0,
                               help='increase verbosity')
        argparser.add_argument('-D', '--debug', action='store_true',
                               help='enable debug mode')
        subparsers = argparser.add_subparsers(dest='command',
                                              help='EEPROM command')
        subparsers.required = True
        readp = subparsers.add_parser('read', help='read EEPROM words')
        readp.add_argument('-a', '--addr', type=lambda x: int(x, 16),
                           default=0, help='first word address (hex)')
        readp.add_argument('-c', '--count', type=to_int, default=64,
                           help='count of words to read')
        readp.add_argument('-r', '--raw', action='store_true',
                           help='output raw little-endian binary data')
        writep = subparsers.add_parser('write', help='write an EEPROM word')
        writep.add_argument('-a', '--addr', type=lambda x: int(x, 16),
                            default=0, help='first word address (hex)')
        writep.add_argument('-c', '--count', type=to_int, default=1,
                            help='count of consecutive words to write')
        writep.add_argument('-w', '--word', type=lambda x: int(x, 16),
                            required=True, help='word value (hex)')
        subparsers.add_parser('erase', help='erase the whole EEPROM')
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

        if args.command != 'erase' and args.count <= 0:
            argparser.error('Invalid word count')
        if args.command == 'write' and not 0 <= args.word <= 0xffff:
            argparser.error('Invalid word value')
        if args.device:
            try:
                vid, pid = to_vidpid(args.device)
            except ValueError as exc:
                argparser.error(str(exc))
            ftdi = Ftdi.open_by_id(vid, pid)
        else:
            ftdi = Ftdi.open_unique()

        with ftdi:
            if args.command == 'read':
                words = ftdi.read_eeprom(args.addr, args.count)
                if args.raw:
                    stdout.buffer.write(spack(f'<{len(words)}H', *words))
                    stdout.flush()
                else:
                    print(hexwords(words, args.addr), end='')
            elif args.command == 'write':
                if not args.force and \
                        not confirm(f'Write 0x{args.word:04x} to '
                                    f'{args.count} word(s) from '
                                    f'0x{args.addr:04x} of {ftdi.model} '
                                    f'EEPROM?'):
                    print('Aborted', file=stderr)
                    sys_exit(2)
                for pos in range(args.count):
                    ftdi.write_eeprom_word(args.addr + pos, args.word)
            elif args.command == 'erase':
                if not args.force and \
                        not confirm(f'Erase {ftdi.model} EEPROM?'):
                    print('Aborted', file=stderr)
                    sys_exit(2)
                ftdi.erase_eeprom(ERASE_TIMEOUT)

    except (ImportError, IOError, NotImplementedError, ValueError) as exc:
        print(f'\nError: {exc}', file=stderr)
        if debug:
            print(format_exc(chain=False), file=stderr)
        sys_exit(1)
    except KeyboardInterrupt:
        sys_exit(2)


if __name__ == '__main__':
    main()
