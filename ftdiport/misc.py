# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Miscellaneous helpers"""

#pylint: disable-msg=invalid-name

from typing import Iterable, Tuple, Union


# String values evaluated as true boolean values
TRUE_BOOLEANS = ['on', 'true', 'enable', 'enabled', 'yes', 'high', '1']
# String values evaluated as false boolean values
FALSE_BOOLEANS = ['off', 'false', 'disable', 'disabled', 'no', 'low', '0']
# ASCII or '.' filter
ASCIIFILTER = ''.join([((len(repr(chr(_x))) == 3) or (_x == 0x5c)) and chr(_x)
                       or '.' for _x in range(128)]) + '.' * 128
ASCIIFILTER = bytearray(ASCIIFILTER.encode('ascii'))


def hexwords(words: Iterable[int], address: int = 0,
             width: int = 16) -> str:
    """Convert a sequence of 16-bit words into a hexadecimal dump.

       Each line starts with the word address of its first word.

       :param words: the words to dump
       :param address: the word address of the first word
       :param width: count of words per line
       :return: the generated multi-line string
    """
    words = list(words)
    result = []
    for pos in range(0, len(words), width):
        line = ' '.join(['%04x' % w for w in words[pos:pos+width]])
        result.append('%04x: %s\n' % (address + pos, line))
    return ''.join(result)


def hexline(data: Union[bytes, bytearray, Iterable[int]],
            sep: str = ' ') -> str:
    """Convert a binary buffer into a hexadecimal representation.

       Return a string with hexadecimal values and ASCII representation
       of the buffer data.

       :param data: binary buffer to dump
       :param sep: the separator string/char
       :return: the formatted string
    """
    src = bytearray(data)
    hexa = sep.join(["%02x" % x for x in src])
    printable = src.translate(ASCIIFILTER).decode('ascii')
    return "(%d) %s : %s" % (len(src), hexa, printable)


def to_int(value: Union[int, str]) -> int:
    """Parse a value and convert it into an integer value if possible.

       Input value may be:
       - a string with an integer coded as a decimal value
       - a string with an integer coded as a hexadecimal value (0x prefix)
       - a integral value

       :param value: input value to convert to an integer
       :return: the value as an integer
       :raise ValueError: if the input value cannot be converted into an int
    """
    if not value:
        return 0
    if isinstance(value, int):
        return value
    value = value.strip()
    return int(value, value.startswith('0x') and 16 or 10)


def to_bool(value: Union[int, bool, str], permissive: bool = True,
            allow_int: bool = False) -> bool:
    """Parse a string and convert it into a boolean value if possible.

       Input value may be:
       - a string with an integer value, if `allow_int` is enabled
       - a boolean value
       - a string with a common boolean definition

       :param value: the value to parse and convert
       :param permissive: default to the False value if parsing fails
       :param allow_int: allow an integral type as the input value
       :raise ValueError: if the input value cannot be converted into an bool
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if allow_int:
            return bool(value)
        if permissive:
            return False
        raise ValueError("Invalid boolean value: '%d'" % value)
    if value.lower() in TRUE_BOOLEANS:
        return True
    if permissive or (value.lower() in FALSE_BOOLEANS):
        return False
    raise ValueError('Invalid boolean value: "%s"' % value)


def to_vidpid(value: str) -> Tuple[int, int]:
    """Parse a USB device identifier.

       The string should match the ``<vendor_id>:<product_id>`` format,
       where both identifiers are hexadecimal 16-bit values, with or without
       the ``0x`` prefix, e.g. ``0403:6010``.

       :param value: the string to parse
       :return: the (vid, pid) pair
       :raise ValueError: if the string is not a valid identifier
    """
    try:
        vid, pid = [int(v, 16) for v in value.split(':')]
    except ValueError as exc:
        raise ValueError(f"Invalid VID:PID value '{value}'") from exc
    if not (0 <= vid <= 0xffff and 0 <= pid <= 0xffff):
        raise ValueError(f"Invalid VID:PID value '{value}'")
    return vid, pid


class EasyDict(dict):
    """Dictionary whose members can be accessed as instance members
    """

    def __init__(self, dictionary=None, **kwargs):
        super().__init__(self)
        if dictionary is not None:
            self.update(dictionary)
        self.update(kwargs)

    def __getattr__(self, name):
        try:
            return self.__getitem__(name)
        except KeyError as exc:
            raise AttributeError("'%s' object has no attribute '%s'" %
                                 (self.__class__.__name__, name)) from exc

    def __setattr__(self, name, value):
        self.__setitem__(name, value)
