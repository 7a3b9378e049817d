# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

#pylint: disable-msg=missing-docstring

__version__ = '0.1.0'
__title__ = 'ftdiport'
__description__ = 'Typed per-port FTDI device driver (pure Python)'
__uri__ = 'http://github.com/ftdiport/ftdiport'
__doc__ = __description__ + ' <' + __uri__ + '>'
__author__ = 'ftdiport authors'
__email__ = 'ftdiport@users.noreply.github.com'
__license__ = 'Modified BSD'
__copyright__ = 'Copyright (c) 2024 ftdiport authors'


from logging import WARNING, NullHandler, getLogger


class FtdiLogger:

    log = getLogger('ftdiport')
    log.addHandler(NullHandler())
    log.setLevel(level=WARNING)

    @classmethod
    def set_formatter(cls, formatter):
        handlers = list(cls.log.handlers)
        for handler in handlers:
            handler.setFormatter(formatter)

    @classmethod
    def get_level(cls):
        return cls.log.getEffectiveLevel()

    @classmethod
    def set_level(cls, level):
        cls.log.setLevel(level=level)
