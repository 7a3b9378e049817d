# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

import unittest


def suite():
    #pylint: disable-msg=import-outside-toplevel
    from ftdiport.tests import (discovery, ftdi, misc, port, props, tools,
                                uart)
    suite_ = unittest.TestSuite()
    for mod in (props, misc, discovery, ftdi, port, uart, tools):
        suite_.addTest(mod.suite())
    return suite_


if __name__ == '__main__':
    unittest.main(defaultTest='suite')
