# This file is part of lsst-fitsformat.
#
# Developed for the LSST Data Management System.
# This product includes software developed by the LSST Project
# (https://www.lsst.org).
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Construction, navigation and structural validation of FITS files."""

from ._addressing import *
from ._builders import *
from ._common import *
from ._dtypes import *
from ._file import *
from ._header import *
from ._io import *
from ._records import *
from ._table_types import *
from ._validation import *
