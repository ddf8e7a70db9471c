# This file is part of the TileControl project.
# Copyright (C) 2026 Omniscale <http://omniscale.de>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Date and time utilities.
"""
import datetime
import time
from email.utils import formatdate


def format_httpdate(timestamp=None):
    """
    Format a unix timestamp (seconds) as an RFC 1123 HTTP date.

    >>> format_httpdate(0)
    'Thu, 01 Jan 1970 00:00:00 GMT'
    """
    if timestamp is None:
        timestamp = time.time()
    return formatdate(timestamp, usegmt=True)


def timestamp_from_millis(millis):
    """
    Convert a javascript style millisecond timestamp to seconds.
    Returns ``None`` for values that are not numeric.

    >>> timestamp_from_millis('1400000000000')
    1400000000.0
    >>> timestamp_from_millis('abc') is None
    True
    """
    try:
        return int(millis) / 1000.0
    except (TypeError, ValueError):
        return None


def isoformat_millis(millis):
    """
    ISO-8601 UTC representation of a millisecond timestamp.

    >>> isoformat_millis(1400000000000)
    '2014-05-13T16:53:20.000Z'
    """
    date = datetime.datetime.fromtimestamp(int(millis) / 1000.0, tz=datetime.timezone.utc)
    return date.strftime('%Y-%m-%dT%H:%M:%S.') + '%03dZ' % (date.microsecond // 1000)


def day_stamp(timestamp=None):
    """
    Return the UTC day of `timestamp` as ``YYYYMMDD``.

    >>> day_stamp(0)
    '19700101'
    """
    if timestamp is None:
        timestamp = time.time()
    return datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc).strftime('%Y%m%d')
