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

from tilecontrol.util.times import (
    day_stamp,
    format_httpdate,
    isoformat_millis,
    timestamp_from_millis,
)


def test_format_httpdate():
    assert format_httpdate(1400000000) == 'Tue, 13 May 2014 16:53:20 GMT'


def test_timestamp_from_millis():
    assert timestamp_from_millis('1400000000000') == 1400000000.0
    assert timestamp_from_millis(1500) == 1.5
    assert timestamp_from_millis('now') is None
    assert timestamp_from_millis(None) is None


def test_isoformat_millis():
    assert isoformat_millis(1400000000123) == '2014-05-13T16:53:20.123Z'
    assert isoformat_millis(0) == '1970-01-01T00:00:00.000Z'


def test_day_stamp():
    assert day_stamp(1400000000) == '20140513'
