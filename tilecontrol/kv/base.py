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

from abc import ABC, abstractmethod


class StoreBackendError(Exception):
    """
    The backing key-value store failed or is unreachable.
    """
    pass


class HashStoreBase(ABC):
    """
    Interface of a store of hashes (``key -> {field: value}``).

    Every method is a single atomic command of the store; no operation
    spans more than one command.
    """

    @abstractmethod
    def hget(self, key: str, field: str):
        """
        Return the value of `field`, ``None`` if missing.
        """
        pass

    @abstractmethod
    def hset(self, key: str, field: str, value: str) -> bool:
        """
        Set `field` unconditionally. Return ``True`` if the field is new.
        """
        pass

    @abstractmethod
    def hsetnx(self, key: str, field: str, value: str) -> bool:
        """
        Set `field` only if it does not exist. Return ``True`` if it was set.
        """
        pass

    @abstractmethod
    def hdel(self, key: str, field: str) -> int:
        """
        Remove `field` and return the number of removed fields.
        """
        pass

    @abstractmethod
    def hkeys(self, key: str) -> list:
        pass

    @abstractmethod
    def hlen(self, key: str) -> int:
        pass
