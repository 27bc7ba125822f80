######################################################################
#
# File: b2client/_internal/account_info/in_memory.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from typing import Any

from .abstract import AbstractAccountInfo
from .exception import MissingAccountData


class InMemoryAccountInfo(AbstractAccountInfo):
    """
    *AccountInfo* which keeps the authorization in memory only.

    Authorizing replaces the whole record at once, so readers in other threads
    see either the old authorization or the new one.
    """

    def __init__(self):
        super().__init__()
        self._auth_data: dict[str, Any] = {}

    def clear(self):
        self._auth_data = {}

    def _set_auth_data(self, auth_data: dict):
        self._auth_data = dict(auth_data)

    def _get(self, name: str):
        value = self._auth_data.get(name)
        if value is None:
            raise MissingAccountData(name)
        return value

    def get_account_id(self):
        return self._get('account_id')

    def get_application_key_id(self):
        return self._get('application_key_id')

    def get_application_key(self):
        return self._get('application_key')

    def get_account_auth_token(self):
        return self._get('auth_token')

    def get_api_url(self):
        return self._get('api_url')

    def get_download_url(self):
        return self._get('download_url')

    def get_s3_api_url(self):
        return self._get('s3_api_url')

    def get_realm(self):
        return self._get('realm')

    def get_recommended_part_size(self):
        return self._get('recommended_part_size')

    def get_absolute_minimum_part_size(self):
        return self._get('absolute_minimum_part_size')

    def get_allowed(self):
        return self._get('allowed')

    def get_application_key_expiration_timestamp(self):
        return self._auth_data.get('application_key_expiration_timestamp')
