######################################################################
#
# File: b2client/_internal/file_lock.py
#
# Copyright 2021 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import enum

RETENTION_MODE_HEADER = 'X-Bz-File-Retention-Mode'
RETAIN_UNTIL_HEADER = 'X-Bz-File-Retention-Retain-Until-Timestamp'
LEGAL_HOLD_HEADER = 'X-Bz-File-Legal-Hold'


@enum.unique
class RetentionMode(enum.Enum):
    """
    Object lock retention of a file.

    Under governance, keys with ``bypassGovernance`` may still delete the file;
    under compliance nobody can until the retention ends.
    """

    GOVERNANCE = 'governance'
    COMPLIANCE = 'compliance'
    NONE = None


class FileRetentionSetting:
    """
    The retention mode of a file and, unless it is ``NONE``, when it ends (ms since epoch).
    """

    def __init__(self, mode: RetentionMode, retain_until: int | None = None):
        if mode is not RetentionMode.NONE and retain_until is None:
            raise ValueError(f'must specify retain_until for retention mode {mode}')
        self.mode = mode
        self.retain_until = retain_until

    @classmethod
    def from_file_version_dict(cls, file_version_dict: dict) -> FileRetentionSetting:
        """
        Read the retention of a file version:

        .. code-block:: python

            "fileRetention": {
                "isClientAuthorizedToRead": true,
                "value": {"mode": "governance", "retainUntilTimestamp": 1628942493000}
            }

        A retention which is missing, or which the key may not read, counts as none.
        """
        value = (file_version_dict.get('fileRetention') or {}).get('value') or {}
        if value.get('mode') is None:
            return NO_RETENTION_FILE_SETTING
        return cls(RetentionMode(value['mode']), value.get('retainUntilTimestamp'))

    @classmethod
    def from_response_headers(cls, headers) -> FileRetentionSetting:
        if RETENTION_MODE_HEADER not in headers:
            return NO_RETENTION_FILE_SETTING
        retain_until = headers.get(RETAIN_UNTIL_HEADER)
        return cls(
            RetentionMode(headers[RETENTION_MODE_HEADER]),
            int(retain_until) if retain_until is not None else None,
        )

    def as_dict(self):
        return {'mode': self.mode.value, 'retainUntilTimestamp': self.retain_until}

    serialize_to_json_for_request = as_dict

    def add_to_upload_headers(self, headers):
        if self.mode is not RetentionMode.NONE:
            headers[RETENTION_MODE_HEADER] = self.mode.value
            headers[RETAIN_UNTIL_HEADER] = str(self.retain_until)

    def __eq__(self, other):
        return (self.mode, self.retain_until) == (other.mode, other.retain_until)

    def __repr__(self):
        return f'{self.__class__.__name__}({self.mode.value!r}, {self.retain_until!r})'


@enum.unique
class LegalHold(enum.Enum):
    """
    Legal hold of a file. ``UNSET`` is what the server assumes when none is given, which is off.
    """

    ON = 'on'
    OFF = 'off'
    UNSET = None

    @classmethod
    def from_file_version_dict(cls, file_version_dict: dict) -> LegalHold:
        return cls((file_version_dict.get('legalHold') or {}).get('value'))

    @classmethod
    def from_response_headers(cls, headers) -> LegalHold:
        return cls(headers.get(LEGAL_HOLD_HEADER))

    def to_server(self) -> str:
        return 'on' if self is LegalHold.ON else 'off'

    def add_to_upload_headers(self, headers):
        headers[LEGAL_HOLD_HEADER] = self.to_server()


NO_RETENTION_FILE_SETTING = FileRetentionSetting(RetentionMode.NONE)
