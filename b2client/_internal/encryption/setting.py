######################################################################
#
# File: b2client/_internal/encryption/setting.py
#
# Copyright 2021 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from ..http_constants import (
    SSE_B2_ALGORITHM_HEADER,
    SSE_C_ALGORITHM_HEADER,
    SSE_C_KEY_HEADER,
    SSE_C_KEY_MD5_HEADER,
)
from ..utils import b64_of_bytes, md5_of_bytes
from .types import (
    ENCRYPTION_MODES_WITH_MANDATORY_ALGORITHM,
    ENCRYPTION_MODES_WITH_MANDATORY_KEY,
    EncryptionAlgorithm,
    EncryptionMode,
)


class EncryptionKey:
    """
    A customer key (SSE-C).

    Settings read back from the server do not know the secret, it is ``None`` then.
    """

    SECRET_REPR = '******'

    def __init__(self, secret: bytes | None):
        self.secret = secret

    def __eq__(self, other):
        return self.secret == other.secret

    def __repr__(self):
        shown = None if self.secret is None else self.SECRET_REPR
        return f'<{self.__class__.__name__}({shown})>'

    def as_dict(self):
        if self.secret is None:
            return dict.fromkeys(('customerKey', 'customerKeyMd5'), self.SECRET_REPR)
        return {'customerKey': self.key_b64(), 'customerKeyMd5': self.key_md5()}

    def key_b64(self):
        return b64_of_bytes(self.secret)

    def key_md5(self):
        return b64_of_bytes(md5_of_bytes(self.secret))


class EncryptionSetting:
    """
    How data is (to be) encrypted at rest: the mode, and the algorithm and key it needs.

    Used for uploads, downloads of SSE-C files, bucket defaults and file versions.
    """

    def __init__(
        self,
        mode: EncryptionMode,
        algorithm: EncryptionAlgorithm | None = None,
        key: EncryptionKey | None = None,
    ):
        if mode == EncryptionMode.NONE and (algorithm is not None or key is not None):
            raise ValueError("cannot specify algorithm or key for 'plaintext' encryption mode")
        if mode in ENCRYPTION_MODES_WITH_MANDATORY_ALGORITHM and algorithm is None:
            raise ValueError(f'must specify algorithm for encryption mode {mode}')
        if mode in ENCRYPTION_MODES_WITH_MANDATORY_KEY and key is None:
            raise ValueError(f'must specify key for encryption mode {mode}')
        self.mode = mode
        self.algorithm = algorithm
        self.key = key

    def __eq__(self, other):
        if other is None:
            raise ValueError('cannot compare a known encryption setting to an unknown one')
        return (self.mode, self.algorithm, self.key) == (other.mode, other.algorithm, other.key)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.mode}, {self.algorithm}, {self.key})>'

    def as_dict(self):
        """
        Return the setting the way the api shows it, e.g. ``{'mode': 'none'}``, or

        .. code-block:: python

            {
                'mode': 'SSE-C',
                'algorithm': 'AES256',
                'customerKey': 'U3hWbVlxM3Q2djl5JEImRSlIQE1jUWZUalduWnI0dTc=',
                'customerKeyMd5': 'SWx9GFv5BTT1jdwf48Bx+Q=='
            }
        """
        result = {'mode': self.mode.value}
        if self.algorithm is not None:
            result['algorithm'] = self.algorithm.value
        if self.mode == EncryptionMode.SSE_C:
            result.update(self.key.as_dict())
        return result

    def serialize_to_json_for_request(self):
        if self.key is not None and self.key.secret is None:
            raise ValueError('cannot use an unknown key in requests')
        return self.as_dict()

    def add_to_upload_headers(self, headers):
        if self.mode == EncryptionMode.SSE_B2:
            headers[SSE_B2_ALGORITHM_HEADER] = self.algorithm.name
        elif self.mode == EncryptionMode.SSE_C:
            headers.update(self._customer_key_headers())
        elif self.mode != EncryptionMode.NONE:
            raise NotImplementedError(f'unsupported encryption setting: {self}')

    def add_to_part_upload_headers(self, headers):
        # SSE-B2 is decided when the large file is started, only a customer key is sent again
        if self.mode == EncryptionMode.SSE_C:
            headers.update(self._customer_key_headers())

    def add_to_download_headers(self, headers):
        if self.mode == EncryptionMode.SSE_C:
            headers.update(self._customer_key_headers())

    def _customer_key_headers(self) -> dict[str, str]:
        if self.key.secret is None:
            raise ValueError('Cannot use an unknown key in http headers')
        return {
            SSE_C_ALGORITHM_HEADER: self.algorithm.name,
            SSE_C_KEY_HEADER: self.key.key_b64(),
            SSE_C_KEY_MD5_HEADER: self.key.key_md5(),
        }


class EncryptionSettingFactory:
    @classmethod
    def from_file_version_dict(cls, file_version_dict: dict) -> EncryptionSetting:
        """
        Read ``"serverSideEncryption": {"algorithm": "AES256", "mode": "SSE-B2"}``.

        Files which are not encrypted may come without it.
        """
        value = file_version_dict.get('serverSideEncryption')
        if value is None:
            return EncryptionSetting(EncryptionMode.NONE)
        return cls._from_value_dict(value)

    @classmethod
    def from_bucket_dict(cls, bucket_dict: dict) -> EncryptionSetting:
        """
        Read the default encryption of a bucket:

        .. code-block:: python

            "defaultServerSideEncryption": {
                "isClientAuthorizedToRead" : true,
                "value": {"algorithm" : "AES256", "mode" : "SSE-B2"}
            }

        Keys which may not read it get :attr:`EncryptionMode.UNKNOWN`.
        """
        default = bucket_dict.get('defaultServerSideEncryption')
        if not default or not default['isClientAuthorizedToRead']:
            return EncryptionSetting(EncryptionMode.UNKNOWN)
        return cls._from_value_dict(default['value'])

    @classmethod
    def from_response_headers(cls, headers) -> EncryptionSetting:
        if SSE_B2_ALGORITHM_HEADER in headers:
            return EncryptionSetting(
                EncryptionMode.SSE_B2,
                EncryptionAlgorithm(headers[SSE_B2_ALGORITHM_HEADER]),
            )
        if SSE_C_ALGORITHM_HEADER in headers:
            return EncryptionSetting(
                EncryptionMode.SSE_C,
                EncryptionAlgorithm(headers[SSE_C_ALGORITHM_HEADER]),
                EncryptionKey(secret=None),
            )
        return EncryptionSetting(EncryptionMode.NONE)

    @classmethod
    def _from_value_dict(cls, value_dict: dict) -> EncryptionSetting:
        mode = EncryptionMode(value_dict['mode'] or 'none')
        algorithm = value_dict.get('algorithm')
        return EncryptionSetting(
            mode,
            EncryptionAlgorithm(algorithm) if algorithm is not None else None,
            EncryptionKey(secret=None) if mode == EncryptionMode.SSE_C else None,
        )


#: no encryption
SSE_NONE = EncryptionSetting(mode=EncryptionMode.NONE)

#: encryption with a key kept by B2
SSE_B2_AES = EncryptionSetting(mode=EncryptionMode.SSE_B2, algorithm=EncryptionAlgorithm.AES256)
