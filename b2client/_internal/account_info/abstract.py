######################################################################
#
# File: b2client/_internal/account_info/abstract.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from abc import abstractmethod

from b2client._internal.account_info.exception import MissingAccountData
from b2client._internal.raw_api import ALL_CAPABILITIES
from b2client._internal.utils import B2TraceMetaAbstract, limit_trace_arguments


class AbstractAccountInfo(metaclass=B2TraceMetaAbstract):
    """
    Holder of what ``b2_authorize_account`` returned, shared by everything which
    talks to B2 on behalf of the account.

    Getters raise :class:`~b2client.v1.exception.MissingAccountData` until the account
    is authorized. Implementations have to be thread safe: uploads read the auth token
    from worker threads while another thread may be authorizing again.
    """

    # used when the server does not restrict the key
    DEFAULT_ALLOWED = dict(
        bucketId=None,
        bucketName=None,
        capabilities=ALL_CAPABILITIES,
        namePrefix=None,
    )

    @abstractmethod
    def clear(self):
        """
        Forget the authorization.
        """

    def is_same_key(self, application_key_id, realm) -> bool:
        """
        Tell whether the stored authorization was made with this key in this realm.
        """
        try:
            return (self.get_application_key_id(), self.get_realm()) == (application_key_id, realm)
        except MissingAccountData:
            return False

    def has_capability(self, capability: str) -> bool:
        return capability in self.get_allowed()['capabilities']

    @abstractmethod
    def get_account_id(self):
        pass

    @abstractmethod
    def get_application_key_id(self):
        pass

    @abstractmethod
    def get_application_key(self):
        pass

    @abstractmethod
    def get_account_auth_token(self):
        pass

    @abstractmethod
    def get_api_url(self):
        pass

    @abstractmethod
    def get_download_url(self):
        pass

    @abstractmethod
    def get_s3_api_url(self):
        pass

    @abstractmethod
    def get_realm(self):
        pass

    @abstractmethod
    def get_recommended_part_size(self):
        """
        :return: number of bytes the server suggests for the parts of a large file
        :rtype: int
        """

    @abstractmethod
    def get_absolute_minimum_part_size(self):
        """
        :return: number of bytes below which the server refuses a part which is not the last one
        :rtype: int
        """

    @abstractmethod
    def get_allowed(self):
        """
        Return the restrictions of the application key, see :meth:`set_auth_data`.
        """

    @abstractmethod
    def get_application_key_expiration_timestamp(self) -> int | None:
        """
        Return when the application key expires, in milliseconds since epoch.

        ``None`` means that it never does, so this getter does not raise.
        """

    @limit_trace_arguments(
        only=[
            'self',
            'api_url',
            'download_url',
            'recommended_part_size',
            'absolute_minimum_part_size',
            'realm',
            's3_api_url',
            'application_key_expiration_timestamp',
        ]
    )
    def set_auth_data(
        self,
        account_id,
        auth_token,
        api_url,
        download_url,
        recommended_part_size,
        absolute_minimum_part_size,
        application_key,
        realm,
        s3_api_url,
        allowed,
        application_key_id,
        application_key_expiration_timestamp=None,
    ):
        """
        Store the result of an authorization.

        ``allowed`` holds the restrictions of the key, as found in the ``storageApi`` part
        of the answer:

        .. code-block:: python

           {
               "bucketId": "BUCKET_ID",
               "bucketName": "BUCKET_NAME",
               "capabilities": ["listBuckets", "listFiles", "readFiles", "writeFiles"],
               "namePrefix": None
           }

        ``None`` stands for :attr:`DEFAULT_ALLOWED`.
        """
        if allowed is None:
            allowed = self.DEFAULT_ALLOWED
        assert self.allowed_is_valid(allowed)
        self._set_auth_data(
            dict(
                account_id=account_id,
                auth_token=auth_token,
                api_url=api_url,
                download_url=download_url,
                recommended_part_size=recommended_part_size,
                absolute_minimum_part_size=absolute_minimum_part_size,
                application_key=application_key,
                realm=realm,
                s3_api_url=s3_api_url,
                allowed=allowed,
                application_key_id=application_key_id,
                application_key_expiration_timestamp=application_key_expiration_timestamp,
            )
        )

    @classmethod
    def allowed_is_valid(cls, allowed) -> bool:
        """
        Check that every key of ``allowed`` is there.

        ``bucketName`` may only be given together with ``bucketId``; the other way
        round is fine, the name is unknown when the key cannot list buckets.
        """
        if not {'bucketId', 'bucketName', 'capabilities', 'namePrefix'} <= allowed.keys():
            return False
        return allowed['bucketId'] is not None or allowed['bucketName'] is None

    @abstractmethod
    def _set_auth_data(self, auth_data: dict):
        """
        Store ``auth_data``, whose keys are the argument names of :meth:`set_auth_data`.

        ``allowed`` is already checked.
        """
