######################################################################
#
# File: b2client/v1/exception.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from b2client._internal.account_info.exception import AccountInfoError
from b2client._internal.account_info.exception import MissingAccountData
from b2client._internal.exception import AccessDenied
from b2client._internal.exception import AlreadyFailed
from b2client._internal.exception import B2ConnectionError
from b2client._internal.exception import B2Error
from b2client._internal.exception import B2HttpCallbackException
from b2client._internal.exception import B2HttpCallbackPostRequestException
from b2client._internal.exception import B2HttpCallbackPreRequestException
from b2client._internal.exception import B2RequestTimeout
from b2client._internal.exception import B2RequestTimeoutDuringUpload
from b2client._internal.exception import B2SimpleError
from b2client._internal.exception import BadDateFormat
from b2client._internal.exception import BadJson
from b2client._internal.exception import BadRequest
from b2client._internal.exception import BadUploadUrl
from b2client._internal.exception import BrokenPipe
from b2client._internal.exception import BucketIdNotFound
from b2client._internal.exception import CapExceeded
from b2client._internal.exception import ChecksumMismatch
from b2client._internal.exception import ClockSkew
from b2client._internal.exception import Conflict
from b2client._internal.exception import ConnectionReset
from b2client._internal.exception import DuplicateBucketName
from b2client._internal.exception import EmailNotVerified
from b2client._internal.exception import FailedToReadFile
from b2client._internal.exception import FileAlreadyHidden
from b2client._internal.exception import FileNotPresent
from b2client._internal.exception import FileOrBucketNotFound
from b2client._internal.exception import FileSha1Mismatch
from b2client._internal.exception import InvalidAuthToken
from b2client._internal.exception import InvalidJsonResponse
from b2client._internal.exception import InvalidMetadataDirective
from b2client._internal.exception import InvalidUploadOption
from b2client._internal.exception import InvalidUserInput
from b2client._internal.exception import MaxRetriesExceeded
from b2client._internal.exception import MissingCapability
from b2client._internal.exception import MissingPart
from b2client._internal.exception import NoPaymentHistory
from b2client._internal.exception import NonExistentBucket
from b2client._internal.exception import NotAllowedByAppKeyError
from b2client._internal.exception import PartSha1Mismatch
from b2client._internal.exception import PotentialS3EndpointPassedAsRealm
from b2client._internal.exception import ResourceNotFound
from b2client._internal.exception import RetentionWriteError
from b2client._internal.exception import ServiceError
from b2client._internal.exception import SSECKeyError
from b2client._internal.exception import StorageCapExceeded
from b2client._internal.exception import TooManyRequests
from b2client._internal.exception import TransactionCapExceeded
from b2client._internal.exception import TransientErrorMixin
from b2client._internal.exception import TruncatedOutput
from b2client._internal.exception import Unauthorized
from b2client._internal.exception import UnknownError
from b2client._internal.exception import UnknownHost
from b2client._internal.exception import UnsatisfiableRange
from b2client._internal.exception import UnusableFileName
from b2client._internal.exception import UploadAborted
from b2client._internal.exception import UploadAlreadyStarted
from b2client._internal.exception import UploadError
from b2client._internal.exception import WrongEncryptionModeForBucketDefault
from b2client._internal.exception import interpret_b2_error
