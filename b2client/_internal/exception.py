######################################################################
#
# File: b2client/_internal/exception.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import logging
from abc import ABCMeta
from typing import Any, Callable

from .utils import camelcase_to_underscore, trace_call

logger = logging.getLogger(__name__)

NON_JSON_RESPONSE_CODE = 'non_json_response'
NON_JSON_RESPONSE_MESSAGE = 'failed to parse response as json, returned string: '


class B2Error(Exception, metaclass=ABCMeta):
    """
    Base class of every error raised by the library.

    Two questions are asked of an error by the code which may retry:
    :meth:`should_retry_http` (send the same request again) and
    :meth:`should_retry_upload` (get a new upload url and send the data again).
    """

    def __init__(self, *args, **kwargs):
        # a Retry-After header of the response, if there was one
        self.retry_after_seconds = None
        # http status of the response the error was built from
        self.status = None
        super().__init__(*args, **kwargs)

    @property
    def prefix(self):
        """
        Human readable name of the error, derived from the class name.

        >>> B2SimpleError().prefix
        'Simple error'
        >>> AlreadyFailed().prefix
        'Already failed'
        """
        name = self.__class__.__name__
        if name.startswith('B2'):
            name = name[2:]
        words = camelcase_to_underscore(name).replace('_', ' ')
        return words[:1].upper() + words[1:]

    def should_retry_http(self):
        return False

    def should_retry_upload(self):
        return False


class B2SimpleError(B2Error, metaclass=ABCMeta):
    """
    An error whose message is the prefix followed by the arguments.
    """

    def __str__(self):
        return f'{self.prefix}: {super().__str__()}'


class TransientErrorMixin(metaclass=ABCMeta):
    def should_retry_http(self):
        return True

    def should_retry_upload(self):
        return True


class InvalidUserInput(B2Error):
    pass


class NotAllowedByAppKeyError(B2SimpleError, metaclass=ABCMeta):
    """
    The application key in use is not allowed to do this.
    """


class MissingCapability(NotAllowedByAppKeyError):
    """
    Found out locally, so no request was sent.
    """

    def __init__(self, capability):
        super().__init__(capability)
        self.capability = capability

    def __str__(self):
        return f'Application key is missing the {self.capability!r} capability'


# transport


class B2ConnectionError(TransientErrorMixin, B2SimpleError):
    pass


class B2RequestTimeout(TransientErrorMixin, B2SimpleError):
    pass


class B2RequestTimeoutDuringUpload(B2RequestTimeout):
    # the upload url may still be locked by the request which timed out
    def should_retry_http(self):
        return False


class BrokenPipe(B2Error):
    def __str__(self):
        return 'Broken pipe: unable to send entire request'

    def should_retry_upload(self):
        return True


class ConnectionReset(B2Error):
    def __str__(self):
        return 'Connection reset'

    def should_retry_upload(self):
        return True


class UnknownHost(B2Error):
    def __str__(self):
        return 'unknown host'


class UnknownError(B2SimpleError):
    pass


class InvalidJsonResponse(B2SimpleError):
    UP_TO_BYTES_COUNT = 200

    def __init__(self, content: bytes):
        self.content = content
        shown = content[:self.UP_TO_BYTES_COUNT].decode('utf-8', errors='replace')
        if len(content) > self.UP_TO_BYTES_COUNT:
            shown += '...'
        super().__init__(shown)


class PotentialS3EndpointPassedAsRealm(InvalidJsonResponse):
    pass


class B2HttpCallbackException(B2SimpleError):
    pass


class B2HttpCallbackPreRequestException(B2HttpCallbackException):
    pass


class B2HttpCallbackPostRequestException(B2HttpCallbackException):
    pass


class BadDateFormat(B2HttpCallbackPostRequestException):
    prefix = 'Date from server'


class ClockSkew(B2HttpCallbackPostRequestException):
    def __init__(self, clock_skew_seconds):
        """
        :param int clock_skew_seconds: local clock minus server clock
        """
        super().__init__()
        self.clock_skew_seconds = clock_skew_seconds

    def __str__(self):
        if self.clock_skew_seconds < 0:
            return 'ClockSkew: local clock is %d seconds behind server' % -self.clock_skew_seconds
        return 'ClockSkew; local clock is %d seconds ahead of server' % self.clock_skew_seconds


# server answers


class BadRequest(B2Error):
    def __init__(self, message, code):
        super().__init__()
        self.message = message
        self.code = code

    def __str__(self):
        return f'{self.message} ({self.code})'


class BadJson(B2SimpleError):
    prefix = 'Bad request'


class BadUploadUrl(B2SimpleError):
    def should_retry_upload(self):
        return True


class Unauthorized(BadRequest):
    def should_retry_upload(self):
        return True


class InvalidAuthToken(Unauthorized):
    """
    The auth token is not valid (any more).

    A valid token which does not allow the call gives :class:`Unauthorized` instead.
    """

    def __init__(self, message, code):
        super().__init__('Invalid authorization token. Server said: ' + message, code)


class EmailNotVerified(Unauthorized):
    def should_retry_upload(self):
        return False


class NoPaymentHistory(Unauthorized):
    def should_retry_upload(self):
        return False


class AccessDenied(B2Error):
    def __str__(self):
        return "This call with these parameters is not allowed for this auth token"


class SSECKeyError(AccessDenied):
    def __str__(self):
        return "Wrong or no SSE-C key provided when reading a file."


class RetentionWriteError(AccessDenied):
    def __str__(self):
        return (
            "Auth token not authorized to write retention or file already in 'compliance' mode or "
            "bypassGovernance=true parameter missing"
        )


class CapExceeded(B2Error):
    def __str__(self):
        return 'Cap exceeded.'


class StorageCapExceeded(CapExceeded):
    def __str__(self):
        return 'Cannot upload or copy files, storage cap exceeded.'


class TransactionCapExceeded(CapExceeded):
    def __str__(self):
        return 'Cannot perform the operation, transaction cap exceeded.'


class Conflict(B2SimpleError):
    pass


class TooManyRequests(B2Error):
    def __init__(self, retry_after_seconds=None):
        super().__init__()
        self.retry_after_seconds = retry_after_seconds

    def __str__(self):
        return 'Too many requests'

    def should_retry_http(self):
        return True


class ServiceError(TransientErrorMixin, B2Error):
    """
    The server failed with a 5xx status.
    """


class UnsatisfiableRange(B2Error):
    def __str__(self):
        return "The range in the request is outside the size of the file"


class ResourceNotFound(B2SimpleError):
    prefix = 'No such file, bucket, or endpoint'


class FileOrBucketNotFound(ResourceNotFound):
    def __init__(self, bucket_name=None, file_id_or_name=None):
        super().__init__()
        self.bucket_name = bucket_name
        self.file_id_or_name = file_id_or_name

    def _name_suffix(self, name):
        return f': {name}' if name else ''


class FileNotPresent(FileOrBucketNotFound):
    def __str__(self):
        return 'File not present' + self._name_suffix(self.file_id_or_name)


class NonExistentBucket(FileOrBucketNotFound):
    def __str__(self):
        return 'No such bucket' + self._name_suffix(self.bucket_name)


class BucketIdNotFound(ResourceNotFound):
    def __init__(self, bucket_id):
        super().__init__()
        self.bucket_id = bucket_id

    def __str__(self):
        return f'Bucket with id={self.bucket_id} not found'


class DuplicateBucketName(B2SimpleError):
    prefix = 'Bucket name is already in use'


class FileAlreadyHidden(B2SimpleError):
    pass


class UnusableFileName(B2SimpleError):
    """
    The name breaks the rules of https://www.backblaze.com/b2/docs/files.html
    """


class InvalidMetadataDirective(InvalidUserInput):
    pass


class WrongEncryptionModeForBucketDefault(InvalidUserInput):
    def __init__(self, encryption_mode):
        super().__init__()
        self.encryption_mode = encryption_mode

    def __str__(self):
        return f"{self.encryption_mode} cannot be used as default for a bucket."


# data integrity


class ChecksumMismatch(TransientErrorMixin, B2Error):
    def __init__(self, checksum_type, expected, actual):
        super().__init__()
        self.checksum_type = checksum_type
        self.expected = expected
        self.actual = actual

    def __str__(self):
        return f'{self.checksum_type} checksum mismatch -- bad data'


class FileSha1Mismatch(B2SimpleError):
    prefix = 'Upload file SHA1 mismatch'


class PartSha1Mismatch(B2Error):
    def __init__(self, key):
        super().__init__()
        self.key = key

    def __str__(self):
        return f'Part number {self.key} has wrong SHA1'


class MissingPart(B2SimpleError):
    prefix = 'Part number has not been uploaded'


class TruncatedOutput(TransientErrorMixin, B2Error):
    def __init__(self, bytes_read, file_size):
        super().__init__()
        self.bytes_read = bytes_read
        self.file_size = file_size

    def __str__(self):
        return f'only {self.bytes_read} of {self.file_size} bytes read'


# uploads


class AlreadyFailed(B2SimpleError):
    pass


class MaxRetriesExceeded(B2Error):
    def __init__(self, limit, exception_info_list):
        super().__init__()
        self.limit = limit
        self.exception_info_list = exception_info_list

    def __str__(self):
        causes = '\n'.join(map(str, self.exception_info_list))
        return f'FAILED to upload after {self.limit} tries. Encountered exceptions: {causes}'


class UploadError(B2Error, metaclass=ABCMeta):
    """
    An upload was stopped by the client, not by the server.
    """

    def __str__(self):
        return f'B2 upload failed, {self._reason()}'

    def _reason(self):
        return self.prefix.lower()


class UploadAborted(UploadError):
    def _reason(self):
        return 'upload was aborted'


class UploadAlreadyStarted(UploadError):
    def _reason(self):
        return 'upload was already started'


class FailedToReadFile(UploadError):
    def __init__(self, cause):
        super().__init__()
        self.cause = cause

    def _reason(self):
        return f'failed to read file: {self.cause}'


class InvalidUploadOption(UploadError, InvalidUserInput):
    def __init__(self, object_name: str, value_name: str, value: Any, expected: str):
        super().__init__()
        self.object_name = object_name
        self.value_name = value_name
        self.value = value
        self.expected = expected

    def _reason(self):
        return (
            f'invalid options: {self.object_name}.{self.value_name} is {self.value!r}, '
            f'expected {self.expected}'
        )


ErrorFactory = Callable[[str, str, dict, dict], B2Error]

# (status, codes or None for any code, factory called with code, message, headers and post params)
_ERROR_RULES: list[tuple[int, tuple[str, ...] | None, ErrorFactory]] = [
    (400, ('already_hidden',), lambda c, m, h, p: FileAlreadyHidden(p.get('fileName'))),
    (400, ('bad_json',), lambda c, m, h, p: BadJson(m)),
    # hide_file answers "no_such_file", delete_file_version answers "file_not_present"
    (
        400,
        ('no_such_file', 'file_not_present'),
        lambda c, m, h, p: FileNotPresent(file_id_or_name=p.get('fileId') or p.get('fileName')),
    ),
    (400, ('duplicate_bucket_name',), lambda c, m, h, p: DuplicateBucketName(p.get('bucketName'))),
    (400, ('missing_part',), lambda c, m, h, p: MissingPart(p.get('fileId'))),
    (400, ('part_sha1_mismatch',), lambda c, m, h, p: PartSha1Mismatch(p.get('fileId'))),
    (400, ('bad_bucket_id',), lambda c, m, h, p: BucketIdNotFound(p.get('bucketId'))),
    (400, None, lambda c, m, h, p: BadRequest(m, c)),
    (
        401,
        ('bad_auth_token', 'expired_auth_token'),
        lambda c, m, h, p: InvalidAuthToken(m, c),
    ),
    (401, ('email_not_verified',), lambda c, m, h, p: EmailNotVerified(m, c)),
    (401, ('no_payment_history',), lambda c, m, h, p: NoPaymentHistory(m, c)),
    (401, None, lambda c, m, h, p: Unauthorized(m, c)),
    (403, ('storage_cap_exceeded',), lambda c, m, h, p: StorageCapExceeded()),
    (403, ('transaction_cap_exceeded',), lambda c, m, h, p: TransactionCapExceeded()),
    (403, ('access_denied',), lambda c, m, h, p: AccessDenied()),
    # file info and downloads answer "not_found"
    (
        404,
        ('not_found',),
        lambda c, m, h, p: FileNotPresent(file_id_or_name=p.get('fileId') or p.get('fileName')),
    ),
    # the message of a bad url is cryptic, so it is left out
    (404, None, lambda c, m, h, p: ResourceNotFound()),
    (409, None, lambda c, m, h, p: Conflict()),
    (416, ('range_not_satisfiable',), lambda c, m, h, p: UnsatisfiableRange()),
    (429, None, lambda c, m, h, p: TooManyRequests(retry_after_seconds=h.get('retry-after'))),
]


def _interpret(status, code, message, response_headers, post_params) -> B2Error:
    for rule_status, rule_codes, factory in _ERROR_RULES:
        if rule_status == status and (rule_codes is None or code in rule_codes):
            return factory(code, message, response_headers, post_params)
    description = '%d %s %s' % (status, code, message)
    if 500 <= status < 600:
        return ServiceError(description)
    return UnknownError(description)


@trace_call(logger)
def interpret_b2_error(
    status: int,
    code: str | None,
    message: str | None,
    response_headers: dict[str, Any],
    post_params: dict[str, Any] | None = None
) -> B2Error:
    """
    Turn an error answer of the server into the matching exception.

    The returned exception remembers the http ``status`` it was built from.
    """
    error = _interpret(status, code, message, response_headers, post_params or {})
    error.status = status
    return error
